# parsers.py
"""Parse steps for generative-model text output.

Models wrap JSON in markdown fences, add commentary before or after it, or
answer with something else entirely. Every parser here returns a
``ParseResult`` and never raises; callers decide what a failure turns into.
"""
from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any

ARRAY_RE = re.compile(r"\[[\s\S]*\]")
OBJECT_RE = re.compile(r"\{[\s\S]*\}")
LEADING_INT_RE = re.compile(r"^\s*([+-]?\d+)")


@dataclass(frozen=True)
class ParseResult:
    ok: bool
    value: Any = None
    raw: str = ""

    def value_or(self, default: Any) -> Any:
        return self.value if self.ok else default


def _ok(value: Any, raw: str) -> ParseResult:
    return ParseResult(ok=True, value=value, raw=raw)


def _fail(raw: str) -> ParseResult:
    return ParseResult(ok=False, value=None, raw=raw)


def strip_fences(text: str) -> str:
    cleaned = (text or "").strip()
    if cleaned.startswith("```"):
        # drop the ```json / ``` line
        cleaned = "\n".join(cleaned.splitlines()[1:])
    if cleaned.endswith("```"):
        cleaned = "\n".join(cleaned.splitlines()[:-1])
    return cleaned.strip()


def _parse_delimited(text: str, pattern: re.Pattern, kind: type) -> ParseResult:
    raw = text or ""
    cleaned = strip_fences(raw)
    m = pattern.search(cleaned)
    candidate = m.group(0) if m else cleaned
    try:
        value = json.loads(candidate)
    except ValueError:
        return _fail(raw)
    if not isinstance(value, kind):
        return _fail(raw)
    return _ok(value, raw)


def parse_json_array(text: str) -> ParseResult:
    """First '[' to last ']' of the text, decoded as a JSON list."""
    return _parse_delimited(text, ARRAY_RE, list)


def parse_json_object(text: str) -> ParseResult:
    """First '{' to last '}' of the text, decoded as a JSON object."""
    return _parse_delimited(text, OBJECT_RE, dict)


def parse_leading_int(text: str) -> ParseResult:
    # "85", " 85/100", "-5" parse; "Score: 85" does not
    m = LEADING_INT_RE.match(text or "")
    if not m:
        return _fail(text or "")
    return _ok(int(m.group(1)), text)
