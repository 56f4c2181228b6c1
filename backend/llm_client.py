from __future__ import annotations
import json
import logging
import time
from typing import Any, Dict, List, Optional
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from openai import OpenAI

from config import DEFAULT_LLM_BASE_URL, DEFAULT_LLM_MODEL
from errors import ExternalServiceError
from helpers import _iso, _now
from models import JobSource, JobStatus
from parsers import parse_json_array, parse_json_object, parse_leading_int
from sources.job_pages import fetch_page_text

LOG = logging.getLogger("jobflow.llm")

PLACEHOLDER_MARKERS = ("review", "unknown", "site", "description")
TRACKING_PARAMS = {
    "utm_source", "utm_medium", "utm_campaign", "utm_term", "utm_content",
    "ref", "source", "click_id", "fbclid", "gclid",
}
NEUTRAL_SCORE = 50


class LLMClient:
    """Thin wrapper over an OpenAI-compatible chat completions endpoint."""

    def __init__(self, api_key: str, base_url: str = DEFAULT_LLM_BASE_URL,
                 model: str = DEFAULT_LLM_MODEL, client: Optional[OpenAI] = None):
        self.api_key = api_key
        self.base_url = base_url
        self.model = model
        self._client = client

    @property
    def client(self) -> OpenAI:
        if self._client is None:
            if not self.api_key:
                raise ExternalServiceError("LLM_API_KEY is not set")
            self._client = OpenAI(base_url=self.base_url, api_key=self.api_key)
        return self._client

    def complete(self, prompt: str, *, temperature: float,
                 max_tokens: Optional[int] = None, json_mode: bool = False) -> str:
        kwargs: Dict[str, Any] = {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": temperature,
        }
        if max_tokens:
            kwargs["max_tokens"] = max_tokens
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}
        completion = self.client.chat.completions.create(**kwargs)
        content = completion.choices[0].message.content or ""
        LOG.debug("LLM response snippet: %s...", content[:200])
        return content


def is_placeholder_company(company: Optional[str]) -> bool:
    low = (company or "").lower()
    return not low or any(m in low for m in PLACEHOLDER_MARKERS)


# ------------------------------
# Letters & resumes (plain text)
# ------------------------------
def generate_cover_letter(llm: LLMClient, title: str, company: str, description: str,
                          resume: str, name: str, email: str) -> str:
    target = (
        'Carefully scan the job description below to identify the actual company name. '
        'If not found, use "Hiring Manager".'
        if is_placeholder_company(company) else company
    )
    prompt = f"""Write a professional, high-impact cover letter for the {title} position.

CONTEXT:
- Target Company: {target}
- Candidate: {name} ({email})
- Job Title: {title}
- Job Description: {description}
- Candidate Resume: {resume}

REQUIREMENTS:
1. Keep cover letter under 400 words
2. Match candidate skills to job requirements
3. NEVER use placeholder text like "Review Required", "Unknown Company", "Check Site", or "Check Description"
4. Use professional tone and ATS-friendly formatting
5. Include specific accomplishments from resume that align with job requirements"""
    try:
        text = llm.complete(prompt, temperature=0.7, max_tokens=1024)
        LOG.info("cover letter generated for %s", title)
        return text.strip()
    except Exception as exc:
        LOG.warning("cover letter generation failed: %s", exc)
        return f"Cover letter generation failed: {exc}"


def customize_resume(llm: LLMClient, title: str, company: str, description: str,
                     resume: str, email: str) -> str:
    target = "the target company" if is_placeholder_company(company) else company
    prompt = f"""Tailor this resume for a {title} role at {target}.

Email: {email}

Original Resume:
{resume}

Job Description:
{description}

INSTRUCTIONS:
1. Reorder experience to highlight relevant skills first
2. Adapt bullet points to match job description keywords
3. Emphasize achievements with metrics (e.g., increased by X%, saved Y hours)
4. Keep the same length and structure
5. Focus on ATS optimization with proper formatting"""
    try:
        return llm.complete(prompt, temperature=0.7, max_tokens=2048).strip()
    except Exception as exc:
        LOG.warning("resume customization failed: %s", exc)
        return f"Resume customization failed: {exc}"


# ------------------------------
# Structured extraction (JSON)
# ------------------------------
def _job_template(title: str, company: str, description: str) -> Dict[str, Any]:
    return {
        "title": title,
        "company": company,
        "location": "Remote",
        "salaryRange": "",
        "description": description,
        "requirements": [],
    }


def extract_job_from_url(llm: LLMClient, url: str, session=None) -> Dict[str, Any]:
    """Fetch a posting and let the model pull out its fields.

    Returns ``{"data": {...}, "sources": []}``; ``data`` is always a complete
    job template, a manual-entry stub when extraction falls short.
    """
    try:
        page = fetch_page_text(url, session=session)
        if page:
            prompt = f"""Extract job details from this page content. Return ONLY valid JSON with these exact keys: title, company, location, salaryRange, description, requirements (as array).

Page content (from any job site: LinkedIn, Indeed, Seek, Naukrigulf, GulfTalent, company pages, etc.):

{page}

Return format:
{{
  "title": "Job Title",
  "company": "Company Name",
  "location": "Location",
  "salaryRange": "Salary or empty string",
  "description": "Job description",
  "requirements": ["req1", "req2"]
}}"""
        else:
            prompt = f"""Extract job details from this URL: {url}. If you cannot access it, return a template with:
{json.dumps(_job_template("Manual Entry Required", "Unknown", "Please manually enter job details"), indent=2)}"""

        text = llm.complete(prompt, temperature=0.1, json_mode=True)
    except Exception as exc:
        LOG.error("job extraction error for %s: %s", url, exc)
        return {
            "data": _job_template("Extraction Failed", "Unknown", f"Error: {exc}. Please add details manually."),
            "sources": [],
        }

    parsed = parse_json_object(text)
    data = parsed.value_or({})
    if not data.get("title") or not data.get("company"):
        LOG.info("extraction for %s incomplete, falling back to manual template", url)
        description = parsed.raw or "Unable to extract full details. Please edit manually."
        return {
            "data": _job_template("Manual Entry Required", "Unknown Company", description),
            "sources": [],
        }

    requirements = data.get("requirements")
    return {
        "data": {
            "title": str(data["title"]),
            "company": str(data["company"]),
            "location": str(data.get("location") or "Remote"),
            "salaryRange": str(data.get("salaryRange") or data.get("salary") or ""),
            "description": str(data.get("description") or "No description available"),
            "requirements": [str(r) for r in requirements] if isinstance(requirements, list) else [],
        },
        "sources": [],
    }


def extract_jobs_from_email_html(llm: LLMClient, html: str) -> List[Dict[str, str]]:
    prompt = f"""Extract ALL job postings from this email HTML. Return ONLY valid JSON: an object {{"jobs": [...]}} whose array holds one object per posting.

Each object must have these EXACT keys:
- title (string): Job title
- company (string): Company name
- location (string): Job location or "Remote"
- salaryRange (string): Salary range or empty string
- description (string): Job description (max 500 chars)
- applicationUrl (string): Application link or empty string

HTML Content:
{html}

IMPORTANT: Return ONLY valid JSON, no other text."""
    try:
        text = llm.complete(prompt, temperature=0.2, max_tokens=4096, json_mode=True)
    except Exception as exc:
        LOG.error("email extraction error: %s", exc)
        return []

    parsed = parse_json_array(text)
    if not parsed.ok:
        LOG.warning("email extraction: unparsable model output")
        return []
    keys = ("title", "company", "location", "salaryRange", "description", "applicationUrl")
    return [
        {k: "" if item.get(k) is None else str(item.get(k)) for k in keys}
        for item in parsed.value
        if isinstance(item, dict)
    ]


def search_nearby_jobs(llm: LLMClient, lat: float, lng: float, role: str) -> List[Dict[str, Any]]:
    """Hiring places near a coordinate, shaped as Job documents.

    The places the model returns carry no schema guarantee: each entry may be
    ``{"maps": {"title", "uri"}}`` or a flat ``{"title", "uri"}`` and any field
    may be missing.
    """
    role = role or "Software Engineer"
    prompt = f"""Find hiring companies and job openings for "{role}" near latitude {lat}, longitude {lng}.

Return ONLY valid JSON: {{"places": [{{"maps": {{"title": "Company or place name", "uri": "Maps or careers link"}}}}]}}"""
    try:
        text = llm.complete(prompt, temperature=0.5, max_tokens=2048, json_mode=True)
    except Exception as exc:
        LOG.error("nearby search error: %s", exc)
        return []

    parsed = parse_json_array(text)
    if not parsed.ok:
        return []

    stamp = int(time.time() * 1000)
    detected = _iso(_now())
    jobs = []
    for i, chunk in enumerate(parsed.value):
        if not isinstance(chunk, dict):
            continue
        place = chunk.get("maps") if isinstance(chunk.get("maps"), dict) else chunk
        title = place.get("title")
        uri = place.get("uri")
        if not title and not uri:
            continue
        jobs.append({
            "id": f"map-{i}-{stamp}",
            "title": role,
            "company": str(title) if isinstance(title, str) and title else "Local Company",
            "location": "Nearby",
            "salaryRange": "",
            "description": "Found via Maps discovery.",
            "source": JobSource.GOOGLE_MAPS.value,
            "detectedAt": detected,
            "status": JobStatus.DETECTED.value,
            "matchScore": 85,
            "requirements": [],
            "coverLetter": "",
            "customizedResume": "",
            "notes": "",
            "logoUrl": "",
            "applicationUrl": str(uri) if isinstance(uri, str) and uri else "",
        })
    return jobs


# ------------------------------
# Scoring
# ------------------------------
def _joined(values: Any) -> str:
    # preferences come from stored JSON; skip anything that isn't a scalar
    if not isinstance(values, list):
        return ""
    return ", ".join(
        str(v) for v in values
        if isinstance(v, (str, int, float)) and not isinstance(v, bool) and str(v).strip()
    )


def calculate_job_match_score(llm: LLMClient, job_description: str, user_resume: str,
                              preferences: Optional[Dict[str, Any]] = None) -> int:
    prefs = preferences if isinstance(preferences, dict) else {}
    roles = _joined(prefs.get("targetRoles")) or "Any"
    locations = _joined(prefs.get("targetLocations")) or "Any"
    prompt = f"""Rate the match between this job and the candidate on a scale of 0-100.

Job Description:
{job_description}

Candidate Resume:
{user_resume}

Target Roles: {roles}
Target Locations: {locations}

Return ONLY a single number between 0-100."""
    try:
        text = llm.complete(prompt, temperature=0.3, max_tokens=10)
    except Exception as exc:
        LOG.error("match score error: %s", exc)
        return NEUTRAL_SCORE

    parsed = parse_leading_int(text)
    if not parsed.ok:
        return NEUTRAL_SCORE
    return min(100, max(0, parsed.value))


# ------------------------------
# URLs
# ------------------------------
def get_smart_application_url(url: str) -> str:
    """Drop tracking parameters, keeping every other parameter in order."""
    try:
        parts = urlsplit(url)
    except (TypeError, ValueError):
        LOG.debug("invalid URL: %r", url)
        return url
    if not parts.scheme or not parts.netloc:
        return url
    params = parse_qsl(parts.query, keep_blank_values=True)
    kept = [(k, v) for k, v in params if k not in TRACKING_PARAMS]
    if len(kept) == len(params):
        return url
    return urlunsplit(parts._replace(query=urlencode(kept)))
