# file_storage.py
"""Workspace text files: a real directory, or a virtual key-value fallback.

Which one is used is decided once, when the workspace is set up; callers only
see the ``WorkspaceStorage`` interface afterwards.
"""
from __future__ import annotations

import json
import logging
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable, Dict, Optional, Union

from errors import (
    QuotaExceededError,
    SecurityRestrictionError,
    VirtualFileNotFoundError,
    WorkspaceError,
    WorkspaceFileNotFoundError,
)

LOG = logging.getLogger("jobflow.fs")

VIRTUAL_PREFIX = "virtual_"
DEFAULT_QUOTA = 5 * 1024 * 1024  # characters, same budget as browser local storage

SAMPLE_JOBS_TXT = """https://www.linkedin.com/jobs/view/senior-react-developer-123
https://www.indeed.com/viewjob?jk=react-frontend-456
https://weworkremotely.com/remote-jobs/full-stack-engineer
"""

SECURITY_RESTRICTION_MESSAGE = (
    "Security Restriction: access to the directory was blocked. "
    "Try opening this app in a new independent top-level window."
)


class KeyValueStore:
    """String store with a total-size quota, optionally persisted to a JSON file."""

    def __init__(self, quota: int = DEFAULT_QUOTA, path: Optional[Union[str, Path]] = None):
        self.quota = quota
        self.path = Path(path) if path else None
        self._data: Dict[str, str] = {}
        if self.path and self.path.exists():
            with open(self.path, "r", encoding="utf-8") as fh:
                self._data = json.load(fh)

    def _size(self, data: Dict[str, str]) -> int:
        return sum(len(k) + len(v) for k, v in data.items())

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def __contains__(self, key: str) -> bool:
        return key in self._data

    def set(self, key: str, value: str) -> None:
        candidate = dict(self._data)
        candidate[key] = value
        if self._size(candidate) > self.quota:
            raise QuotaExceededError("Quota exceeded in virtual storage.")
        if self.path:
            # the saved file is only swapped once the new copy is fully written
            tmp = self.path.with_name(self.path.name + ".tmp")
            try:
                with open(tmp, "w", encoding="utf-8") as fh:
                    json.dump(candidate, fh, ensure_ascii=False)
                os.replace(tmp, self.path)
            except OSError as e:
                tmp.unlink(missing_ok=True)
                raise QuotaExceededError("Quota exceeded in virtual storage.") from e
        self._data = candidate


class WorkspaceStorage(ABC):
    name: str
    is_virtual: bool = False

    @abstractmethod
    def read(self, filename: str) -> str: ...

    @abstractmethod
    def write(self, filename: str, content: str) -> bool: ...


def _check_filename(filename: str) -> str:
    if not filename or filename in (".", "..") or "/" in filename or "\\" in filename:
        raise WorkspaceError(f"Invalid file name: {filename!r}")
    return filename


class DirectoryStorage(WorkspaceStorage):
    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self.name = self.path.name

    def write(self, filename: str, content: str) -> bool:
        target = self.path / _check_filename(filename)
        try:
            with open(target, "w", encoding="utf-8") as fh:
                fh.write(content)
        except OSError as e:
            LOG.error("failed to write %s: %s", target, e)
            raise WorkspaceError(f"Failed to write file: {e}") from e
        return True

    def read(self, filename: str) -> str:
        target = self.path / _check_filename(filename)
        try:
            with open(target, "r", encoding="utf-8") as fh:
                return fh.read()
        except OSError as e:
            LOG.error("failed to read %s: %s", target, e)
            raise WorkspaceFileNotFoundError(f"File not found: {filename}") from e
        except UnicodeDecodeError as e:
            LOG.error("failed to decode %s: %s", target, e)
            raise WorkspaceError(f"Cannot decode {filename} as UTF-8") from e


class VirtualStorage(WorkspaceStorage):
    is_virtual = True

    def __init__(self, name: str, store: KeyValueStore):
        self.name = name
        self.store = store

    def write(self, filename: str, content: str) -> bool:
        self.store.set(VIRTUAL_PREFIX + filename, content)
        LOG.info("[virtual fs] wrote %s", filename)
        return True

    def read(self, filename: str) -> str:
        content = self.store.get(VIRTUAL_PREFIX + filename)
        if content is None:
            raise VirtualFileNotFoundError(f"File not found in virtual workspace: {filename}")
        LOG.info("[virtual fs] read %s", filename)
        return content


def create_virtual_directory(name: str, store: Optional[KeyValueStore] = None) -> VirtualStorage:
    store = store if store is not None else KeyValueStore()
    LOG.info("creating virtual directory %s", name)
    # only jobs.txt is seeded; resume.txt must come from the user
    if VIRTUAL_PREFIX + "jobs.txt" not in store:
        store.set(VIRTUAL_PREFIX + "jobs.txt", SAMPLE_JOBS_TXT)
    return VirtualStorage(name, store)


def request_directory(chooser: Callable[[], Optional[str]]) -> Optional[DirectoryStorage]:
    """Ask the user for a directory.

    ``chooser`` returns a path, or nothing when the user cancels (-> None).
    A blocked or unusable directory raises ``SecurityRestrictionError``.
    """
    try:
        chosen = chooser()
    except PermissionError as e:
        raise SecurityRestrictionError(SECURITY_RESTRICTION_MESSAGE) from e
    if not chosen:
        return None
    path = Path(chosen).expanduser()
    if not path.is_dir():
        raise WorkspaceError(f"Not a directory: {path}")
    if not os.access(path, os.R_OK | os.W_OK):
        raise SecurityRestrictionError(SECURITY_RESTRICTION_MESSAGE)
    return DirectoryStorage(path)


def open_workspace(chooser: Callable[[], Optional[str]], name: str = "workspace",
                   store: Optional[KeyValueStore] = None) -> WorkspaceStorage:
    """Real directory when one is granted, virtual workspace otherwise."""
    try:
        handle = request_directory(chooser)
    except SecurityRestrictionError as e:
        LOG.warning("%s Falling back to the virtual workspace.", e.message)
        handle = None
    return handle if handle is not None else create_virtual_directory(name, store)
