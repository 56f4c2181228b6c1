# github_sync.py
"""Back the job list up to a GitHub repository through the contents API."""
from __future__ import annotations

import base64
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional

import requests

from helpers import _iso, _now

LOG = logging.getLogger("jobflow.github")

API = "https://api.github.com"
JOBS_BACKUP_PATH = "data/jobs_backup.json"
TIMEOUT = 15


@dataclass
class GitHubSyncResult:
    success: bool
    message: str
    url: Optional[str] = None


class GitHubSyncError(Exception):
    pass


def _headers(token: str) -> Dict[str, str]:
    return {"Authorization": f"token {token}", "Accept": "application/vnd.github.v3+json"}


def split_repo(repo: str) -> tuple[str, str]:
    parts = (repo or "").split("/")
    if len(parts) != 2 or not parts[0] or not parts[1]:
        raise GitHubSyncError("Invalid repository format. Use 'username/repo'.")
    return parts[0], parts[1]


def _json_object(r) -> Dict[str, Any]:
    """Response body as a dict; {} for non-JSON or any other JSON shape."""
    try:
        data = r.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


def _commit_file(http, token: str, repo: str, path: str, content: str) -> str:
    url = f"{API}/repos/{repo}/contents/{path}"

    # current sha is needed to update instead of create; a missing file is fine
    sha = None
    try:
        r = http.get(url, headers=_headers(token), timeout=TIMEOUT)
        if r.ok:
            # a directory at the path answers with a list: no sha to reuse
            sha = _json_object(r).get("sha")
            if sha is not None and not isinstance(sha, str):
                sha = None
        elif r.status_code != 404:
            LOG.warning("reading %s in %s returned %s", path, repo, r.status_code)
    except requests.RequestException as e:
        LOG.warning("reading %s in %s failed: %s", path, repo, e)

    body: Dict[str, Any] = {
        "message": f"JobFlow AI Data Backup: {_iso(_now())}",
        "content": base64.b64encode(content.encode("utf-8")).decode("ascii"),
    }
    if sha:
        body["sha"] = sha

    try:
        r = http.put(url, headers={**_headers(token), "Content-Type": "application/json"},
                     json=body, timeout=TIMEOUT)
    except requests.RequestException as e:
        raise GitHubSyncError(f"Failed to sync {path}: {e}") from e
    if not r.ok:
        message = _json_object(r).get("message")
        raise GitHubSyncError(str(message) if message else f"Failed to sync {path}")

    written = _json_object(r).get("content")
    html_url = written.get("html_url") if isinstance(written, dict) else None
    return html_url if isinstance(html_url, str) else ""


def sync_jobs_to_github(token: str, repo: str, jobs: Iterable[Dict[str, Any]], session=None) -> GitHubSyncResult:
    try:
        split_repo(repo)
        content = json.dumps(list(jobs), indent=2, ensure_ascii=False)
        html_url = _commit_file(session or requests, token, repo, JOBS_BACKUP_PATH, content)
    except GitHubSyncError as e:
        LOG.warning("GitHub sync to %r failed: %s", repo, e)
        return GitHubSyncResult(success=False, message=str(e) or "GitHub Sync Failed")
    except Exception:
        LOG.exception("GitHub sync to %r failed unexpectedly", repo)
        return GitHubSyncResult(success=False, message="GitHub Sync Failed")
    LOG.info("jobs backup committed to %s", repo)
    return GitHubSyncResult(
        success=True,
        message="Successfully committed Jobs backup to GitHub.",
        url=html_url or None,
    )


def verify_github_repo(token: str, repo: str, session=None) -> bool:
    try:
        split_repo(repo)
    except GitHubSyncError:
        return False
    http = session or requests
    try:
        r = http.get(f"{API}/repos/{repo}", headers=_headers(token), timeout=TIMEOUT)
    except requests.RequestException:
        return False
    return r.ok
