# api.py
from __future__ import annotations
import logging
from typing import Any, Dict

from flask import Blueprint, current_app, g, jsonify, request
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

import llm_client as ai
from auth import login_required
from errors import BadRequestError, NotFoundError
from github_sync import sync_jobs_to_github, verify_github_repo
from job_store import JobStore
from models import Job, UserProfile

LOG = logging.getLogger("jobflow.api")

api_bp = Blueprint("api", __name__)

# rate limiter; bound to the app in init_api()
limiter = Limiter(key_func=get_remote_address, default_limits=["200/hour"])


def _store() -> JobStore:
    return current_app.extensions["jobflow"]["store"]


def _llm() -> ai.LLMClient:
    return current_app.extensions["jobflow"]["llm"]


def _http():
    return current_app.extensions["jobflow"]["http"]


def _body() -> Dict[str, Any]:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise BadRequestError("JSON object expected")
    return data


def _field(data: Dict[str, Any], key: str, default: str = "") -> str:
    v = data.get(key)
    return default if v is None else str(v)


# ------------------------------
# Jobs
# ------------------------------
@api_bp.route("/jobs", methods=["GET", "POST", "DELETE"])
@login_required
def jobs():
    store = _store()

    if request.method == "GET":
        return jsonify({"jobs": [j.to_document() for j in store.list_jobs(g.user_id)]})

    if request.method == "POST":
        job = Job.from_payload(request.get_json(silent=True))
        saved = store.upsert_job(g.user_id, job)
        if saved is None:
            raise NotFoundError("Job not found")
        return jsonify({"success": True, "job": saved.to_document()})

    job_id = request.args.get("id")
    if not job_id:
        return jsonify({"error": "Missing Job ID"}), 400
    deleted = store.delete_job(g.user_id, job_id)
    return jsonify({"success": True, "deleted": deleted})


# ------------------------------
# Profile
# ------------------------------
@api_bp.route("/profile", methods=["GET", "POST"])
@login_required
def profile():
    store = _store()

    if request.method == "GET":
        found = store.get_profile(g.user_id)
        if not found:
            return jsonify({"error": "Profile not found"}), 404
        return jsonify(found.to_document())

    saved = store.upsert_profile(UserProfile.from_payload(g.user_id, request.get_json(silent=True)))
    return jsonify(saved.to_document())


# ------------------------------
# Nearby search
# ------------------------------
def _coordinate(data: Dict[str, Any], key: str) -> float:
    v = data.get(key)
    if v is None or v == "" or isinstance(v, bool):
        raise BadRequestError("Missing coordinates")
    try:
        return float(v)
    except (TypeError, ValueError):
        raise BadRequestError("Missing coordinates")


@api_bp.post("/search-nearby")
@login_required
@limiter.limit("10/minute")
def search_nearby():
    data = _body()
    lat, lng = _coordinate(data, "lat"), _coordinate(data, "lng")
    role = _field(data, "role").strip()
    return jsonify({"jobs": ai.search_nearby_jobs(_llm(), lat, lng, role)})


# ------------------------------
# AI aids
# ------------------------------
def _candidate(data: Dict[str, Any]) -> Dict[str, str]:
    """Resume/name/email from the request, falling back to the stored profile."""
    resume, name, email = data.get("resume"), data.get("name"), data.get("email")
    if resume and name is not None and email is not None:
        return {"resume": str(resume), "name": str(name), "email": str(email)}
    stored = _store().get_profile(g.user_id)
    return {
        "resume": str(resume or (stored.resumeContent if stored else "")),
        "name": str(name if name is not None else (stored.fullName if stored else "")),
        "email": str(email if email is not None else (stored.email if stored else "")),
    }


@api_bp.post("/ai/cover-letter")
@login_required
@limiter.limit("30/minute")
def ai_cover_letter():
    data = _body()
    who = _candidate(data)
    content = ai.generate_cover_letter(
        _llm(), _field(data, "title"), _field(data, "company"), _field(data, "description"),
        who["resume"], who["name"], who["email"],
    )
    return jsonify({"content": content})


@api_bp.post("/ai/customize-resume")
@login_required
@limiter.limit("30/minute")
def ai_customize_resume():
    data = _body()
    who = _candidate(data)
    content = ai.customize_resume(
        _llm(), _field(data, "title"), _field(data, "company"), _field(data, "description"),
        who["resume"], who["email"],
    )
    return jsonify({"content": content})


@api_bp.post("/ai/match-score")
@login_required
@limiter.limit("60/minute")
def ai_match_score():
    data = _body()
    preferences = data.get("preferences")
    resume = data.get("resume")
    if resume is None or preferences is None:
        stored = _store().get_profile(g.user_id)
        if resume is None:
            resume = stored.resumeContent if stored else ""
        if preferences is None:
            preferences = stored.preferences if stored else {}
    if not isinstance(preferences, dict):
        raise BadRequestError("preferences must be an object")
    score = ai.calculate_job_match_score(_llm(), _field(data, "description"), str(resume), preferences)
    return jsonify({"score": score})


@api_bp.post("/ai/extract-job")
@login_required
@limiter.limit("30/minute")
def ai_extract_job():
    url = _field(_body(), "url").strip()
    if not url:
        raise BadRequestError("url required")
    return jsonify(ai.extract_job_from_url(_llm(), url, session=_http()))


@api_bp.post("/ai/extract-email-jobs")
@login_required
@limiter.limit("30/minute")
def ai_extract_email_jobs():
    html = _field(_body(), "html")
    if not html.strip():
        raise BadRequestError("html required")
    return jsonify({"jobs": ai.extract_jobs_from_email_html(_llm(), html)})


@api_bp.post("/ai/clean-url")
@login_required
def ai_clean_url():
    return jsonify({"url": ai.get_smart_application_url(_field(_body(), "url"))})


# ------------------------------
# GitHub backup
# ------------------------------
@api_bp.post("/sync/github")
@login_required
@limiter.limit("10/minute")
def sync_github():
    data = _body()
    token, repo = _field(data, "token"), _field(data, "repo")
    if not token:
        raise BadRequestError("token required")
    jobs_docs = [j.to_document() for j in _store().list_jobs(g.user_id)]
    result = sync_jobs_to_github(token, repo, jobs_docs, session=_http())
    return jsonify({"success": result.success, "message": result.message, "url": result.url or ""})


@api_bp.post("/sync/github/verify")
@login_required
def sync_github_verify():
    data = _body()
    return jsonify({"ok": verify_github_repo(_field(data, "token"), _field(data, "repo"), session=_http())})


def init_api(app):
    """
    Call once from the app factory:
        app.register_blueprint(api_bp, url_prefix="/api")
        init_api(app)
    """
    limiter.init_app(app)
