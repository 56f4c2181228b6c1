# models.py
"""Job / profile documents as the browser client sees them.

Incoming JSON is normalised here before it reaches the store; every optional
field gets an empty value so documents never have holes.
"""
from __future__ import annotations

import math
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from errors import BadRequestError
from helpers import _iso, _str


class JobStatus(str, Enum):
    DETECTED = "Detected"
    REVIEW = "In Review"
    SAVED = "Saved"
    APPLIED_AUTO = "Auto-Applied"
    APPLIED_MANUAL = "Applied Manually"
    INTERVIEW = "Interview"
    REJECTED = "Rejected"
    OFFER = "Offer"


class JobSource(str, Enum):
    GMAIL = "Gmail"
    OUTLOOK = "Outlook"
    LINKEDIN = "LinkedIn"
    INDEED = "Indeed"
    IMPORTED_LINK = "Imported Link"
    GOOGLE_MAPS = "Google Maps"
    MANUAL = "Manual"


EMAIL_PROVIDERS = {"Gmail", "Outlook", "Yahoo", "IMAP"}
LANGUAGES = {"en", "es", "fr", "de", "ar"}
PLANS = {"free", "pro"}


def _text(body: Dict[str, Any], *keys: str) -> str:
    for k in keys:
        v = body.get(k)
        if v is None:
            continue
        if not isinstance(v, (str, int, float)) or isinstance(v, bool):
            raise BadRequestError(f"{k} must be a string")
        return str(v)
    return ""


def _str_list(value: Any, name: str) -> List[str]:
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(x, str) for x in value):
        raise BadRequestError(f"{name} must be a list of strings")
    return list(value)


def _choice(value: Any, allowed, default: str, name: str) -> str:
    if value in (None, ""):
        return default
    if not isinstance(value, str) or value not in allowed:
        raise BadRequestError(f"Invalid {name}: {value}")
    return value


@dataclass
class Job:
    id: str
    title: str = ""
    company: str = ""
    location: str = ""
    salaryRange: str = ""
    description: str = ""
    source: str = JobSource.MANUAL.value
    detectedAt: str = ""
    status: str = JobStatus.DETECTED.value
    matchScore: int = 0
    requirements: List[str] = field(default_factory=list)
    coverLetter: str = ""
    customizedResume: str = ""
    notes: str = ""
    logoUrl: str = ""
    applicationUrl: str = ""

    @classmethod
    def from_payload(cls, body: Any) -> "Job":
        if not isinstance(body, dict) or not body.get("id"):
            raise BadRequestError("Invalid Job Payload")
        score = body.get("matchScore")
        if score in (None, ""):
            score = 0
        if isinstance(score, bool) or not isinstance(score, (int, float)):
            raise BadRequestError("matchScore must be a number")
        if isinstance(score, float):
            # the JSON parser lets NaN / Infinity through
            if not math.isfinite(score):
                raise BadRequestError("matchScore must be a number")
            if not score.is_integer():
                raise BadRequestError("matchScore must be a whole number")
        return cls(
            id=_text(body, "id"),
            title=_text(body, "title"),
            company=_text(body, "company"),
            location=_text(body, "location"),
            salaryRange=_text(body, "salaryRange"),
            description=_text(body, "description"),
            source=_choice(body.get("source"), {s.value for s in JobSource}, JobSource.MANUAL.value, "source"),
            detectedAt=_text(body, "detectedAt"),
            status=_choice(body.get("status"), {s.value for s in JobStatus}, JobStatus.DETECTED.value, "status"),
            matchScore=min(100, max(0, int(score))),
            requirements=_str_list(body.get("requirements"), "requirements"),
            coverLetter=_text(body, "coverLetter"),
            customizedResume=_text(body, "customizedResume"),
            notes=_text(body, "notes"),
            logoUrl=_text(body, "logoUrl"),
            applicationUrl=_text(body, "applicationUrl"),
        )

    def extra_data(self) -> Dict[str, Any]:
        """Attributes kept in the row's embedded JSON document."""
        return {
            "location": self.location,
            "salaryRange": self.salaryRange,
            "requirements": self.requirements,
            "notes": self.notes,
            "logoUrl": self.logoUrl,
            "detectedAt": self.detectedAt,
        }

    def to_document(self) -> Dict[str, Any]:
        return asdict(self)


def default_preferences() -> Dict[str, Any]:
    return {"targetRoles": [], "targetLocations": [], "minSalary": "", "remoteOnly": False, "language": "en"}


def normalize_preferences(value: Any) -> Dict[str, Any]:
    prefs = default_preferences()
    if value is None:
        return prefs
    if not isinstance(value, dict):
        raise BadRequestError("preferences must be an object")
    prefs["targetRoles"] = _str_list(value.get("targetRoles"), "targetRoles")
    prefs["targetLocations"] = _str_list(value.get("targetLocations"), "targetLocations")
    prefs["minSalary"] = _text(value, "minSalary")
    prefs["remoteOnly"] = bool(value.get("remoteOnly", False))
    prefs["language"] = _choice(value.get("language"), LANGUAGES, "en", "language")
    if value.get("shareUrl"):
        prefs["shareUrl"] = _text(value, "shareUrl")
    return prefs


def normalize_account(value: Any) -> Dict[str, Any]:
    if not isinstance(value, dict):
        raise BadRequestError("connectedAccounts entries must be objects")
    account = {
        "id": _text(value, "id"),
        "provider": _choice(value.get("provider"), EMAIL_PROVIDERS, "IMAP", "provider"),
        "emailAddress": _text(value, "emailAddress"),
        "isConnected": bool(value.get("isConnected", False)),
        "lastSynced": _text(value, "lastSynced"),
    }
    if value.get("icon"):
        account["icon"] = _text(value, "icon")
    if value.get("accessToken"):
        account["accessToken"] = _text(value, "accessToken")
    return account


@dataclass
class UserProfile:
    id: str
    fullName: str = ""
    email: str = ""
    phone: str = ""
    resumeContent: str = ""
    resumeFileName: str = ""
    avatarUrl: str = ""
    preferences: Dict[str, Any] = field(default_factory=default_preferences)
    connectedAccounts: List[Dict[str, Any]] = field(default_factory=list)
    plan: str = "free"
    subscriptionExpiry: str = ""
    onboardedAt: Optional[str] = None

    @classmethod
    def from_payload(cls, user_id: str, body: Any) -> "UserProfile":
        body = body if body is not None else {}
        if not isinstance(body, dict):
            raise BadRequestError("Invalid Profile Payload")
        accounts = body.get("connectedAccounts", body.get("connected_accounts")) or []
        if not isinstance(accounts, list):
            raise BadRequestError("connectedAccounts must be a list")
        return cls(
            id=user_id,
            fullName=_text(body, "fullName", "full_name"),
            email=_text(body, "email"),
            phone=_text(body, "phone"),
            resumeContent=_text(body, "resumeContent", "resume_content"),
            resumeFileName=_text(body, "resumeFileName", "resume_file_name"),
            avatarUrl=_text(body, "avatarUrl", "avatar_url"),
            preferences=normalize_preferences(body.get("preferences")),
            connectedAccounts=[normalize_account(a) for a in accounts],
            plan=_choice(body.get("plan"), PLANS, "free", "plan"),
            subscriptionExpiry=_text(body, "subscriptionExpiry"),
        )

    def to_document(self) -> Dict[str, Any]:
        return asdict(self)


def job_from_row(row: Any) -> Job:
    data = row.data or {}
    return Job(
        id=row.id,
        title=row.title or "",
        company=row.company or "",
        location=_str(data.get("location")),
        salaryRange=_str(data.get("salaryRange")),
        description=row.description or "",
        source=row.source or JobSource.MANUAL.value,
        detectedAt=_str(data.get("detectedAt")) or _iso(row.created_at),
        status=row.status or JobStatus.DETECTED.value,
        matchScore=row.match_score or 0,
        requirements=list(data.get("requirements") or []),
        coverLetter=row.cover_letter or "",
        customizedResume=row.custom_resume or "",
        notes=_str(data.get("notes")),
        logoUrl=_str(data.get("logoUrl")),
        applicationUrl=row.application_url or "",
    )


def profile_from_row(row: Any) -> UserProfile:
    prefs = default_preferences()
    prefs.update(row.preferences or {})
    return UserProfile(
        id=row.id,
        fullName=row.full_name or "",
        email=row.email or "",
        phone=row.phone or "",
        resumeContent=row.resume_content or "",
        resumeFileName=row.resume_file_name or "",
        avatarUrl=row.avatar_url or "",
        preferences=prefs,
        connectedAccounts=list(row.connected_accounts or []),
        plan=row.plan or "free",
        subscriptionExpiry=row.subscription_expiry or "",
        onboardedAt=_iso(row.created_at or row.updated_at) or None,
    )
