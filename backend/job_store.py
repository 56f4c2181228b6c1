# job_store.py
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import JSON, DateTime, Integer, String, Text, create_engine, delete, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.pool import StaticPool

from helpers import _now
from models import Job, UserProfile, job_from_row, profile_from_row

LOG = logging.getLogger("jobflow.store")

JsonDoc = JSON().with_variant(JSONB(), "postgresql")


class Base(DeclarativeBase):
    pass


class JobRow(Base):
    __tablename__ = "jobs"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(255), index=True, nullable=False)
    title: Mapped[str] = mapped_column(Text, default="", nullable=False)
    company: Mapped[str] = mapped_column(Text, default="", nullable=False)
    description: Mapped[str] = mapped_column(Text, default="", nullable=False)
    status: Mapped[str] = mapped_column(String(40), default="Detected", nullable=False)
    source: Mapped[str] = mapped_column(String(40), default="Manual", nullable=False)
    application_url: Mapped[Optional[str]] = mapped_column(Text)
    custom_resume: Mapped[Optional[str]] = mapped_column(Text)
    cover_letter: Mapped[Optional[str]] = mapped_column(Text)
    match_score: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    # location, salaryRange, requirements, notes, logoUrl, detectedAt
    data: Mapped[Dict[str, Any]] = mapped_column(JsonDoc, default=dict, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class ProfileRow(Base):
    __tablename__ = "profiles"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    email: Mapped[str] = mapped_column(String(320), default="", nullable=False)
    full_name: Mapped[str] = mapped_column(Text, default="", nullable=False)
    phone: Mapped[str] = mapped_column(String(64), default="", nullable=False)
    resume_content: Mapped[str] = mapped_column(Text, default="", nullable=False)
    resume_file_name: Mapped[str] = mapped_column(Text, default="", nullable=False)
    avatar_url: Mapped[str] = mapped_column(Text, default="", nullable=False)
    preferences: Mapped[Dict[str, Any]] = mapped_column(JsonDoc, default=dict, nullable=False)
    connected_accounts: Mapped[List[Dict[str, Any]]] = mapped_column(JsonDoc, default=list, nullable=False)
    plan: Mapped[str] = mapped_column(String(16), default="free", nullable=False)
    subscription_expiry: Mapped[Optional[str]] = mapped_column(String(64))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


JOBS = JobRow.__table__
PROFILES = ProfileRow.__table__

# Columns an upsert may overwrite; id, owner and created_at never change.
JOB_UPDATABLE = (
    "title", "company", "description", "status", "source", "application_url",
    "custom_resume", "cover_letter", "match_score", "data", "updated_at",
)
PROFILE_UPDATABLE = (
    "email", "full_name", "phone", "resume_content", "resume_file_name", "avatar_url",
    "preferences", "connected_accounts", "plan", "subscription_expiry", "updated_at",
)


def make_engine(url: str) -> Engine:
    """Create the process-wide engine/pool. Called once by the app factory."""
    if not url:
        raise RuntimeError("DATABASE_URL is not set")
    if url.startswith("postgres://"):
        # managed Postgres providers still hand out the legacy scheme
        url = "postgresql+psycopg://" + url[len("postgres://"):]
    elif url.startswith("postgresql://"):
        url = "postgresql+psycopg://" + url[len("postgresql://"):]
    if url in ("sqlite://", "sqlite:///:memory:"):
        # one shared connection so every request sees the same in-memory db
        return create_engine(url, connect_args={"check_same_thread": False}, poolclass=StaticPool)
    return create_engine(url, pool_pre_ping=True)


class JobStore:
    """Owner-scoped access to the `jobs` and `profiles` tables."""

    def __init__(self, engine: Engine):
        self.engine = engine

    def create_schema(self) -> None:
        Base.metadata.create_all(self.engine)

    def _insert(self, table):
        name = self.engine.dialect.name
        if name == "postgresql":
            return postgresql.insert(table)
        if name == "sqlite":
            return sqlite.insert(table)
        raise RuntimeError(f"upsert not supported on dialect {name!r}")

    # -------- Jobs --------
    def list_jobs(self, user_id: str) -> List[Job]:
        stmt = (
            select(JOBS)
            .where(JOBS.c.user_id == user_id)
            .order_by(JOBS.c.created_at.desc(), JOBS.c.id)
        )
        with self.engine.connect() as conn:
            return [job_from_row(r) for r in conn.execute(stmt)]

    def get_job(self, user_id: str, job_id: str) -> Optional[Job]:
        stmt = select(JOBS).where(JOBS.c.id == job_id, JOBS.c.user_id == user_id)
        with self.engine.connect() as conn:
            row = conn.execute(stmt).first()
        return job_from_row(row) if row else None

    def upsert_job(self, user_id: str, job: Job) -> Optional[Job]:
        """Insert or update by id. Returns None when the id belongs to another user."""
        now = _now()
        values = {
            "id": job.id,
            "user_id": user_id,
            "title": job.title,
            "company": job.company,
            "description": job.description,
            "status": job.status,
            "source": job.source,
            "application_url": job.applicationUrl or None,
            "custom_resume": job.customizedResume or None,
            "cover_letter": job.coverLetter or None,
            "match_score": job.matchScore,
            "data": job.extra_data(),
            "created_at": now,
            "updated_at": now,
        }
        ins = self._insert(JOBS).values(**values)
        stmt = ins.on_conflict_do_update(
            index_elements=[JOBS.c.id],
            set_={k: getattr(ins.excluded, k) for k in JOB_UPDATABLE},
            where=JOBS.c.user_id == ins.excluded.user_id,
        ).returning(*JOBS.c)
        with self.engine.begin() as conn:
            row = conn.execute(stmt).first()
        if row is None:
            LOG.warning("upsert of job %s refused: owned by another user", job.id)
            return None
        return job_from_row(row)

    def delete_job(self, user_id: str, job_id: str) -> bool:
        stmt = delete(JOBS).where(JOBS.c.id == job_id, JOBS.c.user_id == user_id)
        with self.engine.begin() as conn:
            res = conn.execute(stmt)
        return res.rowcount > 0

    # -------- Profiles --------
    def get_profile(self, user_id: str) -> Optional[UserProfile]:
        with self.engine.connect() as conn:
            row = conn.execute(select(PROFILES).where(PROFILES.c.id == user_id)).first()
        return profile_from_row(row) if row else None

    def upsert_profile(self, profile: UserProfile) -> UserProfile:
        now = _now()
        values = {
            "id": profile.id,
            "email": profile.email,
            "full_name": profile.fullName,
            "phone": profile.phone,
            "resume_content": profile.resumeContent,
            "resume_file_name": profile.resumeFileName,
            "avatar_url": profile.avatarUrl,
            "preferences": profile.preferences,
            "connected_accounts": profile.connectedAccounts,
            "plan": profile.plan,
            "subscription_expiry": profile.subscriptionExpiry or None,
            "created_at": now,
            "updated_at": now,
        }
        ins = self._insert(PROFILES).values(**values)
        stmt = ins.on_conflict_do_update(
            index_elements=[PROFILES.c.id],
            set_={k: getattr(ins.excluded, k) for k in PROFILE_UPDATABLE},
        ).returning(*PROFILES.c)
        with self.engine.begin() as conn:
            row = conn.execute(stmt).first()
        return profile_from_row(row)
