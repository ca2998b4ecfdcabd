"""
SQLAlchemy models for the collection store.

Defines one table per collection: jobs, candidates, assessments and
assessment responses, with their unique and compound keys.
"""

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import JSON, DateTime, Index, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def _now_utc() -> datetime:
    """Get current UTC datetime (timezone-aware)."""
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """Base class for all database models."""

    pass


class JobModel(Base):
    """Database model for job postings."""

    __tablename__ = "jobs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    slug: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active", index=True)
    # Not unique: the reorder protocol is responsible for producing a total order.
    order: Mapped[int] = mapped_column(Integer, nullable=False, default=0, index=True)
    tags: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_now_utc,
        nullable=False,
        index=True,
    )


class CandidateModel(Base):
    """Database model for candidates."""

    __tablename__ = "candidates"
    __table_args__ = (Index("ix_candidates_job_id_stage", "job_id", "stage"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    stage: Mapped[str] = mapped_column(String(20), nullable=False, default="applied", index=True)
    job_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)
    avatar_url: Mapped[str | None] = mapped_column(String(512), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_now_utc,
        nullable=False,
        index=True,
    )


class AssessmentModel(Base):
    """Database model for assessments, one per job."""

    __tablename__ = "assessments"

    job_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    sections: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list, nullable=False)


class AssessmentResponseModel(Base):
    """Database model for submitted assessment responses (append-only)."""

    __tablename__ = "assessment_responses"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    job_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    candidate_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)
    answers: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_now_utc,
        nullable=False,
        index=True,
    )


COLLECTIONS: dict[str, type[Base]] = {
    "jobs": JobModel,
    "candidates": CandidateModel,
    "assessments": AssessmentModel,
    "assessment_responses": AssessmentResponseModel,
}
