"""
Pydantic schemas for the simulated backend.

Defines the domain records returned by the endpoint dispatcher and the
request shapes each operation accepts.
"""

from datetime import datetime
from enum import Enum
from typing import Any, ClassVar, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from talentflow.db.query import Pagination


class JobStatus(str, Enum):
    """Lifecycle status of a job posting."""

    ACTIVE = "active"
    ARCHIVED = "archived"


class CandidateStage(str, Enum):
    """Hiring pipeline stages, in board order."""

    APPLIED = "applied"
    SCREEN = "screen"
    TECH = "tech"
    OFFER = "offer"
    HIRED = "hired"
    REJECTED = "rejected"


STAGE_TITLES: dict[CandidateStage, str] = {
    CandidateStage.APPLIED: "Applied",
    CandidateStage.SCREEN: "Screen",
    CandidateStage.TECH: "Tech Interview",
    CandidateStage.OFFER: "Offer",
    CandidateStage.HIRED: "Hired",
    CandidateStage.REJECTED: "Rejected",
}


class QuestionType(str, Enum):
    """Answer widget types an assessment question may use."""

    SHORT_TEXT = "short-text"
    LONG_TEXT = "long-text"
    SINGLE_CHOICE = "single-choice"
    MULTI_CHOICE = "multi-choice"
    NUMERIC = "numeric"
    FILE = "file"


# ---------------------------------------------------------------------------
# Domain records
# ---------------------------------------------------------------------------


class Job(BaseModel):
    """A job posting as stored."""

    id: int = Field(..., description="Store-assigned surrogate key")
    slug: str = Field(..., description="Unique URL-friendly identifier")
    title: str = Field(..., description="Job title")
    description: str | None = Field(default=None, description="Free-text description")
    status: JobStatus = Field(..., description="active or archived")
    order: int = Field(..., description="Board position")
    tags: list[str] = Field(default_factory=list, description="Free-form tags")
    created_at: datetime = Field(..., description="Server-assigned creation time")


class Candidate(BaseModel):
    """A candidate as stored."""

    id: int = Field(..., description="Store-assigned surrogate key")
    name: str = Field(..., description="Candidate's full name")
    email: str = Field(..., description="Unique email address")
    stage: CandidateStage = Field(..., description="Current pipeline stage")
    job_id: int | None = Field(default=None, description="Job applied for (not enforced)")
    avatar_url: str | None = Field(default=None, description="Server-derived avatar URL")
    created_at: datetime = Field(..., description="Server-assigned creation time")


class Condition(BaseModel):
    """Show a question only when another question's answer matches."""

    question_id: str = Field(..., description="Id of the controlling question")
    operator: Literal["eq", "neq", "contains"] = Field(default="eq")
    value: Any = Field(default=None, description="Value the answer is compared against")


class Question(BaseModel):
    """A single assessment question."""

    id: str = Field(..., min_length=1)
    type: QuestionType
    label: str = Field(default="")
    required: bool = Field(default=False)
    options: list[str] | None = Field(default=None, description="Choices for choice questions")
    min: float | None = Field(default=None, description="Lower bound for numeric answers")
    max: float | None = Field(default=None, description="Upper bound for numeric answers")
    max_length: int | None = Field(default=None, ge=1, description="Maximum text answer length")
    condition: Condition | None = Field(default=None)


class Section(BaseModel):
    """An ordered group of questions."""

    id: str = Field(..., min_length=1)
    title: str = Field(default="")
    description: str = Field(default="")
    questions: list[Question] = Field(default_factory=list)


class AssessmentBody(BaseModel):
    """Assessment document as authored by the builder."""

    model_config = ConfigDict(extra="forbid")

    title: str = Field(default="New Assessment")
    sections: list[Section] = Field(default_factory=list)


class Assessment(AssessmentBody):
    """An assessment bound to its job."""

    job_id: int = Field(..., description="Owning job; one assessment per job")


class AssessmentResponse(BaseModel):
    """A submitted set of answers. Never mutated after creation."""

    id: int
    job_id: int
    candidate_id: int | None = None
    answers: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime


class TimelineEvent(BaseModel):
    """One entry of a candidate's activity timeline."""

    id: int
    event: str
    date: datetime
    notes: str = ""


class JobList(BaseModel):
    """Result of list-jobs."""

    jobs: list[Job] = Field(default_factory=list)
    pagination: Pagination


class CandidateList(BaseModel):
    """Result of list-candidates."""

    candidates: list[Candidate] = Field(default_factory=list)
    pagination: Pagination


class ReorderResult(BaseModel):
    """Result of bulk-reorder-jobs."""

    status: Literal["ok"] = "ok"


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


class _Request(BaseModel):
    model_config = ConfigDict(extra="forbid")


class _Patch(_Request):
    """Field patch; only explicitly set fields are applied."""

    not_null_fields: ClassVar[frozenset[str]] = frozenset()

    @model_validator(mode="after")
    def _reject_null_for_required_fields(self) -> "_Patch":
        nulled = sorted(
            name
            for name in self.model_fields_set
            if name in self.not_null_fields and getattr(self, name) is None
        )
        if nulled:
            raise ValueError(f"Field(s) cannot be null: {', '.join(nulled)}")
        return self

    def changes(self) -> dict[str, Any]:
        """Get the explicitly set fields as plain values."""
        return self.model_dump(mode="json", exclude_unset=True)


class ListJobsRequest(_Request):
    search: str = Field(default="", description="Case-insensitive prefix over title and slug")
    status: Literal["all", "active", "archived"] = Field(default="all")
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=10, ge=1)
    sort: Literal["order", "title", "slug", "status", "created_at", "id"] = Field(default="order")


class CreateJobRequest(_Request):
    title: str = Field(..., min_length=1)
    slug: str | None = Field(default=None, description="Derived from the title when omitted")
    description: str | None = Field(default=None)
    tags: list[str] = Field(default_factory=list)

    @field_validator("title")
    @classmethod
    def _strip_title(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("title must not be blank")
        return value


class JobPatch(_Patch):
    not_null_fields: ClassVar[frozenset[str]] = frozenset({"title", "slug", "status", "order", "tags"})

    title: str | None = Field(default=None, min_length=1)
    slug: str | None = Field(default=None, min_length=1)
    description: str | None = None
    status: JobStatus | None = None
    order: int | None = None
    tags: list[str] | None = None


class PatchJobRequest(_Request):
    id: int
    patch: JobPatch


class OrderedPair(_Request):
    id: int
    order: int = Field(..., ge=0)


class BulkReorderRequest(_Request):
    ordered_pairs: list[OrderedPair] = Field(..., min_length=1)

    @model_validator(mode="after")
    def _unique_ids(self) -> "BulkReorderRequest":
        ids = [pair.id for pair in self.ordered_pairs]
        if len(ids) != len(set(ids)):
            raise ValueError("ordered_pairs contains duplicate job ids")
        return self


class ListCandidatesRequest(_Request):
    search: str = Field(default="", description="Case-insensitive prefix over name and email")
    stage: Literal["all"] | CandidateStage = Field(default="all")
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=1000, ge=1)


class CreateCandidateRequest(_Request):
    name: str = Field(..., min_length=1)
    email: str = Field(..., pattern=r"^[^@\s]+@[^@\s]+$")
    job_id: int


class CandidatePatch(_Patch):
    not_null_fields: ClassVar[frozenset[str]] = frozenset({"name", "email", "stage"})

    name: str | None = Field(default=None, min_length=1)
    email: str | None = Field(default=None, pattern=r"^[^@\s]+@[^@\s]+$")
    stage: CandidateStage | None = None
    job_id: int | None = None


class PatchCandidateRequest(_Request):
    id: int
    patch: CandidatePatch


class CandidateTimelineRequest(_Request):
    id: int


class GetAssessmentRequest(_Request):
    job_id: int


class PutAssessmentRequest(_Request):
    job_id: int
    body: AssessmentBody


class ResponseBody(_Request):
    candidate_id: int | None = None
    answers: dict[str, Any] = Field(default_factory=dict)


class SubmitResponseRequest(_Request):
    job_id: int
    body: ResponseBody
