"""
Endpoint dispatcher.

A typed catalogue of the logical operations the UI layer may call. Each
operation binds a request model to a query-engine or store call and runs it
through the simulated transport.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any
from urllib.parse import quote

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from talentflow.api.schemas import (
    Assessment,
    AssessmentResponse,
    BulkReorderRequest,
    Candidate,
    CandidateList,
    CandidatePatch,
    CandidateStage,
    CandidateTimelineRequest,
    CreateCandidateRequest,
    CreateJobRequest,
    GetAssessmentRequest,
    Job,
    JobList,
    JobPatch,
    JobStatus,
    ListCandidatesRequest,
    ListJobsRequest,
    PatchCandidateRequest,
    PatchJobRequest,
    PutAssessmentRequest,
    ReorderResult,
    SubmitResponseRequest,
    TimelineEvent,
)
from talentflow.api.transport import OperationClass, SimulatedTransport
from talentflow.assessments.conditions import check_assessment, default_assessment, validate_answers
from talentflow.db.query import Query, QueryEngine
from talentflow.db.store import CollectionStore
from talentflow.errors import ValidationError

logger = logging.getLogger(__name__)

AVATAR_URL = "https://api.dicebear.com/8.x/avataaars/svg?seed={seed}"

# Not store-backed; every candidate gets the same history.
CANDIDATE_TIMELINE: tuple[dict[str, Any], ...] = (
    {"id": 1, "event": "Applied", "date": "2025-10-20T10:00:00Z", "notes": "Applied via company portal."},
    {
        "id": 2,
        "event": "AI Screen",
        "date": "2025-10-20T10:01:00Z",
        "notes": 'Resume matched 88% for "React" and "Node.js".',
    },
    {"id": 3, "event": "Stage Change", "date": "2025-10-21T09:15:00Z", "notes": "Moved to Screen by HR (Jane Doe)."},
    {
        "id": 4,
        "event": "Assessment Sent",
        "date": "2025-10-21T09:16:00Z",
        "notes": "React Fundamentals assessment sent.",
    },
)


def slugify(text: str) -> str:
    """Lowercase, hyphen-separated, word characters only."""
    slug = re.sub(r"\s+", "-", text.strip().lower())
    slug = re.sub(r"[^\w-]+", "", slug)
    slug = re.sub(r"-{2,}", "-", slug)
    return slug.strip("-")


class Operation(str, Enum):
    """Identifiers of the logical operations."""

    LIST_JOBS = "list-jobs"
    CREATE_JOB = "create-job"
    PATCH_JOB = "patch-job"
    BULK_REORDER_JOBS = "bulk-reorder-jobs"
    LIST_CANDIDATES = "list-candidates"
    CREATE_CANDIDATE = "create-candidate"
    PATCH_CANDIDATE = "patch-candidate"
    GET_CANDIDATE_TIMELINE = "get-candidate-timeline"
    GET_ASSESSMENT = "get-assessment"
    PUT_ASSESSMENT = "put-assessment"
    SUBMIT_ASSESSMENT_RESPONSE = "submit-assessment-response"


@dataclass(frozen=True)
class Endpoint:
    """Catalogue entry binding an operation to its request shape and handler."""

    operation: Operation
    op_class: OperationClass
    request_model: type[BaseModel]
    handler: str
    failure_message: str = ""


CATALOGUE: dict[Operation, Endpoint] = {
    endpoint.operation: endpoint
    for endpoint in (
        Endpoint(Operation.LIST_JOBS, OperationClass.READ, ListJobsRequest, "_list_jobs"),
        Endpoint(
            Operation.CREATE_JOB,
            OperationClass.WRITE,
            CreateJobRequest,
            "_create_job",
            "Server failed to create job",
        ),
        Endpoint(
            Operation.PATCH_JOB,
            OperationClass.WRITE,
            PatchJobRequest,
            "_patch_job",
            "Failed to save changes",
        ),
        Endpoint(
            Operation.BULK_REORDER_JOBS,
            OperationClass.BULK_REORDER,
            BulkReorderRequest,
            "_bulk_reorder_jobs",
            "Failed to reorder jobs",
        ),
        Endpoint(
            Operation.LIST_CANDIDATES,
            OperationClass.HIGH_VOLUME_READ,
            ListCandidatesRequest,
            "_list_candidates",
        ),
        Endpoint(
            Operation.CREATE_CANDIDATE,
            OperationClass.WRITE,
            CreateCandidateRequest,
            "_create_candidate",
            "Failed to create candidate",
        ),
        Endpoint(
            Operation.PATCH_CANDIDATE,
            OperationClass.WRITE,
            PatchCandidateRequest,
            "_patch_candidate",
            "Failed to update candidate",
        ),
        Endpoint(
            Operation.GET_CANDIDATE_TIMELINE,
            OperationClass.READ,
            CandidateTimelineRequest,
            "_get_candidate_timeline",
        ),
        Endpoint(Operation.GET_ASSESSMENT, OperationClass.READ, GetAssessmentRequest, "_get_assessment"),
        Endpoint(
            Operation.PUT_ASSESSMENT,
            OperationClass.WRITE,
            PutAssessmentRequest,
            "_put_assessment",
            "Failed to save assessment",
        ),
        Endpoint(
            Operation.SUBMIT_ASSESSMENT_RESPONSE,
            OperationClass.WRITE,
            SubmitResponseRequest,
            "_submit_assessment_response",
            "Failed to submit assessment",
        ),
    )
}


def parse_payload(model: type[BaseModel], payload: BaseModel | Mapping[str, Any] | None) -> BaseModel:
    """
    Validate a payload against a request model.

    Raises:
        ValidationError: With one entry per failing location.
    """
    if isinstance(payload, model):
        return payload
    if isinstance(payload, BaseModel):
        payload = payload.model_dump()
    try:
        return model.model_validate(payload or {})
    except PydanticValidationError as exc:
        errors = [
            {"loc": ".".join(str(part) for part in err["loc"]), "msg": err["msg"]}
            for err in exc.errors()
        ]
        summary = "; ".join(f"{err['loc'] or 'body'}: {err['msg']}" for err in errors)
        raise ValidationError(f"Invalid payload for {model.__name__}: {summary}", details={"errors": errors}) from exc


class EndpointDispatcher:
    """
    Entry point for every state read or change the UI layer performs.

    Requests are validated before the transport is invoked, so a malformed
    request never reaches the store. Store and transport errors propagate
    unmodified.
    """

    def __init__(
        self,
        store: CollectionStore,
        transport: SimulatedTransport | None = None,
        query_engine: QueryEngine | None = None,
    ) -> None:
        """
        Initialize the dispatcher.

        Args:
            store: Collection store backing every operation.
            transport: Latency/failure injector. Built from settings if None.
            query_engine: Query engine over ``store``. Created if None.
        """
        self._store = store
        self._transport = transport or SimulatedTransport.from_settings()
        self._query_engine = query_engine or QueryEngine(store)

    @property
    def store(self) -> CollectionStore:
        """Get the backing store, for read-only convenience lookups."""
        return self._store

    @property
    def transport(self) -> SimulatedTransport:
        """Get the simulated transport."""
        return self._transport

    async def dispatch(
        self,
        operation: Operation | str,
        payload: BaseModel | Mapping[str, Any] | None = None,
    ) -> Any:
        """
        Run a logical operation.

        Args:
            operation: Operation identifier.
            payload: Request body, either a dict or the request model.

        Returns:
            The operation's typed result.

        Raises:
            ValidationError: If the operation is unknown or the payload
                malformed.
            SimulatedFailure: If the transport injects a failure.
        """
        try:
            endpoint = CATALOGUE[Operation(operation)]
        except ValueError:
            raise ValidationError(f"Unknown operation '{operation}'") from None

        request = parse_payload(endpoint.request_model, payload)
        handler: Callable[[Any], Awaitable[Any]] = getattr(self, endpoint.handler)
        logger.debug(f"Dispatching {endpoint.operation.value}")
        return await self._transport.invoke(
            endpoint.operation.value,
            endpoint.op_class,
            lambda: handler(request),
            endpoint.failure_message,
        )

    # -- typed convenience wrappers ---------------------------------------

    async def list_jobs(self, **params: Any) -> JobList:
        return await self.dispatch(Operation.LIST_JOBS, params)

    async def create_job(self, **fields: Any) -> Job:
        return await self.dispatch(Operation.CREATE_JOB, fields)

    async def patch_job(self, job_id: int, patch: Mapping[str, Any]) -> dict[str, Any]:
        return await self.dispatch(Operation.PATCH_JOB, {"id": job_id, "patch": dict(patch)})

    async def bulk_reorder_jobs(self, ordered_pairs: Any) -> ReorderResult:
        return await self.dispatch(Operation.BULK_REORDER_JOBS, {"ordered_pairs": ordered_pairs})

    async def list_candidates(self, **params: Any) -> CandidateList:
        return await self.dispatch(Operation.LIST_CANDIDATES, params)

    async def create_candidate(self, **fields: Any) -> Candidate:
        return await self.dispatch(Operation.CREATE_CANDIDATE, fields)

    async def patch_candidate(self, candidate_id: int, patch: Mapping[str, Any]) -> dict[str, Any]:
        return await self.dispatch(Operation.PATCH_CANDIDATE, {"id": candidate_id, "patch": dict(patch)})

    async def get_candidate_timeline(self, candidate_id: int) -> list[TimelineEvent]:
        return await self.dispatch(Operation.GET_CANDIDATE_TIMELINE, {"id": candidate_id})

    async def get_assessment(self, job_id: int) -> Assessment:
        return await self.dispatch(Operation.GET_ASSESSMENT, {"job_id": job_id})

    async def put_assessment(self, job_id: int, body: BaseModel | Mapping[str, Any]) -> Assessment:
        if isinstance(body, BaseModel):
            body = body.model_dump(exclude={"job_id"})
        return await self.dispatch(Operation.PUT_ASSESSMENT, {"job_id": job_id, "body": body})

    async def submit_assessment_response(
        self,
        job_id: int,
        body: Mapping[str, Any],
    ) -> AssessmentResponse:
        return await self.dispatch(Operation.SUBMIT_ASSESSMENT_RESPONSE, {"job_id": job_id, "body": dict(body)})

    # -- handlers ------------------------------------------------------------

    async def _list_jobs(self, request: ListJobsRequest) -> JobList:
        result = await self._query_engine.execute(
            Query(
                collection="jobs",
                equals={} if request.status == "all" else {"status": request.status},
                prefix=request.search,
                prefix_fields=("title", "slug"),
                sort=request.sort,
                page=request.page,
                page_size=request.page_size,
            )
        )
        return JobList(
            jobs=[Job.model_validate(item) for item in result.items],
            pagination=result.pagination,
        )

    async def _create_job(self, request: CreateJobRequest) -> Job:
        slug = request.slug or slugify(request.title)
        if not slug:
            raise ValidationError("Cannot derive a slug from the job title")
        record = {
            "title": request.title,
            "slug": slug,
            "description": request.description,
            "tags": list(request.tags),
            "status": JobStatus.ACTIVE.value,
            "created_at": datetime.now(timezone.utc),
        }
        job_id = await self._store.insert_next("jobs", record, "order")
        job = Job.model_validate(await self._store.get("jobs", job_id))
        logger.info(f"Created job {job_id} '{request.title}' at order {job.order}")
        return job

    async def _patch_job(self, request: PatchJobRequest) -> dict[str, Any]:
        changes = request.patch.changes()
        await self._store.update("jobs", request.id, changes)
        return {"id": request.id, **changes}

    async def _bulk_reorder_jobs(self, request: BulkReorderRequest) -> ReorderResult:
        updated = await self._store.bulk_update(
            "jobs",
            [(pair.id, {"order": pair.order}) for pair in request.ordered_pairs],
        )
        logger.info(f"Reordered {updated} job(s)")
        return ReorderResult()

    async def _list_candidates(self, request: ListCandidatesRequest) -> CandidateList:
        stage = request.stage.value if isinstance(request.stage, CandidateStage) else request.stage
        result = await self._query_engine.execute(
            Query(
                collection="candidates",
                equals={} if stage == "all" else {"stage": stage},
                prefix=request.search,
                prefix_fields=("name", "email"),
                page=request.page,
                page_size=request.page_size,
            )
        )
        return CandidateList(
            candidates=[Candidate.model_validate(item) for item in result.items],
            pagination=result.pagination,
        )

    async def _create_candidate(self, request: CreateCandidateRequest) -> Candidate:
        record = {
            "name": request.name,
            "email": request.email,
            "job_id": request.job_id,
            "stage": CandidateStage.APPLIED.value,
            "avatar_url": AVATAR_URL.format(seed=quote(request.name)),
            "created_at": datetime.now(timezone.utc),
        }
        candidate_id = await self._store.insert("candidates", record)
        logger.info(f"Created candidate {candidate_id} for job {request.job_id}")
        return Candidate.model_validate(await self._store.get("candidates", candidate_id))

    async def _patch_candidate(self, request: PatchCandidateRequest) -> dict[str, Any]:
        changes = request.patch.changes()
        await self._store.update("candidates", request.id, changes)
        return {"id": request.id, **changes}

    async def _get_candidate_timeline(self, request: CandidateTimelineRequest) -> list[TimelineEvent]:
        return [TimelineEvent.model_validate(event) for event in CANDIDATE_TIMELINE]

    async def _get_assessment(self, request: GetAssessmentRequest) -> Assessment:
        record = await self._store.get("assessments", request.job_id)
        if record is None:
            return default_assessment(request.job_id)
        return Assessment.model_validate(record)

    async def _put_assessment(self, request: PutAssessmentRequest) -> Assessment:
        check_assessment(request.body)
        record = {"job_id": request.job_id, **request.body.model_dump(mode="json")}
        stored = await self._store.put("assessments", record)
        return Assessment.model_validate(stored)

    async def _submit_assessment_response(self, request: SubmitResponseRequest) -> AssessmentResponse:
        stored = await self._store.get("assessments", request.job_id)
        if stored is not None:
            errors = validate_answers(Assessment.model_validate(stored), request.body.answers)
            if errors:
                raise ValidationError(
                    f"{len(errors)} answer(s) failed validation",
                    details={"errors": errors},
                )
        record = {
            "job_id": request.job_id,
            "candidate_id": request.body.candidate_id,
            "answers": dict(request.body.answers),
            "created_at": datetime.now(timezone.utc),
        }
        response_id = await self._store.insert("assessment_responses", record)
        return AssessmentResponse.model_validate(await self._store.get("assessment_responses", response_id))
