"""
Simulated backend API.

Schemas and the simulated transport are re-exported here; the endpoint
dispatcher lives in ``talentflow.api.dispatcher``.
"""

from talentflow.api.schemas import (
    Assessment,
    AssessmentResponse,
    Candidate,
    CandidateList,
    CandidateStage,
    Job,
    JobList,
    JobStatus,
    QuestionType,
    TimelineEvent,
)
from talentflow.api.transport import OperationClass, SimulatedTransport

__all__ = [
    "Assessment",
    "AssessmentResponse",
    "Candidate",
    "CandidateList",
    "CandidateStage",
    "Job",
    "JobList",
    "JobStatus",
    "OperationClass",
    "QuestionType",
    "SimulatedTransport",
    "TimelineEvent",
]
