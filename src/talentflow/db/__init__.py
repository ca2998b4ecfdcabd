"""
Database module for persistence.

Provides SQLAlchemy models, the collection store and the query engine that
back every simulated endpoint.
"""

from talentflow.db.models import (
    AssessmentModel,
    AssessmentResponseModel,
    Base,
    CandidateModel,
    JobModel,
)
from talentflow.db.query import Pagination, Query, QueryEngine, QueryResult
from talentflow.db.store import CollectionStore

__all__ = [
    "AssessmentModel",
    "AssessmentResponseModel",
    "Base",
    "CandidateModel",
    "CollectionStore",
    "JobModel",
    "Pagination",
    "Query",
    "QueryEngine",
    "QueryResult",
]
