"""
Optimistic mutation module.

Boards that apply user intents locally before the simulated backend confirms
them, and roll them back when it does not.
"""

from talentflow.optimistic.candidate_board import CandidateBoard, DragSession
from talentflow.optimistic.controller import OptimisticController
from talentflow.optimistic.intent import Intent, IntentKind, IntentState
from talentflow.optimistic.job_board import JobBoard, reorder_window

__all__ = [
    "CandidateBoard",
    "DragSession",
    "Intent",
    "IntentKind",
    "IntentState",
    "JobBoard",
    "OptimisticController",
    "reorder_window",
]
