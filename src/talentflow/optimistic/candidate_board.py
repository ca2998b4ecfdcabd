"""
Candidate kanban board.

Candidates are grouped into one bucket per pipeline stage. A drag session
previews the card in the hovered bucket without any dispatcher call; only the
drop issues the stage change.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from talentflow.api.dispatcher import EndpointDispatcher
from talentflow.api.schemas import Candidate, CandidateList, CandidatePatch, CandidateStage
from talentflow.config import get_settings
from talentflow.errors import ValidationError
from talentflow.optimistic.controller import OptimisticController
from talentflow.optimistic.intent import Intent, IntentKind


def _coerce_stage(stage: CandidateStage | str) -> CandidateStage:
    try:
        return CandidateStage(stage)
    except ValueError:
        raise ValidationError(f"Unknown stage '{stage}'", details={"stage": str(stage)}) from None


@dataclass
class DragSession:
    """A card being dragged. ``origin_stage`` is its stage when the drag began."""

    candidate_id: int
    origin_stage: CandidateStage
    over_stage: CandidateStage | None = None


class CandidateBoard(OptimisticController[Candidate]):
    """Optimistic kanban view over the candidates collection."""

    patch_model = CandidatePatch

    def __init__(self, dispatcher: EndpointDispatcher, page_size: int | None = None) -> None:
        """
        Initialize the board.

        Args:
            dispatcher: Endpoint dispatcher.
            page_size: Number of candidates to load. Defaults to the
                configured board size.
        """
        super().__init__(dispatcher)
        self._page_size = page_size or get_settings().candidates_page_size
        self._drag: DragSession | None = None

    @property
    def drag(self) -> DragSession | None:
        """Get the drag session in progress, if any."""
        return self._drag

    async def load(self, search: str = "", stage: str = "all") -> CandidateList:
        """Load the board's candidates in insertion order."""
        result = await self._dispatcher.list_candidates(
            search=search,
            stage=stage,
            page=1,
            page_size=self._page_size,
        )
        self.replace_records(result.candidates)
        return result

    async def create(self, **fields: Any) -> Candidate:
        """Create a candidate and reload the board."""
        candidate = await self._dispatcher.create_candidate(**fields)
        await self.load()
        return candidate

    def buckets(self) -> dict[CandidateStage, list[Candidate]]:
        """Group the rendered candidates by stage, in pipeline order."""
        grouped: dict[CandidateStage, list[Candidate]] = {stage: [] for stage in CandidateStage}
        for candidate in self._view:
            grouped[candidate.stage].append(candidate)
        return grouped

    def begin_drag(self, candidate_id: int) -> DragSession:
        """
        Start dragging a card. Any previous drag is abandoned.

        Raises:
            ValueError: If the candidate is not on the board.
        """
        candidate = self.get(candidate_id)
        if candidate is None:
            raise ValueError(f"Candidate {candidate_id} is not on the board")
        self._drag = DragSession(candidate_id=candidate_id, origin_stage=candidate.stage)
        return self._drag

    def drag_over(self, stage: CandidateStage | str | None) -> None:
        """
        Preview the dragged card in a bucket. Never calls the dispatcher.

        Passing None clears the preview (the pointer left every bucket).
        """
        if self._drag is None:
            raise RuntimeError("No drag in progress. Call begin_drag first.")
        over = None if stage is None else _coerce_stage(stage)
        if over == self._drag.over_stage:
            return
        self._drag.over_stage = over
        self._refresh()

    def cancel_drag(self) -> None:
        """Abandon the drag and its preview."""
        if self._drag is None:
            return
        self._drag = None
        self._refresh()

    async def drop(self, stage: CandidateStage | str | None = None) -> Intent | None:
        """
        Finish the drag.

        Args:
            stage: Bucket the card was dropped on. Defaults to the previewed
                bucket.

        Returns:
            The committed intent, or None when nothing changed (dropped
            outside every bucket or back on the origin stage).
        """
        session = self._drag
        if session is None:
            raise RuntimeError("No drag in progress. Call begin_drag first.")
        target = session.over_stage if stage is None else _coerce_stage(stage)
        self._drag = None

        if target is None or target == session.origin_stage:
            self._refresh()
            return None
        return await self._move(session.candidate_id, target)

    async def move(self, candidate_id: int, stage: CandidateStage | str) -> Intent | None:
        """
        Move a candidate to another stage without a drag session.

        Returns:
            The committed intent, or None when the candidate is already there.
        """
        target = _coerce_stage(stage)
        candidate = self.get(candidate_id)
        if candidate is None:
            raise ValueError(f"Candidate {candidate_id} is not on the board")
        if candidate.stage == target:
            return None
        return await self._move(candidate_id, target)

    async def _move(self, candidate_id: int, stage: CandidateStage) -> Intent:
        return await self._run(
            IntentKind.STAGE_MOVE,
            {candidate_id: {"stage": stage}},
            lambda: self._dispatcher.patch_candidate(candidate_id, {"stage": stage.value}),
        )

    async def _send_patch(self, entity_id: int, changes: dict[str, Any]) -> Any:
        return await self._dispatcher.patch_candidate(entity_id, changes)

    def _overlay(self, candidate: Candidate) -> Candidate:
        drag = self._drag
        if drag is not None and drag.candidate_id == candidate.id and drag.over_stage is not None:
            return candidate.model_copy(update={"stage": drag.over_stage})
        return candidate
