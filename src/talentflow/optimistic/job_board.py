"""
Jobs board.

A paged, ordered list of jobs that can be reordered by drag and drop. Only
the loaded page (the window) is renumbered: jobs on other pages keep their
stored ``order`` values.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from talentflow.api.dispatcher import EndpointDispatcher
from talentflow.api.schemas import Job, JobList, JobPatch
from talentflow.config import get_settings
from talentflow.db.query import Pagination
from talentflow.optimistic.controller import OptimisticController
from talentflow.optimistic.intent import Intent, IntentKind


def reorder_window(
    jobs: Sequence[Job],
    job_id: int,
    new_index: int,
    base_offset: int = 0,
) -> dict[int, dict[str, Any]]:
    """
    Compute the order values of a window after moving one job.

    The moved job is taken out and reinserted at ``new_index``; every job in
    the window then gets ``base_offset + position``.

    Args:
        jobs: The window in rendered order.
        job_id: Job being moved.
        new_index: Target position within the window.
        base_offset: Order value of the window's first slot.

    Returns:
        Job id to ``{"order": value}`` for every job in the window.

    Raises:
        ValueError: If the job is not in the window or the index is out of range.
    """
    ids = [job.id for job in jobs]
    if job_id not in ids:
        raise ValueError(f"Job {job_id} is not in the loaded window")
    if not 0 <= new_index < len(ids):
        raise ValueError(f"Index {new_index} is outside the window of {len(ids)} job(s)")
    ids.insert(new_index, ids.pop(ids.index(job_id)))
    return {entity_id: {"order": base_offset + position} for position, entity_id in enumerate(ids)}


class JobBoard(OptimisticController[Job]):
    """Optimistic view over one page of the jobs collection, sorted by order."""

    patch_model = JobPatch

    def __init__(self, dispatcher: EndpointDispatcher, page_size: int | None = None) -> None:
        """
        Initialize the board.

        Args:
            dispatcher: Endpoint dispatcher.
            page_size: Jobs per page. Defaults to the configured page size.
        """
        super().__init__(dispatcher)
        self._page_size = page_size or get_settings().jobs_page_size
        self._page = 1
        self._search = ""
        self._status = "all"
        self._pagination: Pagination | None = None

    @property
    def page(self) -> int:
        """Get the loaded page number."""
        return self._page

    @property
    def page_size(self) -> int:
        """Get the page size."""
        return self._page_size

    @property
    def pagination(self) -> Pagination | None:
        """Get the pagination block of the last load."""
        return self._pagination

    @property
    def base_offset(self) -> int:
        """Get the order value of the window's first slot."""
        return (self._page - 1) * self._page_size

    async def load(
        self,
        page: int = 1,
        search: str | None = None,
        status: str | None = None,
    ) -> JobList:
        """
        Load one page of jobs sorted by order.

        Filters not given keep their previous value.
        """
        if search is not None:
            self._search = search
        if status is not None:
            self._status = status
        result = await self._dispatcher.list_jobs(
            search=self._search,
            status=self._status,
            page=page,
            page_size=self._page_size,
            sort="order",
        )
        self._page = page
        self._pagination = result.pagination
        self.replace_records(result.jobs)
        return result

    async def create(self, **fields: Any) -> Job:
        """Create a job and reload the first page, where the filters restart."""
        job = await self._dispatcher.create_job(**fields)
        await self.load(page=1)
        return job

    async def move(self, job_id: int, new_index: int) -> Intent | None:
        """
        Move a job to a new position within the loaded window.

        Returns:
            The committed intent, or None when the job is already there.

        Raises:
            ValueError: If the job is not loaded or the index is out of range.
            SimulatedFailure: If the bulk reorder failed; the view is restored.
        """
        window = self.view
        changes = reorder_window(window, job_id, new_index, self.base_offset)
        if [job.id for job in window].index(job_id) == new_index:
            return None

        ordered_pairs = [{"id": entity_id, "order": values["order"]} for entity_id, values in changes.items()]
        return await self._run(
            IntentKind.REORDER,
            changes,
            lambda: self._dispatcher.bulk_reorder_jobs(ordered_pairs),
        )

    async def reorder(self, active_id: int, over_id: int | None) -> Intent | None:
        """
        Finish a drag: move ``active_id`` to the slot of ``over_id``.

        Dropping outside the list or onto itself does nothing.
        """
        if over_id is None or over_id == active_id:
            return None
        ids = [job.id for job in self.view]
        if over_id not in ids:
            raise ValueError(f"Job {over_id} is not in the loaded window")
        return await self.move(active_id, ids.index(over_id))

    async def _send_patch(self, entity_id: int, changes: dict[str, Any]) -> Any:
        return await self._dispatcher.patch_job(entity_id, changes)

    def _arrange(self, records: list[Job]) -> list[Job]:
        # Stable: equal order values keep their loaded (insertion) order.
        return sorted(records, key=lambda job: job.order)
