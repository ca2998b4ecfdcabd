"""
Shared fixtures: fresh in-memory stores and deterministic transports.
"""

import asyncio
import random
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import pytest
import pytest_asyncio

from talentflow.api.dispatcher import EndpointDispatcher
from talentflow.api.transport import OperationClass, SimulatedTransport
from talentflow.db.store import CollectionStore
from talentflow.errors import SimulatedFailure

T = TypeVar("T")


class ScriptedTransport(SimulatedTransport):
    """Zero-latency transport that fails chosen write invocations."""

    def __init__(self) -> None:
        super().__init__(
            latency_ms=(0, 0),
            high_volume_latency_ms=(0, 0),
            write_failure_rate=0.0,
            reorder_failure_rate=0.0,
            rng=random.Random(1234),
        )
        self.fail_operations: set[str] = set()

    def should_fail(self, operation: str, op_class: OperationClass) -> bool:
        return op_class.is_write and operation in self.fail_operations


class GatedTransport(SimulatedTransport):
    """
    Transport whose write invocations wait until the test releases them.

    Reads pass straight through so boards can load.
    """

    def __init__(self) -> None:
        super().__init__(
            latency_ms=(0, 0),
            high_volume_latency_ms=(0, 0),
            write_failure_rate=0.0,
            reorder_failure_rate=0.0,
        )
        self.gates: list[tuple[str, asyncio.Future[bool]]] = []

    async def invoke(
        self,
        operation: str,
        op_class: OperationClass,
        call: Callable[[], Awaitable[T]],
        failure_message: str = "",
    ) -> T:
        if not op_class.is_write:
            return await super().invoke(operation, op_class, call, failure_message)
        self.call_log.append(operation)
        gate: asyncio.Future[bool] = asyncio.get_running_loop().create_future()
        self.gates.append((operation, gate))
        if not await gate:
            raise SimulatedFailure(failure_message or f"Simulated failure in {operation}", operation=operation)
        return await call()

    async def wait_for_gates(self, count: int) -> None:
        """Let the event loop run until ``count`` writes are waiting."""
        for _ in range(1000):
            if len(self.gates) >= count:
                return
            await asyncio.sleep(0)
        raise AssertionError(f"Expected {count} gated call(s), saw {len(self.gates)}")

    def release(self, index: int, succeed: bool = True) -> None:
        """Let the index-th gated write succeed or fail."""
        self.gates[index][1].set_result(succeed)


@pytest_asyncio.fixture
async def store() -> CollectionStore:
    """A fresh in-memory store with all tables created."""
    store = CollectionStore.from_url("sqlite+aiosqlite:///:memory:")
    await store.create_all()
    yield store
    await store.dispose()


@pytest.fixture
def transport() -> ScriptedTransport:
    return ScriptedTransport()


@pytest.fixture
def gated_transport() -> GatedTransport:
    return GatedTransport()


@pytest.fixture
def dispatcher(store: CollectionStore, transport: ScriptedTransport) -> EndpointDispatcher:
    return EndpointDispatcher(store, transport=transport)


@pytest.fixture
def gated_dispatcher(store: CollectionStore, gated_transport: GatedTransport) -> EndpointDispatcher:
    return EndpointDispatcher(store, transport=gated_transport)


@pytest.fixture
def seed_jobs(store: CollectionStore) -> Callable[..., Awaitable[list[int]]]:
    """Insert jobs directly into the store; returns their ids in order."""

    async def _seed(titles: list[str], status: str = "active", **fields: Any) -> list[int]:
        ids = []
        base = await store.count("jobs")
        for offset, title in enumerate(titles):
            record = {
                "title": title,
                "slug": f"{title.lower().replace(' ', '-')}-{base + offset}",
                "status": status,
                "order": base + offset,
                **fields,
            }
            ids.append(await store.insert("jobs", record))
        return ids

    return _seed


@pytest.fixture
def seed_candidates(store: CollectionStore) -> Callable[..., Awaitable[list[int]]]:
    """Insert candidates directly into the store; returns their ids in order."""

    async def _seed(names: list[str], stage: str = "applied", job_id: int = 1) -> list[int]:
        ids = []
        base = await store.count("candidates")
        for offset, name in enumerate(names):
            record = {
                "name": name,
                "email": f"{name.lower().replace(' ', '.')}.{base + offset}@example.com",
                "stage": stage,
                "job_id": job_id,
            }
            ids.append(await store.insert("candidates", record))
        return ids

    return _seed
