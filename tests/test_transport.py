"""
Tests for the simulated transport.
"""

import random

import pytest

from talentflow.api.transport import OperationClass, SimulatedTransport
from talentflow.config import Settings
from talentflow.errors import SimulatedFailure


class RecordingSleep:
    """Stand-in for asyncio.sleep that records the requested delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class TestSimulatedTransport:
    """Tests for latency injection and failure trials."""

    @pytest.fixture
    def sleep(self) -> RecordingSleep:
        return RecordingSleep()

    @pytest.mark.asyncio
    async def test_latency_within_window(self, sleep: RecordingSleep) -> None:
        transport = SimulatedTransport(
            latency_ms=(400, 1200),
            high_volume_latency_ms=(600, 1500),
            write_failure_rate=0.0,
            rng=random.Random(3),
            sleep=sleep,
        )

        async def call() -> str:
            return "done"

        for _ in range(20):
            assert await transport.invoke("list-jobs", OperationClass.READ, call) == "done"
            await transport.invoke("list-candidates", OperationClass.HIGH_VOLUME_READ, call)

        general = sleep.delays[0::2]
        high_volume = sleep.delays[1::2]
        assert all(0.4 <= delay <= 1.2 for delay in general)
        assert all(0.6 <= delay <= 1.5 for delay in high_volume)

    @pytest.mark.asyncio
    async def test_reads_never_fail(self, sleep: RecordingSleep) -> None:
        """Test that reads are exempt even at a failure rate of 1."""
        transport = SimulatedTransport(
            latency_ms=(0, 0),
            high_volume_latency_ms=(0, 0),
            write_failure_rate=1.0,
            reorder_failure_rate=1.0,
            sleep=sleep,
        )

        async def call() -> int:
            return 1

        assert await transport.invoke("list-jobs", OperationClass.READ, call) == 1
        assert await transport.invoke("list-candidates", OperationClass.HIGH_VOLUME_READ, call) == 1

    @pytest.mark.asyncio
    async def test_failed_trial_skips_the_call(self, sleep: RecordingSleep) -> None:
        """Test that a failed write never runs the wrapped call."""
        transport = SimulatedTransport(
            latency_ms=(0, 0),
            high_volume_latency_ms=(0, 0),
            write_failure_rate=1.0,
            sleep=sleep,
        )
        calls: list[str] = []

        async def call() -> None:
            calls.append("ran")

        with pytest.raises(SimulatedFailure) as exc_info:
            await transport.invoke("patch-job", OperationClass.WRITE, call, "Failed to save changes")

        assert calls == []
        assert exc_info.value.operation == "patch-job"
        assert exc_info.value.message == "Failed to save changes"
        assert exc_info.value.status_code == 500
        assert list(transport.call_log) == ["patch-job"]

    @pytest.mark.asyncio
    async def test_call_log_keeps_only_recent_calls(self, sleep: RecordingSleep) -> None:
        transport = SimulatedTransport(
            latency_ms=(0, 0),
            high_volume_latency_ms=(0, 0),
            sleep=sleep,
            call_log_size=3,
        )

        async def call() -> None:
            return None

        for operation in ("list-jobs", "get-assessment", "list-jobs", "get-candidate-timeline"):
            await transport.invoke(operation, OperationClass.READ, call)

        assert list(transport.call_log) == ["get-assessment", "list-jobs", "get-candidate-timeline"]

    def test_failure_rates_per_class(self) -> None:
        transport = SimulatedTransport(write_failure_rate=0.1, reorder_failure_rate=0.15)

        assert transport.failure_rate(OperationClass.WRITE) == 0.1
        assert transport.failure_rate(OperationClass.BULK_REORDER) == 0.15
        assert transport.failure_rate(OperationClass.READ) == 0.0

    def test_seeded_trials_are_reproducible(self) -> None:
        first = SimulatedTransport(write_failure_rate=0.5, rng=random.Random(99))
        second = SimulatedTransport(write_failure_rate=0.5, rng=random.Random(99))

        outcomes = [first.should_fail("create-job", OperationClass.WRITE) for _ in range(50)]

        assert outcomes == [second.should_fail("create-job", OperationClass.WRITE) for _ in range(50)]
        assert any(outcomes) and not all(outcomes)

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"latency_ms": (500, 100)},
            {"high_volume_latency_ms": (-1, 10)},
            {"write_failure_rate": 1.5},
            {"reorder_failure_rate": -0.1},
        ],
    )
    def test_invalid_configuration(self, kwargs: dict) -> None:
        with pytest.raises(ValueError):
            SimulatedTransport(**kwargs)

    def test_from_settings(self) -> None:
        settings = Settings(
            latency_min_ms=10,
            latency_max_ms=20,
            high_volume_latency_min_ms=30,
            high_volume_latency_max_ms=40,
            write_failure_rate=0.0,
            reorder_failure_rate=0.5,
        )

        transport = SimulatedTransport.from_settings(settings, rng=random.Random(0))

        assert 0.03 <= transport.sample_latency(OperationClass.HIGH_VOLUME_READ) <= 0.04
        assert 0.01 <= transport.sample_latency(OperationClass.WRITE) <= 0.02
        assert transport.failure_rate(OperationClass.BULK_REORDER) == 0.5
