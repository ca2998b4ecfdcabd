"""
Simulated transport.

Wraps a logical request with latency injection and, for write-class
operations, a randomized failure trial that runs before the request touches
the store.
"""

from __future__ import annotations

import asyncio
import logging
import random
from collections import deque
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import TypeVar

from talentflow.config import Settings, get_settings
from talentflow.errors import SimulatedFailure

logger = logging.getLogger(__name__)

T = TypeVar("T")


class OperationClass(str, Enum):
    """Latency and failure profile of an operation."""

    READ = "read"
    HIGH_VOLUME_READ = "high_volume_read"
    WRITE = "write"
    BULK_REORDER = "bulk_reorder"

    @property
    def is_write(self) -> bool:
        """Check whether the class is subject to failure trials."""
        return self in (OperationClass.WRITE, OperationClass.BULK_REORDER)


class SimulatedTransport:
    """
    Latency and failure injector in front of the collection store.

    Every invocation sleeps for a latency drawn uniformly from the class's
    window. Write-class invocations then run a Bernoulli trial at the class's
    failure rate; a failed trial raises SimulatedFailure and the wrapped call
    is never run.
    """

    def __init__(
        self,
        latency_ms: tuple[float, float] = (400, 1200),
        high_volume_latency_ms: tuple[float, float] = (600, 1500),
        write_failure_rate: float = 0.1,
        reorder_failure_rate: float = 0.15,
        rng: random.Random | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        call_log_size: int = 1000,
    ) -> None:
        """
        Initialize the transport.

        Args:
            latency_ms: (min, max) latency window for general operations.
            high_volume_latency_ms: (min, max) window for high-volume reads.
            write_failure_rate: Failure probability of write operations.
            reorder_failure_rate: Failure probability of bulk reorders.
            rng: Random source. A fresh unseeded one if None.
            sleep: Coroutine used to wait out the latency.
            call_log_size: Number of recent operation names kept in
                ``call_log``.
        """
        for window in (latency_ms, high_volume_latency_ms):
            if window[0] < 0 or window[1] < window[0]:
                raise ValueError(f"Invalid latency window: {window}")
        for rate in (write_failure_rate, reorder_failure_rate):
            if not 0.0 <= rate <= 1.0:
                raise ValueError(f"Failure rate must be within [0, 1], got {rate}")

        self._latency: dict[OperationClass, tuple[float, float]] = {
            OperationClass.READ: latency_ms,
            OperationClass.WRITE: latency_ms,
            OperationClass.BULK_REORDER: latency_ms,
            OperationClass.HIGH_VOLUME_READ: high_volume_latency_ms,
        }
        self._failure_rates: dict[OperationClass, float] = {
            OperationClass.WRITE: write_failure_rate,
            OperationClass.BULK_REORDER: reorder_failure_rate,
        }
        self._rng = rng or random.Random()
        self._sleep = sleep
        self.call_log: deque[str] = deque(maxlen=call_log_size)

    @classmethod
    def from_settings(
        cls,
        settings: Settings | None = None,
        rng: random.Random | None = None,
    ) -> SimulatedTransport:
        """Build a transport from application settings."""
        settings = settings or get_settings()
        return cls(
            latency_ms=(settings.latency_min_ms, settings.latency_max_ms),
            high_volume_latency_ms=(
                settings.high_volume_latency_min_ms,
                settings.high_volume_latency_max_ms,
            ),
            write_failure_rate=settings.write_failure_rate,
            reorder_failure_rate=settings.reorder_failure_rate,
            rng=rng,
        )

    def failure_rate(self, op_class: OperationClass) -> float:
        """Get the failure probability of an operation class."""
        return self._failure_rates.get(op_class, 0.0)

    def sample_latency(self, op_class: OperationClass) -> float:
        """Draw a latency in seconds for an operation class."""
        low, high = self._latency[op_class]
        return self._rng.uniform(low, high) / 1000.0

    def should_fail(self, operation: str, op_class: OperationClass) -> bool:
        """
        Run the failure trial for one invocation.

        Read-class operations never fail.
        """
        if not op_class.is_write:
            return False
        rate = self.failure_rate(op_class)
        return rate > 0.0 and self._rng.random() < rate

    async def invoke(
        self,
        operation: str,
        op_class: OperationClass,
        call: Callable[[], Awaitable[T]],
        failure_message: str = "",
    ) -> T:
        """
        Invoke a logical operation.

        Args:
            operation: Operation identifier, used for logging and errors.
            op_class: Latency and failure profile.
            call: Zero-argument coroutine factory running the store operation.
            failure_message: Human-readable message of an injected failure.

        Returns:
            Whatever ``call`` returns.

        Raises:
            SimulatedFailure: If the failure trial fires.
        """
        self.call_log.append(operation)
        latency = self.sample_latency(op_class)
        logger.debug(f"{operation}: simulated latency {latency * 1000:.0f} ms")
        await self._sleep(latency)

        if self.should_fail(operation, op_class):
            message = failure_message or f"Simulated failure in {operation}"
            logger.warning(f"{operation}: injected failure ({message})")
            raise SimulatedFailure(message, operation=operation)

        return await call()
