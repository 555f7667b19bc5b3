"""
Dependency injection interfaces for the scanner's collaborators.

Lightweight protocols for the opportunity sink and the clock, so the
evaluator and runner can be driven by in-memory fakes in tests.
"""

import time
from typing import List, Protocol, runtime_checkable

from .types import Opportunity


@runtime_checkable
class OpportunitySink(Protocol):
    """Protocol for durable recording of detected opportunities."""

    async def record_opportunity(self, opportunity: Opportunity) -> None:
        """Record one opportunity; raise PersistenceError on failure."""
        ...


@runtime_checkable
class TimeProvider(Protocol):
    """Protocol for time-related operations."""

    def current_timestamp(self) -> float:
        """Get current Unix timestamp."""
        ...

    def monotonic(self) -> float:
        """Get a monotonic clock reading for measuring durations."""
        ...


class SystemTimeProvider:
    """Production time provider using system time."""

    def current_timestamp(self) -> float:
        return time.time()

    def monotonic(self) -> float:
        return time.perf_counter()


class DeterministicTimeProvider:
    """Deterministic time provider for testing."""

    def __init__(self, start_time: float = 1640995200.0):  # 2022-01-01
        self._current_time = start_time

    def current_timestamp(self) -> float:
        return self._current_time

    def monotonic(self) -> float:
        return self._current_time

    def advance_time(self, seconds: float) -> None:
        """Manually advance time by specified seconds."""
        self._current_time += seconds


class MemorySink:
    """In-process sink that keeps recorded opportunities in a list."""

    def __init__(self):
        self.opportunities: List[Opportunity] = []

    async def record_opportunity(self, opportunity: Opportunity) -> None:
        self.opportunities.append(opportunity)

    def __len__(self) -> int:
        return len(self.opportunities)
