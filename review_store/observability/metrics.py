"""
Operation counters for REVIEW_STORE.

Gateway calls, provisioning runs, database copies and connection lifecycle
events are counted per operation and, where one applies, per collection.
"""

import functools
import inspect
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

# Collection slot for operations that are not scoped to one collection
NO_COLLECTION = "-"


@dataclass
class OperationStats:
    """Counters for one (operation, collection) pair."""

    calls: int = 0
    failures: int = 0
    total_ms: float = 0.0

    def add(self, duration_ms: float, success: bool) -> None:
        self.calls += 1
        self.total_ms += duration_ms
        if not success:
            self.failures += 1


class StoreMetrics:
    """
    Thread-safe counters keyed by operation and collection.

    Collection names come from the allow-list and the provisioned schemas,
    so the key space is bounded and nothing is evicted.
    """

    def __init__(self):
        self._stats: dict[tuple[str, str], OperationStats] = {}
        self._lock = threading.Lock()

    def record(
        self,
        operation: str,
        duration_ms: float,
        success: bool = True,
        collection: str | None = None,
    ) -> None:
        key = (operation, collection or NO_COLLECTION)
        with self._lock:
            stats = self._stats.get(key)
            if stats is None:
                stats = self._stats[key] = OperationStats()
            stats.add(duration_ms, success)

    def _matching(self, operation: str, collection: str | None) -> list[OperationStats]:
        return [
            stats
            for (op, coll), stats in self._stats.items()
            if op == operation and (collection is None or coll == collection)
        ]

    def calls(self, operation: str, collection: str | None = None) -> int:
        """Number of executions of ``operation``, optionally for one collection."""
        with self._lock:
            return sum(s.calls for s in self._matching(operation, collection))

    def failures(self, operation: str, collection: str | None = None) -> int:
        """Number of failed executions of ``operation``, optionally for one collection."""
        with self._lock:
            return sum(s.failures for s in self._matching(operation, collection))

    def totals(self) -> dict[str, Any]:
        with self._lock:
            return {
                "calls": sum(s.calls for s in self._stats.values()),
                "failures": sum(s.failures for s in self._stats.values()),
                "total_ms": round(sum(s.total_ms for s in self._stats.values()), 2),
            }

    def reset(self) -> None:
        with self._lock:
            self._stats.clear()


_store_metrics: StoreMetrics | None = None


def get_store_metrics() -> StoreMetrics:
    """Get or create the process-wide counters."""
    global _store_metrics
    if _store_metrics is None:
        _store_metrics = StoreMetrics()
    return _store_metrics


def record_operation(
    operation: str, duration_ms: float, success: bool = True, collection: str | None = None
) -> None:
    get_store_metrics().record(operation, duration_ms, success, collection)


def timed_operation(operation: str):
    """
    Decorator that times a coroutine and records it.

    Usage:
        @timed_operation("provisioner.provision")
        async def provision(self):
            ...
    """

    def decorator(func: Callable) -> Callable:
        if not inspect.iscoroutinefunction(func):
            raise TypeError(f"timed_operation needs a coroutine function, got {func!r}")

        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            start_time = time.time()
            success = False
            try:
                result = await func(*args, **kwargs)
                success = True
                return result
            finally:
                record_operation(operation, (time.time() - start_time) * 1000, success)

        return wrapper

    return decorator
