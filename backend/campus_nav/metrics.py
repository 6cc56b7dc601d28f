import time
from contextlib import contextmanager
from threading import Lock
from typing import Dict, Iterator


class PerformanceMonitor:
    """Per-operation wall-clock totals. One instance per engine."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._total_ms: Dict[str, float] = {}
        self._counts: Dict[str, int] = {}

    def record(self, operation: str, elapsed_ms: float) -> None:
        with self._lock:
            self._total_ms[operation] = self._total_ms.get(operation, 0.0) + elapsed_ms
            self._counts[operation] = self._counts.get(operation, 0) + 1

    @contextmanager
    def timed(self, operation: str) -> Iterator[None]:
        t0 = time.perf_counter()
        try:
            yield
        finally:
            self.record(operation, (time.perf_counter() - t0) * 1000.0)

    def average_ms(self, operation: str) -> float:
        with self._lock:
            n = self._counts.get(operation, 0)
            if n == 0:
                return 0.0
            return self._total_ms[operation] / n

    def count(self, operation: str) -> int:
        with self._lock:
            return self._counts.get(operation, 0)

    def snapshot(self) -> Dict[str, Dict[str, float]]:
        with self._lock:
            return {
                op: {"count": self._counts[op], "avg_ms": self._total_ms[op] / self._counts[op]}
                for op in sorted(self._counts)
            }

    def reset(self) -> None:
        with self._lock:
            self._total_ms.clear()
            self._counts.clear()
