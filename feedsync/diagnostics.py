"""Counters and timers describing sync activity."""

from __future__ import annotations

import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator


class Meter:
    """Monotonic event counter."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._count = 0

    def mark(self, n: int = 1) -> None:
        with self._lock:
            self._count += n

    @property
    def count(self) -> int:
        with self._lock:
            return self._count


class Timer:
    """Records how long timed scopes take."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._count = 0
        self._total = 0.0
        self._max = 0.0

    @contextmanager
    def time(self) -> Iterator[None]:
        start = time.perf_counter()
        try:
            yield
        finally:
            self.update(time.perf_counter() - start)

    def update(self, seconds: float) -> None:
        with self._lock:
            self._count += 1
            self._total += seconds
            self._max = max(self._max, seconds)

    @property
    def count(self) -> int:
        with self._lock:
            return self._count

    def snapshot(self) -> Dict[str, float]:
        with self._lock:
            mean = self._total / self._count if self._count else 0.0
            return {
                "count": self._count,
                "total_ms": self._total * 1000,
                "mean_ms": mean * 1000,
                "max_ms": self._max * 1000,
            }


@dataclass
class Diagnostics:
    """Diagnostics shared by every sync pass of the agent."""

    storage_error_rate: Meter = field(default_factory=Meter)
    inventory_rate: Meter = field(default_factory=Meter)
    inventory_storage_request_timer: Timer = field(default_factory=Timer)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "storage_errors": self.storage_error_rate.count,
            "inventory_elements": self.inventory_rate.count,
            "inventory_requests": self.inventory_storage_request_timer.snapshot(),
        }


__all__ = ["Diagnostics", "Meter", "Timer"]
