"""Latency tracking used to pad recovery issuance."""

from __future__ import annotations

import threading


class LatencyEstimate:
    """High-water estimate of recent known-account recovery durations.

    A slower sample raises the estimate at once; faster samples pull it down
    gradually, so the value tracks the slow end of recent observations.
    """

    def __init__(self, decay: float = 0.1, initial: float = 0.0) -> None:
        self.decay = decay
        self._value = initial
        self._lock = threading.Lock()

    @property
    def value(self) -> float:
        with self._lock:
            return self._value

    def observe(self, seconds: float) -> None:
        with self._lock:
            if seconds >= self._value:
                self._value = seconds
            else:
                self._value += self.decay * (seconds - self._value)

    def pad_target(self, floor: float) -> float:
        return max(floor, self.value)
