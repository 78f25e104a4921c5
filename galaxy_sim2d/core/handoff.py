"""
Double-buffered hand-off between the computation thread and its consumer.

The producer publishes a finished ``Snapshot``; the previous "current" becomes
"previous". Only references are exchanged under the lock. Consumers build
their own arrays (e.g. interpolated positions) outside it.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass

import numpy as np

from galaxy_sim2d.core.bodies import Snapshot


@dataclass(frozen=True, slots=True)
class Latest:
    """
    The two most recent snapshots as seen by a consumer.

    Attributes:
        previous: State one step before ``current``
        current: Most recently published state
        interval: Wall-clock seconds between the last two publishes
        published_at: ``time.monotonic()`` when ``current`` was published
        step: Number of completed steps (0 = initial state)
    """
    previous: Snapshot
    current: Snapshot
    interval: float
    published_at: float
    step: int


class StateBuffer:
    def __init__(self, initial: Snapshot, *, clock=time.monotonic) -> None:
        self._lock = threading.Lock()
        self._clock = clock
        self._previous = initial
        self._current = initial
        self._published_at = clock()
        self._interval = 0.0
        self._step = 0

    def publish(self, snapshot: Snapshot) -> Latest:
        now = self._clock()
        with self._lock:
            self._previous, self._current = self._current, snapshot
            self._interval = now - self._published_at
            self._published_at = now
            self._step += 1
            return self._latest()

    def take(self, newer_than: int | None = None) -> Latest | None:
        with self._lock:
            if newer_than is not None and self._step <= newer_than:
                return None
            return self._latest()

    @property
    def step(self) -> int:
        with self._lock:
            return self._step

    def _latest(self) -> Latest:
        return Latest(
            previous=self._previous,
            current=self._current,
            interval=self._interval,
            published_at=self._published_at,
            step=self._step,
        )


def interpolation_alpha(latest: Latest, now: float | None = None) -> float:
    """Fraction of the last step interval elapsed since publish, clamped to [0, 1]."""
    if latest.interval <= 0.0:
        return 1.0
    if now is None:
        now = time.monotonic()
    alpha = (now - latest.published_at) / latest.interval
    return min(1.0, max(0.0, alpha))


def interpolate_positions(latest: Latest, alpha: float) -> np.ndarray:
    """Positions blended from ``previous`` toward ``current``: prev + (curr - prev) * alpha."""
    prev = latest.previous.positions
    curr = latest.current.positions
    return prev + (curr - prev) * float(alpha)
