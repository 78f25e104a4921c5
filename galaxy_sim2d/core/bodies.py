"""
Point set and published snapshots.

A ``Body`` is the mutable working value the integrator updates in place. Once
a step finishes, the working list is frozen into a ``Snapshot`` whose NumPy
arrays are marked read-only, so a snapshot handed to a consumer can never
change underneath it.

Example:
    >>> bodies = [Body(1.0, -5.0, 0.0), Body(1.0, 5.0, 0.0)]
    >>> snap = Snapshot.from_bodies(bodies)
    >>> snap.positions.shape
    (2, 2)
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, Sequence

import numpy as np

from galaxy_sim2d.errors import ConfigError


@dataclass(slots=True)
class Body:
    mass: float
    x: float
    y: float
    vx: float = 0.0
    vy: float = 0.0

    def copy(self) -> "Body":
        return Body(self.mass, self.x, self.y, self.vx, self.vy)


def check_bodies(bodies: Sequence[Body]) -> None:
    if len(bodies) == 0:
        raise ConfigError("at least one body is required.")
    for i, b in enumerate(bodies):
        if not math.isfinite(b.mass) or b.mass <= 0.0:
            raise ConfigError(f"body {i} mass must be a finite number > 0, got {b.mass!r}")
        if not all(math.isfinite(v) for v in (b.x, b.y, b.vx, b.vy)):
            raise ConfigError(f"body {i} has a non-finite position or velocity")


def _frozen(arr: np.ndarray) -> np.ndarray:
    arr.flags.writeable = False
    return arr


@dataclass(frozen=True, eq=False)
class Snapshot:
    """
    Immutable state of every body at one completed step.

    Attributes:
        masses: shape (n,)
        positions: shape (n, 2), columns x, y
        velocities: shape (n, 2), columns vx, vy
    """
    masses: np.ndarray
    positions: np.ndarray
    velocities: np.ndarray

    @classmethod
    def from_bodies(cls, bodies: Iterable[Body]) -> "Snapshot":
        rows = [(b.mass, b.x, b.y, b.vx, b.vy) for b in bodies]
        data = np.array(rows, dtype=np.float64).reshape(-1, 5)
        return cls(
            masses=_frozen(data[:, 0].copy()),
            positions=_frozen(data[:, 1:3].copy()),
            velocities=_frozen(data[:, 3:5].copy()),
        )

    def to_bodies(self) -> list[Body]:
        """Return a fresh, independent working copy."""
        return [
            Body(float(m), float(p[0]), float(p[1]), float(v[0]), float(v[1]))
            for m, p, v in zip(self.masses, self.positions, self.velocities)
        ]

    def __len__(self) -> int:
        return int(self.masses.shape[0])

    def total_mass(self) -> float:
        return float(self.masses.sum())

    def same_state(self, other: "Snapshot") -> bool:
        return (
            np.array_equal(self.masses, other.masses)
            and np.array_equal(self.positions, other.positions)
            and np.array_equal(self.velocities, other.velocities)
        )
