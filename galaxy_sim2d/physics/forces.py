"""
Force solvers that advance a working copy of the point set by one step.

- Barnes-Hut (quadtree): O(N log N) approximation, per-body traversals run
  in parallel on a thread pool
- Direct: O(N^2) pairwise summation with the identical force law, used as the
  reference for checking the tree at theta=0

Both fuse force and integration: each interaction immediately adds
``a * timestep`` to the body's velocity, then the body drifts once with the
updated velocity.

Example:
    >>> from galaxy_sim2d.params import SimParams
    >>> solver = BarnesHutSolver(SimParams())
    >>> tree = solver.advance(bodies)
"""

from __future__ import annotations

import math
import time
from concurrent.futures import Executor
from typing import TYPE_CHECKING, Sequence

from galaxy_sim2d.physics.integrator import drift, kick
from galaxy_sim2d.physics.quadtree import Quadtree

if TYPE_CHECKING:
    from galaxy_sim2d.core.bodies import Body
    from galaxy_sim2d.params import SimParams


def chunk_ranges(n: int, workers: int, chunk_size: int = 0) -> list[tuple[int, int]]:
    """Split ``range(n)`` into contiguous ``(start, end)`` slices."""
    if n <= 0:
        return []
    size = chunk_size if chunk_size > 0 else max(1, math.ceil(n / max(1, workers)))
    return [(s, min(n, s + size)) for s in range(0, n, size)]


class ForceSolver:
    """
    Base interface for force solvers.

    ``advance`` mutates ``bodies`` in place: velocities from the force pass,
    then positions from the integrator.
    """

    def advance(self, bodies: list["Body"]) -> object:
        raise NotImplementedError


class BarnesHutSolver(ForceSolver):
    """
    Quadtree solver.

    Attributes:
        params: Physical constants and tree limits (read-only)
        executor: Pool for the per-body pass; None runs it inline. The pass is
            pure Python, so the GIL serializes the chunks: the pool overlaps
            them but gives no CPU speed-up
        last_build_time_ms, last_aggregate_time_ms, last_traverse_time_ms:
            Phase timings of the most recent ``advance``
        last_max_visits: Largest node count visited by one body last step
    """

    def __init__(self, params: "SimParams", executor: Executor | None = None) -> None:
        self.params = params
        self.executor = executor
        self.last_build_time_ms: float | None = None
        self.last_aggregate_time_ms: float | None = None
        self.last_traverse_time_ms: float | None = None
        self.last_max_visits = 0

    def build(self, bodies: Sequence["Body"]) -> Quadtree:
        p = self.params
        t0 = time.perf_counter()
        tree = Quadtree.build(bodies, p.bounds, max_depth=p.max_depth, min_cell_size=p.min_cell_size)
        self.last_build_time_ms = (time.perf_counter() - t0) * 1000.0
        return tree

    def aggregate(self, tree: Quadtree) -> None:
        t0 = time.perf_counter()
        tree.aggregate()
        self.last_aggregate_time_ms = (time.perf_counter() - t0) * 1000.0

    def force_and_drift(self, tree: Quadtree, bodies: list["Body"]) -> int:
        t0 = time.perf_counter()
        p = self.params
        chunks = chunk_ranges(len(bodies), p.worker_count(), p.chunk_size)

        if self.executor is None or len(chunks) <= 1:
            most = max((self._run_chunk(tree, bodies, s, e) for s, e in chunks), default=0)
        else:
            futures = [self.executor.submit(self._run_chunk, tree, bodies, s, e) for s, e in chunks]
            # result() re-raises a worker failure here, on the loop thread
            most = max((f.result() for f in futures), default=0)

        self.last_max_visits = most
        self.last_traverse_time_ms = (time.perf_counter() - t0) * 1000.0
        return most

    def _run_chunk(self, tree: Quadtree, bodies: list["Body"], start: int, end: int) -> int:
        p = self.params
        dt = p.timestep
        most = 0
        for i in range(start, end):
            b = bodies[i]
            visited = tree.apply_force(
                b,
                theta=p.theta,
                gravity_constant=p.gravity_constant,
                softening=p.softening,
                timestep=dt,
            )
            drift(b, dt)
            if visited > most:
                most = visited
        return most

    def advance(self, bodies: list["Body"]) -> Quadtree:
        tree = self.build(bodies)
        self.aggregate(tree)
        self.force_and_drift(tree, bodies)
        return tree


class DirectSolver(ForceSolver):
    """Direct O(N^2) summation; the reference implementation for testing."""

    def __init__(self, params: "SimParams") -> None:
        self.params = params

    def advance(self, bodies: list["Body"]) -> None:
        p = self.params
        g = p.gravity_constant
        s2 = p.softening * p.softening
        dt = p.timestep

        ms = [b.mass for b in bodies]
        xs = [b.x for b in bodies]
        ys = [b.y for b in bodies]
        n = len(bodies)

        for i in range(n):
            b = bodies[i]
            xi, yi = xs[i], ys[i]
            for j in range(n):
                if j == i or (xs[j] == xi and ys[j] == yi):
                    continue
                dx = xs[j] - xi
                dy = ys[j] - yi
                dist = math.sqrt(dx * dx + dy * dy + s2)
                force = g * ms[j] * b.mass / (dist * dist + s2)
                f = force / b.mass / dist
                kick(b, dx * f, dy * f, dt)
            drift(b, dt)
