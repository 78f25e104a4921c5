"""Tests for the force solvers and the integrator."""

import math
import random
import unittest
from concurrent.futures import ThreadPoolExecutor

from galaxy_sim2d.core.bodies import Body
from galaxy_sim2d.params import SimParams
from galaxy_sim2d.physics.forces import BarnesHutSolver, DirectSolver, chunk_ranges
from galaxy_sim2d.physics.integrator import drift, kick


class TestChunkRanges(unittest.TestCase):

    def test_even_split_covers_all(self) -> None:
        chunks = chunk_ranges(10, workers=3)
        self.assertEqual(chunks, [(0, 4), (4, 8), (8, 10)])

    def test_explicit_chunk_size(self) -> None:
        self.assertEqual(chunk_ranges(5, workers=8, chunk_size=2), [(0, 2), (2, 4), (4, 5)])

    def test_empty(self) -> None:
        self.assertEqual(chunk_ranges(0, workers=4), [])


class TestIntegrator(unittest.TestCase):

    def test_kick_then_drift_uses_new_velocity(self) -> None:
        b = Body(1.0, 0.0, 0.0, vx=1.0, vy=0.0)
        kick(b, 2.0, -1.0, 0.5)
        drift(b, 0.5)
        self.assertAlmostEqual(b.vx, 2.0)
        self.assertAlmostEqual(b.vy, -0.5)
        self.assertAlmostEqual(b.x, 1.0)
        self.assertAlmostEqual(b.y, -0.25)


class TestBarnesHutSolver(unittest.TestCase):

    def _bodies(self, n: int = 64) -> list[Body]:
        rng = random.Random(9)
        return [
            Body(rng.uniform(0.5, 2.0), rng.uniform(-80, 80), rng.uniform(-80, 80),
                 rng.uniform(-1, 1), rng.uniform(-1, 1))
            for _ in range(n)
        ]

    def test_parallel_pass_matches_inline(self) -> None:
        params = SimParams(theta=0.6, workers=4, chunk_size=5).clamp().check()
        inline = self._bodies()
        threaded = [b.copy() for b in inline]

        BarnesHutSolver(params).advance(inline)
        with ThreadPoolExecutor(max_workers=4) as pool:
            BarnesHutSolver(params, pool).advance(threaded)

        self.assertEqual(inline, threaded)

    def test_records_timings_and_visits(self) -> None:
        solver = BarnesHutSolver(SimParams().check())
        tree = solver.advance(self._bodies(16))

        self.assertIsNotNone(solver.last_build_time_ms)
        self.assertIsNotNone(solver.last_aggregate_time_ms)
        self.assertIsNotNone(solver.last_traverse_time_ms)
        self.assertGreater(solver.last_max_visits, 0)
        self.assertEqual(tree.inserted, 16)

    def test_worker_failure_propagates(self) -> None:
        params = SimParams(workers=2, chunk_size=1).clamp().check()
        bodies = [Body(1.0, 0.0, 0.0), Body(1.0, 5.0, 5.0)]
        solver = BarnesHutSolver(params)
        tree = solver.build(bodies)  # never aggregated
        with ThreadPoolExecutor(max_workers=2) as pool:
            solver.executor = pool
            with self.assertRaises(RuntimeError):
                solver.force_and_drift(tree, bodies)

    def test_zero_gravity_only_drifts(self) -> None:
        params = SimParams(gravity_constant=0.0, timestep=2.0).check()
        bodies = self._bodies(10)
        before = [b.copy() for b in bodies]
        BarnesHutSolver(params).advance(bodies)
        for b, b0 in zip(bodies, before):
            self.assertEqual((b.vx, b.vy), (b0.vx, b0.vy))
            self.assertAlmostEqual(b.x, b0.x + 2.0 * b0.vx)
            self.assertAlmostEqual(b.y, b0.y + 2.0 * b0.vy)


class TestDirectSolver(unittest.TestCase):

    def test_coincident_pair_is_skipped(self) -> None:
        bodies = [Body(1.0, 3.0, 3.0), Body(1.0, 3.0, 3.0)]
        DirectSolver(SimParams().check()).advance(bodies)
        for b in bodies:
            self.assertEqual((b.vx, b.vy, b.x, b.y), (0.0, 0.0, 3.0, 3.0))

    def test_softened_force_law(self) -> None:
        params = SimParams(gravity_constant=2.0, softening=0.5, timestep=0.1).check()
        bodies = [Body(1.0, 0.0, 0.0), Body(4.0, 0.0, 3.0)]
        DirectSolver(params).advance(bodies)

        s2 = 0.25
        dist = math.sqrt(9.0 + s2)
        accel = 2.0 * 4.0 / (dist * dist + s2)
        self.assertAlmostEqual(bodies[0].vy, accel * (3.0 / dist) * 0.1, places=12)
        self.assertEqual(bodies[0].vx, 0.0)


if __name__ == "__main__":
    unittest.main()
