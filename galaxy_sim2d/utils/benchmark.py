#!/usr/bin/env python3
"""
Performance benchmark for the 2D Barnes-Hut solver.

Compares one step of:
- Barnes-Hut (quadtree, O(N log N)) at several opening angles
- Direct summation (O(N^2))

Usage:
    python -m galaxy_sim2d.utils.benchmark [--bodies 2000] [--iterations 5]
"""

from __future__ import annotations

import argparse
import dataclasses
import random
import sys
import time
from concurrent.futures import ThreadPoolExecutor

import numpy as np

from galaxy_sim2d.core.bodies import Body, Snapshot
from galaxy_sim2d.core.init_conditions import create_galaxy
from galaxy_sim2d.params import SimParams
from galaxy_sim2d.physics.forces import BarnesHutSolver, DirectSolver, ForceSolver


def time_solver(solver: ForceSolver, initial: Snapshot, iterations: int) -> tuple[float, float]:
    """Mean and standard deviation in ms of one ``advance`` on a fresh copy."""
    times = []
    for _ in range(iterations):
        bodies = initial.to_bodies()
        t0 = time.perf_counter()
        solver.advance(bodies)
        times.append((time.perf_counter() - t0) * 1000.0)
    arr = np.asarray(times)
    return float(arr.mean()), float(arr.std())


def position_error(reference: list[Body], other: list[Body]) -> float:
    """Largest position difference after one step."""
    a = Snapshot.from_bodies(reference).positions
    b = Snapshot.from_bodies(other).positions
    return float(np.max(np.hypot(*(a - b).T))) if len(a) else 0.0


def run_benchmark(n_bodies: int, iterations: int, *, thetas: list[float], workers: int, direct: bool) -> dict:
    print(f"\n{'=' * 60}")
    print(f"Benchmark: {n_bodies} bodies, {iterations} iterations, {workers or 'auto'} workers")
    print(f"{'=' * 60}")

    base = SimParams(workers=workers).clamp().check()
    initial = Snapshot.from_bodies(create_galaxy(random.Random(42), n_bodies))
    results: dict[str, float] = {}

    reference = None
    if direct:
        print("Direct...", end=" ", flush=True)
        mean_ms, std_ms = time_solver(DirectSolver(base), initial, iterations)
        print(f"{mean_ms:.2f} ± {std_ms:.2f} ms")
        results["direct"] = mean_ms
        reference = initial.to_bodies()
        DirectSolver(base).advance(reference)

    with ThreadPoolExecutor(max_workers=base.worker_count()) as pool:
        for theta in thetas:
            params = dataclasses.replace(base, theta=theta)
            solver = BarnesHutSolver(params, pool)
            print(f"Barnes-Hut (θ={theta})...", end=" ", flush=True)
            mean_ms, std_ms = time_solver(solver, initial, iterations)
            line = f"{mean_ms:.2f} ± {std_ms:.2f} ms, max visits {solver.last_max_visits}"
            if reference is not None:
                approx = initial.to_bodies()
                solver.advance(approx)
                line += f", max error {position_error(reference, approx):.3g}"
            print(line)
            results[f"barnes_hut_{theta}"] = mean_ms

    print("\nSummary:")
    for key, value in results.items():
        if "direct" in results and key != "direct":
            print(f"  {key}: {value:.2f} ms ({results['direct'] / value:.1f}x faster than direct)")
        else:
            print(f"  {key}: {value:.2f} ms")
    return results


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Benchmark 2D Barnes-Hut force calculation")
    parser.add_argument("--bodies", "-n", type=int, default=2000, help="Number of bodies")
    parser.add_argument("--iterations", "-i", type=int, default=5, help="Benchmark iterations")
    parser.add_argument("--theta", type=float, action="append", help="Opening angle (repeatable)")
    parser.add_argument("--workers", "-w", type=int, default=0, help="Force pass threads (0 = CPU count)")
    parser.add_argument("--no-direct", action="store_true", help="Skip the O(N^2) reference")
    parser.add_argument("--sweep", action="store_true", help="Run sweep over body counts")
    args = parser.parse_args(argv)

    print("2D Barnes-Hut Performance Benchmark")
    print(f"Platform: {sys.platform}")
    print(f"NumPy: {np.__version__}")

    thetas = args.theta or [0.3, 0.5, 0.9]
    counts = [250, 500, 1000, 2000] if args.sweep else [args.bodies]
    for n in counts:
        run_benchmark(max(1, n), max(1, args.iterations), thetas=thetas, workers=args.workers, direct=not args.no_direct)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
