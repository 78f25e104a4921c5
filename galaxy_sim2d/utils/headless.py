#!/usr/bin/env python3
"""
Headless consumer for the threaded simulation.

Runs the loop free-running for a fixed wall-clock duration and polls it the
way a display would: take the latest snapshot pair when a new step lands,
then build interpolated positions every frame.

Usage:
    python -m galaxy_sim2d.utils.headless [--bodies 5000] [--seconds 10] [--params sim.json]
"""

from __future__ import annotations

import argparse
import random
import sys
import time

import numpy as np

from galaxy_sim2d.core.handoff import interpolate_positions, interpolation_alpha
from galaxy_sim2d.core.init_conditions import create_galaxy, merge_galaxies
from galaxy_sim2d.core.sim import start
from galaxy_sim2d.errors import ConfigError
from galaxy_sim2d.params import SimParams


def run(params: SimParams, *, bodies: int, seconds: float, fps: float, galaxies: int, seed: int, interpolate: bool) -> int:
    rng = random.Random(seed)
    per = max(1, bodies // max(1, galaxies))
    groups = [
        create_galaxy(rng, per, center=(i * 1200.0, 0.0), base_velocity=(0.0, (-1) ** i * 2.0))
        for i in range(max(1, galaxies))
    ]
    sim = start(merge_galaxies(*groups), params)
    sim.resume()

    frame_dt = 1.0 / max(1.0, fps)
    deadline = time.monotonic() + seconds
    latest = sim.try_take_latest()
    seen = 0
    frames = 0
    fps_clock = time.monotonic()
    try:
        while time.monotonic() < deadline:
            fresh = sim.try_take_latest(newer_than=seen)
            if fresh is not None:
                latest = fresh
                seen = fresh.step

            t0 = time.perf_counter()
            alpha = interpolation_alpha(latest) if interpolate else 1.0
            positions = interpolate_positions(latest, alpha)
            copy_ms = (time.perf_counter() - t0) * 1000.0
            frames += 1

            now = time.monotonic()
            if now - fps_clock > 1.0:
                spread = float(np.abs(positions).max()) if len(positions) else 0.0
                print(
                    f"[headless] {frames / (now - fps_clock):.1f} fps, step {seen}, "
                    f"interval {latest.interval * 1000.0:.1f}ms, copy {copy_ms:.2f}ms, extent {spread:.1f}",
                    file=sys.stderr,
                )
                frames = 0
                fps_clock = now
            time.sleep(frame_dt)
    finally:
        sim.stop()

    sim.try_take_latest()  # surfaces a fault from the last step
    print(f"[headless] finished after {sim.completed_steps} steps")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Run the Barnes-Hut loop without a display")
    parser.add_argument("--bodies", "-n", type=int, default=5000, help="Total number of bodies")
    parser.add_argument("--galaxies", type=int, default=1, help="Number of discs")
    parser.add_argument("--seconds", "-s", type=float, default=10.0, help="Wall-clock run time")
    parser.add_argument("--fps", type=float, default=60.0, help="Consumer poll rate")
    parser.add_argument("--seed", type=int, default=1)
    parser.add_argument("--params", help="JSON parameter file")
    parser.add_argument("--theta", type=float, help="Override opening angle")
    parser.add_argument("--no-interpolate", action="store_true")
    parser.add_argument("--log-steps", action="store_true")
    args = parser.parse_args(argv)

    params = SimParams.load(args.params) if args.params else SimParams()
    if args.theta is not None:
        params.theta = args.theta
    if args.log_steps:
        params.log_steps = True

    try:
        return run(
            params,
            bodies=args.bodies,
            seconds=args.seconds,
            fps=args.fps,
            galaxies=args.galaxies,
            seed=args.seed,
            interpolate=not args.no_interpolate,
        )
    except ConfigError as exc:
        print(f"[headless] invalid configuration: {exc}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
