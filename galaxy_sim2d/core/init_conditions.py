"""
Initial condition generators.

Available distributions:
- galaxy: uniform-area disc whose bodies orbit the disc center, with speed
  growing linearly with radius (solid-body rotation)
"""

from __future__ import annotations

import math
import random

from galaxy_sim2d.core.bodies import Body


def create_galaxy(
    rng: random.Random,
    n: int,
    *,
    radius: float = 400.0,
    speed: float = 12.0,
    center: tuple[float, float] = (0.0, 0.0),
    base_velocity: tuple[float, float] = (0.0, 0.0),
    mass: float = 1.0,
) -> list[Body]:
    """
    Create ``n`` bodies in a rotating disc.

    Args:
        rng: Random number generator
        n: Number of bodies
        radius: Disc radius
        speed: Tangential speed at the disc edge
        center: Disc center
        base_velocity: Bulk velocity added to every body
        mass: Mass of each body

    Returns:
        List of bodies
    """
    cx, cy = center
    bvx, bvy = base_velocity
    bodies: list[Body] = []
    for _ in range(max(0, int(n))):
        angle = math.radians(rng.randrange(360))
        # sqrt gives uniform density per unit area
        r = math.sqrt(rng.random()) * radius
        x = cx + math.cos(angle) * r
        y = cy + math.sin(angle) * r

        normal = math.atan2(cy - y, cx - x) - math.pi / 2.0
        scale = speed * (r / radius) if radius > 0.0 else 0.0
        bodies.append(Body(
            mass=mass,
            x=x,
            y=y,
            vx=bvx + math.cos(normal) * scale,
            vy=bvy + math.sin(normal) * scale,
        ))
    return bodies


def merge_galaxies(*groups: list[Body]) -> list[Body]:
    """Concatenate several generated groups into one point set."""
    out: list[Body] = []
    for g in groups:
        out.extend(b.copy() for b in g)
    return out
