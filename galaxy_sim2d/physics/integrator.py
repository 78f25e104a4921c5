"""Semi-implicit (symplectic) Euler updates on a single body."""

from __future__ import annotations

from galaxy_sim2d.core.bodies import Body


def kick(body: Body, ax: float, ay: float, dt: float) -> None:
    """Velocity update: v += a * dt."""
    body.vx += ax * dt
    body.vy += ay * dt


def drift(body: Body, dt: float) -> None:
    """Position update using the already-kicked velocity: x += v * dt."""
    body.x += body.vx * dt
    body.y += body.vy * dt
