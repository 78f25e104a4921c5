"""Exceptions raised by the simulation core."""

from __future__ import annotations


class ConfigError(ValueError):
    """Invalid constants or bodies supplied before the loop starts."""


class SimulationFault(RuntimeError):
    """
    A step failed on the computation thread.

    The original exception is kept as ``__cause__``. Once raised the loop is
    terminated and every later status query re-raises the same fault.
    """

    def __init__(self, step: int, message: str) -> None:
        super().__init__(f"step {step} failed: {message}")
        self.step = step
