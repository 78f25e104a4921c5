from __future__ import annotations

import json
import math
import numbers
import os
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any

from galaxy_sim2d.errors import ConfigError


QT_SIZE = 160000.0


@dataclass(slots=True)
class SimParams:
    theta: float = 0.5  # Barnes-Hut opening angle
    gravity_constant: float = 1.0
    timestep: float = 1.0
    softening: float = 1.0

    # tree root region: (left, top, width, height)
    bounds: tuple[float, float, float, float] = (-QT_SIZE, -QT_SIZE, QT_SIZE * 2.0, QT_SIZE * 2.0)
    max_depth: int = 32
    min_cell_size: float = 1e-6

    workers: int = 0  # 0 = os.cpu_count()
    chunk_size: int = 0  # 0 = split bodies evenly across workers
    log_steps: bool = False
    log_every: int = 1

    def check(self) -> "SimParams":
        """Raise ConfigError if a physical constant is unusable. Returns self."""
        for name in ("theta", "gravity_constant", "timestep", "softening"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, numbers.Real) or not math.isfinite(value):
                raise ConfigError(f"{name} must be a finite number, got {value!r}")
            setattr(self, name, float(value))
        if self.timestep <= 0.0:
            raise ConfigError(f"timestep must be > 0, got {self.timestep}")
        if self.softening <= 0.0:
            raise ConfigError(f"softening must be > 0, got {self.softening}")
        if self.theta < 0.0:
            raise ConfigError(f"theta must be >= 0, got {self.theta}")
        if self.gravity_constant < 0.0:
            raise ConfigError(f"gravity_constant must be >= 0, got {self.gravity_constant}")

        try:
            left, top, width, height = (float(v) for v in self.bounds)
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"bounds must be (left, top, width, height), got {self.bounds!r}") from exc
        if not all(math.isfinite(v) for v in (left, top, width, height)):
            raise ConfigError(f"bounds must be finite, got {self.bounds!r}")
        if width <= 0.0 or height <= 0.0:
            raise ConfigError(f"bounds width/height must be > 0, got {self.bounds!r}")
        self.bounds = (left, top, width, height)
        return self

    def clamp(self) -> "SimParams":
        self.max_depth = max(1, min(64, int(self.max_depth)))
        self.min_cell_size = max(0.0, float(self.min_cell_size))
        self.workers = max(0, int(self.workers))
        self.chunk_size = max(0, int(self.chunk_size))
        self.log_steps = bool(self.log_steps)
        self.log_every = max(1, int(self.log_every))
        if isinstance(self.bounds, list):
            self.bounds = tuple(self.bounds)  # type: ignore[assignment]
        return self

    def worker_count(self) -> int:
        if self.workers > 0:
            return self.workers
        return os.cpu_count() or 1

    def validate(self) -> list[str]:
        warnings: list[str] = []

        _, _, width, height = self.bounds
        if abs(float(width) - float(height)) > 1e-9 * max(abs(width), abs(height), 1.0):
            warnings.append("bounds are not square: the opening angle only uses the width.")
        if self.theta == 0.0:
            warnings.append("theta=0 never approximates: every force query walks to the leaves.")
        elif self.theta > 1.5:
            warnings.append("theta above 1.5 gives a very coarse approximation.")
        if self.gravity_constant == 0.0:
            warnings.append("gravity_constant=0: bodies only drift.")
        if self.workers == 1 and self.chunk_size > 0:
            warnings.append("chunk_size has no effect with a single worker.")

        return warnings

    @classmethod
    def load(cls, path: str | Path) -> "SimParams":
        data = json.loads(Path(path).read_text(encoding="utf-8"))
        if not isinstance(data, dict):
            raise ConfigError("parameter file must contain a JSON object.")
        # Older files stored the square root region as a single half-size.
        if "qt_size" in data and "bounds" not in data:
            half = float(data.pop("qt_size"))
            data["bounds"] = (-half, -half, half * 2.0, half * 2.0)
        filtered: dict[str, Any] = {k: v for k, v in data.items() if k in cls.__annotations__}
        if "bounds" in filtered:
            filtered["bounds"] = tuple(filtered["bounds"])
        return cls(**filtered).clamp()

    def save(self, path: str | Path) -> None:
        data = asdict(self)
        data["bounds"] = list(self.bounds)
        Path(path).write_text(json.dumps(data, indent=2), encoding="utf-8")
