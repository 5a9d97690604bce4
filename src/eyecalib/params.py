from __future__ import annotations

import json
import math
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

import numpy as np

SCHEMA_VERSION = "eyecalib.params.v0"

POSE_DIM = 6


class ParameterValidationError(ValueError):
    pass


def default_bounds() -> np.ndarray:
    """
    Default search box for the pose vector [tx, ty, tz, roll, pitch, yaw].

    Translation in meters, orientation (rpy) in radians.
    """
    return np.array(
        [
            [-0.1, 0.1],
            [-0.1, 0.1],
            [-0.1, 0.1],
            [-math.pi, math.pi],
            [-math.pi / 2.0, math.pi / 2.0],
            [-math.pi, math.pi],
        ],
        dtype=np.float64,
    )


@dataclass(frozen=True)
class SwarmParameters:
    num_particles: int = 20
    max_iter: int | None = None
    max_time: float = math.inf
    omega: float = 0.8
    phi_p: float = 0.1
    phi_g: float = 0.1
    cost_threshold: float = 0.0
    bounds: np.ndarray = field(default_factory=default_bounds)
    stagnation_period: int = 100
    stagnation_threshold: float = 0.005
    report_period: int = 10

    def __post_init__(self) -> None:
        bounds = _to_bounds(self.bounds)
        bounds.setflags(write=False)
        object.__setattr__(self, "bounds", bounds)

        _require(int(self.num_particles) >= 1, "num_particles must be >= 1")
        _require(self.max_iter is None or int(self.max_iter) >= 1, "max_iter must be >= 1 (or None)")
        _require(float(self.max_time) > 0.0, "max_time must be > 0")
        _require(float(self.omega) >= 0.0, "omega must be >= 0")
        _require(float(self.phi_p) >= 0.0 and float(self.phi_g) >= 0.0, "phi_p and phi_g must be >= 0")
        _require(math.isfinite(float(self.cost_threshold)), "cost_threshold must be finite")
        _require(int(self.stagnation_period) >= 1, "stagnation_period must be >= 1")
        _require(float(self.stagnation_threshold) >= 0.0, "stagnation_threshold must be >= 0")
        _require(int(self.report_period) >= 1, "report_period must be >= 1")

    @property
    def dim(self) -> int:
        return int(self.bounds.shape[0])

    def with_overrides(self, **kwargs: Any) -> "SwarmParameters":
        return replace(self, **kwargs)

    def to_dict(self) -> dict[str, Any]:
        return {
            "schema_version": SCHEMA_VERSION,
            "num_particles": int(self.num_particles),
            "max_iter": None if self.max_iter is None else int(self.max_iter),
            "max_time": None if math.isinf(self.max_time) else float(self.max_time),
            "omega": float(self.omega),
            "phi_p": float(self.phi_p),
            "phi_g": float(self.phi_g),
            "cost_threshold": float(self.cost_threshold),
            "bounds": self.bounds.tolist(),
            "stagnation_period": int(self.stagnation_period),
            "stagnation_threshold": float(self.stagnation_threshold),
            "report_period": int(self.report_period),
        }


def _require(cond: bool, msg: str) -> None:
    if not cond:
        raise ParameterValidationError(msg)


def _to_bounds(x: Any) -> np.ndarray:
    try:
        b = np.array(x, dtype=np.float64)
    except (TypeError, ValueError) as e:
        raise ParameterValidationError(f"bounds must be numeric: {e}") from e
    _require(b.ndim == 2 and b.shape[1] == 2 and b.shape[0] >= 1, "bounds must be [[min,max], ...]")
    _require(bool(np.all(np.isfinite(b))), "bounds must be finite")
    _require(bool(np.all(b[:, 0] <= b[:, 1])), "bounds must satisfy min <= max")
    return b


def load_swarm_parameters(path: Path) -> SwarmParameters:
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    return parse_swarm_parameters(data)


def parse_swarm_parameters(data: dict[str, Any]) -> SwarmParameters:
    schema_version = data.get("schema_version", SCHEMA_VERSION)
    _require(schema_version == SCHEMA_VERSION, f"schema_version must be {SCHEMA_VERSION}")

    defaults = SwarmParameters()
    kwargs: dict[str, Any] = {}

    if "num_particles" in data:
        kwargs["num_particles"] = int(data["num_particles"])

    # null means unbounded for both caps.
    if "max_iter" in data:
        kwargs["max_iter"] = None if data["max_iter"] is None else int(data["max_iter"])
    if "max_time" in data:
        kwargs["max_time"] = math.inf if data["max_time"] is None else float(data["max_time"])

    for key in ("omega", "phi_p", "phi_g", "cost_threshold", "stagnation_threshold"):
        if key in data:
            kwargs[key] = float(data[key])
    for key in ("stagnation_period", "report_period"):
        if key in data:
            kwargs[key] = int(data[key])

    if "bounds" in data:
        bounds = _to_bounds(data["bounds"])
        _require(bounds.shape == (POSE_DIM, 2), f"bounds must be ({POSE_DIM},2)")
        kwargs["bounds"] = bounds

    return defaults.with_overrides(**kwargs)
