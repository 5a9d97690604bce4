from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator

import numpy as np


def _to_transform(x: np.ndarray, name: str) -> np.ndarray:
    x = np.array(x, dtype=np.float64)
    if x.shape != (4, 4):
        raise ValueError(f"{name} must be a (4,4) homogeneous transform, got {x.shape}")
    if not np.all(np.isfinite(x)):
        raise ValueError(f"{name} has non-finite values")
    x.setflags(write=False)
    return x


@dataclass(frozen=True)
class CalibrationObservation:
    """
    One calibration sample.

    - `eye_kin_left`, `eye_kin_right`: camera poses from the head kinematics
      (eye frame w.r.t. the shared reference frame) at capture time
    - `fundamental`: measured relative pose between the eyes (left eye expressed
      in the right eye frame), e.g. from stereo essential-matrix decomposition
    """

    eye_kin_left: np.ndarray  # (4,4)
    eye_kin_right: np.ndarray  # (4,4)
    fundamental: np.ndarray  # (4,4)

    def __post_init__(self) -> None:
        for name in ("eye_kin_left", "eye_kin_right", "fundamental"):
            object.__setattr__(self, name, _to_transform(getattr(self, name), name))


class CalibrationDataset:
    """
    Append-only collection of `CalibrationObservation`.

    Stacked (N,4,4) views are cached for the vectorized cost and rebuilt lazily
    after an append.
    """

    def __init__(self, observations: list[CalibrationObservation] | None = None) -> None:
        self._observations: list[CalibrationObservation] = []
        self._stacked: tuple[np.ndarray, np.ndarray, np.ndarray] | None = None
        for obs in observations or []:
            self.add_observation(obs)

    def add_observation(self, obs: CalibrationObservation) -> CalibrationObservation:
        if not isinstance(obs, CalibrationObservation):
            raise TypeError("expected a CalibrationObservation")
        self._observations.append(obs)
        self._stacked = None
        return obs

    def add(self, eye_kin_left: np.ndarray, eye_kin_right: np.ndarray, fundamental: np.ndarray) -> CalibrationObservation:
        return self.add_observation(
            CalibrationObservation(eye_kin_left=eye_kin_left, eye_kin_right=eye_kin_right, fundamental=fundamental)
        )

    def __len__(self) -> int:
        return len(self._observations)

    def __iter__(self) -> Iterator[CalibrationObservation]:
        return iter(self._observations)

    def __getitem__(self, i: int) -> CalibrationObservation:
        return self._observations[i]

    def stacked(self) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
        """Returns (eye_kin_left, eye_kin_right, fundamental), each (N,4,4), read-only."""
        if self._stacked is None:
            if self._observations:
                arrays = tuple(
                    np.stack([getattr(o, name) for o in self._observations], axis=0)
                    for name in ("eye_kin_left", "eye_kin_right", "fundamental")
                )
            else:
                arrays = tuple(np.zeros((0, 4, 4), dtype=np.float64) for _ in range(3))
            for a in arrays:
                a.setflags(write=False)
            self._stacked = arrays  # type: ignore[assignment]
        assert self._stacked is not None
        return self._stacked
