from __future__ import annotations

import logging
import time
import warnings
from dataclasses import dataclass

import numpy as np

from eyecalib.core.cost import EyesCalibrationCost
from eyecalib.core.dataset import CalibrationDataset, CalibrationObservation
from eyecalib.core.geometry import get_extrinsics
from eyecalib.core.random_source import NumpyRandomSource, RandomSource
from eyecalib.optim.pso import ParticleSwarm
from eyecalib.params import SwarmParameters

logger = logging.getLogger(__name__)

# Steps between cooperative yields of the run loop.
YIELD_EVERY = 10


class EmptyDatasetWarning(UserWarning):
    """Calibration ran without observations: any pose has zero cost."""


@dataclass(frozen=True)
class CalibrationResult:
    """
    Outcome of an eye calibration run.

    `pose` is [tx, ty, tz, roll, pitch, yaw] (m, rad). `degenerate` is True when
    the dataset was empty and the pose carries no information.
    """

    pose: np.ndarray  # (6,)
    cost: float
    extrinsics_left: np.ndarray  # (4,4)
    extrinsics_right: np.ndarray  # (4,4)
    iterations: int
    elapsed_s: float
    n_observations: int
    degenerate: bool = False

    @classmethod
    def from_pose(
        cls,
        pose: np.ndarray,
        cost: float,
        *,
        iterations: int = 0,
        elapsed_s: float = 0.0,
        n_observations: int = 0,
        degenerate: bool = False,
    ) -> "CalibrationResult":
        pose = np.asarray(pose, dtype=np.float64).reshape(-1)
        H_left, H_right = get_extrinsics(pose)
        return cls(
            pose=pose,
            cost=float(cost),
            extrinsics_left=H_left,
            extrinsics_right=H_right,
            iterations=int(iterations),
            elapsed_s=float(elapsed_s),
            n_observations=int(n_observations),
            degenerate=bool(degenerate),
        )


class EyesCalibration:
    """
    Collects calibration observations and solves for the eye extrinsics with a
    particle swarm.
    """

    def __init__(self, dataset: CalibrationDataset | None = None) -> None:
        self.dataset = dataset if dataset is not None else CalibrationDataset()

    def add_data(self, eye_kin_left: np.ndarray, eye_kin_right: np.ndarray, fundamental: np.ndarray) -> CalibrationObservation:
        return self.dataset.add(eye_kin_left, eye_kin_right, fundamental)

    def __len__(self) -> int:
        return len(self.dataset)

    def make_swarm(self, params: SwarmParameters | None = None, rng: RandomSource | None = None) -> ParticleSwarm:
        return ParticleSwarm(EyesCalibrationCost(self.dataset), params, rng)

    def run_calibration(
        self,
        params: SwarmParameters | None = None,
        rng: RandomSource | None = None,
        *,
        seed: int | None = None,
    ) -> CalibrationResult:
        if rng is None:
            rng = NumpyRandomSource(seed)

        n_obs = len(self.dataset)
        degenerate = n_obs == 0
        if degenerate:
            warnings.warn(
                "calibration dataset is empty: every pose has zero cost, the result is meaningless",
                EmptyDatasetWarning,
                stacklevel=2,
            )

        swarm = self.make_swarm(params, rng)
        swarm.init()

        cnt = 0
        t0 = time.perf_counter()
        while swarm.step():
            cnt += 1
            if cnt >= YIELD_EVERY:
                time.sleep(0)
                cnt = 0
        elapsed = time.perf_counter() - t0

        g = swarm.finalize()
        logger.info(
            "solution: %s found in %.3f [s]",
            np.array2string(g.position, precision=5, floatmode="fixed"),
            elapsed,
        )

        return CalibrationResult.from_pose(
            g.position,
            g.cost,
            iterations=swarm.iteration,
            elapsed_s=elapsed,
            n_observations=n_obs,
            degenerate=degenerate,
        )
