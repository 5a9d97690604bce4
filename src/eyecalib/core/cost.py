from __future__ import annotations

from typing import Callable

import numpy as np

from eyecalib.core.dataset import CalibrationDataset
from eyecalib.core.geometry import dcm_to_rpy, get_extrinsics, se3_inverse

CostFunction = Callable[[np.ndarray], float]

TRANSLATION_REGULARIZATION = 0.1


class EyesCalibrationCost:
    """
    Average disagreement between observed and predicted relative eye poses.

    For each observation:
      Hl_ = K_left Hl,  Hr_ = K_right Hr,  D = inv(Hr_) Hl_
      e = |t(F) - t(D)| + |rpy(F) - rpy(D)| + 0.1 |pose[0:3]|

    and the cost is the mean of e over the dataset (0 for an empty dataset).
    The dataset is read, never modified.
    """

    def __init__(self, dataset: CalibrationDataset, *, regularization: float = TRANSLATION_REGULARIZATION) -> None:
        self.dataset = dataset
        self.regularization = float(regularization)
        self._rpy_fundamental: np.ndarray | None = None

    def __call__(self, pose: np.ndarray) -> float:
        return float(np.mean(self.residuals(pose))) if len(self.dataset) else 0.0

    def residuals(self, pose: np.ndarray) -> np.ndarray:
        """Per-observation error terms, shape (N,)."""
        pose = np.asarray(pose, dtype=np.float64).reshape(-1)
        H_left, H_right = get_extrinsics(pose)
        kin_left, kin_right, fundamental = self.dataset.stacked()
        if kin_left.shape[0] == 0:
            return np.zeros((0,), dtype=np.float64)

        Hl_ = kin_left @ H_left
        Hr_ = kin_right @ H_right
        D = se3_inverse(Hr_) @ Hl_

        e_t = np.linalg.norm(fundamental[:, :3, 3] - D[:, :3, 3], axis=-1)
        # Observed rpy only changes when the dataset grows.
        if self._rpy_fundamental is None or self._rpy_fundamental.shape[0] != fundamental.shape[0]:
            self._rpy_fundamental = dcm_to_rpy(fundamental[:, :3, :3])
        e_r = np.linalg.norm(self._rpy_fundamental - dcm_to_rpy(D[:, :3, :3]), axis=-1)
        e_reg = self.regularization * float(np.linalg.norm(pose[0:3]))
        return e_t + e_r + e_reg
