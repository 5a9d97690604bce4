from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from scipy.spatial.transform import Rotation as R  # type: ignore

from eyecalib.core.dataset import CalibrationDataset
from eyecalib.core.geometry import get_extrinsics, homogeneous, rpy_to_dcm, se3_inverse


@dataclass(frozen=True)
class EyeRigSpec:
    """
    Nominal binocular head used to fabricate eye kinematics.

    Eyes sit at +/- baseline/2 along y of the reference frame and rotate with a
    common tilt (pitch), a common version (yaw) and a vergence split evenly
    between the two eyes. Angles in degrees.
    """

    baseline_m: float = 0.068
    tilt_range_deg: tuple[float, float] = (-25.0, 25.0)
    version_range_deg: tuple[float, float] = (-25.0, 25.0)
    vergence_range_deg: tuple[float, float] = (0.0, 40.0)


def eye_kinematics(spec: EyeRigSpec, tilt_deg: float, version_deg: float, vergence_deg: float) -> tuple[np.ndarray, np.ndarray]:
    """Returns (K_left, K_right) for one head configuration."""
    tilt = np.deg2rad(tilt_deg)
    yaw_left = np.deg2rad(version_deg + 0.5 * vergence_deg)
    yaw_right = np.deg2rad(version_deg - 0.5 * vergence_deg)
    half = 0.5 * float(spec.baseline_m)
    K_left = homogeneous(rpy_to_dcm(np.array([0.0, tilt, yaw_left])), np.array([0.0, half, 0.0]))
    K_right = homogeneous(rpy_to_dcm(np.array([0.0, tilt, yaw_right])), np.array([0.0, -half, 0.0]))
    return K_left, K_right


def relative_eye_pose(pose: np.ndarray, eye_kin_left: np.ndarray, eye_kin_right: np.ndarray) -> np.ndarray:
    """
    Relative pose the stereo pipeline would measure for eye extrinsics `pose`:
      D = inv(K_right Hr) (K_left Hl)
    """
    H_left, H_right = get_extrinsics(pose)
    return se3_inverse(np.asarray(eye_kin_right) @ H_right) @ (np.asarray(eye_kin_left) @ H_left)


def perturb_transform(H: np.ndarray, rng: np.random.Generator, *, noise_rot_deg: float, noise_t_m: float) -> np.ndarray:
    """Apply a random rigid perturbation (isotropic Gaussian rotation vector and translation)."""
    H = np.asarray(H, dtype=np.float64).copy()
    if noise_rot_deg > 0:
        rotvec = rng.normal(scale=np.deg2rad(noise_rot_deg), size=3)
        H[:3, :3] = R.from_rotvec(rotvec).as_matrix() @ H[:3, :3]
    if noise_t_m > 0:
        H[:3, 3] += rng.normal(scale=noise_t_m, size=3)
    return H


def generate_synthetic_dataset(
    pose_true: np.ndarray,
    n_observations: int = 20,
    *,
    spec: EyeRigSpec | None = None,
    noise_rot_deg: float = 0.0,
    noise_t_m: float = 0.0,
    seed: int = 0,
) -> CalibrationDataset:
    """
    Fabricate observations for a known ground-truth pose.

    Head configurations are drawn uniformly in the `spec` ranges; the observed
    relative pose is the exact prediction for `pose_true`, optionally perturbed.
    """
    if n_observations < 0:
        raise ValueError("n_observations must be >= 0")
    if spec is None:
        spec = EyeRigSpec()
    rng = np.random.default_rng(seed)

    dataset = CalibrationDataset()
    for _ in range(int(n_observations)):
        K_left, K_right = eye_kinematics(
            spec,
            tilt_deg=float(rng.uniform(*spec.tilt_range_deg)),
            version_deg=float(rng.uniform(*spec.version_range_deg)),
            vergence_deg=float(rng.uniform(*spec.vergence_range_deg)),
        )
        fundamental = relative_eye_pose(pose_true, K_left, K_right)
        fundamental = perturb_transform(fundamental, rng, noise_rot_deg=noise_rot_deg, noise_t_m=noise_t_m)
        dataset.add(K_left, K_right, fundamental)
    return dataset
