from __future__ import annotations

import numpy as np
from scipy.spatial.transform import Rotation as R  # type: ignore

POSE_DIM = 6


class PoseError(ValueError):
    pass


def rpy_to_dcm(rpy: np.ndarray) -> np.ndarray:
    """
    Roll-pitch-yaw (rad) -> rotation matrix, R = Rz(yaw) Ry(pitch) Rx(roll).

    Accepts (3,) or (N,3); returns (3,3) or (N,3,3).
    """
    rpy = np.asarray(rpy, dtype=np.float64)
    return R.from_euler("xyz", rpy).as_matrix()


def dcm_to_rpy(rot: np.ndarray) -> np.ndarray:
    """
    Inverse of `rpy_to_dcm` for (3,3) or (...,3,3) rotation blocks.

    Pitch is returned in [-pi/2, pi/2]. At gimbal lock (|pitch| = pi/2) roll is
    fixed to 0 and the whole residual rotation goes into yaw.
    """
    rot = np.asarray(rot, dtype=np.float64)
    r20 = rot[..., 2, 0]

    regular = np.abs(r20) < 1.0
    roll = np.where(regular, np.arctan2(rot[..., 2, 1], rot[..., 2, 2]), 0.0)
    pitch = np.where(regular, np.arcsin(np.clip(-r20, -1.0, 1.0)), np.where(r20 >= 1.0, -np.pi / 2.0, np.pi / 2.0))
    yaw_locked = np.where(r20 >= 1.0, np.arctan2(-rot[..., 1, 2], rot[..., 1, 1]), -np.arctan2(-rot[..., 1, 2], rot[..., 1, 1]))
    yaw = np.where(regular, np.arctan2(rot[..., 1, 0], rot[..., 0, 0]), yaw_locked)
    return np.stack([roll, pitch, yaw], axis=-1)


def homogeneous(rot: np.ndarray, t: np.ndarray) -> np.ndarray:
    """Build a 4x4 rigid transform from a (3,3) rotation and a (3,) translation."""
    H = np.eye(4, dtype=np.float64)
    H[:3, :3] = np.asarray(rot, dtype=np.float64).reshape(3, 3)
    H[:3, 3] = np.asarray(t, dtype=np.float64).reshape(3)
    return H


def se3_inverse(H: np.ndarray) -> np.ndarray:
    """
    Rigid-transform inverse for (4,4) or (N,4,4): [R t] -> [R^T, -R^T t].
    """
    H = np.asarray(H, dtype=np.float64)
    rot_t = np.swapaxes(H[..., :3, :3], -1, -2)
    t = H[..., :3, 3]
    out = np.zeros_like(H)
    out[..., :3, :3] = rot_t
    out[..., :3, 3] = -np.einsum("...ij,...j->...i", rot_t, t)
    out[..., 3, 3] = 1.0
    return out


def pose_to_transform(pose: np.ndarray) -> np.ndarray:
    """[tx,ty,tz,roll,pitch,yaw] -> 4x4 transform (no mirroring)."""
    pose = np.asarray(pose, dtype=np.float64).reshape(-1)
    return homogeneous(rpy_to_dcm(pose[3:6]), pose[0:3])


def mirror_pose(pose: np.ndarray) -> np.ndarray:
    """
    Mirror a pose across the sagittal plane: negate the horizontal offset (tx)
    and the yaw. The left eye uses the mirrored version of the right-eye pose.
    """
    pose = _as_pose(pose)
    y = pose.copy()
    y[0] = -y[0]
    y[5] = -y[5]
    return y


def get_extrinsics(pose: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    """
    Eye extrinsics from the 6-parameter symmetric model.

    Returns (H_left, H_right), both (4,4). The right eye is built directly from
    `pose`, the left eye from `mirror_pose(pose)`.
    """
    pose = _as_pose(pose)
    H_right = pose_to_transform(pose[:POSE_DIM])
    H_left = pose_to_transform(mirror_pose(pose)[:POSE_DIM])
    return H_left, H_right


def _as_pose(pose: np.ndarray) -> np.ndarray:
    try:
        x = np.array(pose, dtype=np.float64).reshape(-1)
    except (TypeError, ValueError) as e:
        raise PoseError(f"pose must be numeric: {e}") from e
    if x.size < POSE_DIM:
        raise PoseError(f"pose must have at least {POSE_DIM} components, got {x.size}")
    return x
