from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import numpy as np

from eyecalib.api.calibration import CalibrationResult
from eyecalib.core.dataset import CalibrationDataset

RESULT_SCHEMA = "eyecalib.result.v0"
DATASET_KEYS = ("eye_kin_left", "eye_kin_right", "fundamental")


def _to_float_matrix(x: np.ndarray, shape: tuple[int, ...]) -> np.ndarray:
    x = np.asarray(x, dtype=np.float64)
    x = x.reshape(shape)
    if not np.all(np.isfinite(x)):
        raise ValueError("non-finite values")
    return x


def save_dataset(path: Path, dataset: CalibrationDataset) -> Path:
    """
    Save observations into a single NPZ with keys `eye_kin_left`,
    `eye_kin_right` and `fundamental`, each (N,4,4).
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    kin_left, kin_right, fundamental = dataset.stacked()
    with path.open("wb") as f:
        np.savez_compressed(f, eye_kin_left=kin_left, eye_kin_right=kin_right, fundamental=fundamental)
    return path


def load_dataset(path: Path) -> CalibrationDataset:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Missing {path}")
    with np.load(str(path)) as npz:
        for k in DATASET_KEYS:
            if k not in npz:
                raise ValueError(f"{path} missing key: {k}")
        arrays = {k: np.asarray(npz[k], dtype=np.float64) for k in DATASET_KEYS}

    n = int(arrays["fundamental"].shape[0])
    for k, a in arrays.items():
        if a.shape != (n, 4, 4):
            raise ValueError(f"{path} {k} must be (N,4,4), got {a.shape}")

    dataset = CalibrationDataset()
    for i in range(n):
        dataset.add(arrays["eye_kin_left"][i], arrays["eye_kin_right"][i], arrays["fundamental"][i])
    return dataset


def save_calibration_result(path: Path, result: CalibrationResult) -> Path:
    """Save a calibration result as JSON (pose, cost and both eye extrinsics)."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    meta: dict[str, Any] = {
        "schema_version": RESULT_SCHEMA,
        "pose": {
            "translation_m": _to_float_matrix(result.pose[0:3], (3,)).tolist(),
            "rpy_rad": _to_float_matrix(result.pose[3:6], (3,)).tolist(),
        },
        "cost": float(result.cost),
        "extrinsics": {
            "left": _to_float_matrix(result.extrinsics_left, (4, 4)).tolist(),
            "right": _to_float_matrix(result.extrinsics_right, (4, 4)).tolist(),
        },
        "run": {
            "iterations": int(result.iterations),
            "elapsed_s": float(result.elapsed_s),
            "n_observations": int(result.n_observations),
            "degenerate": bool(result.degenerate),
        },
    }
    path.write_text(json.dumps(meta, indent=2, sort_keys=True), encoding="utf-8")
    return path


def load_calibration_result(path: Path) -> CalibrationResult:
    meta = json.loads(Path(path).read_text(encoding="utf-8"))
    if str(meta.get("schema_version")) != RESULT_SCHEMA:
        raise ValueError("unsupported result schema")

    pose = np.concatenate(
        [
            _to_float_matrix(meta["pose"]["translation_m"], (3,)),
            _to_float_matrix(meta["pose"]["rpy_rad"], (3,)),
        ]
    )
    run = meta.get("run", {})
    # Extrinsics are derived from the pose; the stored matrices are for consumers only.
    return CalibrationResult.from_pose(
        pose,
        float(meta["cost"]),
        iterations=int(run.get("iterations", 0)),
        elapsed_s=float(run.get("elapsed_s", 0.0)),
        n_observations=int(run.get("n_observations", 0)),
        degenerate=bool(run.get("degenerate", False)),
    )
