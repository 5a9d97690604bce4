from eyecalib import params
from eyecalib.api import (
    CalibrationResult,
    EmptyDatasetWarning,
    EyesCalibration,
    load_calibration_result,
    load_dataset,
    save_calibration_result,
    save_dataset,
)
from eyecalib.core.dataset import CalibrationDataset, CalibrationObservation
from eyecalib.core.geometry import PoseError, get_extrinsics, mirror_pose
from eyecalib.optim.pso import Particle, ParticleSwarm
from eyecalib.params import SwarmParameters

__all__ = [
    "params",
    "CalibrationDataset",
    "CalibrationObservation",
    "CalibrationResult",
    "EmptyDatasetWarning",
    "EyesCalibration",
    "Particle",
    "ParticleSwarm",
    "PoseError",
    "SwarmParameters",
    "get_extrinsics",
    "mirror_pose",
    "load_calibration_result",
    "load_dataset",
    "save_calibration_result",
    "save_dataset",
]
