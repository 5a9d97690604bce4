from eyecalib.api.calibration import CalibrationResult, EmptyDatasetWarning, EyesCalibration
from eyecalib.api.io import load_calibration_result, load_dataset, save_calibration_result, save_dataset

__all__ = [
    "CalibrationResult",
    "EmptyDatasetWarning",
    "EyesCalibration",
    "load_calibration_result",
    "load_dataset",
    "save_calibration_result",
    "save_dataset",
]
