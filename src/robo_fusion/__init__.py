"""
Robo Fusion: Pose Estimation of a Car-like Robot from Recorded Sensor Data

A scientific Python package for fusing a tracking camera, an IMU and wheel
odometry into a smooth trajectory using an Unscented Kalman Filter.

This package implements:
- Unscented Kalman Filter over a kinematic bicycle motion model
- Optional linear Kalman filters for the camera and gyroscope channels
- Confidence-weighted camera measurements and a blended speed channel
- Parsing of telemetry lines and recorded JSON data
- Gaussian smoothing and offline trajectory plots

Camera trust is derived from the tracking confidence reported with every
frame: poorly tracked frames inflate the measurement noise, so the motion
model carries the estimate until tracking recovers.
"""

from .settings import PredictionSettings, EstimatorVariant
from .fusion.ukf import UnscentedKalmanFilter, UKFState
from .fusion.linear import LinearKalmanFilter
from .sensors.sample import PositionalData
from .sensors.parser import MalformedSampleError, extract_data, convert_dict_to_sample
from .estimation.state import PositionalState
from .estimation.orchestrator import BatchEstimator, predict_from_recorded_data
from .estimation.smoothing import smooth_pose_estimation

# Optional visualization import (graceful failure if matplotlib is missing)
try:
    from .visualization.plotter import TrajectoryPlotter
    _has_visualization = True
except ImportError:
    TrajectoryPlotter = None
    _has_visualization = False

__version__ = "1.0.0"
__author__ = "Robo Fusion Team"

__all__ = [
    "PredictionSettings",
    "EstimatorVariant",
    "UnscentedKalmanFilter",
    "UKFState",
    "LinearKalmanFilter",
    "PositionalData",
    "MalformedSampleError",
    "extract_data",
    "convert_dict_to_sample",
    "PositionalState",
    "BatchEstimator",
    "predict_from_recorded_data",
    "smooth_pose_estimation",
]

# Add visualization to __all__ only if available
if _has_visualization:
    __all__.append("TrajectoryPlotter")
