"""
Trajectory estimation over recorded samples and its post-processing.
"""

from .state import PositionalState
from .orchestrator import BatchEstimator, predict_from_recorded_data
from .smoothing import gaussian_kernel, smooth_pose_estimation

__all__ = [
    "PositionalState",
    "BatchEstimator",
    "predict_from_recorded_data",
    "gaussian_kernel",
    "smooth_pose_estimation",
]
