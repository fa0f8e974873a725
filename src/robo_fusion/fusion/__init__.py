"""
Sensor fusion algorithms for robo fusion.

This module implements the Unscented Kalman Filter, its motion model and
the linear channel filters that can run ahead of it.
"""

from .ukf import UnscentedKalmanFilter, UKFState
from .linear import LinearKalmanFilter
from .motion import MotionParameters, motion_model

__all__ = [
    "UnscentedKalmanFilter",
    "UKFState",
    "LinearKalmanFilter",
    "MotionParameters",
    "motion_model",
]
