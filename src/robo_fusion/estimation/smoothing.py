"""
Gaussian kernel smoothing of signals and trajectories.

The kernel spans ``length`` samples at positions evenly spaced on [-1, 1],
so ``sigma`` is relative to the half window: σ = 1/3 puts the window edges
at three standard deviations. Signals are padded with their edge values,
which keeps constant signals unchanged.
"""

import logging
from typing import List

import numpy as np
from scipy.ndimage import convolve1d

from ..fusion.motion import wrap_angle
from .state import PositionalState

logger = logging.getLogger(__name__)


def gaussian_kernel(sigma: float, length: int) -> np.ndarray:
    """
    Normalized Gaussian kernel.

    Args:
        sigma: Standard deviation relative to the half window
        length: Number of taps

    Returns:
        Kernel of ``length`` weights summing to one

    Raises:
        ValueError: If sigma is not positive or length is below one
    """
    if sigma <= 0:
        raise ValueError(f"Kernel sigma must be positive, got {sigma}")
    if length < 1:
        raise ValueError(f"Kernel length must be at least 1, got {length}")

    positions = np.linspace(-1.0, 1.0, length) if length > 1 else np.zeros(1)
    kernel = np.exp(-0.5 * (positions / sigma) ** 2)
    return kernel / np.sum(kernel)


def smooth_signal(values: np.ndarray, sigma: float, length: int) -> np.ndarray:
    """Smooth a signal along its first axis with a Gaussian kernel."""
    values = np.asarray(values, dtype=float)
    if values.shape[0] == 0:
        return values.copy()
    return convolve1d(values, gaussian_kernel(sigma, length), axis=0, mode='nearest')


def smooth_pose_estimation(trajectory: List[PositionalState], sigma: float = 1.0 / 3.0,
                           length: int = 5) -> List[PositionalState]:
    """
    Smooth a trajectory in place with a Gaussian kernel.

    Position, yaw, pitch and speed are smoothed independently. Yaw is
    unwrapped before and wrapped again after smoothing. Smoothing twice
    smooths further.

    Args:
        trajectory: Fused states, rewritten in place
        sigma: Kernel standard deviation relative to the half window
        length: Kernel window in samples

    Returns:
        The same trajectory list
    """
    kernel = gaussian_kernel(sigma, length)
    if not trajectory:
        return trajectory

    positions = np.array([state.position for state in trajectory])
    yaws = np.unwrap([state.yaw for state in trajectory])
    pitches = np.array([state.pitch for state in trajectory])
    speeds = np.array([state.speed for state in trajectory])

    positions = convolve1d(positions, kernel, axis=0, mode='nearest')
    yaws = wrap_angle(convolve1d(yaws, kernel, mode='nearest'))
    pitches = convolve1d(pitches, kernel, mode='nearest')
    speeds = convolve1d(speeds, kernel, mode='nearest')

    for i, state in enumerate(trajectory):
        state.position = positions[i]
        state.yaw = float(yaws[i])
        state.pitch = float(pitches[i])
        state.speed = float(speeds[i])

    logger.debug(f"Smoothed {len(trajectory)} states, sigma={sigma:.3f}, length={length}")
    return trajectory
