"""
Linear Kalman filters for smoothing individual sensor channels.

Each channel (camera position, gyroscope rates) is modeled as a random
walk observed directly:

    x(k+1) = x(k) + w(k),   w ~ N(0, q·I)
    z(k)   = x(k) + v(k),   v ~ N(0, r·I)

These filters run upstream of, and independently from, the UKF.
"""

import logging
from typing import Iterable, Optional

import numpy as np

logger = logging.getLogger(__name__)


class LinearKalmanFilter:
    """
    Random-walk Kalman filter for a vector-valued sensor channel.

    The first measurement seeds the estimate with unit covariance; every
    following measurement runs one predict/update cycle.

    Attributes:
        size: Dimension of the channel
        process_noise: Scalar process noise q
        measurement_noise: Scalar measurement noise r
        state: Current channel estimate, None until the first measurement
        covariance: Current estimate covariance
    """

    def __init__(self, size: int = 3, process_noise: float = 0.0,
                 measurement_noise: float = 0.1, initial_uncertainty: float = 1.0):
        if size <= 0:
            raise ValueError(f"Channel size must be positive, got {size}")
        if process_noise < 0:
            raise ValueError(f"Process noise must be non-negative, got {process_noise}")
        if measurement_noise <= 0:
            raise ValueError(f"Measurement noise must be positive, got {measurement_noise}")
        if initial_uncertainty <= 0:
            raise ValueError(f"Initial uncertainty must be positive, got {initial_uncertainty}")

        self.size = size
        self.process_noise = process_noise
        self.measurement_noise = measurement_noise
        self._initial_uncertainty = initial_uncertainty

        self._Q = np.eye(size) * process_noise
        self._R = np.eye(size) * measurement_noise
        self.state: Optional[np.ndarray] = None
        self.covariance = np.eye(size) * initial_uncertainty

    def predict(self) -> None:
        """Time update: P = P + Q."""
        self.covariance = self.covariance + self._Q

    def update(self, measurement: np.ndarray) -> np.ndarray:
        """
        Measurement update.

        Args:
            measurement: Raw channel sample

        Returns:
            Filtered channel estimate
        """
        measurement = np.asarray(measurement, dtype=float)
        if measurement.shape != (self.size,):
            raise ValueError(f"Measurement must have {self.size} elements, got {measurement.shape}")

        if self.state is None:
            self.state = measurement.copy()
            return self.state.copy()

        S = self.covariance + self._R
        K = self.covariance @ np.linalg.inv(S)
        self.state = self.state + K @ (measurement - self.state)
        self.covariance = (np.eye(self.size) - K) @ self.covariance
        return self.state.copy()

    def filter(self, measurement: np.ndarray) -> np.ndarray:
        """Run one predict/update cycle and return the filtered sample."""
        if self.state is not None:
            self.predict()
        return self.update(measurement)

    def filter_sequence(self, measurements: Iterable[np.ndarray]) -> np.ndarray:
        """Filter a whole channel sequence, returning an array of estimates."""
        filtered = [self.filter(measurement) for measurement in measurements]
        logger.debug(f"Filtered {len(filtered)} samples, final variance "
                     f"{np.mean(np.diag(self.covariance)):.4f}")
        return np.array(filtered).reshape(-1, self.size)

    def reset(self) -> None:
        """Forget the estimate so the next measurement seeds the filter again."""
        self.state = None
        self.covariance = np.eye(self.size) * self._initial_uncertainty
