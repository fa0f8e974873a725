"""
Batch estimation over recorded sensor samples.

Data flow per run:

    samples ──> channel filters (per estimator variant) ──> speed channel
            ──> control u = [gyro, speed, dt, steer] and measurement z = camera pose
            ──> UKF predict + update (or prediction only) ──> trajectory

The first sample seeds the filter with its measurement and identity
covariance. Every following sample runs one atomic predict/update cycle
whose fused state is appended to the trajectory, so stopping the
iteration never leaves a half-applied cycle behind.
"""

import logging
from typing import Iterator, List, Optional, Sequence, Tuple

import numpy as np
from scipy.spatial.transform import Rotation

from ..fusion.linear import LinearKalmanFilter
from ..fusion.motion import wrap_angle
from ..fusion.ukf import UKFState, UnscentedKalmanFilter
from ..sensors.confidence import rate_confidence
from ..sensors.parser import convert_mag_to_compass
from ..sensors.sample import PositionalData
from ..settings import EstimatorVariant, PredictionSettings
from .smoothing import smooth_signal
from .state import PositionalState

logger = logging.getLogger(__name__)

# Samples needed before the trajectory carries any fused information
MIN_SAMPLES = 2


def camera_angles(orientation: np.ndarray) -> Optional[Tuple[float, float]]:
    """
    Yaw and pitch of a scalar-last camera orientation quaternion.

    Returns:
        Tuple (yaw, pitch) in radians, or None for a zero/invalid quaternion
    """
    if not np.all(np.isfinite(orientation)) or np.linalg.norm(orientation) < 1e-9:
        return None
    yaw, pitch, _ = Rotation.from_quat(orientation).as_euler('ZYX')
    return float(yaw), float(pitch)


def build_measurement(sample: PositionalData, camera_position: np.ndarray,
                      reference: np.ndarray) -> np.ndarray:
    """
    Measurement vector [x, y, z, ψ, θ] of one sample.

    The measured yaw is moved onto the branch closest to the reference yaw,
    so the innovation never jumps by 2π. Without a valid orientation the
    reference angles are used, which leaves them uninformed.

    Args:
        sample: Sample providing the camera orientation
        camera_position: Camera position, possibly channel filtered
        reference: State the measurement is compared against
    """
    angles = camera_angles(sample.camera_orientation)
    if angles is None:
        yaw, pitch = reference[3], reference[4]
    else:
        yaw = reference[3] + wrap_angle(angles[0] - reference[3])
        pitch = angles[1]
    return np.array([camera_position[0], camera_position[1], camera_position[2], yaw, pitch])


def build_control(gyro: np.ndarray, speed: float, sample: PositionalData) -> np.ndarray:
    """Control input [ω_x, ω_y, ω_z, v, dt, steer] of one sample."""
    return np.array([gyro[0], gyro[1], gyro[2], speed, sample.delta_time, sample.steer_angle])


class BatchEstimator:
    """
    Drives channel filters and the UKF over a recorded sample sequence.

    The estimator variant and the fusion step are selected once at
    construction from the settings; the per-sample loop does not branch
    on feature flags.

    Attributes:
        settings: Prediction settings of the run
        variant: Channel-filter composition ahead of the UKF
        ukf: Unscented Kalman Filter with cached weights
    """

    def __init__(self, settings: Optional[PredictionSettings] = None):
        self.settings = settings or PredictionSettings()
        self.variant = EstimatorVariant.from_settings(self.settings)
        self.ukf = UnscentedKalmanFilter(self.settings)
        self._fuse = self._ukf_step if self.settings.use_ukf else self._prediction_step
        self._prior = self._compass_prior if self.settings.mag_influence else self._unchanged_prior

        logger.info(f"Batch estimator initialized: variant={self.variant.value}, "
                    f"use_ukf={self.settings.use_ukf}, "
                    f"mag_influence={self.settings.mag_influence}")

    def filter_channels(self, samples: Sequence[PositionalData]) -> Tuple[np.ndarray, np.ndarray]:
        """
        Camera positions and gyroscope rates after the variant's channel filters.

        Returns:
            Tuple of (camera positions (k, 3), gyroscope rates (k, 3))
        """
        cameras = np.array([sample.camera_position for sample in samples]).reshape(-1, 3)
        gyros = np.array([sample.imu_gyroscope for sample in samples]).reshape(-1, 3)

        if self.variant.filters_camera:
            cameras = LinearKalmanFilter(
                3, self.settings.process_noise_camera, self.settings.measurement_noise_camera
            ).filter_sequence(cameras)
        if self.variant.filters_gyro:
            gyros = LinearKalmanFilter(
                3, self.settings.process_noise_gyro, self.settings.measurement_noise_gyro
            ).filter_sequence(gyros)
        return cameras, gyros

    def speed_channel(self, samples: Sequence[PositionalData],
                      cameras: np.ndarray) -> np.ndarray:
        """
        Forward speed per sample.

        The camera speed ‖Δp‖/dt is blended with the wheel speed by the rated
        camera trust, then smoothed with the speed kernel.
        """
        if not samples:
            return np.zeros(0)

        dts = np.array([sample.delta_time for sample in samples])
        steps = np.zeros(len(samples))
        steps[1:] = np.linalg.norm(np.diff(cameras, axis=0), axis=1)
        camera_speeds = np.divide(steps, dts, out=np.zeros_like(steps), where=dts > 0)

        wheel_speeds = np.array([sample.sensor_speed for sample in samples])
        trust = rate_confidence(
            np.array([sample.camera_confidence for sample in samples]),
            self.settings.speed_exponent_cc, self.settings.speed_use_sin_cc)
        trust = np.atleast_1d(trust)
        trust[0] = 0.0

        speeds = trust * camera_speeds + (1.0 - trust) * wheel_speeds
        return smooth_signal(speeds, self.settings.sigma_for_speed_kernel,
                             self.settings.speed_kernel_length)

    def iter_estimates(self, samples: Sequence[PositionalData]) -> Iterator[PositionalState]:
        """
        Yield one fused state per sample.

        Args:
            samples: Recorded samples in chronological order

        Yields:
            Fused states, the first being the seed state
        """
        if not samples:
            return
        if len(samples) < MIN_SAMPLES:
            logger.warning(f"At least {MIN_SAMPLES} samples are needed for an estimate, "
                           f"got {len(samples)}; returning the seed state only")

        cameras, gyros = self.filter_channels(samples)
        speeds = self.speed_channel(samples, cameras)

        seed = build_measurement(samples[0], cameras[0], np.zeros(5))
        state = self.ukf.initial_state(seed)
        yield self._to_positional(state, speeds[0], self._rated(samples[0]))

        for i in range(1, len(samples)):
            control = build_control(gyros[i], speeds[i], samples[i])
            confidence = self._rated(samples[i])
            state = self._fuse(state, control, samples[i], cameras[i], confidence)
            if state.degraded:
                logger.warning(f"Degraded estimation cycle at sample {i}")
            yield self._to_positional(state, speeds[i], confidence)

    def predict_from_recorded_data(self, samples: Sequence[PositionalData]) -> List[PositionalState]:
        """Estimate the whole trajectory of a recorded sample sequence."""
        trajectory = list(self.iter_estimates(samples))
        logger.info(f"Estimated {len(trajectory)} states, "
                    f"{sum(state.degraded for state in trajectory)} degraded")
        return trajectory

    def _rated(self, sample: PositionalData) -> float:
        return rate_confidence(sample.camera_confidence, self.settings.exponent_cc,
                               self.settings.use_sin_cc)

    def _ukf_step(self, state: UKFState, control: np.ndarray, sample: PositionalData,
                  camera: np.ndarray, confidence: float) -> UKFState:
        predicted = self.ukf.predict(self._prior(state, sample), control)
        measurement = build_measurement(sample, camera, predicted.mean)
        return self.ukf.update(predicted, measurement, confidence)

    def _prediction_step(self, state: UKFState, control: np.ndarray, sample: PositionalData,
                         camera: np.ndarray, confidence: float) -> UKFState:
        predicted = self.ukf.predict(self._prior(state, sample), control)
        return UKFState.from_moments(predicted.mean, predicted.covariance, self.settings)

    def _compass_prior(self, state: UKFState, sample: PositionalData) -> UKFState:
        """
        Pull the previous yaw toward the compass course of the sample.

        The yaw moves by ``odo_mag_factor`` of its wrapped difference to the
        magnetometer heading. Samples without a magnetic reading leave the
        state as it is.
        """
        if np.linalg.norm(sample.imu_magnetometer[:2]) < 1e-9:
            return state
        heading = convert_mag_to_compass(sample.imu_magnetometer)
        mean = state.mean.copy()
        mean[3] += self.settings.odo_mag_factor * wrap_angle(heading - mean[3])
        return UKFState.from_moments(mean, state.covariance, self.settings, degraded=state.degraded)

    @staticmethod
    def _unchanged_prior(state: UKFState, sample: PositionalData) -> UKFState:
        return state

    @staticmethod
    def _to_positional(state: UKFState, speed: float, confidence: float) -> PositionalState:
        return PositionalState(
            position=state.mean[0:3].copy(),
            yaw=wrap_angle(state.mean[3]),
            pitch=float(state.mean[4]),
            speed=float(speed),
            covariance=state.covariance.copy(),
            confidence=float(confidence),
            degraded=state.degraded,
        )


def predict_from_recorded_data(samples: Sequence[PositionalData],
                               settings: Optional[PredictionSettings] = None) -> List[PositionalState]:
    """
    Estimate a trajectory from recorded samples.

    Args:
        samples: Recorded samples in chronological order
        settings: Prediction settings, defaults when omitted

    Returns:
        One fused state per sample
    """
    return BatchEstimator(settings).predict_from_recorded_data(samples)
