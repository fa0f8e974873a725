"""
Prediction settings for the pose estimation pipeline.

A single immutable bundle configures one estimation run: the unscented
transform spread (α, κ), the additive noise scales of the UKF, the
auxiliary channel filters and the motion-model factors. Settings are
constructed once per configuration change and only read during a
prediction cycle; use ``dataclasses.replace`` to derive a modified copy.

Mapping to and from flat key-value documents lives here as well, so a
settings file written by older tooling (camelCase keys) keeps loading.
File I/O itself is in :mod:`robo_fusion.config`.
"""

import dataclasses
import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Mapping, Optional

logger = logging.getLogger(__name__)

# Dimension of the filtered state [p_x, p_y, p_z, yaw, pitch]
STATE_DIM = 5


@dataclass(frozen=True)
class PredictionSettings:
    """
    Configuration for one estimation run.

    Attributes:
        alpha: Spread of the sigma points around the mean (0 < α ≤ 1)
        kappa: Secondary scaling parameter of the unscented transform
        process_noise: Scale of the additive process noise ``q·I``
        measurement_noise: Scale of the measurement noise ``(1-c)·r·I``
        use_ukf: Fuse camera measurements; False runs prediction only
        kalman_filter_camera: Smooth camera positions before fusion
        kalman_filter_gyro: Smooth gyroscope rates before fusion
        process_noise_camera: Process noise of the camera channel filter
        measurement_noise_camera: Measurement noise of the camera channel filter
        process_noise_gyro: Process noise of the gyro channel filter
        measurement_noise_gyro: Measurement noise of the gyro channel filter
        exponent_cc: Exponent applied to the camera confidence (0 trusts fully)
        use_sin_cc: Map camera confidence through sin(c·π/2) first
        speed_exponent_cc: Confidence exponent for the camera speed blend
        speed_use_sin_cc: Sine mapping for the speed blend confidence
        steer_angle_factor: Gain on the steering command (0 drives straight)
        odo_steer_factor: Weight of the steering yaw rate
        odo_gyro_factor: Weight of the gyroscope yaw rate
        odo_mag_factor: Pull of the previous yaw toward the compass course (0..1)
        mag_influence: Let the magnetometer influence the previous state
        wheelbase: Axle distance of the robot in meters
        sigma_for_speed_kernel: Relative σ of the speed smoothing kernel
        speed_kernel_length: Window length (samples) of the speed kernel
    """
    alpha: float = 1.0
    kappa: float = 0.0
    process_noise: float = 0.01
    measurement_noise: float = 1.0
    use_ukf: bool = True
    kalman_filter_camera: bool = False
    kalman_filter_gyro: bool = False
    process_noise_camera: float = 0.0
    measurement_noise_camera: float = 0.1
    process_noise_gyro: float = 0.0
    measurement_noise_gyro: float = 0.1
    exponent_cc: float = 5.0
    use_sin_cc: bool = False
    speed_exponent_cc: float = 5.0
    speed_use_sin_cc: bool = False
    steer_angle_factor: float = 1.0
    odo_steer_factor: float = 0.33
    odo_gyro_factor: float = 0.66
    odo_mag_factor: float = 0.0
    mag_influence: bool = False
    wheelbase: float = 0.35
    sigma_for_speed_kernel: float = 1.0 / 3.0
    speed_kernel_length: int = 5

    def __post_init__(self):
        """Validate settings values."""
        if not 0.0 < self.alpha <= 1.0:
            raise ValueError(f"alpha must be in (0, 1], got {self.alpha}")
        if STATE_DIM + self.kappa <= 0:
            raise ValueError(f"kappa must be greater than {-STATE_DIM}, got {self.kappa}")
        for name in ("process_noise", "measurement_noise", "process_noise_camera",
                     "process_noise_gyro", "exponent_cc", "speed_exponent_cc",
                     "steer_angle_factor", "odo_steer_factor", "odo_gyro_factor"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be non-negative, got {getattr(self, name)}")
        for name in ("measurement_noise_camera", "measurement_noise_gyro",
                     "wheelbase", "sigma_for_speed_kernel"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive, got {getattr(self, name)}")
        if not 0.0 <= self.odo_mag_factor <= 1.0:
            raise ValueError(f"odo_mag_factor must be in [0, 1], got {self.odo_mag_factor}")
        if self.speed_kernel_length < 1:
            raise ValueError(f"speed_kernel_length must be at least 1, got {self.speed_kernel_length}")

    @property
    def variant(self) -> 'EstimatorVariant':
        """Estimator variant selected by the channel filter flags."""
        return EstimatorVariant.from_settings(self)


class EstimatorVariant(Enum):
    """Closed set of channel-filter compositions ahead of the UKF."""
    UKF_ONLY = "ukf_only"
    CAMERA_FILTERED = "camera_filtered"
    GYRO_FILTERED = "gyro_filtered"
    CAMERA_AND_GYRO_FILTERED = "camera_and_gyro_filtered"

    @classmethod
    def from_settings(cls, settings: PredictionSettings) -> 'EstimatorVariant':
        return {
            (False, False): cls.UKF_ONLY,
            (True, False): cls.CAMERA_FILTERED,
            (False, True): cls.GYRO_FILTERED,
            (True, True): cls.CAMERA_AND_GYRO_FILTERED,
        }[(settings.kalman_filter_camera, settings.kalman_filter_gyro)]

    @property
    def filters_camera(self) -> bool:
        return self in (EstimatorVariant.CAMERA_FILTERED,
                        EstimatorVariant.CAMERA_AND_GYRO_FILTERED)

    @property
    def filters_gyro(self) -> bool:
        return self in (EstimatorVariant.GYRO_FILTERED,
                        EstimatorVariant.CAMERA_AND_GYRO_FILTERED)


# Key spellings used by settings documents of the controller UI
_LEGACY_KEYS = {
    "α": "alpha",
    "κ": "kappa",
    "processNoiseS": "process_noise",
    "measurementNoiseS": "measurement_noise",
    "useUKF": "use_ukf",
    "kalmanFilterCamera": "kalman_filter_camera",
    "kalmanFilterGyro": "kalman_filter_gyro",
    "processNoiseC": "process_noise_camera",
    "measurementNoiseC": "measurement_noise_camera",
    "processNoiseG": "process_noise_gyro",
    "measurementNoiseG": "measurement_noise_gyro",
    "exponentCC": "exponent_cc",
    "useSinCC": "use_sin_cc",
    "speedExponentCC": "speed_exponent_cc",
    "speedSinCC": "speed_use_sin_cc",
    "speedUseSinCC": "speed_use_sin_cc",
    "steerAngleFactor": "steer_angle_factor",
    "odoSteerFactor": "odo_steer_factor",
    "odoGyroFactor": "odo_gyro_factor",
    "odoMagFactor": "odo_mag_factor",
    "ΨₒmagInfluence": "mag_influence",
    "σ_forSpeedKernel": "sigma_for_speed_kernel",
}

_FIELD_TYPES = {field.name: field.type for field in dataclasses.fields(PredictionSettings)}


def _coerce(name: str, value: Any) -> Any:
    """Coerce a document value to the declared type of a settings field."""
    field_type = _FIELD_TYPES[name]
    if field_type is bool:
        if not isinstance(value, bool):
            raise ValueError(f"{name} must be a boolean, got {value!r}")
        return value
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        raise ValueError(f"{name} must be a finite number, got {value!r}")
    if field_type is int:
        if not float(value).is_integer():
            raise ValueError(f"{name} must be an integer, got {value!r}")
        return int(value)
    return float(value)


def settings_from_dict(data: Mapping[str, Any],
                       base: Optional[PredictionSettings] = None) -> PredictionSettings:
    """
    Build settings from a flat key-value mapping.

    Every field is applied independently on top of ``base`` (defaults when
    omitted). Unknown keys and invalid values are logged and skipped, so
    the affected fields keep their prior values.

    Args:
        data: Mapping of snake_case or legacy camelCase keys to values
        base: Settings providing the values of unset fields

    Returns:
        New PredictionSettings instance
    """
    settings = base or PredictionSettings()
    for key, value in data.items():
        name = _LEGACY_KEYS.get(key, key)
        if name not in _FIELD_TYPES:
            logger.warning(f"Ignoring unknown settings key '{key}'")
            continue
        try:
            settings = dataclasses.replace(settings, **{name: _coerce(name, value)})
        except ValueError as e:
            logger.warning(f"Ignoring invalid value for '{key}': {e}")
    return settings


def settings_to_dict(settings: PredictionSettings) -> Dict[str, Any]:
    """Flatten settings into a JSON-serializable dictionary."""
    return dataclasses.asdict(settings)
