"""
Parsed sensor samples recorded from the robot.

A :class:`PositionalData` sample bundles one telemetry frame: drive
commands, wheel speed, the tracking camera pose with its confidence, the
three IMU channels and the time elapsed since the previous frame. The
estimator consumes already-parsed, well-typed samples; parsing and
rejection of malformed telemetry happen in :mod:`robo_fusion.sensors.parser`.
"""

from dataclasses import dataclass, field
from typing import Optional

import numpy as np


def _vector(name: str, value, size: int) -> np.ndarray:
    array = np.asarray(value, dtype=float).reshape(-1)
    if array.shape != (size,):
        raise ValueError(f"{name} must have {size} elements, got {array.shape[0]}")
    return array


@dataclass
class PositionalData:
    """
    One parsed telemetry frame.

    Attributes:
        command: Drive command echoed by the robot (empty if none)
        max_speed: Motor speed limit (PWM duty cycle)
        steer_angle: Raw steering servo command (120 is straight ahead)
        sensor_angle: Steering angle reported by the steering sensor (%)
        sensor_speed: Wheel speed in m/s
        camera_position: Tracking camera position [x, y, z] in meters
        camera_orientation: Camera orientation quaternion [x, y, z, w]
        camera_confidence: Tracking confidence normalized to [0, 1]
        imu_acceleration: Accelerometer [x, y, z] in g
        imu_gyroscope: Gyroscope rates [x, y, z] in rad/s
        imu_magnetometer: Magnetic field [x, y, z] in gauss
        delta_time: Seconds since the previous frame
        gps_position: Optional GPS position [x, y, z] in meters
    """
    command: str = ""
    max_speed: float = 0.0
    steer_angle: float = 120.0
    sensor_angle: float = 0.0
    sensor_speed: float = 0.0
    camera_position: np.ndarray = field(default_factory=lambda: np.zeros(3))
    camera_orientation: np.ndarray = field(default_factory=lambda: np.array([0.0, 0.0, 0.0, 1.0]))
    camera_confidence: float = 0.0
    imu_acceleration: np.ndarray = field(default_factory=lambda: np.zeros(3))
    imu_gyroscope: np.ndarray = field(default_factory=lambda: np.zeros(3))
    imu_magnetometer: np.ndarray = field(default_factory=lambda: np.zeros(3))
    delta_time: float = 0.0
    gps_position: Optional[np.ndarray] = None

    def __post_init__(self):
        """Coerce vector fields to float arrays and validate their sizes."""
        self.camera_position = _vector("camera_position", self.camera_position, 3)
        self.camera_orientation = _vector("camera_orientation", self.camera_orientation, 4)
        self.imu_acceleration = _vector("imu_acceleration", self.imu_acceleration, 3)
        self.imu_gyroscope = _vector("imu_gyroscope", self.imu_gyroscope, 3)
        self.imu_magnetometer = _vector("imu_magnetometer", self.imu_magnetometer, 3)
        if self.gps_position is not None:
            self.gps_position = _vector("gps_position", self.gps_position, 3)
        if self.delta_time < 0:
            raise ValueError(f"Delta time must be non-negative, got {self.delta_time}")
