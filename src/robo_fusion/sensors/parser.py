"""
Boundary parsing of robot telemetry into :class:`PositionalData` samples.

Two sources are supported:

Telemetry lines, eleven ``|``-separated fields:
    command|maxSpeed|steerAngle|sensorAngle|sensorSpeed|[camPos]|[camOri]|
    confidence|[acc]|[gyro]|[mag]

Recorded JSON records, as written by the recording tool, with camelCase
keys. The tracking camera reports in a y-up frame; recorded positions and
orientations are remapped into the robot's z-up frame, [x, y, z] -> [x, -z, y],
and optionally rotated about z onto the compass heading of the first frame.

Malformed input is rejected here with :class:`MalformedSampleError` and
never reaches the estimator.
"""

import logging
from typing import Any, Mapping, Optional

import numpy as np

from .sample import PositionalData

logger = logging.getLogger(__name__)

# Number of fields in a telemetry line
TELEMETRY_FIELDS = 11

# Command placeholder sent when no key is pressed
NO_COMMAND = "_nothing"

# Camera y-up frame to robot z-up frame
CAMERA_TO_ROBOT = np.array([
    [1.0, 0.0, 0.0],
    [0.0, 0.0, -1.0],
    [0.0, 1.0, 0.0],
])


class MalformedSampleError(ValueError):
    """Raised when telemetry cannot be parsed into a sample."""


def _parse_vector(text: str) -> np.ndarray:
    """Parse a bracketed, comma-separated vector such as ``[1.0,2.0,3.0]``."""
    return np.array([float(value) for value in text.strip().strip("[]").split(",")])


def extract_data(line: str, delta_time: float = 0.0) -> PositionalData:
    """
    Parse one telemetry line.

    Args:
        line: Raw telemetry line with eleven ``|``-separated fields
        delta_time: Seconds since the previous line

    Returns:
        Parsed sample; the confidence (percent) is normalized to [0, 1]

    Raises:
        MalformedSampleError: If the field count is wrong or a field does not parse
    """
    fields = line.strip().split("|")
    if len(fields) != TELEMETRY_FIELDS:
        raise MalformedSampleError(
            f"Telemetry line must have {TELEMETRY_FIELDS} fields, got {len(fields)}")

    try:
        return PositionalData(
            command="" if fields[0] == NO_COMMAND else fields[0],
            max_speed=float(fields[1]),
            steer_angle=float(int(fields[2])),
            sensor_angle=float(int(fields[3])),
            sensor_speed=float(fields[4]),
            camera_position=_parse_vector(fields[5])[:3],
            camera_orientation=_parse_vector(fields[6]),
            camera_confidence=float(fields[7]) / 100.0,
            imu_acceleration=_parse_vector(fields[8]),
            imu_gyroscope=_parse_vector(fields[9]),
            imu_magnetometer=_parse_vector(fields[10]),
            delta_time=delta_time,
        )
    except ValueError as e:
        raise MalformedSampleError(f"Invalid telemetry line: {e}") from e


def convert_mag_to_compass(magnetometer: np.ndarray) -> float:
    """Compass heading in radians from a magnetometer reading."""
    return float(np.arctan2(magnetometer[1], magnetometer[0]))


def heading_rotation(heading: float) -> np.ndarray:
    """Rotation matrix about z by ``heading`` radians."""
    c, s = np.cos(heading), np.sin(heading)
    return np.array([
        [c, -s, 0.0],
        [s, c, 0.0],
        [0.0, 0.0, 1.0],
    ])


def transform_camera_coords(position: np.ndarray, heading: float) -> np.ndarray:
    """Rotate a camera position about z onto a compass heading."""
    return heading_rotation(heading) @ np.asarray(position, dtype=float)


def _rotate_quaternion(quaternion: np.ndarray, rotation: np.ndarray) -> np.ndarray:
    """Express a scalar-last quaternion in a frame rotated by ``rotation``."""
    return np.concatenate([rotation @ quaternion[:3], quaternion[3:]])


def convert_dict_to_sample(record: Mapping[str, Any],
                           heading: Optional[float] = None) -> PositionalData:
    """
    Convert one recorded JSON record into a sample.

    Args:
        record: Mapping with the recorded camelCase keys
        heading: Optional compass heading to rotate camera coordinates onto

    Returns:
        Parsed sample in the robot frame; gyroscope rates are converted from
        degrees to radians and the confidence from percent to [0, 1]

    Raises:
        MalformedSampleError: If a key is missing or a value does not parse
    """
    try:
        rotation = CAMERA_TO_ROBOT
        if heading is not None:
            rotation = heading_rotation(heading) @ rotation

        position = rotation @ np.asarray(record["cameraPos"], dtype=float)[:3]
        orientation = _rotate_quaternion(np.asarray(record["cameraOri"], dtype=float), rotation)
        gps = record.get("gpsPosition")

        return PositionalData(
            command=str(record["command"]),
            max_speed=float(record["maxSpeed"]),
            steer_angle=float(record["steerAngle"]),
            sensor_angle=float(record["sensorAngle"]),
            sensor_speed=float(record["sensorSpeed"]),
            camera_position=position,
            camera_orientation=orientation,
            camera_confidence=float(record["cameraConfidence"]) / 100.0,
            imu_acceleration=record["imuAcc"],
            imu_gyroscope=np.radians(np.asarray(record["imuGyro"], dtype=float)),
            imu_magnetometer=record["imuMag"],
            delta_time=float(record["deltaTime"]),
            gps_position=gps,
        )
    except KeyError as e:
        raise MalformedSampleError(f"Recorded sample is missing key {e}") from e
    except (TypeError, ValueError) as e:
        raise MalformedSampleError(f"Invalid recorded sample: {e}") from e
