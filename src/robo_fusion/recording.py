"""
Reading recorded sensor data and writing estimated trajectories.

Recorded data is a JSON list of telemetry records (see
:func:`robo_fusion.sensors.parser.convert_dict_to_sample`). Trajectories
are written as a JSON list of ``{x, y, z, yaw, pitch, speed, ...}``
records, which :func:`load_positions` reads back as an array.
"""

import json
import logging
from pathlib import Path
from typing import List, Sequence, Union

import numpy as np

from .estimation.state import PositionalState
from .sensors.parser import MalformedSampleError, convert_dict_to_sample, convert_mag_to_compass
from .sensors.sample import PositionalData

logger = logging.getLogger(__name__)


def load_recorded_data(path: Union[str, Path],
                       rotate_camera_coords: bool = False) -> List[PositionalData]:
    """
    Load recorded samples from a JSON file.

    Malformed records are skipped with a warning.

    Args:
        path: Path of the recorded JSON list
        rotate_camera_coords: Rotate camera coordinates onto the compass
            heading measured by the first usable magnetometer reading

    Returns:
        Samples in recorded order

    Raises:
        MalformedSampleError: If the document is not a JSON list
    """
    logger.info("Loading raw data...")
    with open(path, encoding='utf-8') as f:
        records = json.load(f)
    if not isinstance(records, list):
        raise MalformedSampleError(f"Recorded data in {path} must be a JSON list")

    heading = None
    samples = []
    for i, record in enumerate(records):
        if rotate_camera_coords and heading is None:
            try:
                heading = convert_mag_to_compass(np.asarray(record["imuMag"], dtype=float))
            except (KeyError, IndexError, TypeError, ValueError):
                logger.warning(f"Record {i} has no usable magnetometer reading for the heading")
        try:
            samples.append(convert_dict_to_sample(record, heading))
        except MalformedSampleError as e:
            logger.warning(f"Skipping record {i}: {e}")

    logger.info(f"Loaded {len(samples)} of {len(records)} records from {path}")
    return samples


def save_trajectory(trajectory: Sequence[PositionalState], path: Union[str, Path]) -> None:
    """Write an estimated trajectory as a JSON list."""
    with open(path, 'w', encoding='utf-8') as f:
        json.dump([state.to_dict() for state in trajectory], f, indent=2)
    logger.info(f"Saved {len(trajectory)} states to {path}")


def load_positions(path: Union[str, Path]) -> np.ndarray:
    """
    Read positions back from a trajectory JSON file.

    Returns:
        Array of shape (k, 3); empty if the file does not exist
    """
    try:
        with open(path, encoding='utf-8') as f:
            records = json.load(f)
    except FileNotFoundError:
        logger.warning(f"The file {path} does not exist")
        return np.zeros((0, 3))

    return np.array([[record["x"], record["y"], record["z"]] for record in records],
                    dtype=float).reshape(-1, 3)
