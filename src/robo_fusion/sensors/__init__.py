"""
Sensor samples, telemetry parsing and camera confidence rating.
"""

from .sample import PositionalData
from .parser import MalformedSampleError, extract_data, convert_dict_to_sample
from .confidence import rate_confidence

__all__ = [
    "PositionalData",
    "MalformedSampleError",
    "extract_data",
    "convert_dict_to_sample",
    "rate_confidence",
]
