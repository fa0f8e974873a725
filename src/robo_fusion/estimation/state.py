"""
Filtered pose states making up an output trajectory.
"""

from dataclasses import dataclass, field
from typing import Any, Dict

import numpy as np

from ..settings import STATE_DIM


@dataclass
class PositionalState:
    """
    One fused state of the output trajectory.

    Attributes:
        position: Position [x, y, z] in meters
        yaw: Yaw ψ in radians, wrapped to (-π, π]
        pitch: Pitch θ in radians
        speed: Forward speed of the speed channel in m/s
        covariance: State covariance (5 x 5) after fusion
        confidence: Rated confidence of the fused measurement
        degraded: True if this cycle fell back to prediction only
    """
    position: np.ndarray
    yaw: float
    pitch: float
    speed: float = 0.0
    covariance: np.ndarray = field(default_factory=lambda: np.eye(STATE_DIM))
    confidence: float = 0.0
    degraded: bool = False

    def to_array(self) -> np.ndarray:
        """State vector [x, y, z, ψ, θ]."""
        return np.array([self.position[0], self.position[1], self.position[2],
                         self.yaw, self.pitch])

    @property
    def uncertainty(self) -> np.ndarray:
        """Standard deviations of the state components."""
        return np.sqrt(np.clip(np.diag(self.covariance), 0.0, None))

    def to_dict(self) -> Dict[str, Any]:
        """JSON-serializable representation."""
        return {
            'x': float(self.position[0]),
            'y': float(self.position[1]),
            'z': float(self.position[2]),
            'yaw': float(self.yaw),
            'pitch': float(self.pitch),
            'speed': float(self.speed),
            'uncertainty': self.uncertainty.tolist(),
            'confidence': float(self.confidence),
            'degraded': bool(self.degraded),
        }

    def __str__(self) -> str:
        return (f"PositionalState(pos=[{self.position[0]:.3f}, {self.position[1]:.3f}, "
                f"{self.position[2]:.3f}], yaw={np.degrees(self.yaw):.1f}°, "
                f"pitch={np.degrees(self.pitch):.1f}°, speed={self.speed:.2f})")
