"""
Offline plots of estimated trajectories.

Figures are rendered without a GUI backend and written to image files;
interactive display is left to the caller.
"""

import logging
from pathlib import Path
from typing import Optional, Sequence, Union

import numpy as np
import matplotlib.gridspec as gridspec
from matplotlib.figure import Figure

from ..estimation.state import PositionalState
from ..sensors.sample import PositionalData

logger = logging.getLogger(__name__)


def compass_course(yaw) -> np.ndarray:
    """Convert yaw in radians to a compass course in degrees [0, 360)."""
    return np.mod(np.degrees(yaw), 360.0)


class TrajectoryPlotter:
    """
    Four-panel summary of an estimation run.

    Panels:
        - XY track of the estimate, the raw camera and GPS (when recorded)
        - Estimated position components over the sample index
        - Compass course of the estimate
        - Speed channel with the fused confidence

    Parameters:
        figsize (tuple): Figure size in inches. Default: (12, 9)
        dpi (int): Resolution of saved images. Default: 100
    """

    def __init__(self, figsize=(12, 9), dpi: int = 100):
        if dpi <= 0:
            raise ValueError("DPI must be positive")
        self.figsize = figsize
        self.dpi = dpi
        self.figure: Optional[Figure] = None

    def plot(self, trajectory: Sequence[PositionalState],
             samples: Optional[Sequence[PositionalData]] = None) -> Figure:
        """
        Render the summary figure.

        Args:
            trajectory: Estimated states
            samples: Recorded samples the trajectory was estimated from

        Returns:
            The rendered matplotlib figure
        """
        if not trajectory:
            raise ValueError("Cannot plot an empty trajectory")

        positions = np.array([state.position for state in trajectory])
        index = np.arange(len(trajectory))

        self.figure = Figure(figsize=self.figsize)
        gs = gridspec.GridSpec(2, 2, figure=self.figure, hspace=0.35, wspace=0.3)

        ax_track = self.figure.add_subplot(gs[0, 0])
        ax_track.plot(positions[:, 0], positions[:, 1], 'b.-', markersize=3, label='Predicted Pos')
        if samples:
            cameras = np.array([sample.camera_position for sample in samples])
            ax_track.scatter(cameras[:, 0], cameras[:, 1], s=4, c='gray', label='Camera Pos')
            gps = np.array([sample.gps_position for sample in samples
                            if sample.gps_position is not None]).reshape(-1, 3)
            if len(gps):
                ax_track.scatter(gps[:, 0], gps[:, 1], s=6, c='green', marker='x', label='GPS')
        ax_track.set_xlabel('x [m]')
        ax_track.set_ylabel('y [m]')
        ax_track.set_title('Positions')
        ax_track.axis('equal')
        ax_track.legend()
        ax_track.grid(True)

        ax_position = self.figure.add_subplot(gs[0, 1])
        for axis, label in enumerate(('x', 'y', 'z')):
            ax_position.plot(index, positions[:, axis], label=label)
        ax_position.set_xlabel('Data Point')
        ax_position.set_ylabel('Distance [m]')
        ax_position.set_title('Predicted Position')
        ax_position.legend()
        ax_position.grid(True)

        ax_course = self.figure.add_subplot(gs[1, 0])
        ax_course.plot(index, compass_course([state.yaw for state in trajectory]), 'purple')
        ax_course.set_xlabel('Data Point')
        ax_course.set_ylabel('Orientation [°]')
        ax_course.set_title('Ψ')
        ax_course.set_ylim(0, 360)
        ax_course.grid(True)

        ax_speed = self.figure.add_subplot(gs[1, 1])
        ax_speed.plot(index, [state.speed for state in trajectory], 'k-', label='Speed')
        ax_confidence = ax_speed.twinx()
        ax_confidence.plot(index, [state.confidence for state in trajectory], 'orange',
                           alpha=0.6, label='Confidence')
        ax_confidence.set_ylim(0, 1)
        ax_confidence.set_ylabel('Confidence')
        ax_speed.set_xlabel('Data Point')
        ax_speed.set_ylabel('Speed [m/s]')
        ax_speed.set_title('Speed')
        ax_speed.grid(True)

        return self.figure

    def save(self, path: Union[str, Path]) -> None:
        """Write the last rendered figure to an image file."""
        if self.figure is None:
            raise RuntimeError("Nothing to save, call plot() first")
        self.figure.savefig(path, dpi=self.dpi, bbox_inches='tight')
        logger.info(f"Saved trajectory plot to {path}")
