"""
Offline plots of estimated trajectories.
"""

from .plotter import TrajectoryPlotter

__all__ = ["TrajectoryPlotter"]
