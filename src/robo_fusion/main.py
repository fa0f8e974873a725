#!/usr/bin/env python3
"""
Pose estimation from recorded robot data.

Loads a recorded JSON file, estimates the trajectory with the Unscented
Kalman Filter and writes the (optionally smoothed) result.

Run with: robo-fusion recording.json --output trajectory.json
"""

import argparse
import logging
from typing import List, Optional

from .config import load_settings
from .estimation.orchestrator import predict_from_recorded_data
from .estimation.smoothing import smooth_pose_estimation
from .estimation.state import PositionalState
from .recording import load_recorded_data, save_trajectory
from .settings import PredictionSettings

logger = logging.getLogger(__name__)


def run_estimation(recording: str, settings_path: Optional[str] = None,
                   output: Optional[str] = None, smooth_sigma: Optional[float] = None,
                   smooth_length: int = 5, plot: Optional[str] = None,
                   rotate_camera_coords: bool = False) -> List[PositionalState]:
    """Estimate, post-process and store the trajectory of one recording."""
    settings = load_settings(settings_path) if settings_path else PredictionSettings()
    samples = load_recorded_data(recording, rotate_camera_coords)

    trajectory = predict_from_recorded_data(samples, settings)
    if smooth_sigma is not None:
        smooth_pose_estimation(trajectory, smooth_sigma, smooth_length)

    if output:
        save_trajectory(trajectory, output)

    if plot:
        if not trajectory:
            logger.warning("Nothing to plot, the trajectory is empty")
        else:
            from .visualization.plotter import TrajectoryPlotter
            plotter = TrajectoryPlotter()
            plotter.plot(trajectory, samples)
            plotter.save(plot)

    return trajectory


def main(argv=None):
    """Main entry point"""
    parser = argparse.ArgumentParser(description='Robot pose estimation from recorded data')
    parser.add_argument('recording',
                        help='Recorded JSON data file')
    parser.add_argument('--settings', default=None,
                        help='JSON settings file (default: built-in settings)')
    parser.add_argument('--output', '-o', default=None,
                        help='Write the estimated trajectory to this JSON file')
    parser.add_argument('--smooth-sigma', type=float, default=None,
                        help='Smooth the trajectory with this relative kernel sigma')
    parser.add_argument('--smooth-length', type=int, default=5,
                        help='Smoothing kernel length in samples (default: 5)')
    parser.add_argument('--plot', default=None,
                        help='Save a summary plot to this image file')
    parser.add_argument('--rotate-camera-coords', action='store_true',
                        help='Rotate camera coordinates onto the compass heading')
    parser.add_argument('--verbose', '-v', action='store_true',
                        help='Enable debug logging')

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    trajectory = run_estimation(
        args.recording,
        settings_path=args.settings,
        output=args.output,
        smooth_sigma=args.smooth_sigma,
        smooth_length=args.smooth_length,
        plot=args.plot,
        rotate_camera_coords=args.rotate_camera_coords,
    )

    degraded = sum(state.degraded for state in trajectory)
    print(f"Estimated {len(trajectory)} states ({degraded} degraded)")
    if trajectory:
        print(f"Final state: {trajectory[-1]}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
