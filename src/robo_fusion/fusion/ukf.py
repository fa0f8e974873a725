"""
Unscented Kalman Filter for pose estimation of a car-like robot.

Mathematical Foundation:
    x(k+1) = f(x(k), u(k)) + w(k),   w ~ N(0, q·I)
    z(k)   = x(k) + v(k),            v ~ N(0, (1 - c)·r·I)

where c ∈ [0, 1] is the rated confidence of the camera measurement. The
measurement model is the identity (the full state is observed), so sigma
points serve directly as predicted measurements.

Prediction:
    Yᵢ  = f(Xᵢ(k-1), u(k))                      (propagate sigma points)
    μ̂   = Σ w_mᵢ Yᵢ
    X(k) = sigma_points(μ(k-1), Σ(k-1))          (regenerated for the update)
    Σ̂   = Σ w_cᵢ (Yᵢ - μ̂)(Yᵢ - μ̂)ᵀ + q·I

Update:
    z̄   = Σ w_mᵢ Xᵢ(k)
    S    = Σ w_cᵢ (Xᵢ - z̄)(Xᵢ - z̄)ᵀ + (1 - c)·r·I
    K    = [Σ w_cᵢ (Xᵢ - μ̂)(Xᵢ - z̄)ᵀ] S⁻¹
    μ    = μ̂ + K(z - z̄)
    Σ    = Σ̂ - K S Kᵀ

Unlike the canonical UKF, the sigma points of the update are regenerated
from the previous mean and covariance instead of reusing the propagated
points.

The running (mean, covariance, sigma points) triple is a caller-owned
:class:`UKFState` value. The filter object holds only the settings and the
weights derived from them.
"""

import logging
from dataclasses import dataclass, field

import numpy as np

from ..settings import PredictionSettings, STATE_DIM
from .motion import MotionParameters, motion_model
from .unscented import (
    compute_weights,
    condition_covariance,
    generate_sigma_points,
    needs_conditioning,
    sanitize_covariance,
    weighted_cross_covariance,
    weighted_mean,
)

logger = logging.getLogger(__name__)


@dataclass
class UKFState:
    """
    Running estimate threaded through consecutive filter cycles.

    Attributes:
        mean: State mean [p_x, p_y, p_z, ψ, θ]
        covariance: State covariance (5 x 5)
        sigma_points: Sigma points (11 x 5) of the distribution
        degraded: True if the last cycle fell back to prediction only
        conditioned: True if the covariance had to be repaired this cycle
    """
    mean: np.ndarray
    covariance: np.ndarray
    sigma_points: np.ndarray
    degraded: bool = False
    conditioned: bool = field(default=False)

    @classmethod
    def from_moments(cls, mean: np.ndarray, covariance: np.ndarray,
                     settings: PredictionSettings, degraded: bool = False) -> 'UKFState':
        """
        Build a state whose sigma points match its mean and covariance.

        The covariance is conditioned first when it drifted from symmetric
        positive semi-definite.
        """
        mean = np.asarray(mean, dtype=float)
        covariance = np.asarray(covariance, dtype=float)
        if mean.shape != (STATE_DIM,):
            raise ValueError(f"Mean must have {STATE_DIM} elements, got {mean.shape}")
        if covariance.shape != (STATE_DIM, STATE_DIM):
            raise ValueError(f"Covariance shape must be ({STATE_DIM}, {STATE_DIM}), "
                             f"got {covariance.shape}")

        conditioned = needs_conditioning(covariance)
        if conditioned:
            logger.warning("Covariance drifted from positive semi-definite, conditioning to diagonal")
            covariance = condition_covariance(covariance)

        return cls(
            mean=mean.copy(),
            covariance=covariance.copy(),
            sigma_points=generate_sigma_points(mean, covariance, settings),
            degraded=degraded,
            conditioned=conditioned,
        )


class UnscentedKalmanFilter:
    """
    Unscented Kalman Filter over the kinematic motion model.

    The mean and covariance weights are computed once from the settings
    and reused for every cycle. Filter cycles are pure with respect to
    the filter object: each call takes a :class:`UKFState` and returns a
    new one.

    Attributes:
        settings: Prediction settings of this filter
        motion_parameters: Turning model factors derived from the settings
        mean_weights: Weights w_m of the unscented transform (2n+1)
        covariance_weights: Weights w_c of the unscented transform (2n+1)
    """

    def __init__(self, settings: PredictionSettings = None):
        self.settings = settings or PredictionSettings()
        self.motion_parameters = MotionParameters.from_settings(self.settings)
        self.mean_weights = compute_weights(True, self.settings)
        self.covariance_weights = compute_weights(False, self.settings)
        self._process_noise = self.settings.process_noise * np.eye(STATE_DIM)

    def initial_state(self, mean: np.ndarray, covariance: np.ndarray = None) -> UKFState:
        """Seed a state from a first measurement, with identity covariance by default."""
        if covariance is None:
            covariance = np.eye(STATE_DIM)
        return UKFState.from_moments(mean, covariance, self.settings)

    def predict(self, state: UKFState, control: np.ndarray) -> UKFState:
        """
        Prediction step of the filter.

        Args:
            state: Previous estimate
            control: Control input [ω_x, ω_y, ω_z, v, dt, steer]

        Returns:
            Predicted state carrying the sigma points for the update step

        Raises:
            ValueError: If the control input does not have 6 elements
        """
        control = np.asarray(control, dtype=float)
        if control.shape != (6,):
            raise ValueError(f"Control input must have 6 elements, got {control.shape}")

        propagated = np.array([
            motion_model(point, control, self.motion_parameters)
            for point in state.sigma_points
        ])
        predicted_mean = weighted_mean(self.mean_weights, propagated)

        covariance = state.covariance
        conditioned = needs_conditioning(covariance)
        if conditioned:
            logger.warning("Covariance drifted from positive semi-definite, conditioning to diagonal")
            covariance = condition_covariance(covariance)
        sigma_points = generate_sigma_points(state.mean, covariance, self.settings)

        predicted_covariance = weighted_cross_covariance(
            self.covariance_weights, propagated, predicted_mean) + self._process_noise

        logger.debug(f"Prediction step completed, dt={control[4]:.3f}s")
        return UKFState(
            mean=predicted_mean,
            covariance=predicted_covariance,
            sigma_points=sigma_points,
            conditioned=conditioned,
        )

    def measurement_noise(self, confidence: float) -> np.ndarray:
        """Measurement noise (1 - c)·r·I for a rated confidence c."""
        confidence = float(np.clip(confidence, 0.0, 1.0))
        return (1.0 - confidence) * self.settings.measurement_noise * np.eye(STATE_DIM)

    def update(self, state: UKFState, measurement: np.ndarray, confidence: float) -> UKFState:
        """
        Fuse a measurement into a predicted state.

        A singular innovation covariance or a non-finite fused mean degrades
        the cycle: the predicted mean is kept with a conditioned covariance
        and the returned state is flagged ``degraded``.

        Args:
            state: Predicted state from :meth:`predict`
            measurement: Measured state [p_x, p_y, p_z, ψ, θ]
            confidence: Rated confidence of the measurement in [0, 1]

        Returns:
            Fused state with sigma points regenerated from the fused moments
        """
        measurement = np.asarray(measurement, dtype=float)
        if measurement.shape != (STATE_DIM,):
            raise ValueError(f"Measurement must have {STATE_DIM} elements, got {measurement.shape}")

        points = state.sigma_points
        measurement_mean = weighted_mean(self.mean_weights, points)

        innovation_covariance = weighted_cross_covariance(
            self.covariance_weights, points, measurement_mean) + self.measurement_noise(confidence)
        cross_covariance = weighted_cross_covariance(
            self.covariance_weights, points, state.mean, points, measurement_mean)

        try:
            gain = cross_covariance @ np.linalg.inv(innovation_covariance)
        except np.linalg.LinAlgError:
            logger.warning("Singular innovation covariance, falling back to prediction")
            return self._fallback(state)

        fused_mean = state.mean + gain @ (measurement - measurement_mean)
        if not np.all(np.isfinite(fused_mean)):
            logger.warning("Fused mean is not finite, falling back to prediction")
            return self._fallback(state)

        fused_covariance = sanitize_covariance(
            state.covariance - gain @ innovation_covariance @ gain.T)

        logger.debug(f"Update applied: innovation={np.linalg.norm(measurement - measurement_mean):.3f}")
        fused = UKFState.from_moments(fused_mean, fused_covariance, self.settings)
        fused.conditioned = fused.conditioned or state.conditioned
        return fused

    def step(self, state: UKFState, control: np.ndarray, measurement: np.ndarray,
             confidence: float) -> UKFState:
        """Run one predict/update cycle."""
        return self.update(self.predict(state, control), measurement, confidence)

    def _fallback(self, state: UKFState) -> UKFState:
        """Prediction-only result of a degraded update."""
        covariance = condition_covariance(sanitize_covariance(state.covariance))
        fallback = UKFState.from_moments(state.mean, covariance, self.settings, degraded=True)
        fallback.conditioned = True
        return fallback
