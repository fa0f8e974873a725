"""
Kinematic motion model for a car-like robot.

The model maps the previous filtered state and one control input to the
next state. It has no hidden state and performs no I/O; the UKF calls it
once per sigma point, 2n+1 times per prediction cycle.

State and input:
    x = [p_x, p_y, p_z, ψ, θ]                  (position, yaw, pitch)
    u = [ω_x, ω_y, ω_z, v, dt, steer]          (body rates, speed, step, raw steering)

Steering:
    δ = k_s · rad(steer - 120)                 (120 is the neutral servo command)
    β = atan(½ · tan δ)                        (kinematic bicycle side-slip)

Orientation:
    ψ' = ψ + dt · (w_s · v·cos β·tan δ / L + w_g · ω_z)
    θ' = θ + dt · ω_y

Position:
    p' = p + dt · v · [cos θ' cos(ψ'+β), cos θ' sin(ψ'+β), sin θ']

Roll is not part of the state, so the body pitch rate is used directly as
the Euler pitch rate. Pitch is not clamped, so sigma points keep their
spread. Yaw is left unwrapped; averaging sigma points across
the ±π seam would otherwise be discontinuous.
"""

import numpy as np
from dataclasses import dataclass

from ..settings import PredictionSettings

# Raw steering command driving straight ahead
STEER_NEUTRAL = 120.0

# Fraction of the wheelbase between rear axle and center of mass
REAR_AXLE_RATIO = 0.5


@dataclass(frozen=True)
class MotionParameters:
    """Factors of the turning model."""

    steer_angle_factor: float = 1.0   # Gain on the steering command (0 drives straight)
    odo_steer_factor: float = 0.33    # Weight of the steering yaw rate
    odo_gyro_factor: float = 0.66     # Weight of the gyroscope yaw rate
    wheelbase: float = 0.35           # Axle distance [m]

    def __post_init__(self):
        if self.wheelbase <= 0:
            raise ValueError(f"Wheelbase must be positive, got {self.wheelbase}")

    @classmethod
    def from_settings(cls, settings: PredictionSettings) -> 'MotionParameters':
        return cls(
            steer_angle_factor=settings.steer_angle_factor,
            odo_steer_factor=settings.odo_steer_factor,
            odo_gyro_factor=settings.odo_gyro_factor,
            wheelbase=settings.wheelbase,
        )


DEFAULT_MOTION_PARAMETERS = MotionParameters()


def steering_angle(steer: float, params: MotionParameters = DEFAULT_MOTION_PARAMETERS) -> float:
    """Front wheel angle δ in radians for a raw steering command."""
    return params.steer_angle_factor * np.radians(steer - STEER_NEUTRAL)


def steering_bias(steer: float, params: MotionParameters = DEFAULT_MOTION_PARAMETERS) -> float:
    """
    Side-slip angle β of the robot body for a raw steering command.

    The velocity vector of the center of mass deviates from the heading by
    β = atan(l_r / L · tan δ).
    """
    return np.arctan(REAR_AXLE_RATIO * np.tan(steering_angle(steer, params)))


def yaw_angle(yaw: float, dt: float, steer: float, beta: float, speed: float,
              yaw_rate: float, params: MotionParameters = DEFAULT_MOTION_PARAMETERS) -> float:
    """Advance yaw by the weighted steering and gyroscope turning rates."""
    delta = steering_angle(steer, params)
    steer_rate = speed * np.cos(beta) * np.tan(delta) / params.wheelbase
    return yaw + dt * (params.odo_steer_factor * steer_rate + params.odo_gyro_factor * yaw_rate)


def pitch_angle(pitch: float, dt: float, angular_rates: np.ndarray) -> float:
    """Advance pitch by the body pitch rate."""
    return pitch + dt * angular_rates[1]


def velocity(speed: float, yaw: float, pitch: float, beta: float = 0.0) -> np.ndarray:
    """Decompose forward speed into a world-frame velocity vector."""
    course = yaw + beta
    return speed * np.array([
        np.cos(pitch) * np.cos(course),
        np.cos(pitch) * np.sin(course),
        np.sin(pitch),
    ])


def motion_model(state: np.ndarray, control: np.ndarray,
                 params: MotionParameters = DEFAULT_MOTION_PARAMETERS) -> np.ndarray:
    """
    Predict the next state from the previous state and a control input.

    Args:
        state: Previous state [p_x, p_y, p_z, ψ, θ]
        control: Control input [ω_x, ω_y, ω_z, v, dt, steer]
        params: Turning model factors

    Returns:
        Next state as a new 5-element array
    """
    rates = control[0:3]
    speed, dt, steer = control[3], control[4], control[5]

    beta = steering_bias(steer, params)
    yaw = yaw_angle(state[3], dt, steer, beta, speed, rates[2], params)
    pitch = pitch_angle(state[4], dt, rates)
    position = state[0:3] + dt * velocity(speed, yaw, pitch, beta)

    return np.array([position[0], position[1], position[2], yaw, pitch])


def wrap_angle(angle):
    """Wrap angles to the interval (-π, π]."""
    wrapped = np.mod(np.asarray(angle) + np.pi, 2 * np.pi) - np.pi
    wrapped = np.where(wrapped == -np.pi, np.pi, wrapped)
    return float(wrapped) if np.ndim(wrapped) == 0 else wrapped
