"""LQR-based feedback gains from identified feedforward gains."""

from __future__ import annotations

import enum
from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np
from scipy.linalg import expm, fractional_matrix_power, solve_discrete_are


class FeedbackControllerLoopType(enum.Enum):
    """Which quantity the feedback loop controls."""

    POSITION = "Position"
    VELOCITY = "Velocity"


@dataclass(frozen=True)
class FeedbackControllerPreset:
    """How a particular motor controller interprets gains.

    ``period`` and ``measurement_delay`` are in seconds.
    """

    output_conversion_factor: float
    output_velocity_time_factor: float
    period: float
    normalized: bool
    measurement_delay: float = 0.0


@dataclass
class LQRParameters:
    """Maximum acceptable position error, velocity error and control effort."""

    qp: float
    qv: float
    r: float


@dataclass(frozen=True)
class FeedbackGains:
    """Proportional and derivative gains."""

    kp: float
    kd: float


def _discretize_ab(a: np.ndarray, b: np.ndarray, dt: float) -> tuple[np.ndarray, np.ndarray]:
    states, inputs = b.shape
    block = np.zeros((states + inputs, states + inputs))
    block[:states, :states] = a
    block[:states, states:] = b
    phi = expm(block * dt)
    return phi[:states, :states], phi[:states, states:]


def _cost_matrix(tolerances: Sequence[float]) -> np.ndarray:
    return np.diag([0.0 if np.isinf(tol) else 1.0 / tol**2 for tol in tolerances])


def _lqr_gain(a: np.ndarray, b: np.ndarray, q_tolerances: Sequence[float],
              r_tolerances: Sequence[float], dt: float, input_delay: float) -> np.ndarray:
    ad, bd = _discretize_ab(a, b, dt)
    q = _cost_matrix(q_tolerances)
    r = _cost_matrix(r_tolerances)
    s = solve_discrete_are(ad, bd, q, r)
    k = np.linalg.solve(bd.T @ s @ bd + r, bd.T @ s @ ad)
    if input_delay:
        # Compensate for measurement latency.
        k = k @ np.real(fractional_matrix_power(ad - bd @ k, input_delay / dt))
    return k


def calculate_position_feedback_gains(preset: FeedbackControllerPreset, params: LQRParameters,
                                      kv: float, ka: float, enc_factor: float = 1.0) -> FeedbackGains:
    """Compute position-loop PD gains for a plant with the given Kv and Ka."""
    if ka > 1e-7:
        a = np.array([[0.0, 1.0], [0.0, -kv / ka]])
        b = np.array([[0.0], [1.0 / ka]])
        k = _lqr_gain(a, b, (params.qp, params.qv), (params.r,), preset.period, 0.0)
        time_factor = 1.0 if preset.normalized else preset.period
        return FeedbackGains(
            float(k[0, 0]) * preset.output_conversion_factor / enc_factor,
            float(k[0, 1]) * preset.output_conversion_factor / (enc_factor * time_factor),
        )

    # With negligible Ka, velocity acts as the input to a pure integrator;
    # this avoids numerical trouble in the two-state LQR.
    k = _lqr_gain(np.array([[0.0]]), np.array([[1.0]]), (params.qp,), (params.r,),
                  preset.period, 0.0)
    return FeedbackGains(
        kv * float(k[0, 0]) * preset.output_conversion_factor / enc_factor, 0.0
    )


def calculate_velocity_feedback_gains(preset: FeedbackControllerPreset, params: LQRParameters,
                                      kv: float, ka: float, enc_factor: float = 1.0) -> FeedbackGains:
    """Compute a velocity-loop P gain for a plant with the given Kv and Ka."""
    if ka < 1e-7:
        return FeedbackGains(0.0, 0.0)

    a = np.array([[-kv / ka]])
    b = np.array([[1.0 / ka]])
    k = _lqr_gain(a, b, (params.qv,), (params.r,), preset.period, preset.measurement_delay)
    return FeedbackGains(
        float(k[0, 0]) * preset.output_conversion_factor
        / (preset.output_velocity_time_factor * enc_factor),
        0.0,
    )