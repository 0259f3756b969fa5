"""Plant models used to check identified feedforward gains."""

from __future__ import annotations

import math
from collections.abc import Callable

import numpy as np
from scipy.linalg import expm

_Vector = np.ndarray


def _discretize_ab(a: np.ndarray, b: np.ndarray, dt: float) -> tuple[np.ndarray, np.ndarray]:
    states, inputs = b.shape
    block = np.zeros((states + inputs, states + inputs))
    block[:states, :states] = a
    block[:states, states:] = b
    phi = expm(block * dt)
    return phi[:states, :states], phi[:states, states:]


class _LinearPlant:
    """Shared state handling of the discretized linear motor models."""

    def __init__(self, a: np.ndarray, b: np.ndarray, c: np.ndarray, d: np.ndarray,
                 initial_position: float, initial_velocity: float) -> None:
        self._a = a
        self._b = b
        self._c = c
        self._d = d
        self._set_state(initial_position, initial_velocity)

    @property
    def position(self) -> float:
        return float(self._x[0])

    @property
    def velocity(self) -> float:
        return float(self._x[1])

    def _advance(self, voltage: float, dt: float) -> None:
        # With dx/dt = Ax + Bu + c sgn(v) + d, the constant terms are folded
        # into an equivalent input and discretized together with u.
        ad, bd = _discretize_ab(self._a, self._b, dt)
        affine = self._c * np.sign(self.velocity) + self._d
        equivalent = np.linalg.lstsq(self._b, affine, rcond=None)[0]
        self._x = ad @ self._x + bd @ (np.array([voltage]) + equivalent)

    def _derivative(self, voltage: float) -> float:
        xdot = (
            self._a @ self._x
            + self._b @ np.array([voltage])
            + self._c * np.sign(self.velocity)
            + self._d
        )
        return float(xdot[1])

    def _set_state(self, position: float, velocity: float) -> None:
        self._x = np.array([position, velocity], dtype=float)


class SimpleMotorSim(_LinearPlant):
    """A motor obeying V = Ks sgn(v) + Kv v + Ka a."""

    def __init__(self, ks: float, kv: float, ka: float,
                 initial_position: float = 0.0, initial_velocity: float = 0.0) -> None:
        super().__init__(
            np.array([[0.0, 1.0], [0.0, -kv / ka]]),
            np.array([[0.0], [1.0 / ka]]),
            np.array([0.0, -ks / ka]),
            np.zeros(2),
            initial_position,
            initial_velocity,
        )

    def update(self, voltage: float, dt: float) -> None:
        """Advance the model by ``dt`` seconds with ``voltage`` applied."""
        self._advance(voltage, dt)

    def get_acceleration(self, voltage: float) -> float:
        """Return the acceleration produced by ``voltage`` in the current state."""
        return self._derivative(voltage)

    def reset(self, position: float, velocity: float) -> None:
        """Set the state to the given position and velocity."""
        self._set_state(position, velocity)


class ElevatorSim(_LinearPlant):
    """An elevator obeying V = Ks sgn(v) + Kv v + Ka a + Kg."""

    def __init__(self, ks: float, kv: float, ka: float, kg: float,
                 initial_position: float = 0.0, initial_velocity: float = 0.0) -> None:
        super().__init__(
            np.array([[0.0, 1.0], [0.0, -kv / ka]]),
            np.array([[0.0], [1.0 / ka]]),
            np.array([0.0, -ks / ka]),
            np.array([0.0, -kg / ka]),
            initial_position,
            initial_velocity,
        )

    def update(self, voltage: float, dt: float) -> None:
        """Advance the model by ``dt`` seconds with ``voltage`` applied."""
        self._advance(voltage, dt)

    def get_acceleration(self, voltage: float) -> float:
        """Return the acceleration produced by ``voltage`` in the current state."""
        return self._derivative(voltage)

    def reset(self, position: float, velocity: float) -> None:
        """Set the state to the given position and velocity."""
        self._set_state(position, velocity)


_RKDP_A = (
    (1.0 / 5.0,),
    (3.0 / 40.0, 9.0 / 40.0),
    (44.0 / 45.0, -56.0 / 15.0, 32.0 / 9.0),
    (19372.0 / 6561.0, -25360.0 / 2187.0, 64448.0 / 6561.0, -212.0 / 729.0),
    (9017.0 / 3168.0, -355.0 / 33.0, 46732.0 / 5247.0, 49.0 / 176.0, -5103.0 / 18656.0),
    (35.0 / 384.0, 0.0, 500.0 / 1113.0, 125.0 / 192.0, -2187.0 / 6784.0, 11.0 / 84.0),
)
_RKDP_B1 = (35.0 / 384.0, 0.0, 500.0 / 1113.0, 125.0 / 192.0, -2187.0 / 6784.0, 11.0 / 84.0, 0.0)
_RKDP_B2 = (
    5179.0 / 57600.0, 0.0, 7571.0 / 16695.0, 393.0 / 640.0,
    -92097.0 / 339200.0, 187.0 / 2100.0, 1.0 / 40.0,
)


def _rkdp(f: Callable[[_Vector, float], _Vector], x: _Vector, u: float,
          dt: float, max_error: float) -> _Vector:
    """Integrate dx/dt = f(x, u) over ``dt`` with adaptive Dormand–Prince steps."""
    elapsed = 0.0
    h = dt
    while elapsed < dt:
        while True:
            h = min(h, dt - elapsed)
            slopes = [f(x, u)]
            for row in _RKDP_A:
                slopes.append(f(x + h * sum(c * k for c, k in zip(row, slopes)), u))
            # The last tableau row equals the fifth-order weights, so the final
            # stage was evaluated at the new state.
            new_x = x + h * sum(c * k for c, k in zip(_RKDP_A[-1], slopes))
            error = float(np.linalg.norm(
                h * sum((p - q) * k for p, q, k in zip(_RKDP_B1, _RKDP_B2, slopes))
            ))
            step = h
            if error == 0.0:
                h = dt - elapsed
            else:
                h *= 0.9 * (max_error / error) ** 0.2
            if error <= max_error:
                break
        elapsed += step
        x = new_x
    return x


class ArmSim:
    """A single-jointed arm obeying V = Ks sgn(v) + Kv v + Ka a + Kg cos(θ + offset)."""

    def __init__(self, ks: float, kv: float, ka: float, kg: float, offset: float = 0.0,
                 initial_position: float = 0.0, initial_velocity: float = 0.0) -> None:
        self._a = -kv / ka
        self._b = 1.0 / ka
        self._c = -ks / ka
        self._d = -kg / ka
        self._offset = offset
        self.reset(initial_position, initial_velocity)

    @property
    def position(self) -> float:
        return float(self._x[0])

    @property
    def velocity(self) -> float:
        return float(self._x[1])

    def _accel(self, position: float, velocity: float, voltage: float) -> float:
        return (
            self._a * velocity
            + self._b * voltage
            + self._c * float(np.sign(velocity))
            + self._d * math.cos(position + self._offset)
        )

    def update(self, voltage: float, dt: float) -> None:
        """Advance the model by ``dt`` seconds with ``voltage`` applied."""

        def dynamics(x: _Vector, u: float) -> _Vector:
            return np.array([x[1], self._accel(x[0], x[1], u)])

        # A loose tolerance keeps ill-conditioned data from shrinking the step
        # size without bound.
        self._x = _rkdp(dynamics, self._x, voltage, dt, 0.25)

    def get_acceleration(self, voltage: float) -> float:
        """Return the acceleration produced by ``voltage`` in the current state."""
        return self._accel(self.position, self.velocity, voltage)

    def reset(self, position: float, velocity: float) -> None:
        """Set the state to the given position and velocity."""
        self._x = np.array([position, velocity], dtype=float)