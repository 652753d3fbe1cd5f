"""
Fixed-step explicit integrators.

Both methods are pure: they take a derivative function ``rhs(t, y, params)``
returning an array the same length as ``y`` and never look at the values they
produce. NaN/Inf coming out of the physics propagate as ordinary data.
"""

from dataclasses import dataclass
from typing import Callable, Dict, Sequence, Union

import numpy as np

from .errors import IntegratorUsageError, MalformedState

Params = Dict[str, float]
Derivative = Callable[[float, np.ndarray, Params], np.ndarray]

INTEGRATORS = ("rk4", "verlet")


@dataclass
class IntegrationResult:
    t: np.ndarray
    y: np.ndarray

    @property
    def steps(self) -> int:
        return len(self.t) - 1


def _as_state(y0: Union[Sequence[float], np.ndarray]) -> np.ndarray:
    return np.array(y0, dtype=np.float64, copy=True).reshape(-1)


def rk4_step(rhs: Derivative, t: float, y: np.ndarray, dt: float, params: Params) -> np.ndarray:
    """Single classical Runge-Kutta 4 step."""
    k1 = np.asarray(rhs(t, y, params), dtype=np.float64)
    k2 = np.asarray(rhs(t + dt / 2, y + (dt / 2) * k1, params), dtype=np.float64)
    k3 = np.asarray(rhs(t + dt / 2, y + (dt / 2) * k2, params), dtype=np.float64)
    k4 = np.asarray(rhs(t + dt, y + dt * k3, params), dtype=np.float64)
    return y + (dt / 6.0) * (k1 + 2 * k2 + 2 * k3 + k4)


def _acceleration(rhs: Derivative, t: float, state: np.ndarray, params: Params, n: int) -> np.ndarray:
    derivative = np.asarray(rhs(t, state, params), dtype=np.float64)
    if derivative.shape[0] != state.shape[0]:
        raise MalformedState("RHS derivative length does not match state length.")
    return derivative[n:]


def verlet_step(rhs: Derivative, t: float, y: np.ndarray, dt: float, params: Params) -> np.ndarray:
    """Velocity Verlet step on y = [q..., v...] (half-kick, drift, half-kick)."""
    if y.shape[0] % 2 != 0:
        raise IntegratorUsageError("Velocity Verlet requires even-length state vector y=[q..., v...].")
    n = y.shape[0] // 2
    q, v = y[:n], y[n:]

    a_now = _acceleration(rhs, t, y, params, n)
    v_half = v + 0.5 * dt * a_now
    q_next = q + dt * v_half

    a_next = _acceleration(rhs, t + dt, np.concatenate([q_next, v_half]), params, n)
    v_next = v_half + 0.5 * dt * a_next
    return np.concatenate([q_next, v_next])


def _run(step_fn, rhs: Derivative, t0: float, y0: np.ndarray, dt: float, steps: int, params: Params) -> IntegrationResult:
    steps = int(steps)
    t = t0 + dt * np.arange(steps + 1, dtype=np.float64)
    y = np.empty((steps + 1, y0.shape[0]), dtype=np.float64)
    y[0] = y0
    for i in range(steps):
        y[i + 1] = step_fn(rhs, float(t[i]), y[i], dt, params)
    return IntegrationResult(t=t, y=y)


def integrate_rk4(rhs: Derivative, t0: float, y0, dt: float, steps: int, params: Params) -> IntegrationResult:
    return _run(rk4_step, rhs, float(t0), _as_state(y0), float(dt), steps, params)


def integrate_velocity_verlet(rhs: Derivative, t0: float, y0, dt: float, steps: int, params: Params) -> IntegrationResult:
    state = _as_state(y0)
    if state.shape[0] % 2 != 0:
        raise IntegratorUsageError("Velocity Verlet requires even-length state vector y=[q..., v...].")
    return _run(verlet_step, rhs, float(t0), state, float(dt), steps, params)


def integrate(kind: str, rhs: Derivative, t0: float, y0, dt: float, steps: int, params: Params) -> IntegrationResult:
    """Dispatch to the integrator named by ``kind``."""
    if kind == "rk4":
        return integrate_rk4(rhs, t0, y0, dt, steps, params)
    if kind == "verlet":
        return integrate_velocity_verlet(rhs, t0, y0, dt, steps, params)
    raise IntegratorUsageError(f"Unknown integrator kind: {kind}")
