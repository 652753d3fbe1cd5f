"""Particle of mass m in a user-defined potential V(x)."""

import numpy as np

from ..expression import DEFAULT_POTENTIAL_EXPRESSION, Potential, compile_potential
from .base import Context, System


def _mass(p) -> float:
    return max(1e-8, p["m"])


def _grad_step(p) -> float:
    return max(1e-6, p["gradStep"])


def build(potential: Potential) -> System:
    """Bind the derivative, energy and diagnostics to one compiled V(x)."""

    def rhs(t, y, p):
        x, v = y
        return np.array([v, -potential.gradient(x, _grad_step(p)) / _mass(p)])

    def energy(y, p):
        x, v = y
        return 0.5 * _mass(p) * v * v + potential(x)

    def derived(y, p):
        x, v = y
        return {
            "potential": potential(x),
            "force": -potential.gradient(x, _grad_step(p)),
            "kinetic": 0.5 * _mass(p) * v * v,
        }

    return System(
        id="potential1d",
        name="1D Potential V(x)",
        params={"m": 1.0, "gradStep": 0.001},
        initial_state=lambda p: np.array([1.0, 0.0]),
        rhs=rhs,
        energy=energy,
        derived=derived,
        supported_integrators=("rk4", "verlet"),
        bind=bind,
        state_names=("x", "v"),
        defaults={"dt": 0.01, "duration": 20.0},
    )


def bind(context: Context) -> System:
    return build(compile_potential(context.expression or DEFAULT_POTENTIAL_EXPRESSION))


POTENTIAL_1D = build(compile_potential(DEFAULT_POTENTIAL_EXPRESSION))
