"""Hill-type muscle: first-order activation driving a mass on a force-length curve."""

import numpy as np

from ..curves import MuscleCurve, muscle_curve
from .base import Context, System


def _unit(value: float) -> float:
    return max(0.0, min(1.0, value))


def build(curve: MuscleCurve) -> System:
    def forces(y, p):
        l, v, a = y
        a_clamped = _unit(a)
        scale = curve.scale(l)
        active = a_clamped * max(0.0, p["fMax"]) * scale
        passive = max(0.0, p["kPassive"]) * max(0.0, l - p["lSlack"])
        damping = max(0.0, p["damping"]) * v
        return {
            "activationError": _unit(p["u"]) - a_clamped,
            "curveScale": scale,
            "activeForce": active,
            "passiveForce": passive,
            "dampingForce": damping,
            "netForce": p["load"] - active - passive - damping,
        }

    def rhs(t, y, p):
        l, v, a = y
        f = forces(y, p)
        v_dot = f["netForce"] / max(1e-8, p["m"])
        a_dot = (_unit(p["u"]) - _unit(a)) / max(1e-5, p["tau"])
        # hard floor on fibre length while still shortening
        if l <= max(0.2, p["lFloor"]) and v < 0 and v_dot < 0:
            return np.array([0.0, 0.0, a_dot])
        return np.array([v, v_dot, a_dot])

    def energy(y, p):
        l, v = y[0], y[1]
        stretch = max(0.0, l - p["lSlack"])
        return 0.5 * max(1e-8, p["m"]) * v * v + 0.5 * max(0.0, p["kPassive"]) * stretch * stretch - p["load"] * l

    return System(
        id="muscleactivation",
        name="Active Muscle-Spring",
        params={
            "m": 0.8,
            "fMax": 14.0,
            "kPassive": 22.0,
            "lSlack": 1.0,
            "damping": 2.4,
            "load": 0.0,
            "u": 0.65,
            "tau": 0.07,
            "lFloor": 0.5,
        },
        initial_state=lambda p: np.array([1.05, 0.0, 0.05]),
        rhs=rhs,
        energy=energy,
        derived=forces,
        supported_integrators=("rk4",),
        bind=bind,
        state_names=("l", "v", "a"),
        defaults={"dt": 0.005, "duration": 6.0},
    )


def bind(context: Context) -> System:
    return build(muscle_curve(context.muscle_curve))


MUSCLE_ACTIVATION = build(muscle_curve())
