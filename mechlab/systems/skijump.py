"""Skier sliding along a drawn hill profile with kinetic friction."""

import math

import numpy as np

from ..curves import HillProfile, hill_profile
from .base import Context, System


def _gravity(p) -> float:
    return max(1e-9, p["g"])


def build(hill: HillProfile) -> System:
    def tangential_accel(x, v_t, p):
        g = _gravity(p)
        slope = hill.slope(x)
        norm = math.sqrt(1 + slope * slope)
        return (-g * slope) / norm - (max(0.0, p["muK"]) * g * np.sign(v_t)) / norm, norm

    def rhs(t, y, p):
        x, v_t = y
        # the skier stops at either end of the drawn track
        if (x <= hill.x_min and v_t < 0) or (x >= hill.x_max and v_t > 0):
            return np.zeros(2)
        accel, norm = tangential_accel(x, v_t, p)
        return np.array([v_t / norm, accel])

    def energy(y, p):
        x, v_t = y
        mass = max(1e-9, p["m"])
        return 0.5 * mass * v_t * v_t + mass * _gravity(p) * hill.value(x)

    def derived(y, p):
        x, v_t = y
        mass = max(1e-9, p["m"])
        accel, norm = tangential_accel(x, v_t, p)
        normal_load = mass * _gravity(p) / norm
        return {
            "y": hill.value(x),
            "slope": hill.slope(x),
            "normalLoad": normal_load,
            "frictionForce": max(0.0, p["muK"]) * normal_load,
            "tangentialAccel": float(accel),
        }

    return System(
        id="skijump",
        name="Ski Jump With Friction",
        params={"g": 9.81, "m": 75.0, "muK": 0.08},
        initial_state=lambda p: np.array([0.0, 0.0]),
        rhs=rhs,
        energy=energy,
        derived=derived,
        supported_integrators=("rk4",),
        bind=bind,
        state_names=("x", "v_t"),
        defaults={"dt": 0.01, "duration": 14.0},
    )


def bind(context: Context) -> System:
    return build(hill_profile(context.hill_profile))


SKI_JUMP = build(hill_profile())
