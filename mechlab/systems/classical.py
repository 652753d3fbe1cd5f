"""Low-dimensional classical mechanics systems."""

import math
from typing import Dict

import numpy as np

from ..grid import finite_or
from .base import System


def _oscillator_rhs(t, y, p):
    x, v = y
    return np.array([v, -(p["k"] / p["m"]) * x])


def _oscillator_energy(y, p):
    x, v = y
    return 0.5 * p["m"] * v * v + 0.5 * p["k"] * x * x


OSCILLATOR = System(
    id="oscillator",
    name="Harmonic Oscillator",
    params={"m": 1.0, "k": 1.0},
    initial_state=lambda p: np.array([1.0, 0.0]),
    rhs=_oscillator_rhs,
    energy=_oscillator_energy,
    supported_integrators=("rk4", "verlet"),
    state_names=("x", "v"),
    defaults={"dt": 0.01, "duration": 20.0},
)


def _pendulum_rhs(t, y, p):
    theta, omega = y
    return np.array([omega, -(p["g"] / p["l"]) * math.sin(theta)])


def _pendulum_energy(y, p):
    theta, omega = y
    g, l = p["g"], p["l"]
    return 0.5 * l * l * omega * omega + g * l * (1 - math.cos(theta))


def _pendulum_derived(y, p):
    theta = y[0]
    return {"bobX": p["l"] * math.sin(theta), "bobY": p["l"] * math.cos(theta)}


PENDULUM = System(
    id="pendulum",
    name="Pendulum",
    params={"g": 9.81, "l": 1.0},
    initial_state=lambda p: np.array([1.0, 0.0]),
    rhs=_pendulum_rhs,
    energy=_pendulum_energy,
    derived=_pendulum_derived,
    supported_integrators=("rk4", "verlet"),
    state_names=("theta", "omega"),
    defaults={"dt": 0.01, "duration": 20.0},
)


def _double_pendulum_rhs(t, y, p):
    theta1, omega1, theta2, omega2 = y
    m1, m2, l1, l2, g = p["m1"], p["m2"], p["l1"], p["l2"], p["g"]
    if l1 == 0 or l2 == 0:
        return np.array([omega1, 0.0, omega2, 0.0])

    delta = theta1 - theta2
    sin_d, cos_d = math.sin(delta), math.cos(delta)
    denom = 2 * m1 + m2 - m2 * math.cos(2 * delta)
    if abs(denom) < 1e-9:
        return np.array([omega1, 0.0, omega2, 0.0])

    omega1_dot = (
        -g * (2 * m1 + m2) * math.sin(theta1)
        - m2 * g * math.sin(theta1 - 2 * theta2)
        - 2 * sin_d * m2 * (omega2 * omega2 * l2 + omega1 * omega1 * l1 * cos_d)
    ) / (l1 * denom)
    omega2_dot = (
        2 * sin_d
        * (omega1 * omega1 * l1 * (m1 + m2) + g * (m1 + m2) * math.cos(theta1) + omega2 * omega2 * l2 * m2 * cos_d)
    ) / (l2 * denom)
    return np.array([omega1, omega1_dot, omega2, omega2_dot])


def _double_pendulum_energy(y, p):
    theta1, omega1, theta2, omega2 = y
    m1, m2, l1, l2, g = p["m1"], p["m2"], p["l1"], p["l2"], p["g"]
    kinetic = 0.5 * m1 * l1 * l1 * omega1 * omega1 + 0.5 * m2 * (
        l1 * l1 * omega1 * omega1
        + l2 * l2 * omega2 * omega2
        + 2 * l1 * l2 * omega1 * omega2 * math.cos(theta1 - theta2)
    )
    potential = -(m1 + m2) * g * l1 * math.cos(theta1) - m2 * g * l2 * math.cos(theta2)
    return kinetic + potential


def _double_pendulum_derived(y, p):
    theta1, theta2 = y[0], y[2]
    x1 = p["l1"] * math.sin(theta1)
    y1 = p["l1"] * math.cos(theta1)
    return {
        "bob1X": x1,
        "bob1Y": y1,
        "bob2X": x1 + p["l2"] * math.sin(theta2),
        "bob2Y": y1 + p["l2"] * math.cos(theta2),
    }


# state is interleaved [theta1, omega1, theta2, omega2], so no Verlet split
DOUBLE_PENDULUM = System(
    id="doublependulum",
    name="Double Pendulum",
    params={"m1": 1.0, "m2": 1.0, "l1": 1.0, "l2": 1.0, "g": 9.81},
    initial_state=lambda p: np.array([1.2, 0.0, 0.8, 0.0]),
    rhs=_double_pendulum_rhs,
    energy=_double_pendulum_energy,
    derived=_double_pendulum_derived,
    state_names=("theta1", "omega1", "theta2", "omega2"),
    defaults={"dt": 0.005, "duration": 20.0},
)


def _orbit_rhs(t, y, p):
    x, y_pos, vx, vy = y
    r2 = x * x + y_pos * y_pos
    r = math.sqrt(r2)
    inv_r3 = 0.0 if r == 0 else 1.0 / (r2 * r)
    return np.array([vx, vy, -p["mu"] * x * inv_r3, -p["mu"] * y_pos * inv_r3])


def _orbit_energy(y, p):
    x, y_pos, vx, vy = y
    r = math.hypot(x, y_pos)
    if r == 0:
        return math.inf
    return 0.5 * (vx * vx + vy * vy) - p["mu"] / r


def _orbit_derived(y, p):
    x, y_pos, vx, vy = y
    return {"r": math.hypot(x, y_pos), "angularMomentum": x * vy - y_pos * vx}


ORBIT = System(
    id="orbit",
    name="Orbiting Satellite",
    params={"mu": 1.0},
    initial_state=lambda p: np.array([1.0, 0.0, 0.0, 1.0]),
    rhs=_orbit_rhs,
    energy=_orbit_energy,
    derived=_orbit_derived,
    supported_integrators=("rk4", "verlet"),
    state_names=("x", "y", "vx", "vy"),
    defaults={"dt": 0.01, "duration": 40.0},
)


def _projectile_rhs(t, y, p):
    return np.array([y[2], y[3], 0.0, -p["g"]])


PROJECTILE = System(
    id="projectile",
    name="Projectile",
    params={"g": 9.81},
    initial_state=lambda p: np.array([0.0, 0.0, 5.0, 10.0]),
    rhs=_projectile_rhs,
    state_names=("x", "y", "vx", "vy"),
    defaults={"dt": 0.01, "duration": 3.0},
)


def _driven_coeffs(p) -> Dict[str, float]:
    return {
        "m": max(1e-6, finite_or(p.get("m"), 1.0)),
        "k": max(0.0, finite_or(p.get("k"), 1.0)),
        "c": max(0.0, finite_or(p.get("c"), 0.2)),
        "F0": finite_or(p.get("F0"), 0.8),
        "omegaDrive": max(0.0, finite_or(p.get("omegaDrive"), 1.0)),
        "phiDrive": finite_or(p.get("phiDrive"), 0.0),
    }


def _driven_rhs(t, y, p):
    c = _driven_coeffs(p)
    x = finite_or(y[0], 0.0)
    v = finite_or(y[1], 0.0)
    drive = c["F0"] * math.cos(c["omegaDrive"] * t + c["phiDrive"])
    return np.array([v, (drive - c["c"] * v - c["k"] * x) / c["m"]])


def _driven_energy(y, p):
    c = _driven_coeffs(p)
    x = finite_or(y[0], 0.0)
    v = finite_or(y[1], 0.0)
    return 0.5 * c["m"] * v * v + 0.5 * c["k"] * x * x


def _driven_derived(y, p):
    c = _driven_coeffs(p)
    x = finite_or(y[0], 0.0)
    v = finite_or(y[1], 0.0)
    return {"speed": abs(v), "dampingPower": c["c"] * v * v, "displacementAbs": abs(x)}


DRIVEN_DAMPED_OSCILLATOR = System(
    id="drivendampedoscillator",
    name="Driven Damped Oscillator",
    params={"m": 1.0, "k": 1.0, "c": 0.2, "F0": 0.8, "omegaDrive": 1.0, "phiDrive": 0.0},
    initial_state=lambda p: np.array([0.0, 0.0]),
    rhs=_driven_rhs,
    energy=_driven_energy,
    derived=_driven_derived,
    supported_integrators=("rk4",),
    state_names=("x", "v"),
    defaults={"dt": 0.01, "duration": 40.0},
)



def _cart_pole_rhs(t, y, p):
    # theta = 0 is the upright pole; frictionless point-mass pole
    x, xdot, theta, thetadot = y
    m_cart, m_pole, l, g, u = p["mCart"], p["mPole"], p["l"], p["g"], p["u"]
    sin_t, cos_t = math.sin(theta), math.cos(theta)
    denom = m_cart + m_pole * sin_t * sin_t
    if denom == 0 or l == 0:
        return np.array([xdot, 0.0, thetadot, 0.0])

    xddot = (u + m_pole * sin_t * (l * thetadot * thetadot - g * cos_t)) / denom
    thetaddot = (
        -u * cos_t - m_pole * l * thetadot * thetadot * sin_t * cos_t + (m_cart + m_pole) * g * sin_t
    ) / (l * denom)
    return np.array([xdot, xddot, thetadot, thetaddot])


def _cart_pole_energy(y, p):
    _, xdot, theta, thetadot = y
    m_pole, l = p["mPole"], p["l"]
    vx_pole = xdot + l * thetadot * math.cos(theta)
    vy_pole = l * thetadot * math.sin(theta)
    kinetic = 0.5 * p["mCart"] * xdot * xdot + 0.5 * m_pole * (vx_pole * vx_pole + vy_pole * vy_pole)
    return kinetic + m_pole * p["g"] * l * math.cos(theta)


def _cart_pole_derived(y, p):
    x, theta = y[0], y[2]
    return {"cartX": x, "bobX": x + p["l"] * math.sin(theta), "bobY": -p["l"] * math.cos(theta)}


# interleaved state like the double pendulum, so RK4 only
CART_POLE = System(
    id="cartpole",
    name="Cart-Pole",
    params={"mCart": 1.0, "mPole": 0.15, "l": 0.7, "g": 9.81, "u": 0.0},
    initial_state=lambda p: np.array([0.0, 0.0, 0.1, 0.0]),
    rhs=_cart_pole_rhs,
    energy=_cart_pole_energy,
    derived=_cart_pole_derived,
    state_names=("x", "xdot", "theta", "thetadot"),
    defaults={"dt": 0.005, "duration": 12.0},
)


SYSTEMS = [OSCILLATOR, PENDULUM, DOUBLE_PENDULUM, ORBIT, PROJECTILE, DRIVEN_DAMPED_OSCILLATOR, CART_POLE]
