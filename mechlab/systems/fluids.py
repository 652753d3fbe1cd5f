"""Particles carried by or falling through a fluid."""

import math

import numpy as np

from .base import System

TWO_PI = 2 * math.pi


# -------------------------
# Passive tracer in a potential flow
# -------------------------
def flow_velocity(x: float, y: float, p):
    """Uniform stream plus a softened point source and point vortex at the origin."""
    r2 = x * x + y * y + max(1e-4, p["coreRadius"]) ** 2
    source = p["sourceStrength"] / TWO_PI / r2
    vortex = p["vortexStrength"] / TWO_PI / r2
    return p["uniformU"] + source * x - vortex * y, p["uniformV"] + source * y + vortex * x


def _tracer_rhs(t, y, p):
    return np.array(flow_velocity(y[0], y[1], p))


def _tracer_derived(y, p):
    u, v = flow_velocity(y[0], y[1], p)
    return {"speed": math.hypot(u, v), "u": u, "v": v}


FLOW_FIELD = System(
    id="flowfield",
    name="Flow Field Tracer",
    params={"uniformU": 0.8, "uniformV": 0.0, "sourceStrength": 0.0, "vortexStrength": 0.0, "coreRadius": 0.12},
    initial_state=lambda p: np.array([-1.5, 0.5]),
    rhs=_tracer_rhs,
    derived=_tracer_derived,
    supported_integrators=("rk4",),
    state_names=("x", "y"),
    defaults={"dt": 0.01, "duration": 16.0},
)


# -------------------------
# Sphere settling under gravity, buoyancy and drag
# -------------------------
def particle_mass(p) -> float:
    radius = max(1e-6, p["radius"])
    return max(1e-6, p["rhoParticle"]) * (4.0 / 3.0) * math.pi * radius ** 3


def stokes_drag(p) -> float:
    """Linear drag coefficient 6 pi mu r."""
    return 6 * math.pi * max(0.0, p["mu"]) * max(1e-6, p["radius"])


def form_drag(p) -> float:
    """Quadratic drag coefficient 0.5 rho_f Cd A."""
    radius = max(1e-6, p["radius"])
    return 0.5 * max(0.0, p["rhoFluid"]) * max(0.0, p["cd"]) * math.pi * radius * radius


def net_gravity(p) -> float:
    """Gravity reduced by buoyancy; negative when the particle is lighter than the fluid."""
    return max(0.0, p["g"]) * (1 - max(0.0, p["rhoFluid"]) / max(1e-6, p["rhoParticle"]))


def _drag(vx: float, vy: float, p):
    speed = math.hypot(vx, vy)
    coefficient = stokes_drag(p) + form_drag(p) * speed
    return -coefficient * vx, -coefficient * vy


def _settling_rhs(t, y, p):
    vx, vy = y[2], y[3]
    mass = particle_mass(p)
    drag_x, drag_y = _drag(vx, vy, p)
    return np.array([vx, vy, drag_x / mass, -net_gravity(p) + drag_y / mass])


def _settling_derived(y, p):
    vx, vy = y[2], y[3]
    mass = particle_mass(p)
    linear = stokes_drag(p)
    g_net = net_gravity(p)
    return {
        "speed": math.hypot(vx, vy),
        "dragMag": math.hypot(*_drag(vx, vy, p)),
        "gNet": g_net,
        "mass": mass,
        "terminalSpeedLinear": g_net * mass / linear if linear > 0 else math.inf,
    }


FLUID_PARTICLE = System(
    id="fluidparticle",
    name="Particle In Fluid",
    params={"g": 9.81, "mu": 0.001, "rhoFluid": 1000.0, "rhoParticle": 1150.0, "radius": 0.01, "cd": 0.47},
    initial_state=lambda p: np.array([0.0, 0.0, 0.2, 0.0]),
    rhs=_settling_rhs,
    derived=_settling_derived,
    supported_integrators=("rk4",),
    state_names=("x", "y", "vx", "vy"),
    defaults={"dt": 0.01, "duration": 12.0},
)
