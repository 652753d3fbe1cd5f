"""
Two rigid disks ("proteins") in 2D with one binding patch each.

Each body has position, heading and their rates; the packed state is
``[x1, y1, theta1, x2, y2, theta2, vx1, vy1, omega1, vx2, vy2, omega2]``.
The pair interacts through a soft core repulsion plus a Gaussian attractive
well gated by how well both patches face each other, and both bodies feel
linear and rotational drag from the solvent.
"""

import math
from dataclasses import dataclass
from typing import Dict

import numpy as np

from ..errors import MalformedState
from ..grid import clamp, finite_or
from .base import System

PARAMS = {
    "m1": 1.0,
    "m2": 1.2,
    "I1": 0.35,
    "I2": 0.45,
    "drag1": 1.0,
    "drag2": 1.1,
    "rotDrag1": 1.1,
    "rotDrag2": 1.2,
    "kRep": 36.0,
    "kAttr": 12.0,
    "bindRadius": 1.42,
    "bindWidth": 0.24,
    "kTorque": 11.0,
    "patchSharpness": 3,
    "coreRadius1": 0.70,
    "coreRadius2": 0.76,
}

INITIAL_POSE = {
    "x1": -2.8,
    "y1": 0.85,
    "theta1": 0.15,
    "x2": 2.5,
    "y2": -0.70,
    "theta2": math.pi - 0.2,
    "vx1": 1.9,
    "vy1": -0.05,
    "omega1": 0.0,
    "vx2": -1.3,
    "vy2": 0.14,
    "omega2": 0.0,
}
STATE_NAMES = tuple(INITIAL_POSE)


@dataclass
class PatchyConfig:
    m1: float
    m2: float
    I1: float
    I2: float
    drag1: float
    drag2: float
    rot_drag1: float
    rot_drag2: float
    k_rep: float
    k_attr: float
    bind_radius: float
    bind_width: float
    k_torque: float
    sharpness: int
    core_distance: float


def patchy_config(p) -> PatchyConfig:
    def positive(key, fallback):
        return max(1e-8, finite_or(p.get(key), fallback))

    def non_negative(key, fallback):
        return max(0.0, finite_or(p.get(key), fallback))

    return PatchyConfig(
        m1=positive("m1", 1.0),
        m2=positive("m2", 1.2),
        I1=positive("I1", 0.35),
        I2=positive("I2", 0.45),
        drag1=non_negative("drag1", 1.0),
        drag2=non_negative("drag2", 1.1),
        rot_drag1=non_negative("rotDrag1", 1.1),
        rot_drag2=non_negative("rotDrag2", 1.2),
        k_rep=non_negative("kRep", 36.0),
        k_attr=non_negative("kAttr", 12.0),
        bind_radius=max(0.15, finite_or(p.get("bindRadius"), 1.42)),
        bind_width=max(0.03, finite_or(p.get("bindWidth"), 0.24)),
        k_torque=non_negative("kTorque", 11.0),
        sharpness=int(clamp(round(finite_or(p.get("patchSharpness"), 3)), 1, 8)),
        core_distance=max(0.08, finite_or(p.get("coreRadius1"), 0.70)) + max(0.08, finite_or(p.get("coreRadius2"), 0.76)),
    )


def initial_state(p=None, **overrides) -> np.ndarray:
    pose = dict(INITIAL_POSE)
    pose.update(overrides)
    return np.array([pose[name] for name in STATE_NAMES], dtype=np.float64)


def _unpack(y) -> np.ndarray:
    y = np.asarray(y, dtype=np.float64)
    if y.shape[0] != 12:
        raise MalformedState(f"Patchy-binding state length mismatch: expected 12, got {y.shape[0]}.")
    return y


@dataclass
class PairInteraction:
    distance: float
    r_hat: np.ndarray
    align1: float
    align2: float
    gate: float
    envelope: float
    radial_force: float
    torque1: float
    torque2: float


def interaction(y, cfg: PatchyConfig) -> PairInteraction:
    """Conservative pair force along r_hat (positive pushes the bodies apart) and patch torques."""
    y = _unpack(y)
    rel = y[3:5] - y[0:2]
    distance = float(np.hypot(*rel))
    r_hat = rel / max(1e-9, distance)
    u1 = np.array([math.cos(y[2]), math.sin(y[2])])
    u2 = np.array([math.cos(y[5]), math.sin(y[5])])

    # patch 1 should face +r_hat, patch 2 should face -r_hat
    align1 = max(0.0, float(np.dot(u1, r_hat)))
    align2 = max(0.0, float(np.dot(u2, -r_hat)))
    n = cfg.sharpness
    gate = align1 ** n * align2 ** n
    cross1 = u1[0] * r_hat[1] - u1[1] * r_hat[0]
    cross2 = -(u2[0] * r_hat[1] - u2[1] * r_hat[0])

    z = (distance - cfg.bind_radius) / cfg.bind_width
    envelope = math.exp(-0.5 * z * z)
    repulsive = cfg.k_rep * max(0.0, cfg.core_distance - distance)
    attractive = -cfg.k_attr * gate * (distance - cfg.bind_radius) / (cfg.bind_width * cfg.bind_width) * envelope
    return PairInteraction(
        distance=distance,
        r_hat=r_hat,
        align1=align1,
        align2=align2,
        gate=gate,
        envelope=envelope,
        radial_force=repulsive + attractive,
        torque1=-cfg.k_torque * envelope * max(align2, 1e-6) ** n * cross1,
        torque2=-cfg.k_torque * envelope * max(align1, 1e-6) ** n * cross2,
    )


def rhs(t, y, p):
    cfg = patchy_config(p)
    pair = interaction(y, cfg)
    v1, omega1, v2, omega2 = y[6:8], y[8], y[9:11], y[11]
    force = pair.radial_force * pair.r_hat
    a1 = (-force - cfg.drag1 * v1) / cfg.m1
    a2 = (force - cfg.drag2 * v2) / cfg.m2
    alpha1 = (pair.torque1 - cfg.rot_drag1 * omega1) / cfg.I1
    alpha2 = (pair.torque2 - cfg.rot_drag2 * omega2) / cfg.I2
    return np.array([v1[0], v1[1], omega1, v2[0], v2[1], omega2, a1[0], a1[1], alpha1, a2[0], a2[1], alpha2])


def potential_energy(y, cfg: PatchyConfig) -> float:
    pair = interaction(y, cfg)
    penetration = max(0.0, cfg.core_distance - pair.distance)
    return 0.5 * cfg.k_rep * penetration * penetration - cfg.k_attr * pair.gate * pair.envelope


def energy(y, p) -> float:
    cfg = patchy_config(p)
    y = _unpack(y)
    translational = 0.5 * cfg.m1 * float(np.dot(y[6:8], y[6:8])) + 0.5 * cfg.m2 * float(np.dot(y[9:11], y[9:11]))
    rotational = 0.5 * cfg.I1 * y[8] * y[8] + 0.5 * cfg.I2 * y[11] * y[11]
    return translational + rotational + potential_energy(y, cfg)


def _degrees(angle: float) -> float:
    return (math.degrees(angle) + 180.0) % 360.0 - 180.0


def observables(y, p) -> Dict[str, float]:
    cfg = patchy_config(p)
    y = _unpack(y)
    pair = interaction(y, cfg)
    contact = pair.gate * pair.envelope
    total_mass = cfg.m1 + cfg.m2
    return {
        "distance": pair.distance,
        "relativeSpeed": float(np.hypot(*(y[9:11] - y[6:8]))),
        "contactScore": contact,
        "boundProxy": clamp((contact - 0.18) / 0.62, 0.0, 1.0),
        "align1": pair.align1,
        "align2": pair.align2,
        "theta1Deg": _degrees(y[2]),
        "theta2Deg": _degrees(y[5]),
        "thetaRelDeg": _degrees(y[2] - y[5]),
        "comX": (cfg.m1 * y[0] + cfg.m2 * y[3]) / total_mass,
        "comY": (cfg.m1 * y[1] + cfg.m2 * y[4]) / total_mass,
        "relX": y[3] - y[0],
        "relY": y[4] - y[1],
        "radialForcePair": pair.radial_force,
        "radialEnvelope": pair.envelope,
    }


# drag makes the acceleration velocity dependent: RK4 only
PATCHY_BINDING = System(
    id="patchybinding",
    name="Patchy Protein-Protein Binding",
    params=dict(PARAMS),
    initial_state=initial_state,
    rhs=rhs,
    energy=energy,
    derived=observables,
    supported_integrators=("rk4",),
    state_names=STATE_NAMES,
    defaults={"dt": 0.01, "duration": 10.0},
)
