"""
Point charges in 2D electrostatic fields.

Both systems use the state ``[x, y, vx, vy]`` and a softened Coulomb core
``r^2 -> r^2 + core^2`` so the field stays finite at the origin. The state
splits into positions and velocities, so velocity Verlet is supported.
"""

import math
from dataclasses import dataclass

import numpy as np

from ..grid import finite_or
from .base import System


def coulomb_field(x: float, y: float, strength: float, core: float):
    """Softened field of a point source at the origin: strength * r / (r^2 + core^2)^(3/2)."""
    r2 = x * x + y * y + core * core
    r = math.sqrt(r2)
    inv_r3 = 0.0 if r == 0 else 1.0 / (r2 * r)
    return strength * x * inv_r3, strength * y * inv_r3


def wrap_degrees(angle: float) -> float:
    return (angle + 180.0) % 360.0 - 180.0


# -------------------------
# Charged particle in a uniform field plus a point source
# -------------------------
def _core(p) -> float:
    return max(1e-4, p["coreRadius"])


def electric_field(x: float, y: float, p):
    ex, ey = coulomb_field(x, y, p["sourceStrength"], _core(p))
    return p["ex0"] + ex, p["ey0"] + ey


def electric_potential(x: float, y: float, p) -> float:
    r = math.sqrt(x * x + y * y + _core(p) ** 2)
    return -(p["ex0"] * x + p["ey0"] * y) + p["sourceStrength"] / r


def _charge_to_mass(p) -> float:
    return p["q"] / max(1e-8, p["m"])


def _charged_rhs(t, y, p):
    x, y_pos, vx, vy = y
    ex, ey = electric_field(x, y_pos, p)
    q_over_m = _charge_to_mass(p)
    return np.array([vx, vy, q_over_m * ex, q_over_m * ey])


def _charged_energy(y, p):
    x, y_pos, vx, vy = y
    return 0.5 * max(1e-8, p["m"]) * (vx * vx + vy * vy) + p["q"] * electric_potential(x, y_pos, p)


def _charged_derived(y, p):
    x, y_pos, vx, vy = y
    ex, ey = electric_field(x, y_pos, p)
    q_over_m = _charge_to_mass(p)
    return {
        "ex": ex,
        "ey": ey,
        "fieldMag": math.hypot(ex, ey),
        "speed": math.hypot(vx, vy),
        "ax": q_over_m * ex,
        "ay": q_over_m * ey,
        "phi": electric_potential(x, y_pos, p),
    }


CHARGED_PARTICLE = System(
    id="chargedparticle",
    name="Charged Particle In E-Field",
    params={"q": 1.0, "m": 1.0, "ex0": 0.8, "ey0": 0.0, "sourceStrength": 0.0, "coreRadius": 0.18},
    initial_state=lambda p: np.array([-1.3, 0.2, 1.0, 0.0]),
    rhs=_charged_rhs,
    energy=_charged_energy,
    derived=_charged_derived,
    supported_integrators=("rk4", "verlet"),
    state_names=("x", "y", "vx", "vy"),
    defaults={"dt": 0.01, "duration": 14.0},
)


# -------------------------
# Rutherford scattering off a fixed nucleus
# -------------------------
@dataclass
class ScatteringConfig:
    m: float
    q_proj: float
    q_target: float
    k_c: float
    core: float
    x_start: float
    impact: float
    beam_speed: float

    @property
    def kappa(self) -> float:
        """Coulomb strength k q1 q2; positive is repulsive."""
        return self.k_c * self.q_proj * self.q_target

    @property
    def predicted_angle(self) -> float:
        """Unsoftened Rutherford deflection 2 atan(kappa / (m v^2 b)), in radians."""
        b = self.impact
        if abs(b) < 1e-6:
            b = 1e-6 if b >= 0 else -1e-6
        return 2 * math.atan2(self.kappa, self.m * self.beam_speed * self.beam_speed * b)


def scattering_config(p) -> ScatteringConfig:
    return ScatteringConfig(
        m=max(1e-8, finite_or(p.get("m"), 1.0)),
        q_proj=finite_or(p.get("qProj"), 1.0),
        q_target=finite_or(p.get("qTarget"), 1.0),
        k_c=finite_or(p.get("kC"), 1.0),
        core=max(1e-4, finite_or(p.get("coreRadius"), 0.18)),
        x_start=finite_or(p.get("xStart"), -8.0),
        impact=finite_or(p.get("impactParam"), 1.2),
        beam_speed=max(1e-6, abs(finite_or(p.get("beamSpeed"), 2.4))),
    )


def predicted_scatter_degrees(p) -> float:
    return wrap_degrees(math.degrees(scattering_config(p).predicted_angle))


def _rutherford_initial(p) -> np.ndarray:
    cfg = scattering_config(p)
    return np.array([cfg.x_start, cfg.impact, cfg.beam_speed, 0.0])


def _rutherford_rhs(t, y, p):
    x, y_pos, vx, vy = y
    cfg = scattering_config(p)
    ax, ay = coulomb_field(x, y_pos, cfg.kappa / cfg.m, cfg.core)
    return np.array([vx, vy, ax, ay])


def _rutherford_energy(y, p):
    x, y_pos, vx, vy = y
    cfg = scattering_config(p)
    r = math.sqrt(x * x + y_pos * y_pos + cfg.core * cfg.core)
    return 0.5 * cfg.m * (vx * vx + vy * vy) + cfg.kappa / r


def _rutherford_derived(y, p):
    x, y_pos, vx, vy = y
    cfg = scattering_config(p)
    heading = math.degrees(math.atan2(vy, vx))
    scatter = wrap_degrees(heading)
    predicted = wrap_degrees(math.degrees(cfg.predicted_angle))
    return {
        "r": math.sqrt(x * x + y_pos * y_pos + cfg.core * cfg.core),
        "speed": math.hypot(vx, vy),
        "scatterDeg": scatter,
        "predictedDeg": predicted,
        "angleErrorDeg": wrap_degrees(scatter - predicted),
        "lz": cfg.m * (x * vy - y_pos * vx),
        "impactParam": cfg.impact,
        "kappa": cfg.kappa,
        "headingDeg": heading,
    }


RUTHERFORD = System(
    id="rutherford",
    name="Rutherford Scattering",
    params={
        "m": 1.0,
        "qProj": 1.0,
        "qTarget": 1.0,
        "kC": 1.0,
        "coreRadius": 0.18,
        "xStart": -8.0,
        "impactParam": 1.2,
        "beamSpeed": 2.4,
    },
    initial_state=_rutherford_initial,
    rhs=_rutherford_rhs,
    energy=_rutherford_energy,
    derived=_rutherford_derived,
    supported_integrators=("rk4", "verlet"),
    state_names=("x", "y", "vx", "vy"),
    defaults={"dt": 0.01, "duration": 8.0},
)
