"""
Brownian motion, classical and quantum.

``brownian`` is an overdamped 2D particle driven by seeded white noise. It is
stochastic, so it overrides ``simulate`` with an Euler-Maruyama stepper; its
``rhs`` is the deterministic drift only.

``quantumbrownian`` is a harmonic oscillator coupled to a high-temperature
bath, tracked through its Gaussian moments: the means and the covariance
matrix ``[[Vxx, Vxp], [Vxp, Vpp]]``.
"""

import math
from dataclasses import dataclass
from typing import Dict

import numpy as np

from ..grid import finite_or
from .base import System, Trajectory


# -------------------------
# Classical 2D diffusion
# -------------------------
@dataclass
class BrownianConfig:
    x0: float
    y0: float
    diffusion: float
    drift_x: float
    drift_y: float
    trap_k: float
    seed: int


def brownian_config(p) -> BrownianConfig:
    return BrownianConfig(
        x0=finite_or(p.get("x0"), 0.0),
        y0=finite_or(p.get("y0"), 0.0),
        diffusion=max(0.0, finite_or(p.get("D"), 0.22)),
        drift_x=finite_or(p.get("driftX"), 0.0),
        drift_y=finite_or(p.get("driftY"), 0.0),
        trap_k=max(0.0, finite_or(p.get("trapK"), 0.0)),
        seed=int(round(finite_or(p.get("seed"), 7))),
    )


def brownian_initial_state(p) -> np.ndarray:
    cfg = brownian_config(p)
    return np.array([cfg.x0, cfg.y0, 0.0])


def brownian_rhs(t, y, p):
    cfg = brownian_config(p)
    return np.array([cfg.drift_x - cfg.trap_k * y[0], cfg.drift_y - cfg.trap_k * y[1], 1.0])


def simulate_brownian(t0: float, y0, dt: float, steps: int, params: Dict[str, float]) -> Trajectory:
    """
    Euler-Maruyama on dX = (drift - k X) dt + sqrt(2 D) dW.

    The state is ``[x, y, elapsed]``. Missing or non-finite entries of ``y0``
    fall back to ``(x0, y0, t0)``. The same seed always reproduces the same
    path.
    """
    cfg = brownian_config(params)
    start = np.asarray(y0, dtype=np.float64).reshape(-1)
    fallback = (cfg.x0, cfg.y0, t0)
    state = np.array([
        start[i] if i < start.shape[0] and math.isfinite(start[i]) else fallback[i] for i in range(3)
    ])
    dt = max(1e-9, float(dt))
    steps = int(steps)

    noise = np.random.default_rng(abs(cfg.seed)).standard_normal((steps, 2)) * math.sqrt(2 * cfg.diffusion * dt)
    drift = np.array([cfg.drift_x, cfg.drift_y])
    frames = np.empty((steps + 1, 3))
    frames[0] = state
    for k in range(steps):
        xy = frames[k, :2]
        frames[k + 1, :2] = xy + (drift - cfg.trap_k * xy) * dt + noise[k]
        frames[k + 1, 2] = frames[k, 2] + dt
    return Trajectory(t=t0 + dt * np.arange(steps + 1, dtype=np.float64), y=frames)


def brownian_observables(y, p):
    x, y_pos, elapsed = y[0], y[1], y[2]
    cfg = brownian_config(p)
    r2 = x * x + y_pos * y_pos
    return {
        "radius": math.sqrt(max(0.0, r2)),
        "r2": r2,
        "msdTheory": 4 * cfg.diffusion * max(0.0, elapsed),
        "driftMag": math.hypot(cfg.drift_x, cfg.drift_y),
        "timeState": elapsed,
    }


BROWNIAN = System(
    id="brownian",
    name="Brownian Motion (2D)",
    params={"x0": 0.0, "y0": 0.0, "D": 0.22, "driftX": 0.0, "driftY": 0.0, "trapK": 0.0, "seed": 7},
    initial_state=brownian_initial_state,
    rhs=brownian_rhs,
    derived=brownian_observables,
    supported_integrators=("rk4",),
    simulate=simulate_brownian,
    state_names=("x", "y", "t"),
    defaults={"dt": 0.02, "duration": 24.0},
)


# -------------------------
# Quantum Brownian oscillator
# -------------------------
@dataclass
class BathCoefficients:
    m: float
    omega: float
    gamma: float
    kT: float
    hbar: float

    @property
    def dpp(self) -> float:
        """Momentum diffusion from bath kicks."""
        return self.gamma * self.m * self.kT

    @property
    def dxx(self) -> float:
        """Small position diffusion that keeps the evolution completely positive."""
        return self.gamma * self.hbar * self.hbar / (16 * self.m * self.kT)


def bath_coefficients(p) -> BathCoefficients:
    return BathCoefficients(
        m=max(1e-6, finite_or(p.get("m"), 1.0)),
        omega=max(1e-6, finite_or(p.get("omega"), 1.0)),
        gamma=max(0.0, finite_or(p.get("gamma"), 0.18)),
        kT=max(1e-4, finite_or(p.get("kT"), 0.6)),
        hbar=max(1e-6, finite_or(p.get("hbar"), 1.0)),
    )


def ground_state(p, x_mean: float = 0.8, p_mean: float = 0.0) -> np.ndarray:
    """Coherent state: minimum-uncertainty covariances of the bare oscillator."""
    c = bath_coefficients(p)
    return np.array([x_mean, p_mean, c.hbar / (2 * c.m * c.omega), c.hbar * c.m * c.omega / 2, 0.0])


def quantum_brownian_rhs(t, y, p):
    c = bath_coefficients(p)
    x_mean, p_mean = y[0], y[1]
    vxx, vpp, vxp = (finite_or(v, 0.0) for v in y[2:5])
    w2 = c.omega * c.omega
    return np.array([
        p_mean / c.m,
        -c.m * w2 * x_mean - c.gamma * p_mean,
        2 * vxp / c.m + 2 * c.dxx,
        -2 * c.m * w2 * vxp - 2 * c.gamma * vpp + 2 * c.dpp,
        vpp / c.m - c.m * w2 * vxx - c.gamma * vxp,
    ])


def _variances(y):
    return max(0.0, finite_or(y[2], 0.0)), max(0.0, finite_or(y[3], 0.0)), finite_or(y[4], 0.0)


def quantum_brownian_energy(y, p) -> float:
    c = bath_coefficients(p)
    vxx, vpp, _ = _variances(y)
    w2 = c.omega * c.omega
    mean_part = y[1] * y[1] / (2 * c.m) + 0.5 * c.m * w2 * y[0] * y[0]
    return float(mean_part + vpp / (2 * c.m) + 0.5 * c.m * w2 * vxx)


def quantum_brownian_observables(y, p):
    c = bath_coefficients(p)
    vxx, vpp, vxp = _variances(y)
    det_v = max(0.0, vxx * vpp - vxp * vxp)
    return {
        "xMean": float(y[0]),
        "pMean": float(y[1]),
        "sigmaX": math.sqrt(vxx),
        "sigmaP": math.sqrt(vpp),
        "detV": det_v,
        "purity": min(1.0, c.hbar / (2 * math.sqrt(max(det_v, 1e-12)))),
        "uncertaintyRatio": det_v / max(c.hbar * c.hbar / 4, 1e-12),
        "thermalVxx": c.kT / (c.m * c.omega * c.omega),
        "thermalVpp": c.m * c.kT,
    }


QUANTUM_BROWNIAN = System(
    id="quantumbrownian",
    name="Quantum Brownian Oscillator",
    params={"m": 1.0, "omega": 1.0, "gamma": 0.18, "kT": 0.6, "hbar": 1.0},
    initial_state=ground_state,
    rhs=quantum_brownian_rhs,
    energy=quantum_brownian_energy,
    derived=quantum_brownian_observables,
    supported_integrators=("rk4",),
    state_names=("xMean", "pMean", "Vxx", "Vpp", "Vxp"),
    defaults={"dt": 0.01, "duration": 24.0},
)
