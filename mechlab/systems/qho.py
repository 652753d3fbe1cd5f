"""Superpositions of the three lowest harmonic-oscillator eigenstates."""

import math
from dataclasses import dataclass

import numpy as np

from ..grid import (
    Grid1D,
    domain,
    finite_or,
    gradient_1d,
    kinetic_energy_1d,
    laplacian_1d,
    normalize,
    pack_complex,
    probability_moments,
    resolve_points,
    schrodinger_rhs,
    split_complex,
)
from .base import System, cached_config

PARAMS = {
    "m": 1.0,
    "omega": 1.0,
    "hbar": 1.0,
    "gridPoints": 192,
    "xMin": -8.0,
    "xMax": 8.0,
    "c0": 1.0,
    "c1": 0.8,
    "c2": 0.0,
    "phi1": 0.0,
    "phi2": 0.0,
}


@dataclass
class QhoConfig:
    grid: Grid1D
    m: float
    omega: float
    hbar: float
    coefficients: np.ndarray
    phases: np.ndarray
    potential: np.ndarray

    @property
    def alpha(self) -> float:
        return self.m * self.omega / self.hbar


def eigenfunctions(x: np.ndarray, alpha: float):
    """phi_0, phi_1, phi_2 of the oscillator with alpha = m*omega/hbar."""
    phi0 = (alpha / math.pi) ** 0.25 * np.exp(-0.5 * alpha * x * x)
    phi1 = math.sqrt(2 * alpha) * x * phi0
    phi2 = (2 * alpha * x * x - 1) / math.sqrt(2) * phi0
    return phi0, phi1, phi2


def normalized_coefficients(c0: float, c1: float, c2: float) -> np.ndarray:
    raw = np.array([max(0.0, c0), max(0.0, c1), max(0.0, c2)])
    magnitude = math.hypot(*raw)
    if magnitude <= 1e-12:
        return np.array([1.0, 0.0, 0.0])
    return raw / magnitude


@cached_config
def qho_config(p, state_length=None) -> QhoConfig:
    x_min, x_max = domain(p, "xMin", "xMax", -8.0, 8.0)
    grid = Grid1D(resolve_points(p, "gridPoints", 192, 64, 512, state_length), x_min, x_max)
    m = max(1e-8, finite_or(p.get("m"), 1.0))
    omega = max(1e-8, finite_or(p.get("omega"), 1.0))
    return QhoConfig(
        grid=grid,
        m=m,
        omega=omega,
        hbar=max(1e-8, finite_or(p.get("hbar"), 1.0)),
        coefficients=normalized_coefficients(
            finite_or(p.get("c0"), 1.0), finite_or(p.get("c1"), 0.8), finite_or(p.get("c2"), 0.0)
        ),
        phases=np.array([0.0, finite_or(p.get("phi1"), 0.0), finite_or(p.get("phi2"), 0.0)]),
        potential=0.5 * m * omega * omega * grid.x * grid.x,
    )


def initial_state(p) -> np.ndarray:
    cfg = qho_config(p)
    basis = eigenfunctions(cfg.grid.x, cfg.alpha)
    re = sum(a * math.cos(phase) * phi for a, phase, phi in zip(cfg.coefficients, cfg.phases, basis))
    im = sum(a * math.sin(phase) * phi for a, phase, phi in zip(cfg.coefficients, cfg.phases, basis))
    return pack_complex(*normalize(re, im, cfg.grid.dx))


def rhs(t, y, p):
    cfg = qho_config(p, len(y))
    re, im = split_complex(y, cfg.grid.n, "QHO")
    dx = cfg.grid.dx
    return schrodinger_rhs(re, im, laplacian_1d(re, dx), laplacian_1d(im, dx), cfg.potential, cfg.hbar, cfg.m)


def energy(y, p) -> float:
    cfg = qho_config(p, len(y))
    re, im = split_complex(y, cfg.grid.n, "QHO")
    dx = cfg.grid.dx
    return kinetic_energy_1d(re, im, dx, cfg.hbar, cfg.m) + float(np.sum(cfg.potential * (re * re + im * im)) * dx)


def observables(y, p):
    cfg = qho_config(p, len(y))
    re, im = split_complex(y, cfg.grid.n, "QHO")
    dx = cfg.grid.dx
    density = re * re + im * im
    norm, mean, spread, norm_safe = probability_moments(cfg.grid.x, density, dx)
    current = cfg.hbar * np.sum(re * gradient_1d(im, dx) - im * gradient_1d(re, dx)) * dx
    return {
        "norm": norm,
        "xMean": mean,
        "pMean": float(current) / norm_safe,
        "spread": spread,
        "peakDensity": float(np.max(density)),
    }


QHO_1D = System(
    id="qho1d",
    name="Quantum Harmonic Oscillator (1D)",
    params=dict(PARAMS),
    initial_state=initial_state,
    rhs=rhs,
    energy=energy,
    derived=observables,
    supported_integrators=("rk4",),
    defaults={"dt": 0.0015, "duration": 24.0},
)
