"""Classical 1+1D scalar phi^4 field on a lattice (Klein-Gordon with quartic self-coupling)."""

import math
from dataclasses import dataclass

import numpy as np

from ..grid import Grid1D, clamp, domain, finite_or, laplacian_1d, resolve_points, split_complex
from .base import System, cached_config

PARAMS = {
    "gridPoints": 96,
    "xMin": -10.0,
    "xMax": 10.0,
    "mass": 1.0,
    "lambda": 0.08,
    "damping": 0.0,
    "periodic": 1.0,
    "packetCenter": -3.0,
    "packetWidth": 1.1,
    "packetAmp": 0.8,
    "packetK": 1.4,
    "packetPiScale": 0.0,
}


@dataclass
class QftLatticeConfig:
    grid: Grid1D
    mass: float
    coupling: float
    damping: float
    periodic: bool
    packet_center: float
    packet_width: float
    packet_amp: float
    packet_k: float
    packet_pi_scale: float


@cached_config
def qft_lattice_config(p, state_length=None) -> QftLatticeConfig:
    x_min, x_max = domain(p, "xMin", "xMax", -10.0, 10.0)
    return QftLatticeConfig(
        grid=Grid1D(resolve_points(p, "gridPoints", 96, 24, 256, state_length), x_min, x_max),
        mass=max(1e-8, finite_or(p.get("mass"), 1.0)),
        coupling=max(0.0, finite_or(p.get("lambda"), 0.08)),
        damping=max(0.0, finite_or(p.get("damping"), 0.0)),
        periodic=clamp(finite_or(p.get("periodic"), 1.0), 0.0, 1.0) >= 0.5,
        packet_center=finite_or(p.get("packetCenter"), -3.0),
        packet_width=max(0.08, finite_or(p.get("packetWidth"), 1.1)),
        packet_amp=finite_or(p.get("packetAmp"), 0.8),
        packet_k=finite_or(p.get("packetK"), 1.4),
        packet_pi_scale=finite_or(p.get("packetPiScale"), 0.0),
    )


def initial_state(p) -> np.ndarray:
    cfg = qft_lattice_config(p)
    offset = cfg.grid.x - cfg.packet_center
    z = offset / cfg.packet_width
    envelope = cfg.packet_amp * np.exp(-0.5 * z * z)
    phi = envelope * np.cos(cfg.packet_k * offset)
    pi = cfg.packet_pi_scale * envelope * np.sin(cfg.packet_k * offset)
    return np.concatenate([phi, pi])


def rhs(t, y, p):
    cfg = qft_lattice_config(p, len(y))
    phi, pi = split_complex(y, cfg.grid.n, "QFT lattice")
    d_pi = (
        laplacian_1d(phi, cfg.grid.dx, cfg.periodic)
        - cfg.mass * cfg.mass * phi
        - cfg.coupling * phi ** 3
        - cfg.damping * pi
    )
    return np.concatenate([pi, d_pi])


def energy(y, p) -> float:
    cfg = qft_lattice_config(p, len(y))
    phi, pi = split_complex(y, cfg.grid.n, "QFT lattice")
    dx = cfg.grid.dx
    forward = np.roll(phi, -1) if cfg.periodic else np.append(phi[1:], 0.0)
    grad = (forward - phi) / dx
    density = 0.5 * pi * pi + 0.5 * grad * grad + 0.5 * cfg.mass ** 2 * phi * phi + 0.25 * cfg.coupling * phi ** 4
    return float(np.sum(density) * dx)


def observables(y, p):
    cfg = qft_lattice_config(p, len(y))
    phi, pi = split_complex(y, cfg.grid.n, "QFT lattice")
    dx = cfg.grid.dx
    center = cfg.grid.n // 2
    return {
        "phiCenter": float(phi[center]),
        "piCenter": float(pi[center]),
        "peakAbsPhi": float(np.max(np.abs(phi))),
        "fieldL2": math.sqrt(float(np.sum(phi * phi) * dx)),
        "momentumL2": math.sqrt(float(np.sum(pi * pi) * dx)),
        "spatialMean": float(np.sum(phi) * dx) / (cfg.grid.x_max - cfg.grid.x_min),
    }


QFT_LATTICE = System(
    id="qftlattice",
    name="QFT Lattice (1+1D Scalar Field)",
    params=dict(PARAMS),
    initial_state=initial_state,
    rhs=rhs,
    energy=energy,
    derived=observables,
    supported_integrators=("rk4",),
    defaults={"dt": 0.01, "duration": 16.0},
)
