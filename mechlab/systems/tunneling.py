"""Gaussian wavepacket on a square single or double (resonant) barrier."""

from dataclasses import dataclass
from typing import List, Tuple

import numpy as np

from ..grid import (
    Grid1D,
    absorber_1d,
    clamp,
    domain,
    finite_or,
    gaussian_packet,
    kinetic_energy_1d,
    laplacian_1d,
    normalize,
    pack_complex,
    probability_moments,
    resolve_points,
    schrodinger_rhs,
    split_complex,
)
from ..transfer_matrix import BarrierStack, barrier_stack
from .base import System, cached_config

PARAMS = {
    "m": 1.0,
    "hbar": 1.0,
    "gridPoints": 176,
    "xMin": -16.0,
    "xMax": 16.0,
    "packetX0": -8.0,
    "packetSigma": 1.15,
    "packetK0": 3.32,
    "barrierHeight": 8.0,
    "barrierWidth": 0.9,
    "wellWidth": 3.2,
    "doubleBarrier": 1.0,
    "absorberStrength": 1.4,
    "absorberFraction": 0.12,
    "scanEmin": 0.08,
    "scanEmax": 7.2,
    "scanPoints": 220,
}


@dataclass
class TunnelingConfig:
    grid: Grid1D
    stack: BarrierStack
    packet_x0: float
    packet_sigma: float
    packet_k0: float
    segments: List[Tuple[float, float]]
    threshold: float
    potential: np.ndarray
    gamma: np.ndarray


def barrier_geometry(stack: BarrierStack) -> Tuple[List[Tuple[float, float]], float]:
    """Barrier intervals and the |x| beyond which probability counts as reflected/transmitted."""
    if stack.double_barrier:
        inner = 0.5 * stack.well_width
        outer = inner + stack.barrier_width
        return [(-outer, -inner), (inner, outer)], outer
    half = 0.5 * stack.barrier_width
    return [(-half, half)], half


@cached_config
def tunneling_config(p, state_length=None) -> TunnelingConfig:
    x_min, x_max = domain(p, "xMin", "xMax", -14.0, 14.0)
    grid = Grid1D(resolve_points(p, "gridPoints", 160, 64, 420, state_length), x_min, x_max)
    stack = barrier_stack(p)
    segments, threshold = barrier_geometry(stack)

    potential = np.zeros_like(grid.x)
    for lo, hi in segments:
        potential[(grid.x >= lo) & (grid.x <= hi)] = stack.barrier_height

    return TunnelingConfig(
        grid=grid,
        stack=stack,
        packet_x0=finite_or(p.get("packetX0"), -7.0),
        packet_sigma=max(0.05, finite_or(p.get("packetSigma"), 0.85)),
        packet_k0=finite_or(p.get("packetK0"), 3.0),
        segments=segments,
        threshold=threshold,
        potential=potential,
        gamma=absorber_1d(
            grid.x,
            x_min,
            x_max,
            clamp(finite_or(p.get("absorberFraction"), 0.12), 0.0, 0.45),
            max(0.0, finite_or(p.get("absorberStrength"), 1.2)),
        ),
    )


def initial_state(p) -> np.ndarray:
    cfg = tunneling_config(p)
    re, im = gaussian_packet(cfg.grid.x, cfg.packet_x0, cfg.packet_sigma, cfg.packet_k0)
    return pack_complex(*normalize(re, im, cfg.grid.dx))


def rhs(t, y, p):
    cfg = tunneling_config(p, len(y))
    re, im = split_complex(y, cfg.grid.n, "Tunneling")
    dx = cfg.grid.dx
    return schrodinger_rhs(
        re, im, laplacian_1d(re, dx), laplacian_1d(im, dx), cfg.potential, cfg.stack.hbar, cfg.stack.m, cfg.gamma
    )


def energy(y, p) -> float:
    cfg = tunneling_config(p, len(y))
    re, im = split_complex(y, cfg.grid.n, "Tunneling")
    dx = cfg.grid.dx
    kinetic = kinetic_energy_1d(re, im, dx, cfg.stack.hbar, cfg.stack.m)
    return kinetic + float(np.sum(cfg.potential * (re * re + im * im)) * dx)


def observables(y, p):
    cfg = tunneling_config(p, len(y))
    re, im = split_complex(y, cfg.grid.n, "Tunneling")
    x, dx = cfg.grid.x, cfg.grid.dx
    density = re * re + im * im
    norm, mean, spread, norm_safe = probability_moments(x, density, dx)

    reflection = float(np.sum(density[x < -cfg.threshold]) * dx)
    transmission = float(np.sum(density[x > cfg.threshold]) * dx)
    stack = cfg.stack
    return {
        "norm": norm,
        "xMean": mean,
        "spread": spread,
        "transmission": transmission / norm_safe,
        "reflection": reflection / norm_safe,
        "barrierOccupancy": (norm - reflection - transmission) / norm_safe,
        "centerDensity": float(density[cfg.grid.nearest(0.0)]),
        "packetEnergy": (stack.hbar * stack.hbar * cfg.packet_k0 * cfg.packet_k0) / (2 * stack.m),
        "barrierThreshold": cfg.threshold,
    }


TUNNELING_1D = System(
    id="tunneling1d",
    name="Quantum Tunneling (Resonant 1D)",
    params=dict(PARAMS),
    initial_state=initial_state,
    rhs=rhs,
    energy=energy,
    derived=observables,
    supported_integrators=("rk4",),
    defaults={"dt": 0.0018, "duration": 8.5},
)
