"""1D Schrodinger wavepacket scattering off a Gaussian barrier (hbar = 1)."""

from dataclasses import dataclass

import numpy as np

from ..grid import (
    Grid1D,
    absorber_1d,
    clamp,
    domain,
    finite_or,
    gaussian_packet,
    gradient_1d,
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
    "gridPoints": 128,
    "xMin": -12.0,
    "xMax": 12.0,
    "packetX0": -5.0,
    "packetSigma": 0.8,
    "packetK0": 3.0,
    "barrierCenter": 0.0,
    "barrierWidth": 0.35,
    "barrierHeight": 4.0,
    "absorberStrength": 1.2,
    "absorberFraction": 0.14,
}


@dataclass
class SchrodingerConfig:
    grid: Grid1D
    m: float
    barrier_center: float
    barrier_width: float
    barrier_height: float
    packet_x0: float
    packet_sigma: float
    packet_k0: float
    potential: np.ndarray
    gamma: np.ndarray


def barrier_potential(x, center: float, width: float, height: float):
    z = (x - center) / width
    return height * np.exp(-0.5 * z * z)


@cached_config
def schrodinger_config(p, state_length=None) -> SchrodingerConfig:
    x_min, x_max = domain(p, "xMin", "xMax", -12.0, 12.0)
    grid = Grid1D(resolve_points(p, "gridPoints", 128, 48, 384, state_length), x_min, x_max)
    center = finite_or(p.get("barrierCenter"), 0.0)
    width = max(0.05, finite_or(p.get("barrierWidth"), 0.35))
    height = finite_or(p.get("barrierHeight"), 4.0)
    return SchrodingerConfig(
        grid=grid,
        m=max(1e-8, finite_or(p.get("m"), 1.0)),
        barrier_center=center,
        barrier_width=width,
        barrier_height=height,
        packet_x0=finite_or(p.get("packetX0"), -5.0),
        packet_sigma=max(0.05, finite_or(p.get("packetSigma"), 0.8)),
        packet_k0=finite_or(p.get("packetK0"), 3.0),
        potential=barrier_potential(grid.x, center, width, height),
        gamma=absorber_1d(
            grid.x,
            x_min,
            x_max,
            clamp(finite_or(p.get("absorberFraction"), 0.14), 0.0, 0.45),
            max(0.0, finite_or(p.get("absorberStrength"), 0.0)),
        ),
    )


def initial_state(p) -> np.ndarray:
    cfg = schrodinger_config(p)
    re, im = gaussian_packet(cfg.grid.x, cfg.packet_x0, cfg.packet_sigma, cfg.packet_k0)
    return pack_complex(*normalize(re, im, cfg.grid.dx))


def rhs(t, y, p):
    cfg = schrodinger_config(p, len(y))
    re, im = split_complex(y, cfg.grid.n, "Schrodinger")
    dx = cfg.grid.dx
    return schrodinger_rhs(re, im, laplacian_1d(re, dx), laplacian_1d(im, dx), cfg.potential, 1.0, cfg.m, cfg.gamma)


def energy(y, p) -> float:
    cfg = schrodinger_config(p, len(y))
    re, im = split_complex(y, cfg.grid.n, "Schrodinger")
    dx = cfg.grid.dx
    d_re, d_im = gradient_1d(re, dx), gradient_1d(im, dx)
    kinetic = 0.5 * np.sum(d_re * d_re + d_im * d_im) * dx / cfg.m
    potential = np.sum(cfg.potential * (re * re + im * im)) * dx
    return float(kinetic + potential)


def observables(y, p):
    cfg = schrodinger_config(p, len(y))
    re, im = split_complex(y, cfg.grid.n, "Schrodinger")
    x, dx = cfg.grid.x, cfg.grid.dx
    density = re * re + im * im
    norm, mean, spread, norm_safe = probability_moments(x, density, dx)
    reflection = float(np.sum(density[x < cfg.barrier_center]) * dx)
    return {
        "norm": norm,
        "xMean": mean,
        "spread": spread,
        "reflection": reflection / norm_safe,
        "transmission": (norm - reflection) / norm_safe,
        "peakDensity": float(np.max(density)),
        "barrierLeft": cfg.barrier_center - 0.5 * cfg.barrier_width,
        "barrierRight": cfg.barrier_center + 0.5 * cfg.barrier_width,
    }


SCHRODINGER_1D = System(
    id="schrodinger1d",
    name="1D Schrodinger Wavepacket",
    params=dict(PARAMS),
    initial_state=initial_state,
    rhs=rhs,
    energy=energy,
    derived=observables,
    supported_integrators=("rk4",),
    defaults={"dt": 0.0025, "duration": 5.0},
)
