"""Wavepacket tunneling back and forth in a symmetric (optionally tilted) double well."""

from dataclasses import dataclass

import numpy as np

from ..grid import (
    Grid1D,
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
from .base import System, cached_config

PARAMS = {
    "m": 1.0,
    "hbar": 1.0,
    "gridPoints": 192,
    "xMin": -8.0,
    "xMax": 8.0,
    "wellSeparation": 4.0,
    "barrierHeight": 3.2,
    "tilt": 0.0,
    "packetSigma": 0.55,
    "packetK0": 0.0,
    "startInRight": 0.0,
}


@dataclass
class DoubleWellConfig:
    grid: Grid1D
    m: float
    hbar: float
    well_separation: float
    barrier_height: float
    tilt: float
    packet_sigma: float
    packet_k0: float
    start_in_right: bool
    potential: np.ndarray

    @property
    def half_separation(self) -> float:
        return 0.5 * self.well_separation


def double_well_potential(x, separation: float, height: float, tilt: float):
    half = 0.5 * max(0.6, separation)
    u = (x * x) / (half * half) - 1.0
    return height * u * u + tilt * x


@cached_config
def double_well_config(p, state_length=None) -> DoubleWellConfig:
    x_min, x_max = domain(p, "xMin", "xMax", -8.0, 8.0)
    grid = Grid1D(resolve_points(p, "gridPoints", 192, 64, 384, state_length), x_min, x_max)
    separation = max(0.6, finite_or(p.get("wellSeparation"), 4.0))
    height = max(0.02, finite_or(p.get("barrierHeight"), 3.2))
    tilt = finite_or(p.get("tilt"), 0.0)
    return DoubleWellConfig(
        grid=grid,
        m=max(1e-8, finite_or(p.get("m"), 1.0)),
        hbar=max(1e-8, finite_or(p.get("hbar"), 1.0)),
        well_separation=separation,
        barrier_height=height,
        tilt=tilt,
        packet_sigma=max(0.06, finite_or(p.get("packetSigma"), 0.55)),
        packet_k0=finite_or(p.get("packetK0"), 0.0),
        start_in_right=clamp(finite_or(p.get("startInRight"), 0.0), 0.0, 1.0) >= 0.5,
        potential=double_well_potential(grid.x, separation, height, tilt),
    )


def initial_state(p) -> np.ndarray:
    cfg = double_well_config(p)
    center = cfg.half_separation if cfg.start_in_right else -cfg.half_separation
    re, im = gaussian_packet(cfg.grid.x, center, cfg.packet_sigma, cfg.packet_k0)
    return pack_complex(*normalize(re, im, cfg.grid.dx))


def rhs(t, y, p):
    cfg = double_well_config(p, len(y))
    re, im = split_complex(y, cfg.grid.n, "Double-well")
    dx = cfg.grid.dx
    return schrodinger_rhs(re, im, laplacian_1d(re, dx), laplacian_1d(im, dx), cfg.potential, cfg.hbar, cfg.m)


def energy(y, p) -> float:
    cfg = double_well_config(p, len(y))
    re, im = split_complex(y, cfg.grid.n, "Double-well")
    dx = cfg.grid.dx
    return kinetic_energy_1d(re, im, dx, cfg.hbar, cfg.m) + float(np.sum(cfg.potential * (re * re + im * im)) * dx)


def observables(y, p):
    cfg = double_well_config(p, len(y))
    re, im = split_complex(y, cfg.grid.n, "Double-well")
    x, dx = cfg.grid.x, cfg.grid.dx
    density = re * re + im * im
    norm, mean, _, norm_safe = probability_moments(x, density, dx)
    left = float(np.sum(density[x < 0]) * dx) / norm_safe
    right = float(np.sum(density[x >= 0]) * dx) / norm_safe
    return {
        "norm": norm,
        "leftProb": left,
        "rightProb": right,
        "imbalance": left - right,
        "xMean": mean,
        "peakDensity": float(np.max(density)),
        "wellLeft": -cfg.half_separation,
        "wellRight": cfg.half_separation,
        "barrierValue": float(double_well_potential(0.0, cfg.well_separation, cfg.barrier_height, cfg.tilt)),
    }


DOUBLE_WELL = System(
    id="doublewell",
    name="Quantum Double-Well Tunneling",
    params=dict(PARAMS),
    initial_state=initial_state,
    rhs=rhs,
    energy=energy,
    derived=observables,
    supported_integrators=("rk4",),
    defaults={"dt": 0.002, "duration": 24.0},
)
