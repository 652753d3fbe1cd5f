"""2D wavepacket diffracting through a two-slit barrier strip onto a detector row."""

from dataclasses import dataclass

import numpy as np

from ..grid import (
    Grid2D,
    absorber_2d,
    clamp,
    domain,
    finite_or,
    gradient_2d,
    grid_points,
    laplacian_2d,
    normalize,
    pack_complex,
    schrodinger_rhs,
    split_complex,
    visibility,
)
from .base import System, cached_config

PARAMS = {
    "m": 1.0,
    "hbar": 1.0,
    "gridX": 48,
    "gridY": 64,
    "xMin": -8.0,
    "xMax": 8.0,
    "yMin": -7.0,
    "yMax": 7.0,
    "packetX0": 0.0,
    "packetY0": -5.0,
    "packetSigmaX": 0.8,
    "packetSigmaY": 0.65,
    "packetKx": 0.0,
    "packetKy": 8.0,
    "barrierY": -1.0,
    "barrierThickness": 0.2,
    "slitSeparation": 2.5,
    "slitWidth": 0.5,
    "barrierHeight": 260.0,
    "rightSlitOpen": 1.0,
    "detectorY": 4.5,
    "absorberStrength": 1.2,
    "absorberFraction": 0.12,
}


@dataclass
class DoubleSlit2DConfig:
    grid: Grid2D
    m: float
    hbar: float
    packet_x0: float
    packet_y0: float
    packet_sigma_x: float
    packet_sigma_y: float
    packet_kx: float
    packet_ky: float
    barrier_y: float
    barrier_thickness: float
    slit_separation: float
    detector_row: int
    potential: np.ndarray
    gamma: np.ndarray


def _grid_shape(p, state_length):
    nx = grid_points(p, "gridX", 48, 24, 96)
    ny = grid_points(p, "gridY", 64, 24, 112)
    if state_length and state_length % 2 == 0:
        cells = state_length // 2
        if cells % nx == 0 and cells // nx >= 3:
            ny = int(clamp(cells // nx, 24, 112))
    return nx, ny


def slit_potential(x, y, barrier_y, thickness, separation, width, height, right_open):
    strip = np.abs(y - barrier_y) <= 0.5 * thickness
    left_slit = np.abs(x + 0.5 * separation) <= 0.5 * width
    right_slit = np.abs(x - 0.5 * separation) <= 0.5 * width
    wall = np.where(left_slit, 0.0, np.where(right_slit, height * (1.0 - right_open), height))
    return np.where(strip, wall, 0.0)


@cached_config
def double_slit_2d_config(p, state_length=None) -> DoubleSlit2DConfig:
    x_min, x_max = domain(p, "xMin", "xMax", -8.0, 8.0)
    y_min, y_max = domain(p, "yMin", "yMax", -7.0, 7.0)
    grid = Grid2D(*_grid_shape(p, state_length), x_min, x_max, y_min, y_max)

    barrier_y = finite_or(p.get("barrierY"), -1.0)
    thickness = max(0.02, finite_or(p.get("barrierThickness"), 0.2))
    separation = max(0.1, finite_or(p.get("slitSeparation"), 2.5))
    detector_y = clamp(finite_or(p.get("detectorY"), 4.5), y_min, y_max)
    rows = y_min + grid.dy * np.arange(grid.ny)

    return DoubleSlit2DConfig(
        grid=grid,
        m=max(1e-8, finite_or(p.get("m"), 1.0)),
        hbar=max(1e-8, finite_or(p.get("hbar"), 1.0)),
        packet_x0=finite_or(p.get("packetX0"), 0.0),
        packet_y0=finite_or(p.get("packetY0"), -5.0),
        packet_sigma_x=max(0.05, finite_or(p.get("packetSigmaX"), 0.8)),
        packet_sigma_y=max(0.05, finite_or(p.get("packetSigmaY"), 0.65)),
        packet_kx=finite_or(p.get("packetKx"), 0.0),
        packet_ky=finite_or(p.get("packetKy"), 8.0),
        barrier_y=barrier_y,
        barrier_thickness=thickness,
        slit_separation=separation,
        detector_row=int(np.argmin(np.abs(rows - detector_y))),
        potential=slit_potential(
            grid.x,
            grid.y,
            barrier_y,
            thickness,
            separation,
            max(0.05, finite_or(p.get("slitWidth"), 0.5)),
            max(0.0, finite_or(p.get("barrierHeight"), 260.0)),
            clamp(finite_or(p.get("rightSlitOpen"), 1.0), 0.0, 1.0),
        ),
        gamma=absorber_2d(
            grid.x,
            grid.y,
            x_min,
            x_max,
            y_min,
            y_max,
            clamp(finite_or(p.get("absorberFraction"), 0.12), 0.0, 0.45),
            max(0.0, finite_or(p.get("absorberStrength"), 1.2)),
        ),
    )


def _fields(y, cfg: DoubleSlit2DConfig):
    re, im = split_complex(y, cfg.grid.cells, "2D double-slit")
    shape = (cfg.grid.ny, cfg.grid.nx)
    return re.reshape(shape), im.reshape(shape)


def initial_state(p) -> np.ndarray:
    cfg = double_slit_2d_config(p)
    g = cfg.grid
    envelope = np.exp(
        -((g.x - cfg.packet_x0) ** 2) / (4 * cfg.packet_sigma_x ** 2)
        - ((g.y - cfg.packet_y0) ** 2) / (4 * cfg.packet_sigma_y ** 2)
    )
    phase = cfg.packet_kx * g.x + cfg.packet_ky * g.y
    return pack_complex(*normalize(envelope * np.cos(phase), envelope * np.sin(phase), g.dx * g.dy))


def rhs(t, y, p):
    cfg = double_slit_2d_config(p, len(y))
    re, im = _fields(y, cfg)
    g = cfg.grid
    return schrodinger_rhs(
        re, im, laplacian_2d(re, g.dx, g.dy), laplacian_2d(im, g.dx, g.dy), cfg.potential, cfg.hbar, cfg.m, cfg.gamma
    )


def energy(y, p) -> float:
    cfg = double_slit_2d_config(p, len(y))
    re, im = _fields(y, cfg)
    g = cfg.grid
    re_x, re_y = gradient_2d(re, g.dx, g.dy)
    im_x, im_y = gradient_2d(im, g.dx, g.dy)
    kinetic = (cfg.hbar * cfg.hbar / (2 * cfg.m)) * np.sum(re_x ** 2 + re_y ** 2 + im_x ** 2 + im_y ** 2)
    potential = np.sum(cfg.potential * (re * re + im * im))
    return float((kinetic + potential) * g.dx * g.dy)


def observables(y, p):
    cfg = double_slit_2d_config(p, len(y))
    re, im = _fields(y, cfg)
    g = cfg.grid
    density = re * re + im * im
    prob = density * g.dx * g.dy

    norm = float(np.sum(prob))
    norm_safe = norm if norm > 1e-12 else 1.0
    x_mean = float(np.sum(g.x * prob)) / norm_safe
    y_mean = float(np.sum(g.y * prob)) / norm_safe
    x2 = float(np.sum(g.x * g.x * prob)) / norm_safe
    y2 = float(np.sum(g.y * g.y * prob)) / norm_safe

    half = 0.5 * cfg.barrier_thickness
    detector = density[cfg.detector_row]
    window = np.abs(g.x[0]) <= max(1.2, 1.5 * cfg.slit_separation)
    return {
        "norm": norm,
        "xMean": x_mean,
        "yMean": y_mean,
        "spreadX": float(np.sqrt(max(0.0, x2 - x_mean * x_mean))),
        "spreadY": float(np.sqrt(max(0.0, y2 - y_mean * y_mean))),
        "detectorCenter": float(detector[g.nx // 2]),
        "detectorVisibility": visibility(detector[window]),
        "transmittedProb": float(np.sum(prob[g.y > cfg.barrier_y + half])) / norm_safe,
        "reflectedProb": float(np.sum(prob[g.y < cfg.barrier_y - half])) / norm_safe,
    }


DOUBLE_SLIT_2D = System(
    id="doubleslit2d",
    name="Double-Slit Interference (2D)",
    params=dict(PARAMS),
    initial_state=initial_state,
    rhs=rhs,
    energy=energy,
    derived=observables,
    supported_integrators=("rk4",),
    defaults={"dt": 0.0032, "duration": 1.12},
)
