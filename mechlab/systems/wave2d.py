"""
Damped 2D scalar wave (a ripple on a calm lake).

State is ``[eta(nx*ny), vel(nx*ny)]`` so it splits cleanly into positions and
velocities and supports velocity Verlet as well as RK4.
"""

import math
from dataclasses import dataclass
from typing import Optional

import numpy as np

from ..grid import Grid2D, clamp, divisor_shape, domain, finite_or, grid_points, laplacian_2d, pack_complex, split_complex
from .base import System, cached_config

PARAMS = {
    "gridX": 48,
    "gridY": 48,
    "xMin": -6.0,
    "xMax": 6.0,
    "yMin": -6.0,
    "yMax": 6.0,
    "cWave": 2.2,
    "damping": 0.02,
    "edgeDamping": 0.3,
    "periodic": 0.0,
    "dropX0": 0.0,
    "dropY0": 0.0,
    "dropSigma": 0.36,
    "dropAmp": 1.0,
    "dropV0": 0.0,
}

EDGE_BAND = 0.22


@dataclass
class Wave2DConfig:
    grid: Grid2D
    c: float
    damping: float
    edge_damping: float
    periodic: bool
    drop_x0: float
    drop_y0: float
    drop_sigma: float
    drop_amp: float
    drop_v0: float
    edge_weight: Optional[np.ndarray] = None

    def __post_init__(self):
        self.edge_weight = _edge_weight(self.grid.nx, self.grid.ny, self.edge_damping, self.periodic)


def _edge_weight(nx: int, ny: int, strength: float, periodic: bool) -> np.ndarray:
    """((band - d) / band)^2 inside the edge band, d the fractional distance to the nearest wall."""
    if periodic or strength <= 0:
        return np.zeros((ny, nx))
    i = np.arange(nx)
    j = np.arange(ny)
    fx = np.minimum(i, nx - 1 - i) / max(1, nx - 1)
    fy = np.minimum(j, ny - 1 - j) / max(1, ny - 1)
    d = np.minimum(fx[None, :], fy[:, None])
    ratio = np.where(d < EDGE_BAND, (EDGE_BAND - d) / EDGE_BAND, 0.0)
    return ratio * ratio


@cached_config
def wave_2d_config(p, state_length=None) -> Wave2DConfig:
    x_min, x_max = domain(p, "xMin", "xMax", -6.0, 6.0)
    y_min, y_max = domain(p, "yMin", "yMax", -6.0, 6.0)
    nx = grid_points(p, "gridX", 48, 20, 96)
    ny = grid_points(p, "gridY", 48, 20, 96)
    if state_length and state_length % 2 == 0:
        shape = divisor_shape(state_length // 2, (x_max - x_min) / max(1e-6, y_max - y_min))
        if shape is not None:
            nx, ny = shape

    return Wave2DConfig(
        grid=Grid2D(nx, ny, x_min, x_max, y_min, y_max),
        c=max(1e-6, finite_or(p.get("cWave"), 2.2)),
        damping=max(0.0, finite_or(p.get("damping"), 0.02)),
        edge_damping=max(0.0, finite_or(p.get("edgeDamping"), 0.3)),
        periodic=clamp(finite_or(p.get("periodic"), 0.0), 0.0, 1.0) >= 0.5,
        drop_x0=finite_or(p.get("dropX0"), 0.0),
        drop_y0=finite_or(p.get("dropY0"), 0.0),
        drop_sigma=max(0.05, finite_or(p.get("dropSigma"), 0.36)),
        drop_amp=finite_or(p.get("dropAmp"), 1.0),
        drop_v0=finite_or(p.get("dropV0"), 0.0),
    )


def _fields(y, cfg: Wave2DConfig):
    eta, vel = split_complex(y, cfg.grid.cells, "Wave2D")
    shape = (cfg.grid.ny, cfg.grid.nx)
    return eta.reshape(shape), vel.reshape(shape)


def initial_state(p) -> np.ndarray:
    cfg = wave_2d_config(p)
    g = cfg.grid
    r2 = (g.x - cfg.drop_x0) ** 2 + (g.y - cfg.drop_y0) ** 2
    envelope = np.exp(-0.5 * r2 / (cfg.drop_sigma * cfg.drop_sigma))
    return pack_complex(cfg.drop_amp * envelope, cfg.drop_v0 * envelope)


def rhs(t, y, p):
    cfg = wave_2d_config(p, len(y))
    eta, vel = _fields(y, cfg)
    lap = laplacian_2d(eta, cfg.grid.dx, cfg.grid.dy, cfg.periodic)
    local_damping = cfg.damping + cfg.edge_damping * cfg.edge_weight
    return pack_complex(vel, cfg.c * cfg.c * lap - local_damping * vel)


def energy(y, p) -> float:
    cfg = wave_2d_config(p, len(y))
    g = cfg.grid
    eta, vel = _fields(y, cfg)
    padded = np.pad(eta, 1, mode="wrap" if cfg.periodic else "constant")
    hx = (padded[1:-1, 2:] - padded[1:-1, :-2]) / (2 * g.dx)
    hy = (padded[2:, 1:-1] - padded[:-2, 1:-1]) / (2 * g.dy)
    density = 0.5 * vel * vel + 0.5 * cfg.c * cfg.c * (hx * hx + hy * hy)
    return float(np.sum(density) * g.dx * g.dy)


def observables(y, p):
    cfg = wave_2d_config(p, len(y))
    g = cfg.grid
    eta, vel = _fields(y, cfg)
    ci = int(clamp(round((cfg.drop_x0 - g.x_min) / g.dx), 0, g.nx - 1))
    cj = int(clamp(round((cfg.drop_y0 - g.y_min) / g.dy), 0, g.ny - 1))
    weight = np.abs(eta)
    total = float(np.sum(weight))
    r2 = (g.x - cfg.drop_x0) ** 2 + (g.y - cfg.drop_y0) ** 2
    return {
        "centerEta": float(eta[cj, ci]),
        "peakAbsEta": float(np.max(weight)),
        "meanAbsEta": total / g.cells,
        "rmsRadius": math.sqrt(float(np.sum(weight * r2)) / total) if total > 1e-10 else 0.0,
        "rmsSpeed": math.sqrt(float(np.mean(vel * vel))),
    }


WAVE_2D = System(
    id="wave2d",
    name="2D Water Ripple",
    params=dict(PARAMS),
    initial_state=initial_state,
    rhs=rhs,
    energy=energy,
    derived=observables,
    supported_integrators=("rk4", "verlet"),
    defaults={"dt": 0.015, "duration": 8.0},
)
