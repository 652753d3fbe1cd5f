"""
Incompressible 2D channel flow past a circular obstacle.

Stable-fluids style splitting on a collocated grid: semi-Lagrangian
advection, explicit diffusion, then a Jacobi pressure projection. The packed
state is ``[nx, ny, obstacleX, obstacleY, u(nx*ny), v(nx*ny), p(nx*ny)]``.

This system does not fit the generic integrators: its ``rhs`` is identically
zero and the engine calls :func:`simulate` instead.
"""

import math
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

import numpy as np

from ..errors import MalformedState
from ..grid import clamp_int, divisor_shape, domain, finite_or
from .base import System, Trajectory, cached_config

PARAMS = {
    "gridX": 52,
    "gridY": 34,
    "xMin": -2.0,
    "xMax": 8.0,
    "yMin": -2.5,
    "yMax": 2.5,
    "nu": 0.03,
    "inflowU": 1.05,
    "obstacleX": 1.8,
    "obstacleY": 0.0,
    "obstacleR": 0.55,
    "obstacleSoft": 0.025,
    "pressureIters": 48,
}

HEADER = 4


@dataclass
class FlowConfig:
    nx: int
    ny: int
    x_min: float
    x_max: float
    y_min: float
    y_max: float
    nu: float
    inflow_u: float
    obstacle_x: float
    obstacle_y: float
    obstacle_r: float
    obstacle_soft: float
    iterations: int
    dx: float = 0.0
    dy: float = 0.0
    x: Optional[np.ndarray] = None
    y: Optional[np.ndarray] = None
    mask: Optional[np.ndarray] = None

    def __post_init__(self):
        self.dx = (self.x_max - self.x_min) / max(1, self.nx - 1)
        self.dy = (self.y_max - self.y_min) / max(1, self.ny - 1)
        xs = self.x_min + self.dx * np.arange(self.nx)
        ys = self.y_min + self.dy * np.arange(self.ny)
        self.x, self.y = np.meshgrid(xs, ys)
        radius = max(0.05, self.obstacle_r + self.obstacle_soft)
        self.mask = (self.x - self.obstacle_x) ** 2 + (self.y - self.obstacle_y) ** 2 <= radius * radius

    @property
    def cells(self) -> int:
        return self.nx * self.ny

    @property
    def state_length(self) -> int:
        return HEADER + 3 * self.cells


def _header_shape(header: Tuple[float, float], state_length: int) -> Optional[Tuple[int, int]]:
    nx, ny = header
    if not (math.isfinite(nx) and math.isfinite(ny)) or nx != int(nx) or ny != int(ny):
        return None
    nx, ny = int(nx), int(ny)
    if nx >= 3 and ny >= 3 and HEADER + 3 * nx * ny == state_length:
        return nx, ny
    return None


def _divisor_shape(state_length: int, aspect: float) -> Optional[Tuple[int, int]]:
    """Factor (len - 4) / 3 cells into nx * ny, both sides at least 3."""
    cells, remainder = divmod(state_length - HEADER, 3)
    if remainder or cells <= 0:
        return None
    return divisor_shape(cells, aspect)


@cached_config
def flow_config(p, state_length=None, header=None) -> FlowConfig:
    x_min, x_max = domain(p, "xMin", "xMax", -2.0, 8.0)
    y_min, y_max = domain(p, "yMin", "yMax", -2.5, 2.5)
    nx = clamp_int(p.get("gridX"), 24, 88, 52)
    ny = clamp_int(p.get("gridY"), 16, 64, 34)

    if state_length:
        shape = _header_shape(header, state_length) if header is not None else None
        if shape is None:
            shape = _divisor_shape(state_length, (x_max - x_min) / max(1e-6, y_max - y_min))
        if shape is None:
            raise MalformedState(f"Flow state length {state_length} does not match any grid of at least 3x3 cells.")
        nx, ny = shape

    return FlowConfig(
        nx=nx,
        ny=ny,
        x_min=x_min,
        x_max=x_max,
        y_min=y_min,
        y_max=y_max,
        nu=max(1e-5, finite_or(p.get("nu"), 0.03)),
        inflow_u=finite_or(p.get("inflowU"), 1.0),
        obstacle_x=finite_or(p.get("obstacleX"), 1.8),
        obstacle_y=finite_or(p.get("obstacleY"), 0.0),
        obstacle_r=max(0.1, finite_or(p.get("obstacleR"), 0.55)),
        obstacle_soft=max(0.0, finite_or(p.get("obstacleSoft"), 0.025)),
        iterations=clamp_int(p.get("pressureIters"), 15, 120, 48),
    )


def config_for_state(y, p) -> FlowConfig:
    y = np.asarray(y, dtype=np.float64)
    header = (float(y[0]), float(y[1])) if y.shape[0] >= 2 else None
    return flow_config(p, int(y.shape[0]), header)


def _unpack(y: np.ndarray, cfg: FlowConfig) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    shape = (cfg.ny, cfg.nx)
    if y.shape[0] == cfg.state_length:
        u, v, pressure = np.split(np.array(y[HEADER:], dtype=np.float64), 3)
        return u.reshape(shape), v.reshape(shape), pressure.reshape(shape)
    # rest profile: plug flow flattened towards the walls
    rows = 2 * np.arange(cfg.ny) / max(1, cfg.ny - 1) - 1
    u = np.repeat((cfg.inflow_u * (1 - rows ** 8))[:, None], cfg.nx, axis=1)
    return u, np.zeros(shape), np.zeros(shape)


def _pack(cfg: FlowConfig, u: np.ndarray, v: np.ndarray, pressure: np.ndarray) -> np.ndarray:
    header = np.array([cfg.nx, cfg.ny, cfg.obstacle_x, cfg.obstacle_y], dtype=np.float64)
    return np.concatenate([header, np.where(cfg.mask, 0.0, u).ravel(), np.where(cfg.mask, 0.0, v).ravel(), pressure.ravel()])


def apply_boundaries(u: np.ndarray, v: np.ndarray, cfg: FlowConfig) -> None:
    """Parabolic inflow, zero-gradient outflow, no-slip walls and obstacle (in place)."""
    open_cells = ~cfg.mask
    rows = 2 * np.arange(cfg.ny) / max(1, cfg.ny - 1) - 1
    profile = cfg.inflow_u * np.maximum(0.0, 1 - rows * rows)

    inflow = open_cells[:, 0]
    u[inflow, 0] = profile[inflow]
    v[inflow, 0] = 0.0

    outflow = open_cells[:, -1]
    u[outflow, -1] = u[outflow, -2]
    v[outflow, -1] = v[outflow, -2]

    for row in (0, -1):
        wall = open_cells[row]
        u[row, wall] = 0.0
        v[row, wall] = 0.0

    u[cfg.mask] = 0.0
    v[cfg.mask] = 0.0


def _bilerp(field: np.ndarray, x: np.ndarray, y: np.ndarray, cfg: FlowConfig) -> np.ndarray:
    gx = (x - cfg.x_min) / cfg.dx
    gy = (y - cfg.y_min) / cfg.dy
    i0 = np.clip(np.floor(gx), 0, cfg.nx - 1).astype(int)
    j0 = np.clip(np.floor(gy), 0, cfg.ny - 1).astype(int)
    i1 = np.clip(i0 + 1, 0, cfg.nx - 1)
    j1 = np.clip(j0 + 1, 0, cfg.ny - 1)
    tx = np.clip(gx - i0, 0.0, 1.0)
    ty = np.clip(gy - j0, 0.0, 1.0)
    a = field[j0, i0] * (1 - tx) + field[j0, i1] * tx
    b = field[j1, i0] * (1 - tx) + field[j1, i1] * tx
    return a * (1 - ty) + b * ty


def advect(u: np.ndarray, v: np.ndarray, cfg: FlowConfig, dt: float) -> Tuple[np.ndarray, np.ndarray]:
    x_prev = np.clip(cfg.x - dt * u, cfg.x_min, cfg.x_max)
    y_prev = np.clip(cfg.y - dt * v, cfg.y_min, cfg.y_max)
    return _bilerp(u, x_prev, y_prev, cfg), _bilerp(v, x_prev, y_prev, cfg)


def _interior_laplacian(f: np.ndarray, cfg: FlowConfig) -> np.ndarray:
    c = f[1:-1, 1:-1]
    return (f[1:-1, 2:] - 2 * c + f[1:-1, :-2]) / (cfg.dx * cfg.dx) + (f[2:, 1:-1] - 2 * c + f[:-2, 1:-1]) / (cfg.dy * cfg.dy)


def diffuse(u: np.ndarray, v: np.ndarray, cfg: FlowConfig, dt: float) -> None:
    alpha = cfg.nu * dt
    inner_mask = cfg.mask[1:-1, 1:-1]
    for f in (u, v):
        updated = f[1:-1, 1:-1] + alpha * _interior_laplacian(f, cfg)
        f[1:-1, 1:-1] = np.where(inner_mask, 0.0, updated)


def project(u: np.ndarray, v: np.ndarray, pressure: np.ndarray, cfg: FlowConfig, dt: float) -> None:
    """Jacobi-relax the pressure Poisson equation and subtract its gradient (in place)."""
    inner_mask = cfg.mask[1:-1, 1:-1]
    div = (u[1:-1, 2:] - u[1:-1, :-2]) / (2 * cfg.dx) + (v[2:, 1:-1] - v[:-2, 1:-1]) / (2 * cfg.dy)
    rhs = np.where(inner_mask, 0.0, div / max(dt, 1e-6))

    dx2, dy2 = cfg.dx * cfg.dx, cfg.dy * cfg.dy
    denom = 2 * (dx2 + dy2)
    for _ in range(cfg.iterations):
        relaxed = (
            (pressure[1:-1, 2:] + pressure[1:-1, :-2]) * dy2
            + (pressure[2:, 1:-1] + pressure[:-2, 1:-1]) * dx2
            - rhs * dx2 * dy2
        ) / denom
        nxt = pressure.copy()
        nxt[1:-1, 1:-1] = np.where(inner_mask, 0.0, relaxed)
        nxt[:, 0] = nxt[:, 1]
        nxt[:, -1] = nxt[:, -2]
        nxt[0, :] = nxt[1, :]
        nxt[-1, :] = nxt[-2, :]
        pressure[...] = nxt

    dp_dx = (pressure[1:-1, 2:] - pressure[1:-1, :-2]) / (2 * cfg.dx)
    dp_dy = (pressure[2:, 1:-1] - pressure[:-2, 1:-1]) / (2 * cfg.dy)
    u[1:-1, 1:-1] = np.where(inner_mask, 0.0, u[1:-1, 1:-1] - dt * dp_dx)
    v[1:-1, 1:-1] = np.where(inner_mask, 0.0, v[1:-1, 1:-1] - dt * dp_dy)


def step(u: np.ndarray, v: np.ndarray, pressure: np.ndarray, cfg: FlowConfig, dt: float):
    apply_boundaries(u, v, cfg)
    u, v = advect(u, v, cfg, dt)
    diffuse(u, v, cfg, dt)
    apply_boundaries(u, v, cfg)
    project(u, v, pressure, cfg, dt)
    apply_boundaries(u, v, cfg)
    return u, v, pressure


def initial_state(p) -> np.ndarray:
    cfg = flow_config(p)
    u, v, pressure = _unpack(np.zeros(0), cfg)
    apply_boundaries(u, v, cfg)
    return _pack(cfg, u, v, pressure)


def simulate(t0: float, y0, dt: float, steps: int, params: Dict[str, float]) -> Trajectory:
    """March the flow ``steps`` times; ``y[0]`` echoes ``y0`` when it is a valid packed state."""
    y0 = np.asarray(y0, dtype=np.float64).reshape(-1)
    cfg = config_for_state(y0, params) if y0.shape[0] else flow_config(params)
    u, v, pressure = _unpack(y0, cfg)
    dt = max(1e-4, float(dt))
    steps = max(1, int(steps))

    frames = np.empty((steps + 1, cfg.state_length))
    frames[0] = y0 if y0.shape[0] == cfg.state_length else _pack(cfg, u, v, pressure)
    for k in range(steps):
        u, v, pressure = step(u, v, pressure, cfg, dt)
        frames[k + 1] = _pack(cfg, u, v, pressure)
    return Trajectory(t=t0 + dt * np.arange(steps + 1, dtype=np.float64), y=frames)


def rhs(t, y, p):
    return np.zeros_like(np.asarray(y, dtype=np.float64))


def observables(y, p):
    y = np.asarray(y, dtype=np.float64)
    if not y.shape[0]:
        return {"speedMean": 0.0, "speedMax": 0.0, "vortAbsMean": 0.0, "vortMax": 0.0, "reynolds": 0.0}
    cfg = config_for_state(y, p)
    u, v, _ = _unpack(y, cfg)
    active = ~cfg.mask[1:-1, 1:-1]
    speed = np.hypot(u[1:-1, 1:-1], v[1:-1, 1:-1])[active]
    vort = np.abs(
        (v[1:-1, 2:] - v[1:-1, :-2]) / (2 * cfg.dx) - (u[2:, 1:-1] - u[:-2, 1:-1]) / (2 * cfg.dy)
    )[active]
    count = max(1, speed.size)
    return {
        "speedMean": float(np.sum(speed)) / count,
        "speedMax": float(np.max(speed)) if speed.size else 0.0,
        "vortAbsMean": float(np.sum(vort)) / count,
        "vortMax": float(np.max(vort)) if vort.size else 0.0,
        "reynolds": abs(cfg.inflow_u) * 2 * cfg.obstacle_r / max(cfg.nu, 1e-6),
    }


NAVIER_STOKES_2D = System(
    id="navierstokes2d",
    name="2D Navier-Stokes Obstacle Flow",
    params=dict(PARAMS),
    initial_state=initial_state,
    rhs=rhs,
    derived=observables,
    supported_integrators=("rk4",),
    simulate=simulate,
    defaults={"dt": 0.025, "duration": 8.0},
)
