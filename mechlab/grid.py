"""
Shared finite-difference conventions for the field models.

Every grid-based system derives a bounded configuration from its raw
parameters, prefers the resolution implied by an existing state vector over
the one requested in the parameters, and uses the stencils, absorber and
quadrature helpers below so that all models agree on packing and edges.

Complex fields are packed as [Re..., Im...]; 2D fields flatten row-major with
index = j * nx + i.
"""

import math
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

import numpy as np

from .errors import MalformedState


def finite_or(value: Any, fallback: float) -> float:
    """Return ``value`` as float if it is a finite number, else ``fallback``."""
    try:
        v = float(value)
    except (TypeError, ValueError):
        return fallback
    return v if math.isfinite(v) else fallback


def clamp(value: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, value))


def clamp_int(value: Any, lo: int, hi: int, fallback: int) -> int:
    return int(round(clamp(finite_or(value, fallback), lo, hi)))


def domain(params: Dict[str, float], lo_key: str, hi_key: str, lo_default: float, hi_default: float) -> Tuple[float, float]:
    """Bounds forced non-degenerate: hi <= lo + 1e-6 becomes lo + 1."""
    lo = finite_or(params.get(lo_key), lo_default)
    hi = finite_or(params.get(hi_key), hi_default)
    if not hi > lo + 1e-6:
        hi = lo + 1.0
    return lo, hi


def grid_points(params: Dict[str, float], key: str, default: int, lo: int, hi: int) -> int:
    return int(clamp(round(finite_or(params.get(key), default)), lo, hi))


def points_from_state(state_length: Optional[int]) -> Optional[int]:
    """Grid size implied by a packed complex/two-field state, if any."""
    if not state_length or state_length % 2 != 0:
        return None
    n = state_length // 2
    return n if n >= 3 else None


@dataclass
class Grid1D:
    n: int
    x_min: float
    x_max: float
    dx: float = field(init=False)
    x: np.ndarray = field(init=False, repr=False)

    def __post_init__(self):
        self.dx = (self.x_max - self.x_min) / max(1, self.n - 1)
        self.x = self.x_min + self.dx * np.arange(self.n, dtype=np.float64)

    def nearest(self, target: float) -> int:
        return int(np.argmin(np.abs(self.x - target)))


@dataclass
class Grid2D:
    nx: int
    ny: int
    x_min: float
    x_max: float
    y_min: float
    y_max: float
    dx: float = field(init=False)
    dy: float = field(init=False)
    x: np.ndarray = field(init=False, repr=False)
    y: np.ndarray = field(init=False, repr=False)

    def __post_init__(self):
        self.dx = (self.x_max - self.x_min) / max(1, self.nx - 1)
        self.dy = (self.y_max - self.y_min) / max(1, self.ny - 1)
        xs = self.x_min + self.dx * np.arange(self.nx, dtype=np.float64)
        ys = self.y_min + self.dy * np.arange(self.ny, dtype=np.float64)
        # shape (ny, nx); flattening gives index j * nx + i
        self.x, self.y = np.meshgrid(xs, ys)

    @property
    def cells(self) -> int:
        return self.nx * self.ny

    def index(self, i: int, j: int) -> int:
        return j * self.nx + i


def resolve_points(params: Dict[str, float], key: str, default: int, lo: int, hi: int, state_length: Optional[int] = None) -> int:
    """State-implied size wins when consistent, else the clamped parameter."""
    n = points_from_state(state_length)
    if n is not None:
        return n
    return grid_points(params, key, default, lo, hi)


def divisor_shape(cells: int, aspect: float, min_side: int = 3) -> Optional[Tuple[int, int]]:
    """
    Factor ``cells`` into (nx, ny) with nx nearest sqrt(cells * aspect).

    Both sides must be at least ``min_side``; returns None when no such
    factorization exists (for instance when ``cells`` is prime).
    """
    if cells < min_side * min_side:
        return None
    guess = max(1, int(round(math.sqrt(cells * max(aspect, 1e-6)))))
    for delta in range(cells + 1):
        for candidate in (guess - delta, guess + delta):
            if candidate >= min_side and cells % candidate == 0 and cells // candidate >= min_side:
                return candidate, cells // candidate
    return None


def split_complex(y: np.ndarray, cells: int, label: str) -> Tuple[np.ndarray, np.ndarray]:
    y = np.asarray(y, dtype=np.float64)
    if y.shape[0] != 2 * cells:
        raise MalformedState(f"{label} state length mismatch: expected {2 * cells}, got {y.shape[0]}.")
    return y[:cells], y[cells:]


def pack_complex(re: np.ndarray, im: np.ndarray) -> np.ndarray:
    return np.concatenate([np.ravel(re), np.ravel(im)]).astype(np.float64)


def normalize(re: np.ndarray, im: np.ndarray, cell: float) -> Tuple[np.ndarray, np.ndarray]:
    """Rescale so that the quadrature norm sum(|psi|^2) * cell equals 1."""
    integral = float(np.sum(re * re + im * im) * cell)
    scale = 1.0 / math.sqrt(integral) if integral > 0 else 1.0
    return re * scale, im * scale


def gaussian_packet(x: np.ndarray, x0: float, sigma: float, k0: float) -> Tuple[np.ndarray, np.ndarray]:
    envelope = np.exp(-((x - x0) ** 2) / (4.0 * sigma * sigma))
    phase = k0 * x
    return envelope * np.cos(phase), envelope * np.sin(phase)


def laplacian_1d(f: np.ndarray, dx: float, periodic: bool = False) -> np.ndarray:
    """Three-point Laplacian; edges read zero outside the grid unless periodic."""
    padded = np.pad(f, 1, mode="wrap" if periodic else "constant")
    return (padded[:-2] - 2.0 * f + padded[2:]) / (dx * dx)


def laplacian_2d(f: np.ndarray, dx: float, dy: float, periodic: bool = False) -> np.ndarray:
    """Five-point Laplacian on an (ny, nx) array; zero outside the grid unless periodic."""
    p = np.pad(f, 1, mode="wrap" if periodic else "constant")
    lap_x = (p[1:-1, :-2] - 2.0 * f + p[1:-1, 2:]) / (dx * dx)
    lap_y = (p[:-2, 1:-1] - 2.0 * f + p[2:, 1:-1]) / (dy * dy)
    return lap_x + lap_y


def gradient_1d(f: np.ndarray, dx: float) -> np.ndarray:
    """Central differences inside, one-sided at the two ends."""
    if f.shape[0] < 2:
        return np.zeros_like(f)
    return np.gradient(f, dx)


def gradient_2d(f: np.ndarray, dx: float, dy: float) -> Tuple[np.ndarray, np.ndarray]:
    """(d/dx, d/dy) of an (ny, nx) array."""
    d_dy, d_dx = np.gradient(f, dy, dx)
    return d_dx, d_dy


def _edge_ratio(coord: np.ndarray, lo: float, hi: float, edge: float) -> np.ndarray:
    if edge <= 0:
        return np.zeros_like(coord)
    d = np.minimum(coord - lo, hi - coord)
    return np.where(d < edge, (edge - d) / edge, 0.0)


def absorber_1d(x: np.ndarray, x_min: float, x_max: float, fraction: float, strength: float) -> np.ndarray:
    """Quadratic edge damping: zero inside, ``strength`` at the walls."""
    edge = fraction * (x_max - x_min)
    if edge <= 0 or strength <= 0:
        return np.zeros_like(x)
    ratio = _edge_ratio(x, x_min, x_max, edge)
    return strength * ratio * ratio


def absorber_2d(x: np.ndarray, y: np.ndarray, x_min: float, x_max: float, y_min: float, y_max: float,
                fraction: float, strength: float) -> np.ndarray:
    edge_x = fraction * (x_max - x_min)
    edge_y = fraction * (y_max - y_min)
    if (edge_x <= 0 and edge_y <= 0) or strength <= 0:
        return np.zeros_like(x)
    ratio = np.maximum(_edge_ratio(x, x_min, x_max, edge_x), _edge_ratio(y, y_min, y_max, edge_y))
    return strength * ratio * ratio


def schrodinger_rhs(re: np.ndarray, im: np.ndarray, lap_re: np.ndarray, lap_im: np.ndarray,
                    potential, hbar: float, mass: float, gamma=0.0) -> np.ndarray:
    """
    Real/imaginary split of i*hbar*dpsi/dt = H psi with optional absorber.

    d(Re)/dt = -(hbar/2m) Lap(Im) + (V/hbar) Im - gamma Re
    d(Im)/dt = +(hbar/2m) Lap(Re) - (V/hbar) Re - gamma Im
    """
    kin = hbar / (2.0 * mass)
    d_re = -kin * lap_im + (potential / hbar) * im - gamma * re
    d_im = kin * lap_re - (potential / hbar) * re - gamma * im
    return np.concatenate([np.ravel(d_re), np.ravel(d_im)])


def kinetic_energy_1d(re: np.ndarray, im: np.ndarray, dx: float, hbar: float, mass: float) -> float:
    d_re = gradient_1d(re, dx)
    d_im = gradient_1d(im, dx)
    return float((hbar * hbar / (2.0 * mass)) * np.sum(d_re * d_re + d_im * d_im) * dx)


def probability_moments(x: np.ndarray, density: np.ndarray, cell: float) -> Tuple[float, float, float, float]:
    """Midpoint-quadrature norm, mean and spread of a density on nodes ``x``."""
    prob = density * cell
    norm = float(np.sum(prob))
    norm_safe = norm if norm > 1e-12 else 1.0
    mean = float(np.sum(x * prob)) / norm_safe
    second = float(np.sum(x * x * prob)) / norm_safe
    return norm, mean, math.sqrt(max(0.0, second - mean * mean)), norm_safe


def visibility(values: np.ndarray) -> float:
    """Fringe contrast (max - min) / (max + min) over a window of densities."""
    if values.size == 0:
        return 0.0
    hi = max(0.0, float(np.max(values)))
    lo = float(np.min(values))
    return (hi - lo) / max(1e-10, hi + lo)
