"""
Piecewise-linear curves drawn by the user: the ski-jump hill profile and the
muscle force-length scaling.

Both are compiled once per request into immutable objects and handed to the
system that needs them.
"""

import math
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple

import numpy as np

from .errors import NumericDomainError

Point = Tuple[float, float]

DEFAULT_HILL_PROFILE: List[Point] = [
    (0.0, 3.4),
    (1.2, 3.1),
    (2.6, 2.5),
    (4.3, 1.7),
    (6.2, 1.0),
    (8.0, 0.55),
    (9.2, 0.78),
    (10.0, 1.2),
]

DEFAULT_MUSCLE_CURVE: List[Point] = [
    (0.5, 0.15),
    (0.75, 0.72),
    (1.0, 1.0),
    (1.2, 0.82),
    (1.4, 0.45),
    (1.6, 0.2),
]

MUSCLE_L_MIN, MUSCLE_L_MAX = 0.5, 1.6
MUSCLE_F_MIN, MUSCLE_F_MAX = 0.0, 1.4


def _finite_points(points: Iterable[Sequence[float]]) -> List[Point]:
    out = []
    for point in points:
        try:
            x, y = float(point[0]), float(point[1])
        except (TypeError, ValueError, IndexError):
            continue
        if math.isfinite(x) and math.isfinite(y):
            out.append((x, y))
    return out


def _dedupe_sorted(points: List[Point], tol: float) -> List[Point]:
    """Sort by x; for near-equal x the later point wins."""
    deduped: List[Point] = []
    for point in sorted(points, key=lambda p: p[0]):
        if deduped and abs(deduped[-1][0] - point[0]) < tol:
            deduped[-1] = point
            continue
        deduped.append(point)
    return deduped


def _smooth(values: np.ndarray, passes: int, lo: float = -math.inf, hi: float = math.inf) -> np.ndarray:
    current = values.copy()
    for _ in range(passes):
        nxt = current.copy()
        nxt[1:-1] = np.clip(0.25 * current[:-2] + 0.5 * current[1:-1] + 0.25 * current[2:], lo, hi)
        current = nxt
    return current


@dataclass(frozen=True)
class HillProfile:
    x: np.ndarray
    y: np.ndarray

    @property
    def x_min(self) -> float:
        return float(self.x[0])

    @property
    def x_max(self) -> float:
        return float(self.x[-1])

    def _segment(self, x: float) -> int:
        # index of the left node; end segments extend past the range
        i = int(np.searchsorted(self.x, x, side="left")) - 1
        return min(max(i, 0), self.x.shape[0] - 2)

    def value(self, x: float) -> float:
        i = self._segment(x)
        span = max(1e-12, self.x[i + 1] - self.x[i])
        ratio = (x - self.x[i]) / span
        return float(self.y[i] + ratio * (self.y[i + 1] - self.y[i]))

    def slope(self, x: float) -> float:
        i = self._segment(x)
        span = max(1e-12, self.x[i + 1] - self.x[i])
        return float((self.y[i + 1] - self.y[i]) / span)

    def points(self) -> List[Point]:
        return [(float(a), float(b)) for a, b in zip(self.x, self.y)]


def hill_profile(points: Optional[Iterable[Sequence[float]]] = None, samples: int = 120) -> HillProfile:
    """
    Build a smoothed hill from user points.

    Args:
        points: (x, y) pairs in any order. ``None`` selects the default hill.
        samples: Number of uniformly spaced resampled nodes (at least 12).

    Raises:
        NumericDomainError: Fewer than two finite distinct points, or a
            degenerate x span.
    """
    sorted_points = _dedupe_sorted(_finite_points(DEFAULT_HILL_PROFILE if points is None else points), 1e-7)
    if len(sorted_points) < 2:
        raise NumericDomainError("Hill profile needs at least two finite points.")

    xs = np.array([p[0] for p in sorted_points])
    ys = np.array([p[1] for p in sorted_points])
    span = xs[-1] - xs[0]
    if not span > 1e-9:
        raise NumericDomainError("Hill profile x span is degenerate.")

    count = max(12, int(round(samples)))
    grid = xs[0] + span * np.arange(count) / max(1, count - 1)
    return HillProfile(x=grid, y=_smooth(np.interp(grid, xs, ys), 2))


@dataclass(frozen=True)
class MuscleCurve:
    l: np.ndarray
    f: np.ndarray

    def scale(self, length: float) -> float:
        return float(np.interp(min(MUSCLE_L_MAX, max(MUSCLE_L_MIN, length)), self.l, self.f))

    def points(self) -> List[Point]:
        return [(float(a), float(b)) for a, b in zip(self.l, self.f)]


def muscle_curve(points: Optional[Iterable[Sequence[float]]] = None, samples: int = 110) -> MuscleCurve:
    """Normalized force-length curve on l in [0.5, 1.6], f in [0, 1.4]."""
    finite = [
        (min(MUSCLE_L_MAX, max(MUSCLE_L_MIN, l)), min(MUSCLE_F_MAX, max(MUSCLE_F_MIN, f)))
        for l, f in _finite_points(DEFAULT_MUSCLE_CURVE if points is None else points)
    ]
    sorted_points = _dedupe_sorted(finite, 1e-8)
    if len(sorted_points) < 2:
        raise NumericDomainError("Muscle curve needs at least two distinct points.")

    ls = np.array([p[0] for p in sorted_points])
    fs = np.array([p[1] for p in sorted_points])
    count = max(20, int(round(samples)))
    grid = MUSCLE_L_MIN + (MUSCLE_L_MAX - MUSCLE_L_MIN) * np.arange(count) / max(1, count - 1)
    sampled = np.clip(np.interp(grid, ls, fs), MUSCLE_F_MIN, MUSCLE_F_MAX)
    return MuscleCurve(l=grid, f=_smooth(sampled, 1, MUSCLE_F_MIN, MUSCLE_F_MAX))
