"""
One-shot "solve" systems: params in, a curve plus summary numbers out.

``brachistochrone`` relaxes a discretized descent curve by finite-difference
gradient descent on the travel time. ``tunnelingscan`` exposes the
transfer-matrix transmission spectrum of the resonant-tunneling barrier.
"""

import math
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

import numpy as np
from loguru import logger

from .errors import UnknownSystem
from .grid import finite_or
from .transfer_matrix import barrier_stack, transmission_spectrum

EPS = 1e-5


@dataclass
class VariationalResult:
    points: List[Dict[str, float]]
    meta: Dict[str, float]
    series: Optional[Dict[str, List[float]]] = None
    reference_points: Optional[List[Dict[str, float]]] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"points": self.points, "meta": self.meta}
        if self.series is not None:
            out["series"] = self.series
        if self.reference_points is not None:
            out["referencePoints"] = self.reference_points
        return out


@dataclass
class VariationalSystem:
    id: str
    name: str
    params: Dict[str, float]
    solve: Callable[[Dict[str, float]], VariationalResult]

    def describe(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "params": dict(self.params), "mode": "variational"}


def _points(xs, ys) -> List[Dict[str, float]]:
    return [{"x": float(x), "y": float(y)} for x, y in zip(xs, ys)]


# -------------------------
# Brachistochrone
# -------------------------
@dataclass
class BrachistochroneParams:
    x0: float = 0.0
    y0: float = 0.0
    x1: float = 2.0
    y1: float = 1.0
    g: float = 9.81
    segments: int = 80
    iterations: int = 240
    learning_rate: float = 0.03
    smoothness: float = 0.001
    x_clustering: float = 1.6

    @classmethod
    def from_params(cls, p: Dict[str, float]) -> "BrachistochroneParams":
        d = cls()
        return cls(
            x0=finite_or(p.get("x0"), d.x0),
            y0=finite_or(p.get("y0"), d.y0),
            x1=finite_or(p.get("x1"), d.x1),
            y1=finite_or(p.get("y1"), d.y1),
            g=max(1e-6, finite_or(p.get("g"), d.g)),
            segments=int(max(8, min(600, round(finite_or(p.get("segments"), d.segments))))),
            iterations=int(max(1, min(3000, round(finite_or(p.get("iterations"), d.iterations))))),
            learning_rate=max(1e-4, finite_or(p.get("learningRate"), d.learning_rate)),
            smoothness=max(0.0, finite_or(p.get("smoothness"), d.smoothness)),
            x_clustering=max(1.0, min(4.0, finite_or(p.get("xClustering"), d.x_clustering))),
        )


def travel_time(values: np.ndarray, xs: np.ndarray, g: float, y_ref: float, eps: float = EPS) -> float:
    """Time for a bead released at rest at height ``y_ref`` (y grows downward)."""
    y = np.maximum(values, y_ref + eps)
    ds = np.hypot(np.diff(xs), np.diff(y))
    y_mid = np.maximum(0.5 * (y[:-1] + y[1:]) - y_ref, eps)
    return float(np.sum(ds / np.sqrt(2 * g * y_mid)))


def _smoothing_penalty(values: np.ndarray) -> float:
    second = values[2:] - 2 * values[1:-1] + values[:-2]
    penalty = float(np.sum(second * second))
    if values.shape[0] >= 4:
        left = values[2] - 2 * values[1] + values[0]
        right = values[-1] - 2 * values[-2] + values[-3]
        penalty += 6 * (left * left + right * right)
    return penalty


def _objective(values, xs, cfg: BrachistochroneParams) -> float:
    return travel_time(values, xs, cfg.g, cfg.y0) + cfg.smoothness * _smoothing_penalty(values)


def _project_monotonic(values: np.ndarray, y0: float, y1: float, min_y: float, step: float) -> None:
    """Pin endpoints and force a strictly descending interior (in place)."""
    last = values.shape[0] - 1
    values[0], values[last] = y0, y1
    values[1:last] = np.maximum(values[1:last], min_y)
    for i in range(1, last):
        values[i] = max(values[i], values[i - 1] + step)
    for i in range(last - 1, 0, -1):
        values[i] = min(values[i], values[i + 1] - step)
    values[1:last] = np.maximum(values[1:last], min_y)
    values[0], values[last] = y0, y1


def solve_brachistochrone(params: Dict[str, float]) -> VariationalResult:
    cfg = BrachistochroneParams.from_params(params)
    if cfg.x1 <= cfg.x0 or cfg.y1 <= cfg.y0:
        points = _points([cfg.x0, cfg.x1], [cfg.y0, cfg.y1])
        return VariationalResult(
            points=points,
            reference_points=points,
            meta={"descentTime": math.inf, "straightLineTime": math.inf, "improvementPct": 0.0, "valid": 0.0},
            series={"iteration": [0.0], "time": [math.inf]},
        )

    n = cfg.segments
    xs = cfg.x0 + (cfg.x1 - cfg.x0) * (np.arange(n + 1) / n) ** cfg.x_clustering
    ratio = (xs - cfg.x0) / (cfg.x1 - cfg.x0)
    straight = cfg.y0 + (cfg.y1 - cfg.y0) * ratio

    min_y = cfg.y0 + EPS
    step = max(1e-9, min(EPS, (cfg.y1 - cfg.y0) / (4 * n)))
    values = np.maximum(min_y, straight + 0.18 * (cfg.y1 - cfg.y0) * np.sin(math.pi * ratio))
    _project_monotonic(values, cfg.y0, cfg.y1, min_y, step)

    history: List[float] = []
    for it in range(cfg.iterations):
        history.append(travel_time(values, xs, cfg.g, cfg.y0))
        lr = cfg.learning_rate / math.sqrt(1 + 0.05 * it)

        grad = np.zeros_like(values)
        for i in range(1, n):
            center = values[i]
            h = 1e-4 * max(1.0, abs(center))
            values[i] = center + h
            plus = _objective(values, xs, cfg)
            values[i] = center - h
            minus = _objective(values, xs, cfg)
            values[i] = center
            grad[i] = (plus - minus) / (2 * h)

        values[1:-1] = np.maximum(min_y, values[1:-1] - lr * grad[1:-1])
        _project_monotonic(values, cfg.y0, cfg.y1, min_y, step)

    descent = travel_time(values, xs, cfg.g, cfg.y0)
    reference = travel_time(straight, xs, cfg.g, cfg.y0)
    improvement = (reference - descent) / reference * 100 if math.isfinite(reference) and reference > 0 else 0.0
    logger.debug(f"brachistochrone: {cfg.iterations} iterations, T={descent:.5f} (straight {reference:.5f})")

    return VariationalResult(
        points=_points(xs, values),
        reference_points=_points(xs, straight),
        meta={"descentTime": descent, "straightLineTime": reference, "improvementPct": improvement, "valid": 1.0},
        series={"iteration": [float(i + 1) for i in range(len(history))], "time": history},
    )


# -------------------------
# Resonant tunneling spectrum
# -------------------------
def solve_tunneling_scan(params: Dict[str, float]) -> VariationalResult:
    spectrum = transmission_spectrum(params)
    peak = spectrum.peak_index
    return VariationalResult(
        points=_points(spectrum.energy, spectrum.transmission),
        meta={
            "peakTransmission": float(spectrum.transmission[peak]),
            "peakEnergy": float(spectrum.energy[peak]),
            "doubleBarrier": float(barrier_stack(params).double_barrier),
            "points": float(spectrum.energy.shape[0]),
        },
        series={"energy": spectrum.energy.tolist(), "transmission": spectrum.transmission.tolist()},
    )


VARIATIONAL: Dict[str, VariationalSystem] = {
    s.id: s
    for s in (
        VariationalSystem(
            id="brachistochrone",
            name="Brachistochrone",
            params={
                "x0": 0.0,
                "y0": 0.0,
                "x1": 2.0,
                "y1": 1.0,
                "g": 9.81,
                "segments": 80,
                "iterations": 240,
                "learningRate": 0.03,
                "smoothness": 0.001,
                "xClustering": 1.6,
            },
            solve=solve_brachistochrone,
        ),
        VariationalSystem(
            id="tunnelingscan",
            name="Resonant Tunneling Transmission",
            params={
                "m": 1.0,
                "hbar": 1.0,
                "barrierHeight": 8.0,
                "barrierWidth": 0.9,
                "wellWidth": 3.2,
                "doubleBarrier": 1.0,
                "scanEmin": 0.08,
                "scanEmax": 7.2,
                "scanPoints": 220,
            },
            solve=solve_tunneling_scan,
        ),
    )
}


def get_variational(system_id: str) -> VariationalSystem:
    try:
        return VARIATIONAL[system_id]
    except KeyError:
        raise UnknownSystem(system_id, "variational") from None
