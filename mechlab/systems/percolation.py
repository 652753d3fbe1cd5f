"""
2D site percolation on an n x n lattice.

One seeded snapshot is analysed in detail (occupancy, largest cluster,
top-to-bottom spanning clusters) and a Monte Carlo scan over the occupation
probability estimates the spanning probability curve around p_c ~ 0.5927.
There is no time evolution: :func:`simulate` returns a single frame.
"""

from dataclasses import dataclass
from typing import Dict

import numpy as np
from scipy import ndimage

from ..grid import clamp, clamp_int, finite_or
from .base import System, Trajectory

PARAMS = {
    "gridSize": 28,
    "pOcc": 0.5927,
    "trials": 80,
    "scanMin": 0.35,
    "scanMax": 0.8,
    "scanPoints": 25,
    "seed": 11,
}

# von Neumann neighbourhood
_FOUR_NEIGHBOURS = ndimage.generate_binary_structure(2, 1)

_SCAN_SEED_OFFSET = 7919


@dataclass
class PercolationConfig:
    grid_size: int
    p_occ: float
    trials: int
    scan_min: float
    scan_max: float
    scan_points: int
    seed: int

    def scan_values(self) -> np.ndarray:
        if self.scan_points <= 1:
            return np.array([self.scan_min])
        return self.scan_min + (np.arange(self.scan_points) / (self.scan_points - 1)) * (self.scan_max - self.scan_min)


@dataclass
class Snapshot:
    occupancy: np.ndarray
    largest_mask: np.ndarray
    spanning_mask: np.ndarray
    cluster_count: int

    @property
    def n(self) -> int:
        return self.occupancy.shape[0]

    @property
    def occupied_fraction(self) -> float:
        return float(self.occupancy.mean())

    @property
    def largest_fraction(self) -> float:
        return float(self.largest_mask.mean())

    @property
    def spanning_fraction(self) -> float:
        return float(self.spanning_mask.mean())

    @property
    def spans(self) -> bool:
        return bool(self.spanning_mask.any())

    def stats(self) -> Dict[str, float]:
        return {
            "occFrac": self.occupied_fraction,
            "largestFrac": self.largest_fraction,
            "spanningFrac": self.spanning_fraction,
            "spanFlag": float(self.spans),
            "clusterCount": float(self.cluster_count),
        }


def percolation_config(p) -> PercolationConfig:
    lo = clamp(finite_or(p.get("scanMin"), 0.35), 0.0, 1.0)
    hi = clamp(finite_or(p.get("scanMax"), 0.8), 0.0, 1.0)
    if hi < lo:
        lo, hi = hi, lo
    return PercolationConfig(
        grid_size=clamp_int(p.get("gridSize"), 8, 80, 28),
        p_occ=clamp(finite_or(p.get("pOcc"), 0.5927), 0.0, 1.0),
        trials=clamp_int(p.get("trials"), 1, 500, 80),
        scan_min=lo,
        scan_max=hi,
        scan_points=clamp_int(p.get("scanPoints"), 5, 101, 25),
        seed=int(round(finite_or(p.get("seed"), 11))),
    )


def _rng(seed: int) -> np.random.Generator:
    return np.random.default_rng(seed % 2 ** 32)


def analyze(occupancy: np.ndarray) -> Snapshot:
    """Label 4-connected clusters; keep the first largest and every top-bottom spanning one."""
    labels, count = ndimage.label(occupancy, structure=_FOUR_NEIGHBOURS)
    largest = np.zeros(occupancy.shape, dtype=bool)
    spanning = np.zeros(occupancy.shape, dtype=bool)
    if count:
        sizes = np.bincount(labels.ravel())[1:]
        largest = labels == int(np.argmax(sizes)) + 1
        crossing = np.intersect1d(labels[0][labels[0] > 0], labels[-1][labels[-1] > 0])
        spanning = np.isin(labels, crossing)
    return Snapshot(occupancy=occupancy.astype(bool), largest_mask=largest, spanning_mask=spanning, cluster_count=int(count))


def sample(n: int, p_occ: float, rng: np.random.Generator) -> Snapshot:
    return analyze(rng.random((n, n)) < p_occ)


def pack(snapshot: Snapshot) -> np.ndarray:
    stats = snapshot.stats()
    return np.concatenate(
        [
            [float(snapshot.n)],
            snapshot.occupancy.ravel().astype(np.float64),
            snapshot.largest_mask.ravel().astype(np.float64),
            snapshot.spanning_mask.ravel().astype(np.float64),
            [stats["occFrac"], stats["largestFrac"], stats["spanningFrac"], stats["spanFlag"], stats["clusterCount"]],
        ]
    )


def snapshot_for(cfg: PercolationConfig) -> Snapshot:
    return sample(cfg.grid_size, cfg.p_occ, _rng(cfg.seed))


def scan(cfg: PercolationConfig) -> Dict[str, np.ndarray]:
    """Trial-averaged cluster statistics across the occupation-probability range."""
    rng = _rng(cfg.seed + _SCAN_SEED_OFFSET)
    p_values = cfg.scan_values()
    span_prob, largest, occupied, clusters = (np.zeros_like(p_values) for _ in range(4))
    for i, p_occ in enumerate(p_values):
        for _ in range(cfg.trials):
            snap = sample(cfg.grid_size, p_occ, rng)
            span_prob[i] += snap.spans
            largest[i] += snap.largest_fraction
            occupied[i] += snap.occupied_fraction
            clusters[i] += snap.cluster_count
    denom = max(1, cfg.trials)
    return {
        "scanP": p_values,
        "scanSpanProb": span_prob / denom,
        "scanLargestFrac": largest / denom,
        "scanOccupiedFrac": occupied / denom,
        "scanClusterCount": clusters / denom,
    }


def initial_state(p) -> np.ndarray:
    return pack(snapshot_for(percolation_config(p)))


def simulate(t0: float, y0, dt: float, steps: int, params: Dict[str, float]) -> Trajectory:
    cfg = percolation_config(params)
    snap = snapshot_for(cfg)
    derived = {key: np.array([value]) for key, value in snap.stats().items()}
    derived.update(scan(cfg))
    return Trajectory(t=np.array([float(t0)]), y=pack(snap)[None, :], derived=derived)


def rhs(t, y, p):
    return np.zeros_like(np.asarray(y, dtype=np.float64))


def observables(y, p):
    n = max(2, int(round(finite_or(y[0], PARAMS["gridSize"]))))
    offset = 1 + 3 * n * n
    keys = ("occFrac", "largestFrac", "spanningFrac", "spanFlag", "clusterCount")
    return {key: finite_or(y[offset + i], 0.0) if offset + i < len(y) else 0.0 for i, key in enumerate(keys)}


PERCOLATION = System(
    id="percolation",
    name="2D Site Percolation",
    params=dict(PARAMS),
    initial_state=initial_state,
    rhs=rhs,
    derived=observables,
    supported_integrators=("rk4",),
    simulate=simulate,
    defaults={"dt": 1.0, "duration": 1.0},
)
