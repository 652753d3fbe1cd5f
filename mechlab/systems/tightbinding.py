"""Nearest-neighbour tight-binding chain with seeded Anderson disorder and one impurity."""

import math
from dataclasses import dataclass

import numpy as np

from ..grid import clamp, finite_or, pack_complex, resolve_points, split_complex
from .base import System, cached_config

PARAMS = {
    "sites": 96,
    "hop": 1.0,
    "hbar": 1.0,
    "epsilon0": 0.0,
    "disorderW": 0.0,
    "disorderSeed": 2.0,
    "periodic": 0.0,
    "impuritySite": -1.0,
    "impurityStrength": 0.0,
    "packetCenter": 18.0,
    "packetWidth": 3.0,
    "packetK": 1.0,
}


def lcg_uniform(seed: float, count: int) -> np.ndarray:
    """32-bit LCG (Numerical Recipes constants), so a seed reproduces the same chain everywhere."""
    state = (int(math.floor(seed)) % 2 ** 32) or 1
    out = np.empty(count)
    for i in range(count):
        state = (1664525 * state + 1013904223) % 2 ** 32
        out[i] = state / 2 ** 32
    return out


@dataclass
class TightBindingConfig:
    n: int
    hop: float
    hbar: float
    periodic: bool
    packet_center: float
    packet_width: float
    packet_k: float
    onsite: np.ndarray


@cached_config
def tight_binding_config(p, state_length=None) -> TightBindingConfig:
    n = resolve_points(p, "sites", 96, 16, 320, state_length)
    onsite = finite_or(p.get("epsilon0"), 0.0) + (
        lcg_uniform(finite_or(p.get("disorderSeed"), 1.0), n) - 0.5
    ) * max(0.0, finite_or(p.get("disorderW"), 0.0))

    impurity = finite_or(p.get("impuritySite"), -1.0)
    site = int(round(impurity))
    if 0 <= site < n:
        onsite[site] += finite_or(p.get("impurityStrength"), 0.0)

    return TightBindingConfig(
        n=n,
        hop=max(1e-8, finite_or(p.get("hop"), 1.0)),
        hbar=max(1e-8, finite_or(p.get("hbar"), 1.0)),
        periodic=clamp(finite_or(p.get("periodic"), 0.0), 0.0, 1.0) >= 0.5,
        packet_center=finite_or(p.get("packetCenter"), 18.0),
        packet_width=max(0.15, finite_or(p.get("packetWidth"), 3.0)),
        packet_k=finite_or(p.get("packetK"), 1.0),
        onsite=onsite,
    )


def _neighbour_sum(f: np.ndarray, periodic: bool) -> np.ndarray:
    padded = np.pad(f, 1, mode="wrap" if periodic else "constant")
    return padded[:-2] + padded[2:]


def initial_state(p) -> np.ndarray:
    cfg = tight_binding_config(p)
    offset = np.arange(cfg.n) - cfg.packet_center
    z = offset / cfg.packet_width
    envelope = np.exp(-0.5 * z * z)
    re = envelope * np.cos(cfg.packet_k * offset)
    im = envelope * np.sin(cfg.packet_k * offset)
    # sites carry probability directly, no lattice spacing
    total = float(np.sum(re * re + im * im))
    scale = 1.0 / math.sqrt(total) if total > 0 else 1.0
    return pack_complex(re * scale, im * scale)


def rhs(t, y, p):
    cfg = tight_binding_config(p, len(y))
    re, im = split_complex(y, cfg.n, "Tight-binding")
    a = cfg.onsite * re - cfg.hop * _neighbour_sum(re, cfg.periodic)
    b = cfg.onsite * im - cfg.hop * _neighbour_sum(im, cfg.periodic)
    return np.concatenate([b / cfg.hbar, -a / cfg.hbar])


def energy(y, p) -> float:
    cfg = tight_binding_config(p, len(y))
    re, im = split_complex(y, cfg.n, "Tight-binding")
    onsite = float(np.sum(cfg.onsite * (re * re + im * im)))
    pairs = float(np.sum(re[:-1] * re[1:] + im[:-1] * im[1:]))
    if cfg.periodic and cfg.n > 1:
        pairs += float(re[-1] * re[0] + im[-1] * im[0])
    return onsite - 2.0 * cfg.hop * pairs


def observables(y, p):
    cfg = tight_binding_config(p, len(y))
    re, im = split_complex(y, cfg.n, "Tight-binding")
    prob = re * re + im * im
    sites = np.arange(cfg.n)
    norm = float(np.sum(prob))
    norm_safe = norm if norm > 1e-12 else 1.0
    mean = float(np.sum(sites * prob)) / norm_safe
    second = float(np.sum(sites * sites * prob)) / norm_safe
    mid = cfg.n // 2
    center = int(np.argmin(np.abs(sites - (cfg.n - 1) / 2)))
    return {
        "norm": norm,
        "meanSite": mean,
        "spread": math.sqrt(max(0.0, second - mean * mean)),
        "ipr": float(np.sum(prob * prob)) / (norm_safe * norm_safe),
        "leftProb": float(np.sum(prob[:mid])) / norm_safe,
        "rightProb": float(np.sum(prob[mid:])) / norm_safe,
        "centerProb": float(prob[center]) / norm_safe,
    }


TIGHT_BINDING = System(
    id="tightbinding",
    name="Tight-Binding Chain Transport",
    params=dict(PARAMS),
    initial_state=initial_state,
    rhs=rhs,
    energy=energy,
    derived=observables,
    supported_integrators=("rk4",),
    defaults={"dt": 0.02, "duration": 36.0},
)
