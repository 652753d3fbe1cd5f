"""
Stationary transmission through piecewise-constant barriers.

Each layer contributes an interface matrix (continuity of psi and psi' across
a step in k) followed by a free propagation matrix. Transmission from the left
lead is |1/M00|^2 for the full product.
"""

import cmath
from dataclasses import dataclass
from typing import List, Sequence, Tuple

import numpy as np

from .grid import clamp, clamp_int, finite_or

Layer = Tuple[float, float]

_IDENTITY = np.eye(2, dtype=np.complex128)


@dataclass
class BarrierStack:
    m: float
    hbar: float
    barrier_height: float
    barrier_width: float
    well_width: float
    double_barrier: bool
    scan_emin: float
    scan_emax: float
    scan_points: int

    @property
    def layers(self) -> List[Layer]:
        return barrier_layers(self.barrier_height, self.barrier_width, self.well_width, self.double_barrier)


@dataclass
class TransferMatrixResult:
    energy: np.ndarray
    transmission: np.ndarray

    @property
    def peak_index(self) -> int:
        return int(np.argmax(self.transmission))


def barrier_stack(p) -> BarrierStack:
    """Sanitized barrier geometry and scan range shared with the wavepacket model."""
    emin = max(1e-6, finite_or(p.get("scanEmin"), 0.1))
    return BarrierStack(
        m=max(1e-8, finite_or(p.get("m"), 1.0)),
        hbar=max(1e-8, finite_or(p.get("hbar"), 1.0)),
        barrier_height=max(0.0, finite_or(p.get("barrierHeight"), 6.0)),
        barrier_width=max(0.05, finite_or(p.get("barrierWidth"), 0.7)),
        well_width=max(0.05, finite_or(p.get("wellWidth"), 2.3)),
        double_barrier=clamp(finite_or(p.get("doubleBarrier"), 1.0), 0.0, 1.0) >= 0.5,
        scan_emin=emin,
        scan_emax=max(emin + 1e-6, finite_or(p.get("scanEmax"), 8.0)),
        scan_points=clamp_int(p.get("scanPoints"), 40, 500, 140),
    )


def barrier_layers(barrier_height: float, barrier_width: float, well_width: float, double: bool) -> List[Layer]:
    if double:
        return [(barrier_width, barrier_height), (well_width, 0.0), (barrier_width, barrier_height)]
    return [(barrier_width, barrier_height)]


def wavenumber(energy: float, potential: float, m: float, hbar: float) -> complex:
    """Real above the step, purely imaginary (evanescent) below it."""
    value = 2.0 * m * (energy - potential) / (hbar * hbar)
    if value >= 0:
        return complex(np.sqrt(value), 0.0)
    return complex(0.0, np.sqrt(-value))


def _ratio(num: complex, den: complex) -> complex:
    if abs(den) ** 2 <= 1e-20:
        return 0j
    return num / den


def interface_matrix(k_a: complex, k_b: complex) -> np.ndarray:
    r = _ratio(k_b, k_a)
    a = 0.5 * (1 + r)
    b = 0.5 * (1 - r)
    return np.array([[a, b], [b, a]], dtype=np.complex128)


def propagation_matrix(k: complex, width: float) -> np.ndarray:
    return np.array([[cmath.exp(1j * k * width), 0], [0, cmath.exp(-1j * k * width)]], dtype=np.complex128)


def transmission(energy: float, layers: Sequence[Layer], m: float = 1.0, hbar: float = 1.0) -> float:
    """
    Transmission probability at ``energy`` through ``layers``.

    Args:
        energy: Incident energy in the zero-potential leads.
        layers: (width, potential) pairs from left to right.

    Returns:
        |1/M00|^2 clamped to [0, 1.2]; 0 for non-positive energy.
    """
    if not energy > 0:
        return 0.0
    k_lead = wavenumber(energy, 0.0, m, hbar)
    if abs(k_lead) ** 2 <= 1e-16:
        return 0.0

    matrix = _IDENTITY
    k_prev = k_lead
    for width, potential in layers:
        k_layer = wavenumber(energy, potential, m, hbar)
        matrix = matrix @ interface_matrix(k_prev, k_layer) @ propagation_matrix(k_layer, width)
        k_prev = k_layer
    matrix = matrix @ interface_matrix(k_prev, k_lead)

    t = _ratio(1 + 0j, complex(matrix[0, 0]))
    return clamp(abs(t) ** 2, 0.0, 1.2)


def transmission_spectrum(p) -> TransferMatrixResult:
    stack = barrier_stack(p)
    n = stack.scan_points
    energy = stack.scan_emin + (np.arange(n) / max(1, n - 1)) * (stack.scan_emax - stack.scan_emin)
    layers = stack.layers
    values = np.array([transmission(float(e), layers, stack.m, stack.hbar) for e in energy])
    return TransferMatrixResult(energy=energy, transmission=values)
