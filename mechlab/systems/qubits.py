"""
Spin-1/2 systems: a single qubit precessing on the Bloch sphere and a pair of
qubits with ZZ coupling.

States are packed like every other amplitude in the package: ``[Re..., Im...]``.
The single qubit is ``[aRe, aIm, bRe, bIm]`` (a = <0|psi>, b = <1|psi>), the
pair is ``[re(4), im(4)]`` over the basis 00, 01, 10, 11.
"""

import math
from dataclasses import dataclass
from typing import Dict

import numpy as np

from ..errors import MalformedState
from ..grid import clamp, finite_or
from .base import System

SIGMA_X = np.array([[0, 1], [1, 0]], dtype=np.complex128)
SIGMA_Y = np.array([[0, -1j], [1j, 0]], dtype=np.complex128)
SIGMA_Z = np.array([[1, 0], [0, -1]], dtype=np.complex128)
IDENTITY = np.eye(2, dtype=np.complex128)

_H = math.sqrt(0.5)
SINGLE_QUBIT_GATES: Dict[str, np.ndarray] = {
    "x": SIGMA_X,
    "y": SIGMA_Y,
    "z": SIGMA_Z,
    "s": np.array([[1, 0], [0, 1j]], dtype=np.complex128),
    "h": np.array([[_H, _H], [_H, -_H]], dtype=np.complex128),
}
GATES = tuple(f"{name}{qubit}" for name in SINGLE_QUBIT_GATES for qubit in (1, 2)) + ("cnot12", "cz")


def wrap_angle(angle: float) -> float:
    """Map onto [-pi, pi); non-finite angles become 0."""
    if not math.isfinite(angle):
        return 0.0
    return (angle + math.pi) % (2 * math.pi) - math.pi


def qubit_from_angles(theta: float, phi: float) -> np.ndarray:
    return np.array([math.cos(0.5 * theta), math.sin(0.5 * theta) * complex(math.cos(phi), math.sin(phi))])


def _unpack(y, size: int, label: str) -> np.ndarray:
    y = np.asarray(y, dtype=np.float64)
    if y.shape[0] != 2 * size:
        raise MalformedState(f"{label} state length mismatch: expected {2 * size}, got {y.shape[0]}.")
    return y[:size] + 1j * y[size:]


def _pack(psi: np.ndarray) -> np.ndarray:
    psi = np.ravel(psi)
    return np.concatenate([psi.real, psi.imag]).astype(np.float64)


def _normalized(psi: np.ndarray) -> np.ndarray:
    norm = float(np.sum(np.abs(psi) ** 2))
    return psi / math.sqrt(norm) if norm > 1e-14 else psi


def _schrodinger(hamiltonian: np.ndarray, psi: np.ndarray, hbar: float) -> np.ndarray:
    # i hbar dpsi/dt = H psi
    return _pack(-1j * (hamiltonian @ psi) / hbar)


# -------------------------
# Single qubit
# -------------------------
@dataclass
class BlochConfig:
    hbar: float
    omega: np.ndarray
    theta0: float
    phi0: float

    @property
    def hamiltonian(self) -> np.ndarray:
        wx, wy, wz = self.omega
        return 0.5 * (wx * SIGMA_X + wy * SIGMA_Y + wz * SIGMA_Z)


def bloch_config(p) -> BlochConfig:
    return BlochConfig(
        hbar=max(1e-8, finite_or(p.get("hbar"), 1.0)),
        omega=np.array([
            finite_or(p.get("omegaX"), 1.8),
            finite_or(p.get("omegaY"), 0.0),
            finite_or(p.get("omegaZ"), 0.6),
        ]),
        theta0=clamp(finite_or(p.get("theta0"), 0.35), 0.0, math.pi),
        phi0=wrap_angle(finite_or(p.get("phi0"), 0.0)),
    )


def bloch_initial_state(p) -> np.ndarray:
    cfg = bloch_config(p)
    return _pack(_normalized(qubit_from_angles(cfg.theta0, cfg.phi0)))


def bloch_rhs(t, y, p):
    cfg = bloch_config(p)
    return _schrodinger(cfg.hamiltonian, _unpack(y, 2, "Bloch sphere"), cfg.hbar)


def bloch_observables(y, p):
    a, b = _unpack(y, 2, "Bloch sphere")
    abs_a2, abs_b2 = abs(a) ** 2, abs(b) ** 2
    norm = abs_a2 + abs_b2
    norm_safe = norm if norm > 1e-14 else 1.0
    coherence = a.conjugate() * b
    sx = 2 * coherence.real / norm_safe
    sy = 2 * coherence.imag / norm_safe
    sz = (abs_a2 - abs_b2) / norm_safe
    phase_a = wrap_angle(math.atan2(a.imag, a.real))
    phase_b = wrap_angle(math.atan2(b.imag, b.real))
    return {
        "norm": norm,
        "p0": abs_a2 / norm_safe,
        "p1": abs_b2 / norm_safe,
        "sx": sx,
        "sy": sy,
        "sz": sz,
        "radius": math.sqrt(sx * sx + sy * sy + sz * sz),
        "theta": math.acos(clamp(sz, -1.0, 1.0)),
        "phi": wrap_angle(math.atan2(sy, sx)),
        "phaseA": phase_a,
        "phaseB": phase_b,
        "relativePhase": wrap_angle(phase_b - phase_a),
    }


def bloch_energy(y, p) -> float:
    cfg = bloch_config(p)
    obs = bloch_observables(y, p)
    return 0.5 * float(np.dot(cfg.omega, [obs["sx"], obs["sy"], obs["sz"]]))


BLOCH_SPHERE = System(
    id="blochsphere",
    name="Bloch Sphere Qubit Precession",
    params={"hbar": 1.0, "omegaX": 1.8, "omegaY": 0.0, "omegaZ": 0.6, "theta0": 0.35, "phi0": 0.0},
    initial_state=bloch_initial_state,
    rhs=bloch_rhs,
    energy=bloch_energy,
    derived=bloch_observables,
    supported_integrators=("rk4",),
    defaults={"dt": 0.01, "duration": 24.0},
)


# -------------------------
# Two qubits
# -------------------------
@dataclass
class TwoQubitConfig:
    hbar: float
    omega1: np.ndarray
    omega2: np.ndarray
    jzz: float
    theta1: float
    phi1: float
    theta2: float
    phi2: float

    @property
    def hamiltonian(self) -> np.ndarray:
        """0.5 w1.sigma (x) I + 0.5 I (x) w2.sigma + (J/4) sigma_z (x) sigma_z."""
        h1 = 0.5 * sum(w * s for w, s in zip(self.omega1, (SIGMA_X, SIGMA_Y, SIGMA_Z)))
        h2 = 0.5 * sum(w * s for w, s in zip(self.omega2, (SIGMA_X, SIGMA_Y, SIGMA_Z)))
        return np.kron(h1, IDENTITY) + np.kron(IDENTITY, h2) + 0.25 * self.jzz * np.kron(SIGMA_Z, SIGMA_Z)


def two_qubit_config(p) -> TwoQubitConfig:
    def omega(prefix):
        return np.array([finite_or(p.get(f"{prefix}{axis}"), 0.0) for axis in "xyz"])

    return TwoQubitConfig(
        hbar=max(1e-8, finite_or(p.get("hbar"), 1.0)),
        omega1=omega("omega1"),
        omega2=omega("omega2"),
        jzz=finite_or(p.get("jzz"), 1.6),
        theta1=clamp(finite_or(p.get("theta1"), 0.0), 0.0, math.pi),
        phi1=wrap_angle(finite_or(p.get("phi1"), 0.0)),
        theta2=clamp(finite_or(p.get("theta2"), 0.0), 0.0, math.pi),
        phi2=wrap_angle(finite_or(p.get("phi2"), 0.0)),
    )


def two_qubit_initial_state(p) -> np.ndarray:
    """Product state of the two single-qubit Bloch angles."""
    cfg = two_qubit_config(p)
    psi = np.kron(qubit_from_angles(cfg.theta1, cfg.phi1), qubit_from_angles(cfg.theta2, cfg.phi2))
    return _pack(_normalized(psi))


def bell_phi_plus() -> np.ndarray:
    """(|00> + |11>) / sqrt(2)."""
    return _pack(np.array([_H, 0.0, 0.0, _H], dtype=np.complex128))


def apply_gate(y, gate: str) -> np.ndarray:
    """
    Apply a named gate and renormalize.

    Single-qubit gates are ``x1 y1 z1 s1 h1`` and their ``...2`` twins;
    ``cnot12`` flips qubit 2 when qubit 1 is set and ``cz`` negates |11>.
    """
    # psi[q1, q2]
    psi = _unpack(y, 4, "Two-qubit").reshape(2, 2)
    if gate == "cnot12":
        psi[1] = psi[1, ::-1].copy()
    elif gate == "cz":
        psi[1, 1] = -psi[1, 1]
    elif gate[:-1] in SINGLE_QUBIT_GATES and gate[-1] in "12":
        matrix = SINGLE_QUBIT_GATES[gate[:-1]]
        psi = matrix @ psi if gate[-1] == "1" else psi @ matrix.T
    else:
        raise ValueError(f"Unknown gate {gate!r}; expected one of {', '.join(GATES)}.")
    return _pack(_normalized(psi))


def two_qubit_rhs(t, y, p):
    cfg = two_qubit_config(p)
    return _schrodinger(cfg.hamiltonian, _unpack(y, 4, "Two-qubit"), cfg.hbar)


def _binary_entropy(x: float) -> float:
    return -x * math.log2(x) if x > 1e-12 else 0.0


def two_qubit_observables(y, p):
    psi = _unpack(y, 4, "Two-qubit").reshape(2, 2)
    probs = np.abs(psi) ** 2
    norm = float(np.sum(probs))
    norm_safe = norm if norm > 1e-14 else 1.0
    p00, p01, p10, p11 = (probs / norm_safe).ravel()
    # off-diagonal elements of the reduced density matrices
    rho_a01 = np.sum(psi[0] * psi[1].conjugate())
    rho_b01 = np.sum(psi[:, 0] * psi[:, 1].conjugate())
    bloch1 = np.array([2 * rho_a01.real / norm_safe, -2 * rho_a01.imag / norm_safe, p00 + p01 - p10 - p11])
    bloch2 = np.array([2 * rho_b01.real / norm_safe, -2 * rho_b01.imag / norm_safe, p00 - p01 + p10 - p11])
    r1 = clamp(float(np.linalg.norm(bloch1)), 0.0, 1.0)
    return {
        "norm": norm,
        "p00": float(p00),
        "p01": float(p01),
        "p10": float(p10),
        "p11": float(p11),
        "bloch1x": float(bloch1[0]),
        "bloch1y": float(bloch1[1]),
        "bloch1z": float(bloch1[2]),
        "bloch2x": float(bloch2[0]),
        "bloch2y": float(bloch2[1]),
        "bloch2z": float(bloch2[2]),
        "concurrence": clamp(2 * abs(np.linalg.det(psi)) / norm_safe, 0.0, 1.0),
        "entropy": _binary_entropy(0.5 * (1 + r1)) + _binary_entropy(0.5 * (1 - r1)),
        "czz": float(p00 - p01 - p10 + p11),
    }


def two_qubit_energy(y, p) -> float:
    """<psi|H|psi> / <psi|psi>."""
    psi = _unpack(y, 4, "Two-qubit")
    norm = float(np.sum(np.abs(psi) ** 2))
    if norm <= 1e-14:
        return 0.0
    return float(np.vdot(psi, two_qubit_config(p).hamiltonian @ psi).real) / norm


TWO_QUBIT = System(
    id="twoqubit",
    name="Two-Qubit Entanglement",
    params={
        "hbar": 1.0,
        "omega1x": 0.0,
        "omega1y": 0.0,
        "omega1z": 0.0,
        "omega2x": 0.0,
        "omega2y": 0.0,
        "omega2z": 0.0,
        "jzz": 1.6,
        "theta1": 0.0,
        "phi1": 0.0,
        "theta2": 0.0,
        "phi2": 0.0,
    },
    initial_state=two_qubit_initial_state,
    rhs=two_qubit_rhs,
    energy=two_qubit_energy,
    derived=two_qubit_observables,
    supported_integrators=("rk4",),
    defaults={"dt": 0.01, "duration": 16.0},
)
