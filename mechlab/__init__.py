"""
mechlab: fixed-step simulation engine for classical, quantum and field systems

- A catalog of ODE systems (classical mechanics, wavepackets, lattices, flow)
  integrated with RK4 or velocity Verlet, or with a custom stepper
- One-shot variational solves (brachistochrone, resonant tunneling spectrum)
- A request/response engine served over asyncio JSON lines
"""

from .engine import Engine
from .errors import (
    ErrorCategory,
    IntegratorUsageError,
    InvalidExpression,
    MalformedState,
    MechlabError,
    NumericDomainError,
    UnknownSystem,
    UnsupportedIntegrator,
)
from .integrators import integrate, integrate_rk4, integrate_velocity_verlet
from .systems import REGISTRY, System, get_system
from .transfer_matrix import transmission, transmission_spectrum
from .variational import VARIATIONAL, get_variational

__version__ = "0.1.0"

__all__ = [
    "Engine",
    "ErrorCategory",
    "IntegratorUsageError",
    "InvalidExpression",
    "MalformedState",
    "MechlabError",
    "NumericDomainError",
    "REGISTRY",
    "System",
    "UnknownSystem",
    "UnsupportedIntegrator",
    "VARIATIONAL",
    "get_system",
    "get_variational",
    "integrate",
    "integrate_rk4",
    "integrate_velocity_verlet",
    "transmission",
    "transmission_spectrum",
]
