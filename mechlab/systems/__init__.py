"""
Catalog of time-evolving systems, keyed by id.

Each entry is a :class:`~mechlab.systems.base.System` record; see that module
for the capability fields the engine relies on.
"""

from typing import Dict, List

from ..errors import UnknownSystem
from .base import Context, System, Trajectory
from .brownian import BROWNIAN, QUANTUM_BROWNIAN
from .charges import CHARGED_PARTICLE, RUTHERFORD
from .classical import SYSTEMS as CLASSICAL_SYSTEMS
from .doubleslit import DOUBLE_SLIT
from .doubleslit2d import DOUBLE_SLIT_2D
from .doublewell import DOUBLE_WELL
from .fluids import FLOW_FIELD, FLUID_PARTICLE
from .muscle import MUSCLE_ACTIVATION
from .navierstokes import NAVIER_STOKES_2D
from .patchybinding import PATCHY_BINDING
from .percolation import PERCOLATION
from .potential import POTENTIAL_1D
from .qftlattice import QFT_LATTICE
from .qho import QHO_1D
from .qubits import BLOCH_SPHERE, TWO_QUBIT
from .schrodinger import SCHRODINGER_1D
from .skijump import SKI_JUMP
from .tightbinding import TIGHT_BINDING
from .tunneling import TUNNELING_1D
from .wave2d import WAVE_2D

REGISTRY: Dict[str, System] = {
    system.id: system
    for system in [
        *CLASSICAL_SYSTEMS,
        CHARGED_PARTICLE,
        RUTHERFORD,
        FLOW_FIELD,
        FLUID_PARTICLE,
        PATCHY_BINDING,
        BROWNIAN,
        POTENTIAL_1D,
        SKI_JUMP,
        MUSCLE_ACTIVATION,
        SCHRODINGER_1D,
        TUNNELING_1D,
        DOUBLE_WELL,
        DOUBLE_SLIT,
        DOUBLE_SLIT_2D,
        TIGHT_BINDING,
        QFT_LATTICE,
        QHO_1D,
        BLOCH_SPHERE,
        TWO_QUBIT,
        QUANTUM_BROWNIAN,
        WAVE_2D,
        NAVIER_STOKES_2D,
        PERCOLATION,
    ]
}


def get_system(system_id: str) -> System:
    try:
        return REGISTRY[system_id]
    except KeyError:
        raise UnknownSystem(system_id, "ODE") from None


def system_ids() -> List[str]:
    return sorted(REGISTRY)


__all__ = ["Context", "REGISTRY", "System", "Trajectory", "get_system", "system_ids"]
