"""
Capability record shared by every catalog entry.

A system is a plain bundle of callables rather than a class hierarchy: the
engine only needs ``rhs``, and optionally ``energy``, ``derived``, a list of
supported integrators, a custom ``simulate`` for solvers that do not go
through the generic integrators, and ``bind`` for systems that take a
per-request curve or expression.
"""

import functools
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import numpy as np

from ..integrators import Derivative, Params

Energy = Callable[[np.ndarray, Params], float]
Derived = Callable[[np.ndarray, Params], Dict[str, float]]


@dataclass
class Context:
    """Per-request inputs that are not plain numeric params."""

    expression: Optional[str] = None
    hill_profile: Optional[Sequence[Sequence[float]]] = None
    muscle_curve: Optional[Sequence[Sequence[float]]] = None


@dataclass
class Trajectory:
    t: np.ndarray
    y: np.ndarray
    energy: Optional[np.ndarray] = None
    derived: Optional[Dict[str, np.ndarray]] = None


@dataclass
class System:
    id: str
    name: str
    params: Dict[str, float]
    initial_state: Callable[[Params], np.ndarray]
    rhs: Derivative
    energy: Optional[Energy] = None
    derived: Optional[Derived] = None
    supported_integrators: Optional[Tuple[str, ...]] = None
    simulate: Optional[Callable[..., Trajectory]] = None
    bind: Optional[Callable[[Context], "System"]] = None
    state_names: Tuple[str, ...] = ()
    defaults: Dict[str, float] = field(default_factory=lambda: {"dt": 0.01, "duration": 10.0})

    @property
    def integrators(self) -> Tuple[str, ...]:
        return tuple(self.supported_integrators or ("rk4",))

    def supports(self, kind: str) -> bool:
        return kind in self.integrators

    def merged_params(self, overrides: Optional[Dict[str, float]] = None) -> Dict[str, float]:
        merged = dict(self.params)
        merged.update(overrides or {})
        return merged

    def with_context(self, context: Context) -> "System":
        if self.bind is None:
            return self
        return self.bind(context)

    def derive(self, **changes: Any) -> "System":
        return replace(self, **changes)

    def describe(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "params": dict(self.params),
            "state_names": list(self.state_names),
            "integrators": list(self.integrators),
            "custom_stepper": self.simulate is not None,
            "defaults": dict(self.defaults),
        }


def energy_series(states: np.ndarray, params: Params, energy_fn: Optional[Energy]) -> Optional[np.ndarray]:
    if energy_fn is None:
        return None
    return np.array([energy_fn(state, params) for state in states], dtype=np.float64)


def derived_series(states: np.ndarray, params: Params, derived_fn: Optional[Derived]) -> Optional[Dict[str, np.ndarray]]:
    if derived_fn is None:
        return None
    out: Dict[str, List[float]] = {}
    for state in states:
        for key, value in derived_fn(state, params).items():
            out.setdefault(key, []).append(value)
    return {key: np.asarray(values, dtype=np.float64) for key, values in out.items()}


def cached_config(builder: Callable[..., Any]) -> Callable[..., Any]:
    """
    Memoize a ``config(params, state_length)`` builder on its inputs.

    Field systems rebuild their configuration on every RHS call; caching keeps
    the precomputed potential/absorber arrays alive across the four RK4 stages
    of every step. Returned configs are shared and must not be mutated.
    """

    @functools.lru_cache(maxsize=64)
    def _cached(items, *args):
        return builder(dict(items), *args)

    @functools.wraps(builder)
    def wrapper(params: Params, *args):
        try:
            key = tuple(sorted(params.items()))
            hash((key, args))
        except TypeError:
            return builder(params, *args)
        return _cached(key, *args)

    wrapper.cache_clear = _cached.cache_clear  # type: ignore[attr-defined]
    return wrapper
