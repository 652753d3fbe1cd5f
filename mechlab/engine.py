"""
Dispatch engine: one request dict in, one response dict out.

:meth:`Engine.handle` never raises. Validation problems, unknown ids,
unsupported integrators and failures inside a run all come back as
``{"type": "error", "message": ...}``. Non-finite numbers produced by an
integration are data, not errors, and pass through untouched.
"""

import time
from collections import Counter
from typing import Any, Dict, Optional

import numpy as np
from loguru import logger
from pydantic import ValidationError

from .errors import ErrorCategory, IntegratorUsageError, UnsupportedIntegrator, categorize_error
from .integrators import integrate
from .protocol import ErrorResult, SimulateRequest, SimulateResult, SolveRequest, SolveResult, parse_request
from .systems import REGISTRY, Context, Trajectory, get_system
from .systems.base import derived_series, energy_series
from .variational import VARIATIONAL, get_variational

# rejected requests, as opposed to failures inside a run
_REJECTIONS = {
    ErrorCategory.UNKNOWN_SYSTEM,
    ErrorCategory.UNSUPPORTED_INTEGRATOR,
    ErrorCategory.VALIDATION,
    ErrorCategory.USAGE,
}


class Engine:
    def __init__(self, max_steps: int = 0):
        self.max_steps = max(0, int(max_steps))
        self.error_stats: Counter = Counter()
        self.completed = 0

    # -------------------------
    # Entry point
    # -------------------------
    def handle(self, message: Dict[str, Any]) -> Dict[str, Any]:
        try:
            request = parse_request(message)
            if isinstance(request, SimulateRequest):
                return self.simulate(request).dump()
            return self.solve(request).dump()
        except Exception as exc:
            return self._error(exc, message)

    def _error(self, exc: Exception, message: Any) -> Dict[str, Any]:
        category = categorize_error(exc)
        self.error_stats[category.value] += 1
        system_id = message.get("systemId") if isinstance(message, dict) else None
        if isinstance(exc, ValidationError):
            text = f"Invalid request: {exc.errors(include_url=False)}"
        else:
            text = str(exc)
        if category in _REJECTIONS:
            logger.warning(f"Rejected [{category.value}] {system_id}: {text}")
        elif category == ErrorCategory.INTERNAL:
            logger.opt(exception=exc).error(f"Error [{category.value}] {system_id}: {exc}")
        else:
            logger.error(f"Error [{category.value}] {system_id}: {text}")
        return ErrorResult(message=text, category=category.value).dump()

    # -------------------------
    # simulate
    # -------------------------
    def simulate(self, request: SimulateRequest) -> SimulateResult:
        system = get_system(request.system_id)
        if not system.supports(request.integrator):
            raise UnsupportedIntegrator(request.integrator, system.id)
        if self.max_steps and request.steps > self.max_steps:
            raise IntegratorUsageError(f"steps={request.steps} exceeds the configured limit of {self.max_steps}.")

        system = system.with_context(
            Context(
                expression=request.expression,
                hill_profile=request.hill_profile,
                muscle_curve=request.muscle_curve,
            )
        )
        params = system.merged_params(request.params)
        if request.y0:
            y0 = np.asarray(request.y0, dtype=np.float64)
        else:
            y0 = np.asarray(system.initial_state(params), dtype=np.float64)

        logger.debug(
            f"simulate {system.id}: integrator={request.integrator} steps={request.steps} "
            f"dt={request.dt} state={y0.shape[0]}"
        )
        started = time.perf_counter()
        trajectory = self._run(system, request, y0, params)
        energy = trajectory.energy
        if energy is None:
            energy = energy_series(trajectory.y, params, system.energy)
        derived = trajectory.derived
        if derived is None:
            derived = derived_series(trajectory.y, params, system.derived)
        self.completed += 1
        logger.info(f"simulate {system.id}: {request.steps} steps in {time.perf_counter() - started:.3f}s")

        # skip re-validating large float arrays
        return SimulateResult.model_construct(
            type="simulate:result",
            t=trajectory.t.tolist(),
            y=np.asarray(trajectory.y).tolist(),
            energy=None if energy is None else energy.tolist(),
            derived=None if derived is None else {key: values.tolist() for key, values in derived.items()},
        )

    @staticmethod
    def _run(system, request: SimulateRequest, y0: np.ndarray, params) -> Trajectory:
        if system.simulate is not None:
            return system.simulate(request.t0, y0, request.dt, request.steps, params)
        result = integrate(request.integrator, system.rhs, request.t0, y0, request.dt, request.steps, params)
        return Trajectory(t=result.t, y=result.y)

    # -------------------------
    # solve
    # -------------------------
    def solve(self, request: SolveRequest) -> SolveResult:
        solver = get_variational(request.system_id)
        params = dict(solver.params)
        params.update(request.params)
        logger.debug(f"solve {solver.id}: params={params}")
        started = time.perf_counter()
        result = solver.solve(params)
        self.completed += 1
        logger.info(f"solve {solver.id}: done in {time.perf_counter() - started:.3f}s")
        return SolveResult.model_construct(type="solve:result", result=result.to_dict())

    # -------------------------
    # Introspection
    # -------------------------
    def catalog(self) -> Dict[str, Any]:
        systems = []
        for system in REGISTRY.values():
            entry = system.describe()
            entry["state_length"] = self._state_length(system)
            systems.append(entry)
        return {"systems": systems, "variational": [solver.describe() for solver in VARIATIONAL.values()]}

    @staticmethod
    def _state_length(system) -> Optional[int]:
        try:
            return int(np.asarray(system.initial_state(dict(system.params))).shape[0])
        except Exception as exc:
            logger.warning(f"Could not build default state for {system.id}: {exc}")
            return None

    def stats(self) -> Dict[str, Any]:
        return {"completed": self.completed, "errors": dict(self.error_stats)}
