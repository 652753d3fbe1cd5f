"""
Request and response messages exchanged with the engine.

Requests are a union discriminated on ``type``; use :data:`REQUEST_ADAPTER`
to validate a raw dict. Field names follow the wire format (``systemId``,
``hillProfile``...) through aliases, and snake_case names are accepted too.
"""

from typing import Annotated, Any, Dict, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

IntegratorKind = Literal["rk4", "verlet"]
CurvePoints = List[Tuple[float, float]]


class _Message(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    def dump(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class SimulateRequest(_Message):
    """Integrate an ODE system for ``steps`` fixed steps of size ``dt``."""

    type: Literal["simulate"] = "simulate"
    system_id: str = Field(..., alias="systemId", description="Registry id of the system")
    params: Dict[str, float] = Field(default_factory=dict, description="Overrides of the default params")
    y0: List[float] = Field(default_factory=list, description="Initial state; empty selects the default")
    t0: float = 0.0
    dt: float = Field(..., gt=0)
    steps: int = Field(..., ge=1)
    integrator: IntegratorKind = "rk4"
    expression: Optional[str] = Field(None, description="V(x) for the potential1d system")
    hill_profile: Optional[CurvePoints] = Field(None, alias="hillProfile")
    muscle_curve: Optional[CurvePoints] = Field(None, alias="muscleCurve")


class SolveRequest(_Message):
    """Run a one-shot variational solve."""

    type: Literal["solve"] = "solve"
    system_id: str = Field(..., alias="systemId")
    params: Dict[str, float] = Field(default_factory=dict)


Request = Annotated[Union[SimulateRequest, SolveRequest], Field(discriminator="type")]
REQUEST_ADAPTER: TypeAdapter = TypeAdapter(Request)


class SimulateResult(_Message):
    type: Literal["simulate:result"] = "simulate:result"
    t: List[float]
    y: List[List[float]]
    energy: Optional[List[float]] = None
    derived: Optional[Dict[str, List[float]]] = None


class SolveResult(_Message):
    type: Literal["solve:result"] = "solve:result"
    result: Dict[str, Any]


class ErrorResult(_Message):
    type: Literal["error"] = "error"
    message: str
    category: Optional[str] = None


def parse_request(message: Dict[str, Any]) -> Union[SimulateRequest, SolveRequest]:
    return REQUEST_ADAPTER.validate_python(message)
