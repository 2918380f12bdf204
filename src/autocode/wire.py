"""Request and response envelopes of the optimization protocol.

Endpoints:

    POST {server}/apis/optimizations/prepares            PrepareRequest -> PrepareResponse
    POST {client}/apis/optimizations/evaluates/prepares  EvaluatePrepareRequest -> {}
    GET  {client}/apis/optimizations/evaluates/runs      -> EvaluateRunResponse
"""

from typing import Any, Dict, List, Mapping, Optional, Type, TypeVar

from pydantic import BaseModel, Field, ValidationError, field_validator

from .errors import SchemaError
from .types import EvaluationResult, ValueKind, VariableKind
from .variables import QUALITY_SCORES, Variable

PREPARES_PATH = "/apis/optimizations/prepares"
EVALUATES_PATH = "/apis/optimizations/evaluates"

M = TypeVar("M", bound=BaseModel)


class ExecutablePayload(BaseModel):
    """Executable option data as returned by the optimizer.

    ``string`` is only needed for options the client did not declare.
    """
    name: str
    string: Optional[str] = None
    error_potentiality: float = 0.0
    complexity: float = 0.0
    modularity: float = 0.0
    overall_maintainability: float = 0.0
    understandability: float = 0.0
    readability: float = 0.0

    def scores(self) -> Dict[str, float]:
        return {score: getattr(self, score) for score in QUALITY_SCORES}


class ValuePayload(BaseModel):
    """Serialized value: ``{id, type, data}``."""
    id: str
    type: ValueKind
    data: Any = None

    def executable(self) -> ExecutablePayload:
        """Interpret ``data`` as executable option data."""
        if self.type is not ValueKind.EXECUTABLE:
            raise SchemaError(f"value {self.id} is {self.type.value}, not executable")
        return decode(ExecutablePayload, self.data)


class VariablePayload(BaseModel):
    """Serialized variable: ``{id, name?, type, bounds?, options?}``."""
    id: str
    name: Optional[str] = None
    type: VariableKind
    bounds: Optional[List[int | float]] = None
    options: Optional[Dict[str, ValuePayload]] = None

    @field_validator('bounds')
    def validate_bounds(cls, v):
        if v is not None and len(v) != 2:
            raise ValueError("bounds must be [lower, upper]")
        return v


class PrepareRequest(BaseModel):
    """Declared search space plus the address the optimizer should call back."""
    variables: Dict[str, Dict[str, Any]]
    host: str
    port: int
    name: str

    @classmethod
    def from_search_space(
        cls,
        variables: Mapping[str, Variable],
        host: str,
        port: int,
        name: str,
    ) -> "PrepareRequest":
        return cls(
            variables={vid: variable.to_dict() for vid, variable in variables.items()},
            host=host,
            port=port,
            name=name,
        )


class PrepareResponse(BaseModel):
    """Refined search space returned by the optimizer."""
    variables: Dict[str, VariablePayload] = Field(default_factory=dict)


class EvaluatePrepareRequest(BaseModel):
    """Assignment for one evaluation."""
    variable_values: Dict[str, ValuePayload]


class EvaluateRunResponse(BaseModel):
    """Objectives and constraints of one evaluation."""
    objectives: List[float]
    inequality_constraints: List[float] = Field(default_factory=list)
    equality_constraints: List[float] = Field(default_factory=list)

    @classmethod
    def from_result(cls, result: EvaluationResult) -> "EvaluateRunResponse":
        return cls(**result.to_dict())


def decode(model: Type[M], data: Any) -> M:
    """Validate ``data`` against ``model``.

    Raises:
        SchemaError: If validation fails
    """
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise SchemaError(f"Invalid {model.__name__}: {e}") from e


__all__ = [
    "PREPARES_PATH",
    "EVALUATES_PATH",
    "ExecutablePayload",
    "ValuePayload",
    "VariablePayload",
    "PrepareRequest",
    "PrepareResponse",
    "EvaluatePrepareRequest",
    "EvaluateRunResponse",
    "decode",
]
