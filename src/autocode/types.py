"""Core contract types: kind tags, evaluation results and error bodies."""

import enum
from dataclasses import dataclass
from typing import Any, Mapping, Sequence

from .errors import ContractViolationError


class VariableKind(enum.Enum):
    """Wire tag of a search-space dimension."""
    BINARY = "OptimizationBinary"
    INTEGER = "OptimizationInteger"
    REAL = "OptimizationReal"
    CHOICE = "OptimizationChoice"


class ValueKind(enum.Enum):
    """Wire tag of a concrete value."""
    INTEGER = "int"
    FLOAT = "float"
    BOOLEAN = "bool"
    EXECUTABLE = "OptimizationValueFunction"


class IntegerCoercion(enum.Enum):
    """How a transported float is turned into a declared integer.

    STRICT rejects non-integral input. TRUNCATE rounds toward zero, which is
    what older deployments did.
    """
    STRICT = "strict"
    TRUNCATE = "truncate"


def _canon_float(v: Any, field_name: str) -> float:
    """Canonicalize a numeric entry of a result, rejecting non-numbers."""
    if isinstance(v, bool) or not isinstance(v, (int, float)):
        raise ContractViolationError(
            f"{field_name} entries must be numbers, got {type(v).__name__}"
        )
    return float(v)


@dataclass(frozen=True)
class EvaluationResult:
    """Objectives and constraints produced by one evaluation.

    Attributes:
        objectives: Objective values, in the order the optimizer expects
        inequality_constraints: Values that must stay <= 0
        equality_constraints: Values that must equal 0
    """
    objectives: Sequence[float]
    inequality_constraints: Sequence[float] = ()
    equality_constraints: Sequence[float] = ()

    def __post_init__(self):
        for name in ("objectives", "inequality_constraints", "equality_constraints"):
            values = getattr(self, name)
            if isinstance(values, (str, bytes)) or not isinstance(values, Sequence):
                raise ContractViolationError(f"{name} must be a sequence of floats")
            object.__setattr__(self, name, tuple(_canon_float(v, name) for v in values))

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "EvaluationResult":
        """Create from a plain mapping such as a JSON body."""
        if "objectives" not in data:
            raise ContractViolationError("evaluation result must contain objectives")
        return cls(
            objectives=data["objectives"],
            inequality_constraints=data.get("inequality_constraints", ()),
            equality_constraints=data.get("equality_constraints", ()),
        )

    def to_dict(self) -> dict[str, list[float]]:
        """Convert to the evaluate-run response shape."""
        return {
            "objectives": list(self.objectives),
            "inequality_constraints": list(self.inequality_constraints),
            "equality_constraints": list(self.equality_constraints),
        }


@dataclass(frozen=True)
class ErrorInfo:
    """Semantic error information returned at the HTTP boundary."""
    error_type: str          # e.g., "ResolutionError", "SchemaError"
    message: str             # Brief error description
    retryable: bool = False  # Always False for protocol errors

    @classmethod
    def from_exception(cls, exc: BaseException) -> "ErrorInfo":
        return cls(error_type=type(exc).__name__, message=str(exc))

    def to_dict(self) -> dict[str, Any]:
        return {
            "error_type": self.error_type,
            "message": self.message,
            "retryable": self.retryable,
        }


__all__ = [
    "VariableKind",
    "ValueKind",
    "IntegerCoercion",
    "EvaluationResult",
    "ErrorInfo",
]
