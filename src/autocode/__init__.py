"""autocode client - search-space negotiation and value resolution for remote optimizers."""

from .version import CLIENT_VERSION
from .errors import (
    AutocodeError,
    ContractViolationError,
    SchemaError,
    NegotiationError,
    HydrationError,
    ResolutionError,
    EvaluationConflictError,
)
from .types import (
    VariableKind,
    ValueKind,
    IntegerCoercion,
    EvaluationResult,
    ErrorInfo,
)
from .hydration import Hydrator, function_name, function_source
from .variables import (
    QUALITY_SCORES,
    ExecutableOption,
    Value,
    Variable,
    Binary,
    Integer,
    Real,
    Choice,
    classify_option,
    variable_from_dict,
    build_search_space,
    find_variable,
)
from .config import OptimizationConfig
from .protocols import Application, OptionFunction
from .resolver import EvaluationContext
from .optimization import Optimization, SessionState

__version__ = CLIENT_VERSION

__all__ = [
    # Version
    "CLIENT_VERSION",
    # Errors
    "AutocodeError",
    "ContractViolationError",
    "SchemaError",
    "NegotiationError",
    "HydrationError",
    "ResolutionError",
    "EvaluationConflictError",
    # Kind tags and results
    "VariableKind",
    "ValueKind",
    "IntegerCoercion",
    "EvaluationResult",
    "ErrorInfo",
    # Search space
    "QUALITY_SCORES",
    "ExecutableOption",
    "Value",
    "Variable",
    "Binary",
    "Integer",
    "Real",
    "Choice",
    "classify_option",
    "variable_from_dict",
    "build_search_space",
    "find_variable",
    # Hydration
    "Hydrator",
    "function_name",
    "function_source",
    # Session
    "OptimizationConfig",
    "Application",
    "OptionFunction",
    "EvaluationContext",
    "Optimization",
    "SessionState",
]
