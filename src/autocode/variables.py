"""Search-space variables and their values.

A search space is a set of typed dimensions keyed by a stable identifier:

- ``Binary``: a boolean dimension
- ``Integer``: an inclusive range of 64-bit integers
- ``Real``: a range of floats
- ``Choice``: a closed set of options, each a literal or an executable strategy

Identifiers are generated at declaration time and never change afterwards;
they are the keys used across the negotiation round trip. Names are human
labels only.
"""

from __future__ import annotations

import math
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any, Dict, Iterable, Mapping, Optional, Sequence

from .errors import ContractViolationError, SchemaError
from .hydration import function_name, function_source
from .protocols import OptionFunction
from .types import IntegerCoercion, ValueKind, VariableKind

# Scores attached to every executable option, in wire order
QUALITY_SCORES = (
    "error_potentiality",
    "understandability",
    "complexity",
    "overall_maintainability",
    "modularity",
    "readability",
)

_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1


def new_id() -> str:
    """Generate a fresh variable or option identifier."""
    return str(uuid.uuid4())


def _parse_kind(enum_cls, tag: Any):
    try:
        return enum_cls(tag)
    except ValueError:
        raise SchemaError(f"unsupported {enum_cls.__name__} tag: {tag!r}") from None


def coerce_literal(
    kind: ValueKind,
    raw: Any,
    integer_coercion: IntegerCoercion = IntegerCoercion.STRICT,
) -> bool | int | float:
    """Convert a transported literal to the Python type of ``kind``.

    JSON carries every number as a float on some stacks, so integers may
    arrive as ``7.0``. In STRICT mode a non-integral float is rejected; in
    TRUNCATE mode it is truncated toward zero.

    Raises:
        SchemaError: If ``raw`` does not fit ``kind``
    """
    if kind is ValueKind.BOOLEAN:
        if not isinstance(raw, bool):
            raise SchemaError(f"expected bool, got {type(raw).__name__}")
        return raw
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        raise SchemaError(f"expected number for {kind.value}, got {type(raw).__name__}")
    if kind is ValueKind.FLOAT:
        return float(raw)
    if kind is ValueKind.INTEGER:
        if isinstance(raw, int):
            return raw
        if not math.isfinite(raw):
            raise SchemaError(f"non-finite value for int: {raw}")
        if integer_coercion is IntegerCoercion.TRUNCATE:
            return int(raw)
        if not raw.is_integer():
            raise SchemaError(f"non-integral value for int: {raw}")
        return int(raw)
    raise SchemaError(f"{kind.value} is not a literal kind")


@dataclass(frozen=True)
class ExecutableOption:
    """An executable strategy plus the quality scores the optimizer uses.

    Scores start at zero when declared locally and are refreshed from the
    optimizer's Prepare response. They carry no meaning on the client.
    """
    function: OptionFunction
    error_potentiality: float = 0.0
    understandability: float = 0.0
    complexity: float = 0.0
    overall_maintainability: float = 0.0
    modularity: float = 0.0
    readability: float = 0.0

    def __post_init__(self):
        if not callable(self.function):
            raise ContractViolationError(
                f"function must be callable, got {type(self.function).__name__}"
            )
        for score in QUALITY_SCORES:
            value = getattr(self, score)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ContractViolationError(f"{score} must be a number, got {value!r}")
            object.__setattr__(self, score, float(value))

    @property
    def name(self) -> str:
        return function_name(self.function)

    def source(self) -> str:
        """Source fragment declaring the function."""
        return function_source(self.function)

    def scores(self) -> Dict[str, float]:
        return {score: getattr(self, score) for score in QUALITY_SCORES}

    def with_scores(self, **scores: float) -> "ExecutableOption":
        """Copy with refreshed scores; the callable is kept as-is."""
        unknown = set(scores) - set(QUALITY_SCORES)
        if unknown:
            raise ContractViolationError(f"Unknown quality scores: {sorted(unknown)}")
        return replace(self, **scores)

    def to_dict(self) -> Dict[str, str]:
        """Outbound shape: name and source fragment."""
        return {"name": self.name, "string": self.source()}


def classify_option(option: Any) -> ValueKind:
    """Return the value kind of a declared choice option.

    Raises:
        ContractViolationError: For anything that is not a bool, int, float
            or callable
    """
    # bool before int: bool is an int subclass
    if isinstance(option, bool):
        return ValueKind.BOOLEAN
    if isinstance(option, int):
        return ValueKind.INTEGER
    if isinstance(option, float):
        return ValueKind.FLOAT
    if isinstance(option, ExecutableOption) or callable(option):
        return ValueKind.EXECUTABLE
    raise ContractViolationError(f"Unknown option type: {type(option).__name__}")


@dataclass(frozen=True)
class Value:
    """A concrete value: a literal or an executable option.

    Attributes:
        id: Option identifier, unique within its choice
        kind: Value kind tag
        data: The literal, or an ExecutableOption for EXECUTABLE values
    """
    id: str
    kind: ValueKind
    data: Any

    def __post_init__(self):
        if not self.id:
            raise ContractViolationError("value id must be non-empty")
        if not isinstance(self.kind, ValueKind):
            raise ContractViolationError(f"kind must be ValueKind, got {self.kind!r}")
        if self.kind is ValueKind.EXECUTABLE:
            if not isinstance(self.data, ExecutableOption):
                raise ContractViolationError("executable values must hold an ExecutableOption")
        else:
            try:
                object.__setattr__(self, "data", coerce_literal(self.kind, self.data))
            except SchemaError as e:
                raise ContractViolationError(f"Value {self.id}: {e}") from e

    @classmethod
    def from_option(cls, option: Any, id: Optional[str] = None) -> "Value":
        """Wrap a declared option, classifying it by runtime type."""
        kind = classify_option(option)
        if kind is ValueKind.EXECUTABLE and not isinstance(option, ExecutableOption):
            option = ExecutableOption(function=option)
        return cls(id=id or new_id(), kind=kind, data=option)

    @property
    def is_executable(self) -> bool:
        return self.kind is ValueKind.EXECUTABLE

    def to_dict(self) -> Dict[str, Any]:
        data = self.data.to_dict() if self.is_executable else self.data
        return {"id": self.id, "type": self.kind.value, "data": data}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Value":
        """Rebuild a literal value from its serialized form.

        Executable values need a hydrator and cannot be rebuilt here.
        """
        try:
            value_id = data["id"]
            kind = _parse_kind(ValueKind, data["type"])
            raw = data["data"]
        except KeyError as e:
            raise SchemaError(f"value is missing field {e}") from e
        if kind is ValueKind.EXECUTABLE:
            raise SchemaError(f"executable value {value_id} must be hydrated")
        return cls(id=value_id, kind=kind, data=coerce_literal(kind, raw))


@dataclass(frozen=True)
class Variable(ABC):
    """One dimension of the search space.

    The ``kind`` property is the discriminator used for serialization.
    """
    name: str
    id: str = field(default_factory=new_id, kw_only=True)

    def __post_init__(self):
        if not isinstance(self.name, str) or not self.name:
            raise ContractViolationError("variable name must be a non-empty string")
        if not isinstance(self.id, str) or not self.id:
            raise ContractViolationError("variable id must be a non-empty string")

    @property
    @abstractmethod
    def kind(self) -> VariableKind:
        """Discriminator for serialization and dispatch."""
        pass

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "type": self.kind.value, "name": self.name}


@dataclass(frozen=True)
class Binary(Variable):
    """Boolean dimension."""

    @property
    def kind(self) -> VariableKind:
        return VariableKind.BINARY


@dataclass(frozen=True)
class Integer(Variable):
    """Integer dimension with inclusive bounds (lower, upper)."""
    bounds: tuple[int, int]

    def __post_init__(self):
        super().__post_init__()
        lower, upper = _pair(self.bounds, self.name)
        try:
            lower = coerce_literal(ValueKind.INTEGER, lower)
            upper = coerce_literal(ValueKind.INTEGER, upper)
        except SchemaError as e:
            raise ContractViolationError(f"Integer {self.name} bounds: {e}") from e
        for bound in (lower, upper):
            if not (_INT64_MIN <= bound <= _INT64_MAX):
                raise ContractViolationError(f"Integer {self.name} bound {bound} out of int64 range")
        if lower > upper:
            raise ContractViolationError(
                f"Integer {self.name} lower bound {lower} exceeds upper bound {upper}"
            )
        object.__setattr__(self, "bounds", (lower, upper))

    @property
    def kind(self) -> VariableKind:
        return VariableKind.INTEGER

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["bounds"] = list(self.bounds)
        return data


@dataclass(frozen=True)
class Real(Variable):
    """Continuous dimension with bounds (lower, upper)."""
    bounds: tuple[float, float]

    def __post_init__(self):
        super().__post_init__()
        lower, upper = _pair(self.bounds, self.name)
        try:
            lower = coerce_literal(ValueKind.FLOAT, lower)
            upper = coerce_literal(ValueKind.FLOAT, upper)
        except SchemaError as e:
            raise ContractViolationError(f"Real {self.name} bounds: {e}") from e
        if not (math.isfinite(lower) and math.isfinite(upper)):
            raise ContractViolationError(f"Real {self.name} bounds must be finite")
        if lower > upper:
            raise ContractViolationError(
                f"Real {self.name} lower bound {lower} exceeds upper bound {upper}"
            )
        object.__setattr__(self, "bounds", (lower, upper))

    @property
    def kind(self) -> VariableKind:
        return VariableKind.REAL

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["bounds"] = list(self.bounds)
        return data


@dataclass(frozen=True)
class Choice(Variable):
    """Closed set of options keyed by option id.

    Use ``Choice.of`` to declare a choice from raw options; the constructor
    takes already-built values.
    """
    options: Mapping[str, Value]

    def __post_init__(self):
        super().__post_init__()
        frozen = MappingProxyType(dict(self.options))
        for option_id, value in frozen.items():
            if not isinstance(value, Value):
                raise ContractViolationError(
                    f"Choice {self.name} option {option_id} must be a Value, got {type(value).__name__}"
                )
            if value.id != option_id:
                raise ContractViolationError(
                    f"Choice {self.name} option key {option_id} does not match value id {value.id}"
                )
        object.__setattr__(self, "options", frozen)

    @classmethod
    def of(cls, name: str, options: Sequence[Any], id: Optional[str] = None) -> "Choice":
        """Declare a choice from literals and/or option functions.

        Example:
            >>> Choice.of("strategy", [greedy, random_walk, 3])
        """
        values = [Value.from_option(option) for option in options]
        if id is None:
            return cls(name=name, options={v.id: v for v in values})
        return cls(name=name, options={v.id: v for v in values}, id=id)

    @property
    def kind(self) -> VariableKind:
        return VariableKind.CHOICE

    def executable_options(self) -> Dict[str, ExecutableOption]:
        return {oid: v.data for oid, v in self.options.items() if v.is_executable}

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["options"] = {option_id: value.to_dict() for option_id, value in self.options.items()}
        return data


def _pair(bounds: Any, name: str) -> tuple[Any, Any]:
    try:
        lower, upper = bounds
    except (TypeError, ValueError):
        raise ContractViolationError(f"{name} bounds must be a (lower, upper) pair") from None
    return lower, upper


def variable_from_dict(data: Mapping[str, Any]) -> Variable:
    """Rebuild a variable from its serialized form.

    Choices round-trip only when every option is a literal.
    """
    try:
        kind = _parse_kind(VariableKind, data["type"])
        variable_id = data["id"]
    except KeyError as e:
        raise SchemaError(f"variable is missing field {e}") from e
    name = data.get("name") or variable_id

    try:
        if kind is VariableKind.BINARY:
            return Binary(name, id=variable_id)
        if kind is VariableKind.INTEGER:
            return Integer(name, data["bounds"], id=variable_id)
        if kind is VariableKind.REAL:
            return Real(name, data["bounds"], id=variable_id)
        options = {oid: Value.from_dict(option) for oid, option in data["options"].items()}
        return Choice(name, options, id=variable_id)
    except KeyError as e:
        raise SchemaError(f"{kind.value} {variable_id} is missing field {e}") from e


def build_search_space(variables: Iterable[Variable]) -> Dict[str, Variable]:
    """Index variables by id.

    Raises:
        ContractViolationError: On non-variables or duplicate identifiers
    """
    space: Dict[str, Variable] = {}
    for variable in variables:
        if not isinstance(variable, Variable):
            raise ContractViolationError(f"Not a variable: {type(variable).__name__}")
        if variable.id in space:
            raise ContractViolationError(f"Duplicate variable id: {variable.id}")
        space[variable.id] = variable
    return space


def find_variable(space: Mapping[str, Variable], key: str) -> Optional[Variable]:
    """Look a variable up by id, falling back to a scan by name.

    Only ids are guaranteed unique; with duplicate names the first match wins.
    """
    if key in space:
        return space[key]
    for variable in space.values():
        if variable.name == key:
            return variable
    return None


__all__ = [
    "QUALITY_SCORES",
    "new_id",
    "coerce_literal",
    "classify_option",
    "ExecutableOption",
    "Value",
    "Variable",
    "Binary",
    "Integer",
    "Real",
    "Choice",
    "variable_from_dict",
    "build_search_space",
    "find_variable",
]
