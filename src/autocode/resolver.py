"""Per-evaluation value resolution.

An ``EvaluationContext`` lives from one evaluate-prepare to the next. It
holds the assignment pushed by the optimizer and a cache of already resolved
values: each variable is resolved at most once per evaluation, so option
functions (which may be expensive or non-deterministic) run exactly once no
matter how often the objective asks for them.
"""

import logging
from types import MappingProxyType
from typing import Any, Mapping

from .errors import ResolutionError, SchemaError
from .types import IntegerCoercion, ValueKind, VariableKind
from .variables import Choice, Variable, coerce_literal, find_variable
from .wire import ValuePayload

logger = logging.getLogger(__name__)

# Literal kind each non-choice variable resolves to
_LITERAL_KINDS = {
    VariableKind.BINARY: ValueKind.BOOLEAN,
    VariableKind.INTEGER: ValueKind.INTEGER,
    VariableKind.REAL: ValueKind.FLOAT,
}

# Transport tags that may carry a value of that kind
_ACCEPTED_TAGS = {
    ValueKind.BOOLEAN: {ValueKind.BOOLEAN},
    ValueKind.INTEGER: {ValueKind.INTEGER, ValueKind.FLOAT},
    ValueKind.FLOAT: {ValueKind.INTEGER, ValueKind.FLOAT},
}


class EvaluationContext:
    """Assignment and resolved-value cache for a single evaluation.

    Args:
        search_space: Negotiated variables keyed by id
        assignment: Values pushed by the optimizer keyed by variable id
        session: Object passed as first argument to option functions
        integer_coercion: How non-integral floats assigned to integers are handled
    """

    def __init__(
        self,
        search_space: Mapping[str, Variable],
        assignment: Mapping[str, ValuePayload],
        session: Any = None,
        integer_coercion: IntegerCoercion = IntegerCoercion.STRICT,
    ):
        self.search_space = search_space
        self.assignment = MappingProxyType(dict(assignment))
        self.session = session
        self.integer_coercion = integer_coercion
        self._resolved: dict[str, Any] = {}

    @property
    def resolved(self) -> Mapping[str, Any]:
        """Read-only view of the values resolved so far, keyed by variable id."""
        return MappingProxyType(self._resolved)

    def resolve(self, key: str, *arguments: Any) -> Any:
        """Return the effective value of a variable for this evaluation.

        Args:
            key: Variable id, or its name
            *arguments: Extra arguments for an option function; ignored once
                the variable has been resolved

        Raises:
            ResolutionError: If the variable or its assigned value is unknown
            SchemaError: If the assigned literal does not fit its kind
        """
        variable = find_variable(self.search_space, key)
        if variable is None:
            raise ResolutionError(f"variable not found: {key}")

        if variable.id in self._resolved:
            return self._resolved[variable.id]

        value = self.assignment.get(variable.id)
        if value is None:
            raise ResolutionError(f"variable value not found: {key}")

        if value.type is ValueKind.EXECUTABLE:
            output = self._execute(variable, value, arguments)
        else:
            output = self._convert(variable, value)

        self._resolved[variable.id] = output
        return output

    def _convert(self, variable: Variable, value: ValuePayload) -> Any:
        """Coerce an assigned literal to the declared kind of ``variable``."""
        if isinstance(variable, Choice):
            option = variable.options.get(value.id)
            if option is None:
                raise ResolutionError(f"option {value.id} not found in choice {variable.name}")
            if option.kind is not value.type:
                raise SchemaError(
                    f"{value.type.value} value assigned to {option.kind.value} option "
                    f"{value.id} of {variable.name}"
                )
            raw = option.data if value.data is None else value.data
            return coerce_literal(option.kind, raw, self.integer_coercion)

        target = _LITERAL_KINDS[variable.kind]
        if value.type not in _ACCEPTED_TAGS[target]:
            raise SchemaError(
                f"{value.type.value} value assigned to {variable.kind.value} {variable.name}"
            )
        return coerce_literal(target, value.data, self.integer_coercion)

    def _execute(self, variable: Variable, value: ValuePayload, arguments: tuple) -> Any:
        if not isinstance(variable, Choice):
            raise ResolutionError(
                f"executable value assigned to {variable.kind.value} {variable.name}"
            )
        option = variable.options.get(value.id)
        if option is None or not option.is_executable:
            raise ResolutionError(
                f"executable option {value.id} not found in choice {variable.name}"
            )
        logger.debug("Executing option %s for %s", option.data.name, variable.name)
        return option.data.function(self.session, *arguments)


__all__ = ["EvaluationContext"]
