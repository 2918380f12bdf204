"""User-supplied capabilities invoked by the client."""

from typing import Any, Mapping, Protocol, Union, runtime_checkable

from .types import EvaluationResult


@runtime_checkable
class Application(Protocol):
    """The objective function side of the protocol.

    ``evaluate`` is called once per evaluate-run. It reads variable values
    through ``optimization.get_value(...)`` and returns the objectives and
    constraints, either as an EvaluationResult or as a mapping with the same
    keys.
    """

    def evaluate(self, optimization: Any) -> Union[EvaluationResult, Mapping[str, Any]]:
        """Evaluate the current assignment."""
        ...


class OptionFunction(Protocol):
    """Signature of an executable choice option.

    The first argument is the running Optimization; the rest are the extra
    arguments given to ``get_value`` on first resolution.
    """

    def __call__(self, optimization: Any, *arguments: Any) -> Any: ...


__all__ = ["Application", "OptionFunction"]
