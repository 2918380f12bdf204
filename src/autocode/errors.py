"""Client exceptions.

Every error here is fatal where it is detected: the protocol assumes a
mismatch between client and optimizer, never a transient condition, so
nothing is retried.
"""


class AutocodeError(Exception):
    """Base class for all client errors."""
    pass


class ContractViolationError(AutocodeError):
    """Raised when construction-time invariants are violated."""
    pass


class SchemaError(AutocodeError):
    """Raised when a payload does not match the wire schema."""
    pass


class NegotiationError(AutocodeError):
    """Raised when the Prepare round trip with the optimizer fails."""
    pass


class HydrationError(AutocodeError):
    """Raised when an executable option cannot be turned into a callable."""
    pass


class ResolutionError(AutocodeError):
    """Raised when a variable cannot be resolved for the current evaluation."""
    pass


class EvaluationConflictError(AutocodeError):
    """Raised when evaluate requests break the one-evaluation-in-flight rule."""
    pass


__all__ = [
    "AutocodeError",
    "ContractViolationError",
    "SchemaError",
    "NegotiationError",
    "HydrationError",
    "ResolutionError",
    "EvaluationConflictError",
]
