"""Optimization session: negotiation, evaluation state and value lookup.

Lifecycle of a session:

    DECLARED -> AWAITING_SERVER -> MERGED -> LISTENING

``negotiate()`` performs the one Prepare round trip, ``serve()`` starts the
evaluate server. A session negotiates exactly once; a new negotiation needs
a new Optimization.

Once listening, the optimizer drives evaluations:

    POST evaluates/prepares   -> evaluate_prepare(): new assignment, empty cache
    GET  evaluates/runs       -> evaluate_run(): application.evaluate(self)

Only one evaluation may be in flight, from its prepare through its run. A
prepare that arrives while a run is executing or while the previous
assignment is still waiting for its run, a run that overlaps another run,
and a run with nothing prepared are rejected with EvaluationConflictError
rather than queued.
"""

import enum
import logging
import threading
from collections.abc import Mapping as MappingABC
from typing import Any, Dict, Iterable, Mapping, Optional

from .config import OptimizationConfig
from .errors import ContractViolationError, ResolutionError, EvaluationConflictError
from .hydration import Hydrator
from .negotiation import Negotiator, merge_search_space
from .protocols import Application, OptionFunction
from .resolver import EvaluationContext
from .types import EvaluationResult
from .variables import Variable, build_search_space
from .wire import PrepareRequest, ValuePayload, decode

logger = logging.getLogger(__name__)


class SessionState(enum.Enum):
    """Negotiation state of a session."""
    DECLARED = "declared"                # Local search space built
    AWAITING_SERVER = "awaiting_server"  # Prepare request sent
    MERGED = "merged"                    # Refined space merged, options hydrated
    LISTENING = "listening"              # Evaluate server started


class Optimization:
    """Client side of one optimization session.

    Args:
        variables: Declared search space; ids must be unique
        application: Object whose ``evaluate(optimization)`` is the objective
        config: Connection and resolution settings (defaults if omitted)
        registry: Pre-linked option functions keyed by qualified name, used
            instead of interpreting source for those names
        negotiator: Prepare transport (built from ``config`` if omitted)

    Raises:
        ContractViolationError: On duplicate variable ids or an application
            without ``evaluate``
    """

    def __init__(
        self,
        variables: Iterable[Variable],
        application: Application,
        config: Optional[OptimizationConfig] = None,
        registry: Optional[Mapping[str, OptionFunction]] = None,
        negotiator: Optional[Negotiator] = None,
    ):
        if not isinstance(application, Application):
            raise ContractViolationError(
                f"application must define evaluate(optimization), got {type(application).__name__}"
            )
        self.config = config or OptimizationConfig()
        self.variables: Dict[str, Variable] = build_search_space(variables)
        self.application = application
        self.hydrator = Hydrator(imports=self.config.imports, registry=registry)
        self.negotiator = negotiator or Negotiator(
            self.config.server_url, timeout=self.config.prepare_timeout
        )
        self.state = SessionState.DECLARED

        self._lock = threading.Lock()
        self._context: Optional[EvaluationContext] = None
        self._running = False
        self._awaiting_run = False  # prepared assignment not yet consumed by a run

    @property
    def context(self) -> Optional[EvaluationContext]:
        """Context of the current evaluation, None before the first prepare."""
        return self._context

    def negotiate(self) -> Dict[str, Variable]:
        """Send the search space to the optimizer and merge its answer.

        Returns:
            The merged search space

        Raises:
            ContractViolationError: If this session already negotiated
            NegotiationError, SchemaError, HydrationError: On a failed Prepare
        """
        if self.state is not SessionState.DECLARED:
            raise ContractViolationError(
                f"Prepare already performed (state {self.state.value}); "
                "create a new Optimization for a new session"
            )
        request = PrepareRequest.from_search_space(
            self.variables,
            host=self.config.client_host,
            port=self.config.client_port,
            name=self.config.client_name,
        )
        self.state = SessionState.AWAITING_SERVER
        logger.info(
            "Preparing %d variables with %s as %s",
            len(self.variables), self.negotiator.url, self.config.client_name,
        )
        response = self.negotiator.prepare(request)
        self.variables = merge_search_space(self.variables, response, self.hydrator)
        self.state = SessionState.MERGED
        return self.variables

    def serve(self) -> None:
        """Run the evaluate server until the process is stopped."""
        if self.state is not SessionState.MERGED:
            raise ContractViolationError(
                f"Cannot listen in state {self.state.value}; negotiate() first"
            )
        import uvicorn
        from .server import create_app

        self.state = SessionState.LISTENING
        logger.info("Listening for evaluations on %s", self.config.client_url)
        uvicorn.run(
            create_app(self),
            host=self.config.client_host,
            port=self.config.client_port,
            log_level=self.config.log_level,
        )

    def prepare(self) -> None:
        """Negotiate, then serve. Blocks for the lifetime of the session."""
        self.negotiate()
        self.serve()

    def evaluate_prepare(self, variable_values: Mapping[str, Any]) -> EvaluationContext:
        """Replace the assignment and clear resolved values.

        Args:
            variable_values: Value per variable id, as ValuePayload or raw dicts

        Raises:
            SchemaError: If a value is malformed
            EvaluationConflictError: If a run is currently executing, or the
                previous assignment has not been run yet
        """
        assignment = {
            variable_id: value if isinstance(value, ValuePayload) else decode(ValuePayload, value)
            for variable_id, value in variable_values.items()
        }
        context = EvaluationContext(
            self.variables,
            assignment,
            session=self,
            integer_coercion=self.config.integer_coercion,
        )
        with self._lock:
            if self._running:
                raise EvaluationConflictError("evaluate-prepare received while an evaluation is running")
            if self._awaiting_run:
                raise EvaluationConflictError(
                    "evaluate-prepare received before the previous assignment was run"
                )
            self._context = context
            self._awaiting_run = True
        logger.debug("Prepared evaluation with %d assigned values", len(assignment))
        return context

    def evaluate_run(self) -> EvaluationResult:
        """Run the application against the current assignment.

        Resolved values are kept after the run; the next prepare resets them.

        Raises:
            EvaluationConflictError: If nothing is prepared or a run is in flight
        """
        with self._lock:
            if self._context is None:
                raise EvaluationConflictError("evaluate-run received before evaluate-prepare")
            if self._running:
                raise EvaluationConflictError("another evaluation is already running")
            self._running = True
            self._awaiting_run = False
        try:
            result = self.application.evaluate(self)
        finally:
            with self._lock:
                self._running = False

        if not isinstance(result, EvaluationResult):
            if not isinstance(result, MappingABC):
                raise ContractViolationError(
                    f"evaluate must return EvaluationResult or a mapping, got {type(result).__name__}"
                )
            result = EvaluationResult.from_mapping(result)
        logger.info("Evaluated objectives %s", list(result.objectives))
        return result

    def get_value(self, key: str, *arguments: Any) -> Any:
        """Resolve a variable by id or name for the current evaluation.

        Option functions receive this Optimization followed by ``arguments``;
        they run at most once per evaluation.
        """
        context = self._context
        if context is None:
            raise ResolutionError(f"no evaluation prepared while resolving {key}")
        return context.resolve(key, *arguments)


__all__ = ["SessionState", "Optimization"]
