"""Search-space negotiation with the optimizer (Prepare).

The client posts its declared variables, the optimizer answers with a refined
description per variable id, and the answer is merged into the local table:

- variables missing from the answer are left untouched
- bounds and literal options are replaced wholesale
- executable options already known locally keep their callable and only get
  fresh quality scores
- executable options the client never declared are hydrated from their
  source fragment
- a kind that differs between the two sides means protocol skew and is fatal
"""

import logging
from typing import Dict, Mapping, Optional

import requests

from .errors import ContractViolationError, NegotiationError, SchemaError
from .hydration import Hydrator
from .types import ValueKind, VariableKind
from .variables import (
    Binary,
    Choice,
    ExecutableOption,
    Integer,
    Real,
    Value,
    Variable,
    coerce_literal,
)
from .wire import (
    PREPARES_PATH,
    PrepareRequest,
    PrepareResponse,
    ValuePayload,
    VariablePayload,
    decode,
)

logger = logging.getLogger(__name__)


class Negotiator:
    """Performs the single Prepare round trip.

    Args:
        server_url: Base URL of the optimizer, e.g. 'http://localhost:10000'
        timeout: Seconds to wait for the answer; None waits forever, since the
            optimizer may preprocess for an arbitrarily long time
        http: Session to post with (a fresh one by default)
    """

    def __init__(
        self,
        server_url: str,
        timeout: Optional[float] = None,
        http: Optional[requests.Session] = None,
    ):
        self.server_url = server_url.rstrip("/")
        self.timeout = timeout
        self.http = http or requests.Session()

    @property
    def url(self) -> str:
        return f"{self.server_url}{PREPARES_PATH}"

    def prepare(self, request: PrepareRequest) -> PrepareResponse:
        """Post the declared search space and decode the refined one.

        Raises:
            NegotiationError: On transport failure, non-200 status or a body
                that is not JSON
            SchemaError: If the body does not match PrepareResponse
        """
        try:
            response = self.http.post(self.url, json=request.model_dump(), timeout=self.timeout)
        except requests.RequestException as e:
            raise NegotiationError(f"Failed to prepare with {self.url}: {e}") from e

        if response.status_code != 200:
            raise NegotiationError(
                f"Failed to prepare: {self.url} returned {response.status_code}: {response.text[:200]}"
            )

        try:
            body = response.json()
        except ValueError as e:
            raise NegotiationError(f"Failed to decode prepare response: {e}") from e

        return decode(PrepareResponse, body)


def merge_search_space(
    local: Mapping[str, Variable],
    response: PrepareResponse,
    hydrator: Hydrator,
) -> Dict[str, Variable]:
    """Merge the optimizer's refined variables into the local search space.

    Returns:
        New search space; ``local`` is not modified

    Raises:
        SchemaError: On kind mismatches or inconsistent payloads
        HydrationError: If an unknown executable option cannot be hydrated
    """
    merged = dict(local)
    for variable_id, refined in response.variables.items():
        if refined.id != variable_id:
            raise SchemaError(f"variable key {variable_id} does not match id {refined.id}")
        merged[variable_id] = merge_variable(local.get(variable_id), refined, hydrator)
    logger.info(
        "Merged %d refined variables into search space of %d",
        len(response.variables), len(merged),
    )
    return merged


def merge_variable(
    current: Optional[Variable],
    refined: VariablePayload,
    hydrator: Hydrator,
) -> Variable:
    """Merge one refined variable description into its local counterpart."""
    if current is not None and current.kind is not refined.type:
        raise SchemaError(
            f"unsupported variable type for {refined.id}: declared {current.kind.value}, "
            f"server returned {refined.type.value}"
        )
    name = refined.name or (current.name if current is not None else refined.id)

    try:
        if refined.type is VariableKind.BINARY:
            return Binary(name, id=refined.id)
        if refined.type in (VariableKind.INTEGER, VariableKind.REAL):
            bounds = refined.bounds
            if bounds is None:
                if current is None:
                    raise SchemaError(f"{refined.type.value} {refined.id} has no bounds")
                bounds = current.bounds
            cls = Integer if refined.type is VariableKind.INTEGER else Real
            return cls(name, tuple(bounds), id=refined.id)
    except ContractViolationError as e:
        raise SchemaError(f"invalid refined variable {refined.id}: {e}") from e

    if refined.options is None:
        if current is None:
            raise SchemaError(f"choice {refined.id} has no options")
        return Choice(name, current.options, id=refined.id)

    known = current.options if current is not None else {}
    options = {}
    for option_id, payload in refined.options.items():
        if payload.id != option_id:
            raise SchemaError(f"option key {option_id} does not match id {payload.id}")
        options[option_id] = merge_option(known.get(option_id), payload, hydrator)
    return Choice(name, options, id=refined.id)


def merge_option(
    current: Optional[Value],
    payload: ValuePayload,
    hydrator: Hydrator,
) -> Value:
    """Merge one returned choice option.

    A known executable option keeps its callable; an unknown one is hydrated.
    """
    if current is not None and current.kind is not payload.type:
        raise SchemaError(
            f"unsupported value type for option {payload.id}: declared {current.kind.value}, "
            f"server returned {payload.type.value}"
        )

    if payload.type is ValueKind.EXECUTABLE:
        data = payload.executable()
        if current is not None:
            return Value(payload.id, ValueKind.EXECUTABLE, current.data.with_scores(**data.scores()))
        function = hydrator.hydrate(data.name, data.string)
        return Value(payload.id, ValueKind.EXECUTABLE, ExecutableOption(function, **data.scores()))

    if payload.data is None:
        if current is None:
            raise SchemaError(f"literal option {payload.id} has no data")
        return current
    return Value(payload.id, payload.type, coerce_literal(payload.type, payload.data))


__all__ = [
    "Negotiator",
    "merge_search_space",
    "merge_variable",
    "merge_option",
]
