"""Evaluate server: the endpoints the optimizer calls on the client.

    POST /apis/optimizations/evaluates/prepares   body: {"variable_values": {...}}
    GET  /apis/optimizations/evaluates/runs       -> {"objectives": [...], ...}

Client errors come back as an ErrorInfo body instead of killing the process:
422 for schema and resolution errors, 409 for single-flight violations, 500
for everything else.
"""

import logging

from fastapi import APIRouter, FastAPI, Request
from fastapi.responses import JSONResponse

from .errors import AutocodeError, EvaluationConflictError, ResolutionError, SchemaError
from .types import ErrorInfo
from .version import CLIENT_VERSION
from .wire import EVALUATES_PATH, EvaluatePrepareRequest, EvaluateRunResponse

logger = logging.getLogger(__name__)

_STATUS_CODES = {
    SchemaError: 422,
    ResolutionError: 422,
    EvaluationConflictError: 409,
}


def _status_for(exc: Exception) -> int:
    for error_type, status_code in _STATUS_CODES.items():
        if isinstance(exc, error_type):
            return status_code
    return 500


def create_app(optimization) -> FastAPI:
    """Build the evaluate server for an Optimization session."""
    app = FastAPI(title="autocode evaluate server", version=CLIENT_VERSION)
    router = APIRouter(prefix=EVALUATES_PATH, tags=["evaluates"])

    @router.post("/prepares")
    def evaluate_prepare(request: EvaluatePrepareRequest):
        optimization.evaluate_prepare(request.variable_values)
        return {}

    @router.get("/runs", response_model=EvaluateRunResponse)
    def evaluate_run():
        result = optimization.evaluate_run()
        return EvaluateRunResponse.from_result(result)

    app.include_router(router)

    @app.exception_handler(AutocodeError)
    async def handle_client_error(request: Request, exc: AutocodeError):
        status_code = _status_for(exc)
        if status_code == 409:
            logger.warning("Rejected %s %s: %s", request.method, request.url.path, exc)
        else:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=status_code, content=ErrorInfo.from_exception(exc).to_dict())

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.exception("Unexpected error in %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content=ErrorInfo.from_exception(exc).to_dict())

    return app


__all__ = ["create_app"]
