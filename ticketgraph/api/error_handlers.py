"""Render typed errors as REST responses.

Invariants:
    - ApiError -> status from REST_STATUS_BY_KIND, body {"error": {"error", "req_id"}}
    - RequestValidationError -> SerializationFail (400)
    - Exception (catch-all) -> Generic, never leaks internal details
"""

from __future__ import annotations

import logging
from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from ticketgraph.core.context import RequestContext
from ticketgraph.core.errors import (
    UNEXPECTED,
    ApiError,
    Generic,
    SerializationFail,
    ServiceError,
    log_api_error,
    render_rest,
)
from ticketgraph.middleware.context import REQUEST_ID_HEADER

logger = logging.getLogger(__name__)


def register_error_handlers(app: FastAPI) -> None:
    """Register all global error handlers on the FastAPI app."""

    @app.exception_handler(ApiError)
    async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
        return error_response(request, exc)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        source = "; ".join(
            f"{'.'.join(str(loc) for loc in error['loc'])}: {error['msg']}" for error in exc.errors()
        )
        return error_response(request, _bind(request, SerializationFail(source=source)))

    @app.exception_handler(Exception)
    async def generic_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error("Unhandled exception on %s: %s", request.url.path, exc, exc_info=exc)
        return error_response(request, _bind(request, Generic(description=UNEXPECTED)))


def error_response(request: Request, api_error: ApiError) -> JSONResponse:
    log_api_error(api_error)
    request.state.api_error = api_error
    status_code, body = render_rest(api_error)
    return JSONResponse(
        status_code=status_code,
        content=body,
        headers={REQUEST_ID_HEADER: str(api_error.req_id)},
    )


def _bind(request: Request, error: ServiceError) -> ApiError:
    ctx = getattr(request.state, "ctx", None)
    if isinstance(ctx, RequestContext):
        return ctx.fail(error)
    return ApiError(error, uuid4())
