"""Attach a ``RequestContext`` to every inbound request."""

from __future__ import annotations

from typing import Awaitable, Callable

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response
from starlette.types import ASGIApp

from ticketgraph.core.context import RequestContext
from ticketgraph.core.errors import REST_STATUS_BY_KIND, UNEXPECTED, ApiError, Generic
from ticketgraph.core.logging import log_request
from ticketgraph.security.identity import IdentityResolver, extract_credential

REQUEST_ID_HEADER = "X-Request-Id"


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Build the request context, echo its id and write the request log line.

    Transports record a rendered failure on ``request.state.api_error`` so the
    log line carries the typed error for the same correlation id.
    """

    def __init__(self, app: ASGIApp, *, resolver: IdentityResolver, cookie_name: str) -> None:
        super().__init__(app)
        self._resolver = resolver
        self._cookie_name = cookie_name

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        token = extract_credential(request, self._cookie_name)
        ctx = RequestContext.resolve(token, self._resolver)
        request.state.ctx = ctx

        try:
            response = await call_next(request)
        except Exception:
            # rendered by the catch-all handler outside this middleware
            unexpected = ctx.fail(Generic(description=UNEXPECTED))
            _log(request, ctx, REST_STATUS_BY_KIND[unexpected.error.kind], unexpected)
            raise
        response.headers[REQUEST_ID_HEADER] = str(ctx.req_id)

        _log(request, ctx, response.status_code, getattr(request.state, "api_error", None))
        return response


def _log(request: Request, ctx: RequestContext, status_code: int, api_error: ApiError | None) -> None:
    log_request(
        req_id=ctx.req_id,
        method=request.method,
        path=request.url.path,
        status_code=status_code,
        user_id=ctx.identity,
        client_error=api_error.error.message if api_error else None,
        error_data=api_error.error.to_dict() if api_error else None,
    )
