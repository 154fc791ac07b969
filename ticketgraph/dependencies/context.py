from __future__ import annotations

from typing import Annotated
from uuid import uuid4

from fastapi import Depends, Request

from ticketgraph.core.context import RequestContext
from ticketgraph.core.errors import ApiError, AuthFailContextMissing, StoreFail
from ticketgraph.tickets.service import TicketService


async def get_request_context(request: Request) -> RequestContext:
    ctx = getattr(request.state, "ctx", None)
    if not isinstance(ctx, RequestContext):
        raise ApiError(AuthFailContextMissing(), uuid4())
    return ctx


async def get_ticket_service(
    request: Request, ctx: Annotated[RequestContext, Depends(get_request_context)]
) -> TicketService:
    service = getattr(request.app.state, "ticket_service", None)
    if service is None:
        raise ctx.fail(StoreFail(source="ticket service is not configured"))
    return service


CurrentContext = Annotated[RequestContext, Depends(get_request_context)]
TicketServiceDep = Annotated[TicketService, Depends(get_ticket_service)]
