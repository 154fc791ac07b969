from __future__ import annotations

from fastapi import APIRouter
from pydantic import BaseModel, ConfigDict

from ticketgraph.dependencies.context import CurrentContext, TicketServiceDep
from ticketgraph.tickets.models import CreateTicketInput, Detail, Ticket

router = APIRouter(prefix="/tickets", tags=["tickets"])


class DetailModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    c: int
    d: int


class TicketInputModel(BaseModel):
    title: str


class TicketCreateRequest(BaseModel):
    ct_input: TicketInputModel
    test_input: list[DetailModel]

    def to_input(self) -> CreateTicketInput:
        return CreateTicketInput(
            title=self.ct_input.title,
            details=[Detail(c=item.c, d=item.d) for item in self.test_input],
        )


class TicketResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str | None
    creator: str
    title: str
    details: list[DetailModel]


def _to_response(ticket: Ticket) -> TicketResponse:
    return TicketResponse.model_validate(ticket)


@router.get("", response_model=list[TicketResponse])
async def list_tickets(service: TicketServiceDep, ctx: CurrentContext) -> list[TicketResponse]:
    tickets = await service.list_tickets(ctx)
    return [_to_response(ticket) for ticket in tickets]


@router.post("", response_model=TicketResponse)
async def create_ticket(
    payload: TicketCreateRequest,
    service: TicketServiceDep,
    ctx: CurrentContext,
) -> TicketResponse:
    ticket = await service.create_ticket(ctx, payload.to_input())
    return _to_response(ticket)


@router.delete("/{ticket_id}", response_model=TicketResponse)
async def delete_ticket(ticket_id: str, service: TicketServiceDep, ctx: CurrentContext) -> TicketResponse:
    ticket = await service.delete_ticket(ctx, ticket_id)
    return _to_response(ticket)
