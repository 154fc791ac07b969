from typing import List, Optional

import strawberry

from ticketgraph.tickets.models import CreateTicketInput, Detail, Sale, Ticket


@strawberry.type(name="Detail")
class DetailType:
    c: int
    d: int


@strawberry.type(name="Ticket")
class TicketType:
    id: str
    creator: str
    title: str
    details: List[DetailType]

    @classmethod
    def from_entity(cls, entity: Ticket) -> "TicketType":
        return cls(
            id=entity.id or "",
            creator=entity.creator,
            title=entity.title,
            details=[DetailType(c=detail.c, d=detail.d) for detail in entity.details],
        )


@strawberry.type(name="Sale")
class SaleType:
    id: str
    user: str
    ticket: Optional[TicketType]

    @classmethod
    def from_entity(cls, entity: Sale) -> "SaleType":
        return cls(
            id=entity.id or "",
            user=entity.user,
            ticket=TicketType.from_entity(entity.ticket) if entity.ticket is not None else None,
        )


@strawberry.input(name="CreateTicketInput")
class CreateTicketInputType:
    title: str


@strawberry.input(name="CreateTestInput")
class CreateTestInputType:
    c: int
    d: int


def to_create_input(ct_input: CreateTicketInputType, test_input: List[CreateTestInputType]) -> CreateTicketInput:
    return CreateTicketInput(
        title=ct_input.title,
        details=[Detail(c=item.c, d=item.d) for item in test_input],
    )
