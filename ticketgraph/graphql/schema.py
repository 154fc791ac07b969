from typing import Awaitable, List, Optional, TypeVar

import strawberry
from fastapi import Depends
from strawberry.fastapi import BaseContext, GraphQLRouter
from strawberry.types import Info

from ticketgraph.core.context import RequestContext
from ticketgraph.core.errors import ApiError, log_api_error, render_graphql
from ticketgraph.dependencies.context import get_request_context, get_ticket_service
from ticketgraph.tickets.service import TicketService

from .types import CreateTestInputType, CreateTicketInputType, SaleType, TicketType, to_create_input

API_VERSION = "1.0"

T = TypeVar("T")


class GraphQLContext(BaseContext):
    def __init__(self, ctx: RequestContext, service: TicketService) -> None:
        super().__init__()
        self.ctx = ctx
        self.service = service


async def get_graphql_context(
    ctx: RequestContext = Depends(get_request_context),
    service: TicketService = Depends(get_ticket_service),
) -> GraphQLContext:
    return GraphQLContext(ctx, service)


async def _resolve(info: Info[GraphQLContext, None], operation: Awaitable[T]) -> T:
    """Await a service call, turning ``ApiError`` into a GraphQL error."""

    try:
        return await operation
    except ApiError as exc:
        log_api_error(exc)
        if info.context.request is not None:
            info.context.request.state.api_error = exc
        raise render_graphql(exc) from exc


@strawberry.type
class TicketsQuery:
    @strawberry.field(name="list")
    async def list_tickets(self, info: Info[GraphQLContext, None]) -> List[TicketType]:
        context = info.context
        tickets = await _resolve(info, context.service.list_tickets(context.ctx))
        return [TicketType.from_entity(ticket) for ticket in tickets]

    @strawberry.field
    async def list_sale(self, info: Info[GraphQLContext, None]) -> List[SaleType]:
        context = info.context
        sales = await _resolve(info, context.service.list_sales(context.ctx))
        return [SaleType.from_entity(sale) for sale in sales]

    @strawberry.field(description="Sales reached over sale_relate edges, optionally from one ticket.")
    async def sale_relate(
        self, info: Info[GraphQLContext, None], ticket_id: Optional[str] = None
    ) -> List[SaleType]:
        context = info.context
        sales = await _resolve(info, context.service.sale_relate(context.ctx, ticket_id))
        return [SaleType.from_entity(sale) for sale in sales]


@strawberry.type
class TicketsMutation:
    @strawberry.mutation
    async def create_ticket(
        self,
        info: Info[GraphQLContext, None],
        ct_input: CreateTicketInputType,
        test_input: List[CreateTestInputType],
    ) -> TicketType:
        context = info.context
        ticket = await _resolve(
            info, context.service.create_ticket(context.ctx, to_create_input(ct_input, test_input))
        )
        return TicketType.from_entity(ticket)

    @strawberry.mutation
    async def delete_ticket(self, info: Info[GraphQLContext, None], id: str) -> TicketType:
        context = info.context
        ticket = await _resolve(info, context.service.delete_ticket(context.ctx, id))
        return TicketType.from_entity(ticket)


@strawberry.type
class Query:
    @strawberry.field(description="API version")
    def version(self) -> str:
        return API_VERSION

    @strawberry.field
    def tickets(self) -> TicketsQuery:
        return TicketsQuery()


@strawberry.type
class Mutation:
    @strawberry.field
    def tickets(self) -> TicketsMutation:
        return TicketsMutation()


schema = strawberry.Schema(query=Query, mutation=Mutation)


def create_graphql_router() -> GraphQLRouter:
    return GraphQLRouter(schema, context_getter=get_graphql_context)
