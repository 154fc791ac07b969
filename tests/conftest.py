from __future__ import annotations

from collections import Counter
from datetime import datetime, timedelta, timezone
from itertools import count
from typing import Sequence

import pytest
from fastapi.testclient import TestClient
from jose import jwt

from ticketgraph.core.config import Settings
from ticketgraph.core.context import RequestContext
from ticketgraph.main import create_app
from ticketgraph.metrics import MetricsRegistry
from ticketgraph.tickets.models import Detail, Sale, Ticket
from ticketgraph.tickets.service import TicketService

SECRET = "test-secret"


class InMemoryRecordStore:
    """Record store fake keeping tickets, sales and edges in dictionaries.

    ``failures`` maps an operation name to the exception it should raise and
    ``empty_results`` names operations that return no record.
    """

    def __init__(self) -> None:
        self.tickets: dict[str, Ticket] = {}
        self.sales: dict[str, tuple[str, str]] = {}
        self.edges: dict[str, tuple[str, str]] = {}
        self.calls: Counter[str] = Counter()
        self.failures: dict[str, Exception] = {}
        self.empty_results: set[str] = set()
        self._ids = count(1)

    @property
    def total_calls(self) -> int:
        return sum(self.calls.values())

    def _enter(self, operation: str) -> None:
        self.calls[operation] += 1
        failure = self.failures.get(operation)
        if failure is not None:
            raise failure

    def _next_id(self) -> str:
        return f"k{next(self._ids)}"

    async def create_ticket(self, *, creator: str, title: str, details: Sequence[Detail]) -> Ticket | None:
        self._enter("create_ticket")
        if "create_ticket" in self.empty_results:
            return None
        ticket = Ticket(id=self._next_id(), creator=creator, title=title, details=list(details))
        self.tickets[ticket.id] = ticket
        return Ticket(id=ticket.id, creator=creator, title=title, details=list(details))

    async def create_sale(self, *, ticket_id: str, user: str) -> Sale | None:
        self._enter("create_sale")
        if "create_sale" in self.empty_results:
            return None
        sale_id = self._next_id()
        self.sales[sale_id] = (ticket_id, user)
        return Sale(id=sale_id, user=user)

    async def relate(self, *, ticket_id: str, sale_id: str) -> str | None:
        self._enter("relate")
        if "relate" in self.empty_results:
            return None
        if ticket_id not in self.tickets or sale_id not in self.sales:
            return None
        edge_id = self._next_id()
        self.edges[edge_id] = (ticket_id, sale_id)
        return edge_id

    async def list_tickets(self) -> list[Ticket]:
        self._enter("list_tickets")
        return list(self.tickets.values())

    def _expand(self, sale_id: str) -> Sale:
        ticket_id, user = self.sales[sale_id]
        return Sale(id=sale_id, user=user, ticket=self.tickets.get(ticket_id))

    async def list_sales(self) -> list[Sale]:
        self._enter("list_sales")
        return [self._expand(sale_id) for sale_id in self.sales]

    async def sale_relate(self, *, ticket_id: str | None = None) -> list[Sale]:
        self._enter("sale_relate")
        return [
            self._expand(out_id)
            for in_id, out_id in self.edges.values()
            if in_id in self.tickets and (ticket_id is None or in_id == ticket_id)
        ]

    async def delete_ticket(self, ticket_id: str) -> Ticket | None:
        self._enter("delete_ticket")
        return self.tickets.pop(ticket_id, None)


def make_token(subject: str | None = "alice", *, secret: str = SECRET, expires_in: int = 300) -> str:
    claims: dict[str, object] = {"exp": datetime.now(timezone.utc) + timedelta(seconds=expires_in)}
    if subject is not None:
        claims["sub"] = subject
    return jwt.encode(claims, secret, algorithm="HS256")


@pytest.fixture
def store() -> InMemoryRecordStore:
    return InMemoryRecordStore()


@pytest.fixture
def metrics() -> MetricsRegistry:
    return MetricsRegistry()


@pytest.fixture
def service(store: InMemoryRecordStore, metrics: MetricsRegistry) -> TicketService:
    return TicketService(store, metrics=metrics)


@pytest.fixture
def alice() -> RequestContext:
    return RequestContext(identity="alice")


@pytest.fixture
def anonymous() -> RequestContext:
    return RequestContext()


@pytest.fixture
def settings() -> Settings:
    return Settings(jwt_secret=SECRET, otel_enabled=False)


@pytest.fixture
def client(settings: Settings, service: TicketService):
    app = create_app(settings)
    app.state.ticket_service = service
    return TestClient(app)


@pytest.fixture
def auth_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token('alice')}"}


@pytest.fixture
def token_factory():
    return make_token
