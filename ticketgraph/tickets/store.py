"""Narrow interface to the record store backing tickets, sales and edges."""

from __future__ import annotations

from typing import Protocol, Sequence

from .models import Detail, Sale, Ticket

TICKETS = "tickets"
SALES = "sales"
SALE_RELATE = "sale_relate"


class StoreError(RuntimeError):
    """Raised when the store cannot execute an operation."""


class RecordDecodeError(StoreError):
    """Raised when the store answers with a payload that cannot be decoded.

    ``key`` holds the id of the returned row when it could be read. For a
    write, a set ``key`` means the record was committed before decoding failed.
    """

    def __init__(self, message: str, *, record: str, key: str | None = None) -> None:
        super().__init__(message)
        self.record = record
        self.key = key


class RecordIdError(ValueError):
    """Raised when a record identifier is malformed."""


def parse_record_id(raw: str, table: str) -> str:
    """Return the record key from ``"<key>"`` or ``"<table>:<key>"``."""

    value = raw.strip()
    if ":" in value:
        prefix, _, key = value.partition(":")
        if prefix != table:
            raise RecordIdError(f"expected a '{table}' record, got '{prefix}'")
        value = key
    if not value:
        raise RecordIdError("empty record key")
    return value


def record_ref(table: str, key: str) -> str:
    return f"{table}:{key}"


class RecordStore(Protocol):
    """Operations the service needs from the store.

    Every write is atomic on its own; nothing spans more than one record.
    ``None`` results mean the store accepted the call but returned no record.
    """

    async def create_ticket(self, *, creator: str, title: str, details: Sequence[Detail]) -> Ticket | None:
        ...

    async def create_sale(self, *, ticket_id: str, user: str) -> Sale | None:
        ...

    async def relate(self, *, ticket_id: str, sale_id: str) -> str | None:
        ...

    async def list_tickets(self) -> list[Ticket]:
        ...

    async def list_sales(self) -> list[Sale]:
        ...

    async def sale_relate(self, *, ticket_id: str | None = None) -> list[Sale]:
        ...

    async def delete_ticket(self, ticket_id: str) -> Ticket | None:
        ...
