from __future__ import annotations

import asyncio
import json
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Sequence

import asyncpg

from .models import Detail, Sale, Ticket
from .store import SALES, TICKETS, RecordDecodeError, StoreError

# asyncio.TimeoutError is a distinct class before Python 3.11
_DRIVER_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError, TimeoutError, asyncio.TimeoutError)


class PostgresRecordStore:
    """Record store backed by PostgreSQL.

    ``sale_relate`` is an edge table from a ticket (``in_id``) to a sale
    (``out_id``). No table declares a foreign key: deleting a ticket leaves
    its sale and edge rows untouched.
    """

    _CREATE_TICKETS_SQL = """
    CREATE TABLE IF NOT EXISTS tickets (
        id TEXT PRIMARY KEY DEFAULT gen_random_uuid()::text,
        creator TEXT NOT NULL,
        title TEXT NOT NULL,
        details JSONB NOT NULL DEFAULT '[]'::jsonb,
        created_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP
    )
    """

    _CREATE_SALES_SQL = """
    CREATE TABLE IF NOT EXISTS sales (
        id TEXT PRIMARY KEY DEFAULT gen_random_uuid()::text,
        ticket TEXT NULL,
        user_id TEXT NOT NULL,
        created_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP
    )
    """

    _CREATE_SALE_RELATE_SQL = """
    CREATE TABLE IF NOT EXISTS sale_relate (
        id TEXT PRIMARY KEY DEFAULT gen_random_uuid()::text,
        in_id TEXT NOT NULL,
        out_id TEXT NOT NULL,
        created_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP
    )
    """

    _CREATE_SALE_RELATE_INDEX_SQL = """
    CREATE INDEX IF NOT EXISTS sale_relate_in_id_idx ON sale_relate (in_id)
    """

    _INSERT_TICKET_SQL = """
    INSERT INTO tickets (creator, title, details)
    VALUES ($1, $2, $3::jsonb)
    RETURNING id, creator, title, details
    """

    _INSERT_SALE_SQL = """
    INSERT INTO sales (ticket, user_id)
    VALUES ($1, $2)
    RETURNING id, ticket, user_id
    """

    _INSERT_SALE_RELATE_SQL = """
    INSERT INTO sale_relate (in_id, out_id)
    SELECT t.id, s.id
    FROM tickets t, sales s
    WHERE t.id = $1 AND s.id = $2
    RETURNING id
    """

    _LIST_TICKETS_SQL = """
    SELECT id, creator, title, details
    FROM tickets
    """

    _LIST_SALES_SQL = """
    SELECT s.id AS sale_id, s.user_id, t.id AS ticket_id, t.creator, t.title, t.details
    FROM sales s
    LEFT JOIN tickets t ON t.id = s.ticket
    """

    _SALE_RELATE_SQL = """
    SELECT s.id AS sale_id, s.user_id, t.id AS ticket_id, t.creator, t.title, t.details
    FROM sale_relate r
    JOIN tickets src ON src.id = r.in_id
    JOIN sales s ON s.id = r.out_id
    LEFT JOIN tickets t ON t.id = s.ticket
    """

    _SALE_RELATE_FROM_TICKET_SQL = _SALE_RELATE_SQL + "WHERE r.in_id = $1\n"

    _DELETE_TICKET_SQL = """
    DELETE FROM tickets WHERE id = $1
    RETURNING id, creator, title, details
    """

    def __init__(self, pool: asyncpg.Pool) -> None:
        self._pool = pool

    @asynccontextmanager
    async def _connection(self) -> AsyncIterator[Any]:
        try:
            async with self._pool.acquire() as connection:
                yield connection
        except _DRIVER_ERRORS as exc:
            raise StoreError(str(exc)) from exc

    async def ensure_schema(self) -> None:
        async with self._connection() as connection:
            await connection.execute(self._CREATE_TICKETS_SQL)
            await connection.execute(self._CREATE_SALES_SQL)
            await connection.execute(self._CREATE_SALE_RELATE_SQL)
            await connection.execute(self._CREATE_SALE_RELATE_INDEX_SQL)

    async def create_ticket(self, *, creator: str, title: str, details: Sequence[Detail]) -> Ticket | None:
        payload = json.dumps([{"c": detail.c, "d": detail.d} for detail in details])
        async with self._connection() as connection:
            row = await connection.fetchrow(self._INSERT_TICKET_SQL, creator, title, payload)
        if row is None:
            return None
        return self._row_to_ticket(row)

    async def create_sale(self, *, ticket_id: str, user: str) -> Sale | None:
        async with self._connection() as connection:
            row = await connection.fetchrow(self._INSERT_SALE_SQL, ticket_id, user)
        if row is None:
            return None
        try:
            return Sale(id=str(row["id"]), user=str(row["user_id"]))
        except KeyError as exc:
            raise RecordDecodeError(f"missing column {exc}", record=SALES, key=_row_key(row, "id")) from exc

    async def relate(self, *, ticket_id: str, sale_id: str) -> str | None:
        async with self._connection() as connection:
            row = await connection.fetchrow(self._INSERT_SALE_RELATE_SQL, ticket_id, sale_id)
        if row is None:
            return None
        return str(row["id"])

    async def list_tickets(self) -> list[Ticket]:
        async with self._connection() as connection:
            rows = await connection.fetch(self._LIST_TICKETS_SQL)
        return [self._row_to_ticket(row) for row in rows]

    async def list_sales(self) -> list[Sale]:
        async with self._connection() as connection:
            rows = await connection.fetch(self._LIST_SALES_SQL)
        return [self._row_to_sale(row) for row in rows]

    async def sale_relate(self, *, ticket_id: str | None = None) -> list[Sale]:
        async with self._connection() as connection:
            if ticket_id is None:
                rows = await connection.fetch(self._SALE_RELATE_SQL)
            else:
                rows = await connection.fetch(self._SALE_RELATE_FROM_TICKET_SQL, ticket_id)
        return [self._row_to_sale(row) for row in rows]

    async def delete_ticket(self, ticket_id: str) -> Ticket | None:
        async with self._connection() as connection:
            row = await connection.fetchrow(self._DELETE_TICKET_SQL, ticket_id)
        if row is None:
            return None
        return self._row_to_ticket(row)

    @staticmethod
    def _row_to_ticket(row: Any) -> Ticket:
        try:
            return Ticket(
                id=str(row["id"]),
                creator=str(row["creator"]),
                title=str(row["title"]),
                details=_decode_details(row["details"]),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise RecordDecodeError(
                f"cannot decode ticket row: {exc}", record=TICKETS, key=_row_key(row, "id")
            ) from exc

    @staticmethod
    def _row_to_sale(row: Any) -> Sale:
        try:
            ticket = None
            if row["ticket_id"] is not None:
                ticket = Ticket(
                    id=str(row["ticket_id"]),
                    creator=str(row["creator"]),
                    title=str(row["title"]),
                    details=_decode_details(row["details"]),
                )
            return Sale(id=str(row["sale_id"]), user=str(row["user_id"]), ticket=ticket)
        except (KeyError, TypeError, ValueError) as exc:
            raise RecordDecodeError(
                f"cannot decode sale row: {exc}", record=SALES, key=_row_key(row, "sale_id")
            ) from exc


def _decode_details(value: Any) -> list[Detail]:
    # asyncpg hands JSONB back as text unless a codec is registered
    if isinstance(value, str):
        value = json.loads(value)
    return [Detail(c=int(item["c"]), d=int(item["d"])) for item in value]


def _row_key(row: Any, column: str) -> str | None:
    try:
        value = row[column]
    except (KeyError, TypeError):
        return None
    return None if value is None else str(value)
