from __future__ import annotations

import asyncio
import json
from unittest.mock import AsyncMock

import asyncpg
import pytest

from ticketgraph.tickets.models import Detail
from ticketgraph.tickets.repository import PostgresRecordStore
from ticketgraph.tickets.store import RecordDecodeError, StoreError


class DummyAcquire:
    def __init__(self, connection):
        self._connection = connection

    async def __aenter__(self):
        return self._connection

    async def __aexit__(self, exc_type, exc, tb):
        return False


class DummyPool:
    def __init__(self, connection):
        self._connection = connection

    def acquire(self):
        return DummyAcquire(self._connection)


def _ticket_row(**overrides):
    row = {"id": "k1", "creator": "alice", "title": "concert", "details": json.dumps([{"c": 1, "d": 2}])}
    row.update(overrides)
    return row


@pytest.mark.asyncio
async def test_ensure_schema_creates_tables():
    connection = AsyncMock()
    store = PostgresRecordStore(DummyPool(connection))

    await store.ensure_schema()

    executed = [call.args[0] for call in connection.execute.await_args_list]
    assert any("CREATE TABLE IF NOT EXISTS tickets" in stmt for stmt in executed)
    assert any("CREATE TABLE IF NOT EXISTS sales" in stmt for stmt in executed)
    assert any("CREATE TABLE IF NOT EXISTS sale_relate" in stmt for stmt in executed)
    assert not any("REFERENCES" in stmt for stmt in executed)


@pytest.mark.asyncio
async def test_create_ticket_encodes_details():
    connection = AsyncMock()
    connection.fetchrow = AsyncMock(return_value=_ticket_row())
    store = PostgresRecordStore(DummyPool(connection))

    ticket = await store.create_ticket(creator="alice", title="concert", details=[Detail(c=1, d=2)])

    assert ticket is not None
    assert ticket.id == "k1"
    assert ticket.details == [Detail(c=1, d=2)]
    args = connection.fetchrow.await_args.args
    assert args[1:] == ("alice", "concert", json.dumps([{"c": 1, "d": 2}]))


@pytest.mark.asyncio
async def test_create_ticket_without_row_returns_none():
    connection = AsyncMock()
    connection.fetchrow = AsyncMock(return_value=None)
    store = PostgresRecordStore(DummyPool(connection))

    assert await store.create_ticket(creator="alice", title="concert", details=[]) is None


@pytest.mark.asyncio
async def test_driver_errors_become_store_errors():
    connection = AsyncMock()
    connection.fetchrow = AsyncMock(side_effect=asyncpg.InterfaceError("pool is closing"))
    store = PostgresRecordStore(DummyPool(connection))

    with pytest.raises(StoreError, match="pool is closing"):
        await store.create_sale(ticket_id="k1", user="alice")


@pytest.mark.asyncio
async def test_connection_errors_become_store_errors():
    connection = AsyncMock()
    connection.fetchrow = AsyncMock(side_effect=ConnectionRefusedError("connection refused"))
    store = PostgresRecordStore(DummyPool(connection))

    with pytest.raises(StoreError):
        await store.create_ticket(creator="alice", title="concert", details=[])


@pytest.mark.asyncio
async def test_pool_timeouts_become_store_errors():
    connection = AsyncMock()
    connection.fetchrow = AsyncMock(side_effect=asyncio.TimeoutError())
    store = PostgresRecordStore(DummyPool(connection))

    with pytest.raises(StoreError):
        await store.delete_ticket("k1")


@pytest.mark.asyncio
async def test_undecodable_inserted_ticket_keeps_its_id():
    connection = AsyncMock()
    connection.fetchrow = AsyncMock(return_value=_ticket_row(details="not json"))
    store = PostgresRecordStore(DummyPool(connection))

    with pytest.raises(RecordDecodeError) as exc:
        await store.create_ticket(creator="alice", title="concert", details=[])
    assert exc.value.record == "tickets"
    assert exc.value.key == "k1"


@pytest.mark.asyncio
async def test_relate_returns_edge_id_or_none():
    connection = AsyncMock()
    connection.fetchrow = AsyncMock(side_effect=[{"id": "e1"}, None])
    store = PostgresRecordStore(DummyPool(connection))

    assert await store.relate(ticket_id="k1", sale_id="k2") == "e1"
    assert await store.relate(ticket_id="k1", sale_id="missing") is None


@pytest.mark.asyncio
async def test_list_sales_expands_ticket():
    connection = AsyncMock()
    connection.fetch = AsyncMock(
        return_value=[
            {
                "sale_id": "k2",
                "user_id": "alice",
                "ticket_id": "k1",
                "creator": "alice",
                "title": "concert",
                "details": [{"c": 1, "d": 2}],
            },
            {
                "sale_id": "k4",
                "user_id": "bob",
                "ticket_id": None,
                "creator": None,
                "title": None,
                "details": None,
            },
        ]
    )
    store = PostgresRecordStore(DummyPool(connection))

    sales = await store.list_sales()

    assert sales[0].ticket is not None
    assert sales[0].ticket.title == "concert"
    assert sales[1].ticket is None
    assert sales[1].user == "bob"


@pytest.mark.asyncio
async def test_list_sales_rejects_unexpected_shape():
    connection = AsyncMock()
    connection.fetch = AsyncMock(return_value=[{"sale_id": "k2"}])
    store = PostgresRecordStore(DummyPool(connection))

    with pytest.raises(RecordDecodeError) as exc:
        await store.list_sales()
    assert exc.value.record == "sales"
    assert exc.value.key == "k2"


@pytest.mark.asyncio
async def test_sale_relate_filters_by_ticket():
    connection = AsyncMock()
    connection.fetch = AsyncMock(return_value=[])
    store = PostgresRecordStore(DummyPool(connection))

    await store.sale_relate(ticket_id="k1")

    statement, ticket_id = connection.fetch.await_args.args
    assert "WHERE r.in_id = $1" in statement
    assert ticket_id == "k1"


@pytest.mark.asyncio
async def test_delete_ticket_returns_deleted_row():
    connection = AsyncMock()
    connection.fetchrow = AsyncMock(side_effect=[_ticket_row(), None])
    store = PostgresRecordStore(DummyPool(connection))

    deleted = await store.delete_ticket("k1")

    assert deleted is not None
    assert deleted.id == "k1"
    assert await store.delete_ticket("k1") is None
