import asyncio

import asyncpg
from fastapi import APIRouter, Request

from ticketgraph.core.errors import StoreFail
from ticketgraph.dependencies.context import CurrentContext

router = APIRouter(prefix="/ping", tags=["health"])


@router.get("", summary="Public health probe")
async def ping(ctx: CurrentContext) -> dict[str, str]:
    return {"status": "ok", "req_id": str(ctx.req_id)}


@router.get("/store", summary="Store connectivity probe")
async def ping_store(request: Request, ctx: CurrentContext) -> dict[str, str]:
    tester = getattr(request.app.state, "postgres_tester", None)
    if tester is None:
        raise ctx.fail(StoreFail(source="store is not configured"))
    try:
        await tester.test_connection()
    except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError, TimeoutError, asyncio.TimeoutError) as exc:
        raise ctx.fail(StoreFail(source=str(exc))) from exc
    return {"status": "ok", "req_id": str(ctx.req_id)}
