from __future__ import annotations

from contextlib import asynccontextmanager

import asyncpg
from fastapi import FastAPI

from ticketgraph.api.error_handlers import register_error_handlers
from ticketgraph.api.routes import ping, tickets
from ticketgraph.core.config import Settings, get_settings
from ticketgraph.core.logging import configure_logging, init_tracer, shutdown_tracer
from ticketgraph.graphql import create_graphql_router
from ticketgraph.middleware import RequestContextMiddleware
from ticketgraph.security.identity import IdentityResolver
from ticketgraph.services.postgres import PostgresConnectionTester
from ticketgraph.tickets.repository import PostgresRecordStore
from ticketgraph.tickets.service import TicketService
from ticketgraph.tickets.store import StoreError


@asynccontextmanager
async def lifespan(app: FastAPI):  # pragma: no cover - executed by framework
    settings: Settings = app.state.settings
    logger = configure_logging(settings)
    tracer_provider = init_tracer(settings)

    postgres_tester = PostgresConnectionTester(
        dsn=settings.postgres_dsn,
        min_size=settings.postgres_pool_min_size,
        max_size=settings.postgres_pool_max_size,
    )
    app.state.logger = logger
    app.state.tracer_provider = tracer_provider
    app.state.postgres_tester = postgres_tester
    app.state.ticket_service = None
    try:
        store = PostgresRecordStore(await postgres_tester.get_pool())
        await store.ensure_schema()
        app.state.ticket_service = TicketService(store)
    except (StoreError, OSError, asyncpg.PostgresError) as exc:
        logger.error("ticket service unavailable: %s", exc)
    try:
        yield
    finally:
        await postgres_tester.close()
        shutdown_tracer(tracer_provider)


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    app = FastAPI(title=settings.app_name, lifespan=lifespan)
    app.state.settings = settings

    resolver = IdentityResolver(settings.jwt_secret, algorithms=(settings.jwt_algorithm,))
    app.add_middleware(RequestContextMiddleware, resolver=resolver, cookie_name=settings.auth_cookie_name)
    register_error_handlers(app)

    app.include_router(ping.router)
    app.include_router(tickets.router)
    app.include_router(create_graphql_router(), prefix="/graphql")
    return app


app = create_app()
