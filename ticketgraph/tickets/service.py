from __future__ import annotations

import logging
from dataclasses import dataclass, field

from opentelemetry import trace

from ticketgraph.core.context import RequestContext
from ticketgraph.core.errors import (
    ApiError,
    CreationPhase,
    EntityDeleteFailIdNotFound,
    StoreFail,
    StoreNoResult,
    StoreParseFail,
)
from ticketgraph.metrics import MetricsRegistry, metrics_registry, register_default_metrics
from ticketgraph.metrics.base import track_duration
from ticketgraph.metrics.definitions import (
    TICKET_WORKFLOW_DURATION,
    TICKET_WORKFLOW_FAILURES,
    TICKET_WORKFLOW_PARTIAL_STATES,
    TICKET_WORKFLOW_RUNS,
)

from .models import CreateTicketInput, Sale, Ticket
from .store import SALES, TICKETS, RecordDecodeError, RecordIdError, RecordStore, StoreError, parse_record_id, record_ref

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


@dataclass(slots=True)
class TicketService:
    """Ticket and sale operations against the record store.

    Every operation takes the caller's ``RequestContext`` and raises
    ``ApiError`` carrying its correlation id.
    """

    store: RecordStore
    metrics: MetricsRegistry = field(default=metrics_registry)

    def __post_init__(self) -> None:
        register_default_metrics(self.metrics)

    async def create_ticket(self, ctx: RequestContext, ct_input: CreateTicketInput) -> Ticket:
        """Create a ticket, its sale and the ``sale_relate`` edge between them.

        The three writes are separate store operations with no transaction
        around them and no rollback. A failure after the ticket write is
        reported with the phase it happened in and the ids already committed,
        so callers can tell an orphaned ticket from nothing created at all.
        """

        creator = ctx.user_id()
        self.metrics.counter(TICKET_WORKFLOW_RUNS).inc()
        with track_duration(self.metrics.distribution(TICKET_WORKFLOW_DURATION)):
            ticket = await self._create_ticket_record(ctx, creator, ct_input)
            ticket_id = ticket.id or ""
            sale = await self._create_sale_record(ctx, creator, ticket_id)
            await self._relate(ctx, ticket_id, sale.id or "")

        logger.info(
            "request %s created ticket %s with sale %s",
            ctx.req_id,
            record_ref(TICKETS, ticket_id),
            record_ref(SALES, sale.id or ""),
        )
        return ticket

    async def _create_ticket_record(self, ctx: RequestContext, creator: str, ct_input: CreateTicketInput) -> Ticket:
        with tracer.start_as_current_span("ticket_workflow.ticket"):
            try:
                ticket = await self.store.create_ticket(
                    creator=creator,
                    title=ct_input.title,
                    details=list(ct_input.details),
                )
            except RecordDecodeError as exc:
                raise self._phase_failure(
                    ctx,
                    StoreNoResult(
                        source=str(exc),
                        id=exc.key or TICKETS,
                        phase=CreationPhase.TICKET,
                        committed=_with_decoded((), TICKETS, exc),
                    ),
                ) from exc
            except StoreError as exc:
                raise self._phase_failure(ctx, StoreFail(source=str(exc), phase=CreationPhase.TICKET)) from exc
        if ticket is None or not ticket.id:
            raise self._phase_failure(ctx, StoreNoResult(source="none", id=TICKETS, phase=CreationPhase.TICKET))
        return ticket

    async def _create_sale_record(self, ctx: RequestContext, creator: str, ticket_id: str) -> Sale:
        committed = (record_ref(TICKETS, ticket_id),)
        with tracer.start_as_current_span("ticket_workflow.sale"):
            try:
                sale = await self.store.create_sale(ticket_id=ticket_id, user=creator)
            except RecordDecodeError as exc:
                raise self._phase_failure(
                    ctx,
                    StoreNoResult(
                        source=str(exc),
                        id=exc.key or ticket_id,
                        phase=CreationPhase.SALE,
                        committed=_with_decoded(committed, SALES, exc),
                    ),
                ) from exc
            except StoreError as exc:
                raise self._phase_failure(
                    ctx, StoreFail(source=str(exc), phase=CreationPhase.SALE, committed=committed)
                ) from exc
        if sale is None or not sale.id:
            raise self._phase_failure(
                ctx,
                StoreNoResult(source="none", id=ticket_id, phase=CreationPhase.SALE, committed=committed),
            )
        return sale

    async def _relate(self, ctx: RequestContext, ticket_id: str, sale_id: str) -> str:
        committed = (record_ref(TICKETS, ticket_id), record_ref(SALES, sale_id))
        with tracer.start_as_current_span("ticket_workflow.relate"):
            try:
                edge_id = await self.store.relate(ticket_id=ticket_id, sale_id=sale_id)
            except StoreError as exc:
                raise self._phase_failure(
                    ctx, StoreFail(source=str(exc), phase=CreationPhase.RELATE, committed=committed)
                ) from exc
        if edge_id is None:
            raise self._phase_failure(
                ctx,
                StoreNoResult(source="none", id=sale_id, phase=CreationPhase.RELATE, committed=committed),
            )
        return edge_id

    def _phase_failure(self, ctx: RequestContext, error: StoreFail | StoreNoResult) -> ApiError:
        phase = error.phase.value if error.phase else "unknown"
        self.metrics.counter(TICKET_WORKFLOW_FAILURES).inc(labels={"phase": phase})
        if error.is_partial:
            self.metrics.counter(TICKET_WORKFLOW_PARTIAL_STATES).inc(labels={"phase": phase})
            logger.error(
                "request %s left a partial state: %s phase failed after committing %s",
                ctx.req_id,
                phase,
                ", ".join(error.committed),
            )
        return ctx.fail(error)

    async def list_tickets(self, ctx: RequestContext) -> list[Ticket]:
        try:
            return await self.store.list_tickets()
        except StoreError as exc:
            raise ctx.fail(StoreFail(source=str(exc))) from exc

    async def list_sales(self, ctx: RequestContext) -> list[Sale]:
        try:
            return await self.store.list_sales()
        except RecordDecodeError as exc:
            raise ctx.fail(StoreNoResult(source=str(exc), id=exc.record)) from exc
        except StoreError as exc:
            raise ctx.fail(StoreFail(source=str(exc))) from exc

    async def sale_relate(self, ctx: RequestContext, ticket_id: str | None = None) -> list[Sale]:
        """Return the sales reachable over ``sale_relate`` edges."""

        key = None
        if ticket_id is not None:
            try:
                key = parse_record_id(ticket_id, TICKETS)
            except RecordIdError as exc:
                raise ctx.fail(StoreParseFail(source=str(exc), id=ticket_id)) from exc
        try:
            return await self.store.sale_relate(ticket_id=key)
        except RecordDecodeError as exc:
            raise ctx.fail(StoreNoResult(source=str(exc), id=exc.record)) from exc
        except StoreError as exc:
            raise ctx.fail(StoreFail(source=str(exc))) from exc

    async def delete_ticket(self, ctx: RequestContext, ticket_id: str) -> Ticket:
        """Delete one ticket record.

        The linked sale and ``sale_relate`` edge are left in place. A missing
        record and a store failure are both reported as not found.
        """

        ctx.user_id()
        try:
            key = parse_record_id(ticket_id, TICKETS)
        except RecordIdError as exc:
            raise ctx.fail(StoreParseFail(source=str(exc), id=ticket_id)) from exc

        try:
            deleted = await self.store.delete_ticket(key)
        except StoreError as exc:
            logger.warning("request %s could not delete ticket %s: %s", ctx.req_id, ticket_id, exc)
            raise ctx.fail(EntityDeleteFailIdNotFound(id=ticket_id)) from exc
        if deleted is None:
            raise ctx.fail(EntityDeleteFailIdNotFound(id=ticket_id))
        return deleted


def _with_decoded(committed: tuple[str, ...], table: str, exc: RecordDecodeError) -> tuple[str, ...]:
    # a written row that failed to decode still counts as committed
    if exc.key is None:
        return committed
    return committed + (record_ref(table, exc.key),)
