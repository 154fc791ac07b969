from __future__ import annotations

from dataclasses import dataclass, field
from typing import Sequence


@dataclass(frozen=True, slots=True)
class Detail:
    """Single ticket attribute pair."""

    c: int
    d: int


@dataclass(slots=True)
class Ticket:
    """Ticket record; ``id`` is assigned by the store on creation."""

    creator: str
    title: str
    details: list[Detail] = field(default_factory=list)
    id: str | None = None


@dataclass(slots=True)
class Sale:
    """Sale record created alongside a ticket.

    ``ticket`` is the linked ticket expanded on read, or ``None`` when the
    referenced ticket no longer exists.
    """

    user: str
    ticket: Ticket | None = None
    id: str | None = None


@dataclass(slots=True)
class CreateTicketInput:
    """Caller supplied fields of a new ticket."""

    title: str
    details: Sequence[Detail] = ()
