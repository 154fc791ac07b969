"""Ticket and sale domain: models, store interface and service."""

from .models import CreateTicketInput, Detail, Sale, Ticket
from .repository import PostgresRecordStore
from .service import TicketService
from .store import RecordDecodeError, RecordStore, StoreError

__all__ = [
    "CreateTicketInput",
    "Detail",
    "PostgresRecordStore",
    "RecordDecodeError",
    "RecordStore",
    "Sale",
    "StoreError",
    "Ticket",
    "TicketService",
]
