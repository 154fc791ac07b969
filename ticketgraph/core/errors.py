"""Typed errors shared by the REST and GraphQL transports.

Every failure that leaves a service operation is an ``ApiError``: one
``ServiceError`` (the closed set of kinds below) tagged with the request's
correlation id. Both transports render it from the same ``message`` and
``req_id`` so they never disagree about what a client is told.
"""

from __future__ import annotations

import json
import logging
import sys
from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any, ClassVar, Mapping
from uuid import UUID

from graphql import GraphQLError

logger = logging.getLogger(__name__)

INTERNAL = "Internal error"
UNEXPECTED = "Unexpected error"

# Extension key carrying the serialized typed error on GraphQL responses.
ERROR_SER_KEY = "error_ser"


class ErrorKind(str, Enum):
    """Closed set of error kinds reported to clients."""

    GENERIC = "Generic"
    LOGIN_FAIL = "LoginFail"
    ENTITY_DELETE_FAIL_ID_NOT_FOUND = "EntityDeleteFailIdNotFound"
    AUTH_FAIL_NO_CREDENTIAL = "AuthFailNoCredential"
    AUTH_FAIL_CREDENTIAL_INVALID = "AuthFailCredentialInvalid"
    AUTH_FAIL_CONTEXT_MISSING = "AuthFailContextMissing"
    SERIALIZATION_FAIL = "SerializationFail"
    STORE_FAIL = "StoreFail"
    STORE_NO_RESULT = "StoreNoResult"
    STORE_PARSE_FAIL = "StoreParseFail"


class CreationPhase(str, Enum):
    """Steps of the ticket creation workflow, in execution order."""

    TICKET = "ticket"
    SALE = "sale"
    RELATE = "relate"


@dataclass(eq=False)
class ServiceError(Exception):
    """Base class of the typed errors; subclasses declare their fields."""

    kind: ClassVar[ErrorKind]

    @property
    def message(self) -> str:
        raise NotImplementedError

    def __str__(self) -> str:
        return self.message

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {}
        for item in fields(self):
            value = getattr(self, item.name)
            if isinstance(value, Enum):
                value = value.value
            elif isinstance(value, tuple):
                value = list(value)
            payload[item.name] = value
        return {self.kind.value: payload}


@dataclass(eq=False)
class Generic(ServiceError):
    kind: ClassVar[ErrorKind] = ErrorKind.GENERIC

    description: str

    @property
    def message(self) -> str:
        return self.description


@dataclass(eq=False)
class LoginFail(ServiceError):
    kind: ClassVar[ErrorKind] = ErrorKind.LOGIN_FAIL

    @property
    def message(self) -> str:
        return "Login fail"


@dataclass(eq=False)
class EntityDeleteFailIdNotFound(ServiceError):
    kind: ClassVar[ErrorKind] = ErrorKind.ENTITY_DELETE_FAIL_ID_NOT_FOUND

    id: str

    @property
    def message(self) -> str:
        return f"Ticket id {self.id} not found"


@dataclass(eq=False)
class AuthFailNoCredential(ServiceError):
    kind: ClassVar[ErrorKind] = ErrorKind.AUTH_FAIL_NO_CREDENTIAL

    @property
    def message(self) -> str:
        return "You are not logged in"


@dataclass(eq=False)
class AuthFailCredentialInvalid(ServiceError):
    kind: ClassVar[ErrorKind] = ErrorKind.AUTH_FAIL_CREDENTIAL_INVALID

    source: str

    @property
    def message(self) -> str:
        return "The provided credential is not valid"


@dataclass(eq=False)
class AuthFailContextMissing(ServiceError):
    kind: ClassVar[ErrorKind] = ErrorKind.AUTH_FAIL_CONTEXT_MISSING

    @property
    def message(self) -> str:
        return INTERNAL


@dataclass(eq=False)
class SerializationFail(ServiceError):
    kind: ClassVar[ErrorKind] = ErrorKind.SERIALIZATION_FAIL

    source: str

    @property
    def message(self) -> str:
        return f"Serialization error - {self.source}"


@dataclass(eq=False)
class _WorkflowTagged(ServiceError):
    """Store errors optionally tagged with the creation phase they occurred in.

    ``committed`` lists the record ids that were durably written before the
    failing phase; a non-empty value means the store is left in a partial state.
    """

    phase: CreationPhase | None = field(default=None, kw_only=True)
    committed: tuple[str, ...] = field(default=(), kw_only=True)

    @property
    def is_partial(self) -> bool:
        return bool(self.committed)

    def _with_phase(self, text: str) -> str:
        if not self.is_partial or self.phase is None:
            return text
        return f"{text} ({self.phase.value} creation failed, already created: {', '.join(self.committed)})"


@dataclass(eq=False)
class StoreFail(_WorkflowTagged):
    kind: ClassVar[ErrorKind] = ErrorKind.STORE_FAIL

    source: str

    @property
    def message(self) -> str:
        return self._with_phase(INTERNAL)


@dataclass(eq=False)
class StoreNoResult(_WorkflowTagged):
    kind: ClassVar[ErrorKind] = ErrorKind.STORE_NO_RESULT

    source: str
    id: str

    @property
    def message(self) -> str:
        return self._with_phase(f"No result for id {self.id}")


@dataclass(eq=False)
class StoreParseFail(ServiceError):
    kind: ClassVar[ErrorKind] = ErrorKind.STORE_PARSE_FAIL

    source: str
    id: str

    @property
    def message(self) -> str:
        return f"Couldn't parse id {self.id}"


class ApiError(Exception):
    """A typed error bound to the correlation id of the request it happened in."""

    def __init__(self, error: ServiceError, req_id: UUID) -> None:
        super().__init__(error.message)
        self.error = error
        self.req_id = req_id

    def __repr__(self) -> str:
        return f"ApiError(req_id={self.req_id}, error={self.error!r})"


REST_STATUS_BY_KIND: Mapping[ErrorKind, int] = {
    ErrorKind.GENERIC: 403,
    ErrorKind.LOGIN_FAIL: 403,
    ErrorKind.ENTITY_DELETE_FAIL_ID_NOT_FOUND: 400,
    ErrorKind.AUTH_FAIL_NO_CREDENTIAL: 403,
    ErrorKind.AUTH_FAIL_CREDENTIAL_INVALID: 403,
    ErrorKind.AUTH_FAIL_CONTEXT_MISSING: 403,
    ErrorKind.SERIALIZATION_FAIL: 400,
    ErrorKind.STORE_FAIL: 403,
    ErrorKind.STORE_NO_RESULT: 400,
    ErrorKind.STORE_PARSE_FAIL: 400,
}


def serialize_error(error: ServiceError) -> str:
    return json.dumps(error.to_dict(), sort_keys=True)


def render_rest(api_error: ApiError) -> tuple[int, dict[str, Any]]:
    """Return the HTTP status and JSON body for an error."""

    status_code = REST_STATUS_BY_KIND[api_error.error.kind]
    body = {
        "error": {
            "error": api_error.error.message,
            "req_id": str(api_error.req_id),
        }
    }
    return status_code, body


def render_graphql(api_error: ApiError) -> GraphQLError:
    """Return the GraphQL error object for an error."""

    return GraphQLError(
        api_error.error.message,
        extensions={
            "req_id": str(api_error.req_id),
            ERROR_SER_KEY: serialize_error(api_error.error),
        },
    )


def log_api_error(api_error: ApiError) -> None:
    """Record the typed error server-side, keyed by its correlation id."""

    error = api_error.error
    try:
        log = logger.error if _is_partial(error) else logger.warning
        log(
            "request %s failed with %s: %s",
            api_error.req_id,
            error.kind.value,
            serialize_error(error),
        )
    except Exception as exc:  # pragma: no cover - logging must not mask the original error
        print(f"failed to log error for request {api_error.req_id}: {exc!r}", file=sys.stderr)


def _is_partial(error: ServiceError) -> bool:
    return isinstance(error, _WorkflowTagged) and error.is_partial
