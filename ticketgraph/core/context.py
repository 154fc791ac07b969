"""Per-request context passed explicitly into every service operation."""

from __future__ import annotations

from dataclasses import dataclass, field
from uuid import UUID, uuid4

from ticketgraph.core.errors import ApiError, AuthFailCredentialInvalid, AuthFailNoCredential, ServiceError
from ticketgraph.security.identity import IdentityResolver


@dataclass(frozen=True, slots=True)
class RequestContext:
    """Correlation id plus the caller identity, if one could be resolved.

    Identity resolution failures are kept rather than raised so a request
    without a valid credential still gets a correlation id; operations that
    need the caller fail when they call ``user_id``.
    """

    req_id: UUID = field(default_factory=uuid4)
    identity: str | None = None
    auth_error: ServiceError | None = None

    @classmethod
    def resolve(cls, token: str | None, resolver: IdentityResolver) -> RequestContext:
        try:
            identity = resolver.resolve(token)
        except (AuthFailNoCredential, AuthFailCredentialInvalid) as exc:
            return cls(auth_error=exc)
        return cls(identity=identity)

    def user_id(self) -> str:
        if self.identity is not None:
            return self.identity
        raise self.fail(self.auth_error or AuthFailNoCredential())

    def fail(self, error: ServiceError) -> ApiError:
        return ApiError(error, self.req_id)
