from __future__ import annotations

from typing import Any, Sequence

from jose import JWTError, jwt
from starlette.requests import HTTPConnection

from ticketgraph.core.errors import AuthFailCredentialInvalid, AuthFailNoCredential


class IdentityResolver:
    """Verify signed tokens and return the identity they carry."""

    def __init__(
        self,
        secret: str,
        *,
        algorithms: Sequence[str] = ("HS256",),
        identity_claim: str = "sub",
    ) -> None:
        self._secret = secret
        self._algorithms = list(algorithms)
        self._identity_claim = identity_claim

    def resolve(self, token: str | None) -> str:
        """Return the identity embedded in ``token``.

        Signature and expiry are checked by ``jose``; its message is kept as
        the error source, the token itself never is.
        """

        if not token:
            raise AuthFailNoCredential()
        try:
            claims: dict[str, Any] = jwt.decode(token, self._secret, algorithms=self._algorithms)
        except JWTError as exc:
            raise AuthFailCredentialInvalid(source=str(exc)) from exc

        identity = claims.get(self._identity_claim)
        if not isinstance(identity, str) or not identity:
            raise AuthFailCredentialInvalid(source=f"missing '{self._identity_claim}' claim")
        return identity


def extract_credential(connection: HTTPConnection, cookie_name: str) -> str | None:
    """Return the credential attached to a request, cookie first."""

    cookie = connection.cookies.get(cookie_name)
    if cookie:
        return cookie

    authorization = connection.headers.get("Authorization")
    if not authorization:
        return None
    scheme, _, credentials = authorization.partition(" ")
    if scheme.lower() != "bearer":
        return None
    return credentials.strip() or None
