"""Token verification for WebSocket handshakes.

The transport depends on the ``TokenVerifier`` protocol only, so tests can
use a plain class that maps tokens to user ids.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from jose import JWTError, jwt

from notification_service.core.exceptions import AuthenticationFailure

if TYPE_CHECKING:
    from notification_service.core.settings.auth import AuthSettings

logger = logging.getLogger(__name__)


@runtime_checkable
class TokenVerifier(Protocol):
    """Resolve a handshake credential to a user id."""

    async def verify(self, credential: str) -> str:
        """Return the user id.

        Raises:
            AuthenticationFailure: If the credential is missing, invalid or expired.
        """
        ...


class JWTTokenVerifier:
    """Verify signed JWT access tokens with python-jose."""

    def __init__(self, settings: AuthSettings) -> None:
        self._secret = settings.jwt_secret.get_secret_value()
        self._algorithm = settings.jwt_algorithm
        self._user_id_claim = settings.user_id_claim

    async def verify(self, credential: str) -> str:
        if not credential:
            raise AuthenticationFailure("Missing credential")
        try:
            claims = jwt.decode(credential, self._secret, algorithms=[self._algorithm])
        except JWTError as e:
            logger.debug("Token rejected", extra={"error": str(e)})
            raise AuthenticationFailure("Invalid or expired token") from e

        user_id = claims.get(self._user_id_claim)
        if not user_id:
            raise AuthenticationFailure(f"Token has no {self._user_id_claim!r} claim")
        return str(user_id)

    def issue(self, user_id: str, **claims: object) -> str:
        """Sign a token for ``user_id`` (used by tests and local tooling)."""
        payload = {self._user_id_claim: user_id, **claims}
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)
