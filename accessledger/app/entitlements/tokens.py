"""Signing and verification of short-lived session tokens."""
from __future__ import annotations

from typing import Dict, Optional, Protocol

from jose import JWTError, jwt

from .models import SessionClaims


class TokenSigner(Protocol):
    """Protocol describing session token signing behavior."""

    def sign(self, claims: SessionClaims) -> str:
        ...

    def verify(self, token: str) -> Optional[SessionClaims]:
        ...


class JWTSessionSigner:
    """HS256 JWT signer for entitlement-bearing session tokens."""

    def __init__(self, secret: str, *, algorithm: str = "HS256") -> None:
        if not secret:
            raise ValueError("secret must be provided")
        self._secret = secret
        self._algorithm = algorithm

    def sign(self, claims: SessionClaims) -> str:
        return jwt.encode(claims.to_jwt_claims(), self._secret, algorithm=self._algorithm)

    def verify(self, token: str) -> Optional[SessionClaims]:
        """Return the claims of a valid, unexpired token, else ``None``."""

        if not token:
            return None
        try:
            payload: Dict[str, object] = jwt.decode(token, self._secret, algorithms=[self._algorithm])
            return SessionClaims.from_jwt_claims(payload)
        except (JWTError, KeyError, TypeError, ValueError):
            return None
