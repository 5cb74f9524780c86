"""Entitlement resolution and session token issuance."""

from .models import EntitlementSet, EntitlementSubject, SessionClaims, SessionGrant
from .service import EntitlementResolver
from .tokens import JWTSessionSigner, TokenSigner

__all__ = [
    "EntitlementResolver",
    "EntitlementSet",
    "EntitlementSubject",
    "JWTSessionSigner",
    "SessionClaims",
    "SessionGrant",
    "TokenSigner",
]
