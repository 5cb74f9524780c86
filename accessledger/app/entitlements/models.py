"""Domain models for entitlement resolution and session claims."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict, FrozenSet, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..ledger.models import normalize_email


class EntitlementSubject(BaseModel):
    """The identity whose entitlements are requested."""

    account_id: Optional[str] = None
    email: Optional[str] = None

    model_config = ConfigDict(frozen=True)

    @field_validator("account_id")
    @classmethod
    def _clean_account_id(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return value.strip() or None

    @field_validator("email")
    @classmethod
    def _clean_email(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return normalize_email(value) or None

    @property
    def has_identity(self) -> bool:
        return bool(self.account_id or self.email)

    @property
    def is_fully_identified(self) -> bool:
        return bool(self.account_id and self.email)


class EntitlementSet(BaseModel):
    """Canonical product keys an identity may access. Derived, never persisted."""

    product_keys: FrozenSet[str] = Field(default_factory=frozenset)
    operator: bool = False
    failed_closed: bool = False
    resolved_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = ConfigDict(frozen=True)

    def __contains__(self, canonical_key: object) -> bool:
        return canonical_key in self.product_keys

    def __len__(self) -> int:
        return len(self.product_keys)

    def issuperset(self, other: "EntitlementSet") -> bool:
        return self.product_keys.issuperset(other.product_keys)

    def sorted_keys(self) -> List[str]:
        return sorted(self.product_keys)


class SessionClaims(BaseModel):
    """Claims embedded in a session token; a snapshot that goes stale."""

    account_id: Optional[str] = None
    email: Optional[str] = None
    entitlements: List[str] = Field(default_factory=list)
    operator: bool = False
    issued_at: datetime
    expires_at: datetime

    model_config = ConfigDict(frozen=True)

    def to_jwt_claims(self) -> Dict[str, object]:
        claims: Dict[str, object] = {
            "entitlements": list(self.entitlements),
            "operator": self.operator,
            "iat": int(self.issued_at.timestamp()),
            "exp": int(self.expires_at.timestamp()),
        }
        if self.account_id:
            claims["sub"] = self.account_id
        if self.email:
            claims["email"] = self.email
        return claims

    @classmethod
    def from_jwt_claims(cls, claims: Dict[str, object]) -> "SessionClaims":
        return cls(
            account_id=claims.get("sub"),
            email=claims.get("email"),
            entitlements=list(claims.get("entitlements") or []),
            operator=bool(claims.get("operator", False)),
            issued_at=datetime.fromtimestamp(int(claims["iat"]), tz=timezone.utc),
            expires_at=datetime.fromtimestamp(int(claims["exp"]), tz=timezone.utc),
        )

    @property
    def subject(self) -> EntitlementSubject:
        return EntitlementSubject(account_id=self.account_id, email=self.email)


class SessionGrant(BaseModel):
    """Wrapper containing the resolved entitlements and the signed token."""

    entitlements: EntitlementSet
    claims: SessionClaims
    token: str

    model_config = ConfigDict(frozen=True)

    @property
    def expires_at(self) -> datetime:
        return self.claims.expires_at
