"""API schemas for entitlement lookups and session refresh."""
from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..entitlements import EntitlementSet, SessionGrant


class EntitlementsResponse(BaseModel):
    entitlements: List[str] = Field(default_factory=list)
    operator: bool = False
    failed_closed: bool = Field(alias="failedClosed", default=False)
    resolved_at: datetime = Field(alias="resolvedAt")

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_set(cls, entitlements: EntitlementSet) -> "EntitlementsResponse":
        return cls(
            entitlements=entitlements.sorted_keys(),
            operator=entitlements.operator,
            failed_closed=entitlements.failed_closed,
            resolved_at=entitlements.resolved_at,
        )


class SessionResponse(BaseModel):
    account_id: Optional[str] = Field(alias="accountId", default=None)
    email: Optional[str] = None
    entitlements: List[str] = Field(default_factory=list)
    operator: bool = False
    expires_at: datetime = Field(alias="expiresAt")

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_grant(cls, grant: SessionGrant) -> "SessionResponse":
        return cls(
            account_id=grant.claims.account_id,
            email=grant.claims.email,
            entitlements=list(grant.claims.entitlements),
            operator=grant.claims.operator,
            expires_at=grant.expires_at,
        )
