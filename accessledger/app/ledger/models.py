"""Domain models for the purchase ledger."""
from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator


def normalize_email(value: str) -> str:
    """Canonical form used for every email stored or queried."""

    return value.strip().lower()


class PurchaseStatus(str, Enum):
    """Lifecycle status for a purchase record."""

    COMPLETED = "completed"
    PENDING = "pending"


class PurchaseSource(str, Enum):
    """Write path that created a purchase record."""

    EVENT = "event"
    RECONCILIATION = "reconciliation"
    MANUAL = "manual"


class PurchaseRecord(BaseModel):
    """A single ledger row granting access to one product."""

    id: str
    email: str = Field(min_length=1)
    account_id: Optional[str] = None
    canonical_product_key: str = Field(min_length=1)
    raw_product_id: str
    transaction_id: Optional[str] = None
    amount: float = 0.0
    status: PurchaseStatus = PurchaseStatus.COMPLETED
    source: PurchaseSource = PurchaseSource.EVENT
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    @field_validator("email")
    @classmethod
    def _normalize_email(cls, value: str) -> str:
        return normalize_email(value)

    @property
    def idempotency_key(self) -> Tuple[str, str, Optional[str]]:
        return (self.email, self.canonical_product_key, self.transaction_id)

    @property
    def is_completed(self) -> bool:
        return self.status == PurchaseStatus.COMPLETED


class UpsertResult(BaseModel):
    """Return value of a ledger upsert."""

    record: PurchaseRecord
    created: bool

    model_config = ConfigDict(frozen=True)


class LinkConflict(BaseModel):
    """A guest purchase already attributed to a different account."""

    record_id: str
    email: str
    canonical_product_key: str
    transaction_id: Optional[str] = None
    existing_account_id: str
    requested_account_id: str

    model_config = ConfigDict(frozen=True)

    @classmethod
    def from_record(cls, record: PurchaseRecord, requested_account_id: str) -> "LinkConflict":
        return cls(
            record_id=record.id,
            email=record.email,
            canonical_product_key=record.canonical_product_key,
            transaction_id=record.transaction_id,
            existing_account_id=record.account_id or "",
            requested_account_id=requested_account_id,
        )


class LinkResult(BaseModel):
    """Outcome of linking guest purchases to an account."""

    account_id: str
    email: str
    linked_count: int = Field(default=0, ge=0)
    conflicts: List[LinkConflict] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)
