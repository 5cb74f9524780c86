"""Models describing checkout provider transactions and sync outcomes."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..ledger.models import PurchaseRecord


class LineItem(BaseModel):
    """A purchased line within a checkout transaction.

    ``raw_product_id`` may be missing when the provider only reports a price
    reference; the provider resolves it with a per-item lookup.
    """

    raw_product_id: Optional[str] = None
    price_id: Optional[str] = None
    name: Optional[str] = None
    quantity: int = Field(default=1, ge=1)
    unit_amount: float = Field(default=0.0, ge=0)

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    @property
    def amount(self) -> float:
        return round(self.unit_amount * self.quantity, 2)

    @property
    def label(self) -> str:
        return self.raw_product_id or self.price_id or self.name or ""


class LineItemError(BaseModel):
    """A line item that could not be mapped or written."""

    raw_id: str
    reason: str

    model_config = ConfigDict(frozen=True)

    @classmethod
    def from_validation_error(cls, raw_id: str, exc: ValidationError) -> "LineItemError":
        problems = "; ".join(
            f"{'.'.join(str(part) for part in error['loc']) or 'item'}: {error['msg']}"
            for error in exc.errors()
        )
        return cls(raw_id=raw_id, reason=f"malformed line item ({problems})")


class CheckoutTransaction(BaseModel):
    """A completed transaction as reported by the checkout provider.

    ``rejected_items`` holds line items that could not be parsed; they are
    reported alongside the outcome of the valid ones.
    """

    transaction_id: str = Field(min_length=1)
    email: str = Field(min_length=1)
    account_id: Optional[str] = None
    line_items: List[LineItem] = Field(default_factory=list)
    rejected_items: List[LineItemError] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True, frozen=True)


class CheckoutEvent(BaseModel):
    """Inbound purchase event delivered by the checkout provider."""

    event_id: str = Field(min_length=1)
    transaction: CheckoutTransaction
    received_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = ConfigDict(populate_by_name=True, frozen=True)


class SyncResult(BaseModel):
    """Partial-success outcome of writing one transaction to the ledger."""

    transaction_id: str
    written: List[PurchaseRecord] = Field(default_factory=list)
    errors: List[LineItemError] = Field(default_factory=list)
    unmapped: List[str] = Field(default_factory=list)
    created_count: int = 0
    replayed: bool = False

    model_config = ConfigDict(frozen=True)

    @property
    def is_complete(self) -> bool:
        return not self.errors
