"""API schemas for purchase ingestion, reconciliation and admin endpoints."""
from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..ledger import LinkConflict, LinkResult, PurchaseRecord
from ..sync import CheckoutEvent, CheckoutTransaction, LineItem, LineItemError, SyncResult


class LineItemPayload(BaseModel):
    product_id: Optional[str] = Field(alias="productId", default=None)
    price_id: Optional[str] = Field(alias="priceId", default=None)
    name: Optional[str] = None
    quantity: int = 1
    unit_amount: float = Field(alias="unitAmount", default=0.0)

    model_config = ConfigDict(populate_by_name=True)

    @property
    def label(self) -> str:
        return self.product_id or self.price_id or self.name or ""

    def to_line_item(self) -> LineItem:
        return LineItem(
            raw_product_id=self.product_id,
            price_id=self.price_id,
            name=self.name,
            quantity=self.quantity,
            unit_amount=self.unit_amount,
        )


class PurchaseEventPayload(BaseModel):
    """Purchase event pushed by the checkout provider; amounts in major units."""

    event_id: str = Field(alias="eventId", min_length=1)
    transaction_id: str = Field(alias="transactionId", min_length=1)
    email: str = Field(min_length=1)
    account_id: Optional[str] = Field(alias="accountId", default=None)
    line_items: List[LineItemPayload] = Field(alias="lineItems", default_factory=list)
    received_at: Optional[datetime] = Field(alias="receivedAt", default=None)

    model_config = ConfigDict(populate_by_name=True)

    def to_event(self) -> CheckoutEvent:
        line_items: List[LineItem] = []
        rejected_items: List[LineItemError] = []
        for item in self.line_items:
            try:
                line_items.append(item.to_line_item())
            except ValidationError as exc:
                rejected_items.append(LineItemError.from_validation_error(item.label, exc))
        transaction = CheckoutTransaction(
            transaction_id=self.transaction_id,
            email=self.email,
            account_id=self.account_id,
            line_items=line_items,
            rejected_items=rejected_items,
        )
        if self.received_at is None:
            return CheckoutEvent(event_id=self.event_id, transaction=transaction)
        return CheckoutEvent(event_id=self.event_id, transaction=transaction, received_at=self.received_at)


class ReconcileRequest(BaseModel):
    transaction_id: str = Field(alias="transactionId", min_length=1)

    model_config = ConfigDict(populate_by_name=True)


class PurchaseOut(BaseModel):
    id: str
    email: str
    account_id: Optional[str] = Field(alias="accountId", default=None)
    product_key: str = Field(alias="productKey")
    raw_product_id: str = Field(alias="rawProductId")
    transaction_id: Optional[str] = Field(alias="transactionId", default=None)
    amount: float
    status: str
    source: str
    created_at: datetime = Field(alias="createdAt")

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_record(cls, record: PurchaseRecord) -> "PurchaseOut":
        return cls(
            id=record.id,
            email=record.email,
            account_id=record.account_id,
            product_key=record.canonical_product_key,
            raw_product_id=record.raw_product_id,
            transaction_id=record.transaction_id,
            amount=record.amount,
            status=record.status.value,
            source=record.source.value,
            created_at=record.created_at,
        )


class LineItemErrorOut(BaseModel):
    raw_id: str = Field(alias="rawId")
    reason: str

    model_config = ConfigDict(populate_by_name=True)


class SyncResponse(BaseModel):
    transaction_id: str = Field(alias="transactionId")
    written: List[PurchaseOut] = Field(default_factory=list)
    errors: List[LineItemErrorOut] = Field(default_factory=list)
    unmapped: List[str] = Field(default_factory=list)
    created_count: int = Field(alias="createdCount", default=0)
    replayed: bool = False

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_result(cls, result: SyncResult) -> "SyncResponse":
        return cls(
            transaction_id=result.transaction_id,
            written=[PurchaseOut.from_record(record) for record in result.written],
            errors=[LineItemErrorOut(raw_id=error.raw_id, reason=error.reason) for error in result.errors],
            unmapped=list(result.unmapped),
            created_count=result.created_count,
            replayed=result.replayed,
        )


class ManualGrantRequest(BaseModel):
    email: str = Field(min_length=1)
    product_id: str = Field(alias="productId", min_length=1)
    amount: float = Field(default=0.0, ge=0)
    account_id: Optional[str] = Field(alias="accountId", default=None)

    model_config = ConfigDict(populate_by_name=True)


class ManualGrantResponse(BaseModel):
    purchase: PurchaseOut
    created: bool

    model_config = ConfigDict(populate_by_name=True)


class RelinkRequest(BaseModel):
    account_id: str = Field(alias="accountId", min_length=1)
    email: str = Field(min_length=1)

    model_config = ConfigDict(populate_by_name=True)


class RelinkResponse(BaseModel):
    account_id: str = Field(alias="accountId")
    email: str
    linked_count: int = Field(alias="linkedCount")
    conflicts: List[LinkConflict] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_result(cls, result: LinkResult) -> "RelinkResponse":
        return cls(
            account_id=result.account_id,
            email=result.email,
            linked_count=result.linked_count,
            conflicts=list(result.conflicts),
        )
