"""Idempotent purchase ledger built on top of the product normalizer."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, List, Optional, Protocol, Tuple
from uuid import uuid4

from ..catalog import NormalizationResult, ProductNormalizer, get_normalizer
from .exceptions import DuplicateWrite, PersistenceFailure
from .models import (
    PurchaseRecord,
    PurchaseSource,
    PurchaseStatus,
    UpsertResult,
    normalize_email,
)

logger = logging.getLogger("ledger")


class PurchaseRepository(Protocol):
    """Persistence operations required by the ledger and the account linker."""

    def insert_purchase(self, record: PurchaseRecord) -> PurchaseRecord:
        """Insert ``record`` or raise :class:`DuplicateWrite` on key collision."""

    def find_by_idempotency_key(
        self,
        email: str,
        canonical_product_key: str,
        transaction_id: Optional[str],
    ) -> Optional[PurchaseRecord]:
        ...

    def list_purchases(
        self,
        *,
        account_id: Optional[str] = None,
        email: Optional[str] = None,
        status: PurchaseStatus = PurchaseStatus.COMPLETED,
    ) -> List[PurchaseRecord]:
        """Return matching records, newest first."""

    def list_by_transaction(self, transaction_id: str) -> List[PurchaseRecord]:
        ...

    def find_conflicting_purchases(self, account_id: str, email: str) -> List[PurchaseRecord]:
        ...

    def link_guest_purchases(self, account_id: str, email: str) -> int:
        ...


def _clean_optional(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    cleaned = str(value).strip()
    return cleaned or None


@dataclass
class PurchaseLedger:
    """Records purchases exactly once and answers ownership queries.

    Serialization of racing writers is left to the storage layer's unique
    indexes: the losing insert surfaces as :class:`DuplicateWrite` and is
    turned into a re-read of the winning row.
    """

    repository: PurchaseRepository
    normalizer: ProductNormalizer = field(default_factory=get_normalizer)
    clock: Callable[[], datetime] = field(default=lambda: datetime.now(timezone.utc))

    def upsert(
        self,
        email: str,
        canonical_key: str,
        raw_id: str,
        transaction_id: Optional[str],
        amount: float,
        account_id: Optional[str] = None,
        *,
        source: PurchaseSource = PurchaseSource.EVENT,
        status: PurchaseStatus = PurchaseStatus.COMPLETED,
    ) -> UpsertResult:
        normalized_email = normalize_email(email or "")
        if not normalized_email:
            raise ValueError("email is required to record a purchase")

        raw = "" if raw_id is None else str(raw_id)
        key = canonical_key if (canonical_key or "").strip() else self.normalizer.normalize(raw).canonical_key
        transaction = _clean_optional(transaction_id)

        if transaction is None:
            existing = self.repository.find_by_idempotency_key(normalized_email, key, None)
            if existing is not None:
                self._log_duplicate(existing)
                return UpsertResult(record=existing, created=False)

        record = PurchaseRecord(
            id=f"pur_{uuid4().hex}",
            email=normalized_email,
            account_id=_clean_optional(account_id),
            canonical_product_key=key,
            raw_product_id=raw,
            transaction_id=transaction,
            amount=float(amount or 0),
            status=status,
            source=source,
            created_at=self.clock(),
        )

        try:
            stored = self.repository.insert_purchase(record)
        except DuplicateWrite:
            existing = self.repository.find_by_idempotency_key(normalized_email, key, transaction)
            if existing is None:
                raise PersistenceFailure(
                    "Conflicting purchase disappeared before it could be re-read",
                    detail={"transaction_id": transaction},
                )
            self._log_duplicate(existing)
            return UpsertResult(record=existing, created=False)

        logger.info(
            "Recorded purchase %s of %s for %s",
            stored.id,
            stored.canonical_product_key,
            stored.email,
            extra={
                "purchase_id": stored.id,
                "transaction_id": stored.transaction_id,
                "purchase_source": stored.source.value,
            },
        )
        return UpsertResult(record=stored, created=True)

    def record_purchase(
        self,
        email: str,
        raw_id: str,
        transaction_id: Optional[str],
        amount: float,
        account_id: Optional[str] = None,
        *,
        source: PurchaseSource = PurchaseSource.EVENT,
        name_hint: Optional[str] = None,
    ) -> Tuple[UpsertResult, NormalizationResult]:
        """Normalize ``raw_id`` and upsert it. The single write path for every caller."""

        normalization = self.normalizer.normalize(raw_id, name_hint=name_hint)
        result = self.upsert(
            email,
            normalization.canonical_key,
            normalization.raw_id,
            transaction_id,
            amount,
            account_id,
            source=source,
        )
        return result, normalization

    def record_manual_purchase(
        self,
        email: str,
        raw_id: str,
        amount: float = 0.0,
        account_id: Optional[str] = None,
    ) -> UpsertResult:
        result, _ = self.record_purchase(
            email,
            raw_id,
            None,
            amount,
            account_id,
            source=PurchaseSource.MANUAL,
        )
        return result

    def query(
        self,
        account_id: Optional[str] = None,
        email: Optional[str] = None,
    ) -> List[PurchaseRecord]:
        """Completed purchases for either identifier, most recent first."""

        account = _clean_optional(account_id)
        normalized_email = normalize_email(email) if email else None
        if account is None and not normalized_email:
            return []
        return self.repository.list_purchases(
            account_id=account,
            email=normalized_email or None,
            status=PurchaseStatus.COMPLETED,
        )

    def transaction_purchases(self, transaction_id: str) -> List[PurchaseRecord]:
        return self.repository.list_by_transaction(transaction_id)

    def _log_duplicate(self, existing: PurchaseRecord) -> None:
        logger.info(
            "Duplicate purchase write for %s; returning existing record %s",
            existing.canonical_product_key,
            existing.id,
            extra={"purchase_id": existing.id, "transaction_id": existing.transaction_id},
        )


__all__ = ["PurchaseLedger", "PurchaseRepository"]
