"""Event and reconciliation paths feeding checkout transactions into the ledger."""
from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import List, Optional, Protocol

from ..ledger import PurchaseError, PurchaseLedger, PurchaseRecord, PurchaseSource
from .models import (
    CheckoutEvent,
    CheckoutTransaction,
    LineItem,
    LineItemError,
    SyncResult,
)
from .provider import CheckoutProvider

logger = logging.getLogger("sync")


class CheckoutEventLog(Protocol):
    """Remembers which provider events have already been delivered."""

    def record_event(self, event: CheckoutEvent) -> bool:
        """Return ``True`` the first time an event id is seen."""


@dataclass(frozen=True)
class _LineOutcome:
    record: Optional[PurchaseRecord] = None
    created: bool = False
    unmapped: bool = False
    error: Optional[LineItemError] = None


def _failure_reason(exc: Exception) -> str:
    if isinstance(exc, PurchaseError):
        return str(exc.payload.get("reason") or exc.message)
    return str(exc)


@dataclass
class PurchaseSynchronizer:
    """Writes checkout transactions to the ledger, one line item at a time.

    The event path and the reconciliation path share :meth:`_write_transaction`,
    so replaying a transaction through either produces the same ledger rows.
    Line items are processed on a bounded thread pool; a failing item is
    reported in the result and never aborts its siblings.
    """

    ledger: PurchaseLedger
    provider: CheckoutProvider
    event_log: CheckoutEventLog
    max_workers: int = 4

    def handle_event(self, event: CheckoutEvent) -> SyncResult:
        first_delivery = self.event_log.record_event(event)
        if not first_delivery:
            logger.info(
                "Replayed checkout event %s",
                event.event_id,
                extra={"event_id": event.event_id, "transaction_id": event.transaction.transaction_id},
            )
        result = self._write_transaction(event.transaction, PurchaseSource.EVENT)
        return result.model_copy(update={"replayed": not first_delivery})

    def reconcile(self, transaction_id: str) -> SyncResult:
        """Pull ``transaction_id`` from the provider and write its line items.

        Raises :class:`UpstreamFetchFailure` when the transaction itself cannot
        be fetched; the caller is expected to retry.
        """

        transaction_id = (transaction_id or "").strip()
        if not transaction_id:
            raise ValueError("transaction_id is required")
        transaction = self.provider.fetch_transaction(transaction_id)
        return self._write_transaction(transaction, PurchaseSource.RECONCILIATION)

    def _write_transaction(self, transaction: CheckoutTransaction, source: PurchaseSource) -> SyncResult:
        items = list(transaction.line_items)
        if not items:
            logger.warning(
                "Transaction %s has no usable line items",
                transaction.transaction_id,
                extra={"transaction_id": transaction.transaction_id},
            )
            return SyncResult(transaction_id=transaction.transaction_id, errors=list(transaction.rejected_items))

        workers = max(1, min(self.max_workers, len(items)))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="sync-line") as executor:
            outcomes = list(
                executor.map(lambda item: self._write_line_item(transaction, item, source), items)
            )

        written: List[PurchaseRecord] = []
        errors: List[LineItemError] = list(transaction.rejected_items)
        unmapped: List[str] = []
        created_count = 0
        for outcome in outcomes:
            if outcome.error is not None:
                errors.append(outcome.error)
                continue
            if outcome.record is None:
                continue
            written.append(outcome.record)
            created_count += int(outcome.created)
            if outcome.unmapped:
                unmapped.append(outcome.record.raw_product_id)

        log = logger.warning if errors else logger.info
        log(
            "Synchronized transaction %s: %s written, %s new, %s failed",
            transaction.transaction_id,
            len(written),
            created_count,
            len(errors),
            extra={"transaction_id": transaction.transaction_id, "purchase_source": source.value},
        )
        return SyncResult(
            transaction_id=transaction.transaction_id,
            written=written,
            errors=errors,
            unmapped=unmapped,
            created_count=created_count,
        )

    def _write_line_item(
        self,
        transaction: CheckoutTransaction,
        item: LineItem,
        source: PurchaseSource,
    ) -> _LineOutcome:
        label = item.label
        try:
            resolved = self.provider.resolve_line_item(transaction.transaction_id, item)
            if not resolved.raw_product_id:
                return _LineOutcome(error=LineItemError(raw_id=label, reason="line item has no product id"))
            result, normalization = self.ledger.record_purchase(
                transaction.email,
                resolved.raw_product_id,
                transaction.transaction_id,
                resolved.amount,
                transaction.account_id,
                source=source,
                name_hint=resolved.name,
            )
        except (PurchaseError, ValueError) as exc:
            reason = _failure_reason(exc)
            logger.warning(
                "Failed to record line item %r of transaction %s: %s",
                label,
                transaction.transaction_id,
                reason,
                extra={"transaction_id": transaction.transaction_id},
            )
            return _LineOutcome(error=LineItemError(raw_id=label, reason=reason))

        return _LineOutcome(record=result.record, created=result.created, unmapped=normalization.unmapped)


__all__ = ["CheckoutEventLog", "PurchaseSynchronizer"]
