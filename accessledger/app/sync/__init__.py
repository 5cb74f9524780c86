"""Synchronization of checkout provider transactions into the purchase ledger."""

from .exceptions import UpstreamFetchFailure
from .models import (
    CheckoutEvent,
    CheckoutTransaction,
    LineItem,
    LineItemError,
    SyncResult,
)
from .provider import (
    CheckoutProvider,
    HttpCheckoutProvider,
    UnconfiguredCheckoutProvider,
    transaction_from_payload,
)
from .service import CheckoutEventLog, PurchaseSynchronizer

__all__ = [
    "CheckoutEvent",
    "CheckoutEventLog",
    "CheckoutProvider",
    "CheckoutTransaction",
    "HttpCheckoutProvider",
    "LineItem",
    "LineItemError",
    "PurchaseSynchronizer",
    "SyncResult",
    "UnconfiguredCheckoutProvider",
    "UpstreamFetchFailure",
    "transaction_from_payload",
]
