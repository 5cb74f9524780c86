"""Errors raised while talking to the checkout provider."""
from __future__ import annotations

from typing import Optional

from fastapi import status

from ..ledger.exceptions import PurchaseError


class UpstreamFetchFailure(PurchaseError):
    """The checkout provider could not be reached or returned unusable data.

    Retryable by the caller; nothing retries automatically.
    """

    def __init__(self, transaction_id: Optional[str], reason: str) -> None:
        super().__init__(
            code="upstream_fetch_failure",
            message=(
                "We could not confirm this purchase with the payment provider. "
                "Please try again, or contact support with your transaction id."
            ),
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={"transaction_id": transaction_id, "reason": reason},
        )
        self.transaction_id = transaction_id
        self.reason = reason


__all__ = ["UpstreamFetchFailure"]
