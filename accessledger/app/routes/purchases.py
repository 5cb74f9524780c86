"""API routes feeding checkout provider transactions into the ledger."""
from __future__ import annotations

import hmac
from typing import Optional

from fastapi import APIRouter, Header, HTTPException, status

from ..ledger import PurchaseError
from ..schemas.purchases import PurchaseEventPayload, ReconcileRequest, SyncResponse
from ..services.purchases import get_app_config, get_synchronizer
from .dependencies import raise_http

router = APIRouter(prefix="/api/purchases", tags=["purchases"])


def _verify_signature(signature: Optional[str]) -> None:
    secret = get_app_config().checkout_webhook_secret
    if not secret:
        return
    if not signature or not hmac.compare_digest(signature.encode("utf-8"), secret.encode("utf-8")):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid checkout signature")


@router.post("/events", response_model=SyncResponse)
def receive_purchase_event(
    payload: PurchaseEventPayload,
    x_checkout_signature: Optional[str] = Header(None, alias="X-Checkout-Signature"),
) -> SyncResponse:
    _verify_signature(x_checkout_signature)
    try:
        event = payload.to_event()
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    try:
        result = get_synchronizer().handle_event(event)
    except PurchaseError as exc:
        raise_http(exc)
    return SyncResponse.from_result(result)


@router.post("/reconcile", response_model=SyncResponse)
def reconcile_transaction(payload: ReconcileRequest) -> SyncResponse:
    try:
        result = get_synchronizer().reconcile(payload.transaction_id)
    except PurchaseError as exc:
        raise_http(exc)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return SyncResponse.from_result(result)
