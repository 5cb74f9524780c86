"""Operator-only routes for manual grants and purchase re-linking."""
from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException, status

from ..entitlements import SessionClaims
from ..ledger import PurchaseError
from ..schemas.purchases import (
    ManualGrantRequest,
    ManualGrantResponse,
    PurchaseOut,
    RelinkRequest,
    RelinkResponse,
)
from ..services.purchases import get_account_linker, get_entitlement_resolver, get_purchase_ledger
from .dependencies import get_current_session, raise_http

router = APIRouter(prefix="/api/admin", tags=["admin"])


def require_operator(session: SessionClaims = Depends(get_current_session)) -> SessionClaims:
    # Operator status comes from configuration, never from token claims.
    if not get_entitlement_resolver().is_operator(session.subject):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Operator access required")
    return session


@router.post("/relink", response_model=RelinkResponse)
def relink_purchases(
    payload: RelinkRequest,
    *,
    operator: SessionClaims = Depends(require_operator),
) -> RelinkResponse:
    try:
        result = get_account_linker().relink(payload.account_id, payload.email)
    except PurchaseError as exc:
        raise_http(exc)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return RelinkResponse.from_result(result)


@router.post("/purchases", response_model=ManualGrantResponse, status_code=status.HTTP_201_CREATED)
def grant_purchase(
    payload: ManualGrantRequest,
    *,
    operator: SessionClaims = Depends(require_operator),
) -> ManualGrantResponse:
    try:
        result = get_purchase_ledger().record_manual_purchase(
            payload.email,
            payload.product_id,
            payload.amount,
            payload.account_id,
        )
    except PurchaseError as exc:
        raise_http(exc)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return ManualGrantResponse(purchase=PurchaseOut.from_record(result.record), created=result.created)


@router.get("/transactions/{transaction_id}", response_model=List[PurchaseOut])
def list_transaction_purchases(
    transaction_id: str,
    *,
    operator: SessionClaims = Depends(require_operator),
) -> List[PurchaseOut]:
    try:
        records = get_purchase_ledger().transaction_purchases(transaction_id)
        if not records:
            raise LookupError(f"No purchases recorded for transaction {transaction_id}")
    except PurchaseError as exc:
        raise_http(exc)
    except LookupError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return [PurchaseOut.from_record(record) for record in records]
