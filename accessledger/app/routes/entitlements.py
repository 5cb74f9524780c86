"""API routes exposing entitlement lookups and session refresh."""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Cookie, Depends, HTTPException, Query, Response, status

from ..entitlements import EntitlementSubject, SessionClaims
from ..schemas.entitlements import EntitlementsResponse, SessionResponse
from ..services.purchases import get_entitlement_resolver
from .dependencies import SESSION_COOKIE_NAME, get_current_session, set_session_cookie

router = APIRouter(prefix="/api/entitlements", tags=["entitlements"])


def _covers(session: EntitlementSubject, requested: EntitlementSubject) -> bool:
    if requested.account_id and requested.account_id != session.account_id:
        return False
    return not requested.email or requested.email == session.email


@router.get("", response_model=EntitlementsResponse)
def get_entitlements(
    account_id: Optional[str] = Query(None, alias="accountId"),
    email: Optional[str] = Query(None),
    *,
    session: SessionClaims = Depends(get_current_session),
) -> EntitlementsResponse:
    """List the caller's canonical keys. Operators may look up any identity.

    This lookup never links guest purchases; linking happens when a session
    is issued for an authenticated account.
    """

    resolver = get_entitlement_resolver()
    requested = EntitlementSubject(account_id=account_id, email=email)
    if not requested.has_identity:
        requested = session.subject
    elif not _covers(session.subject, requested) and not resolver.is_operator(session.subject):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Cannot view another identity's entitlements",
        )
    entitlements = resolver.resolve(requested.account_id, requested.email, link=False)
    return EntitlementsResponse.from_set(entitlements)


@router.post("/refresh", response_model=SessionResponse)
def refresh_entitlements(
    response: Response,
    session_token: Optional[str] = Cookie(None, alias=SESSION_COOKIE_NAME),
) -> SessionResponse:
    if not session_token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    try:
        grant = get_entitlement_resolver().refresh_session(session_token)
    except PermissionError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc)) from exc
    set_session_cookie(response, grant)
    return SessionResponse.from_grant(grant)
