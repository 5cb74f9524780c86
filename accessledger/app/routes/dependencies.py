"""Request dependencies shared by the API routers."""
from __future__ import annotations

from typing import NoReturn, Optional

from fastapi import Cookie, HTTPException, Response, status

from ..entitlements import SessionClaims, SessionGrant
from ..ledger import PurchaseError
from ..services.purchases import get_app_config, get_session_signer

SESSION_COOKIE_NAME = get_app_config().session_cookie_name


def get_current_session(
    session_token: Optional[str] = Cookie(None, alias=SESSION_COOKIE_NAME),
) -> SessionClaims:
    if not session_token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    claims = get_session_signer().verify(session_token)
    if claims is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    return claims


def raise_http(exc: PurchaseError) -> NoReturn:
    raise exc.to_http_exception() from exc


def set_session_cookie(response: Response, grant: SessionGrant) -> None:
    config = get_app_config()
    response.set_cookie(
        key=SESSION_COOKIE_NAME,
        value=grant.token,
        httponly=True,
        samesite="lax",
        secure=config.session_cookie_secure,
        max_age=config.session_ttl_seconds,
        path="/",
    )
