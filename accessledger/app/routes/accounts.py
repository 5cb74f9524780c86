"""API routes for account registration, login and logout."""
from __future__ import annotations

from fastapi import APIRouter, HTTPException, Response, status

from ..ledger import PurchaseError
from ..schemas.accounts import LoginRequest, RegisterRequest, RegisterResponse
from ..schemas.entitlements import SessionResponse
from ..services.purchases import get_account_service, get_entitlement_resolver
from .dependencies import SESSION_COOKIE_NAME, raise_http, set_session_cookie

router = APIRouter(prefix="/api/accounts", tags=["accounts"])


@router.post("/register", response_model=RegisterResponse, status_code=status.HTTP_201_CREATED)
def register(payload: RegisterRequest, response: Response) -> RegisterResponse:
    try:
        registration = get_account_service().register(str(payload.email), payload.password)
    except PurchaseError as exc:
        raise_http(exc)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    account = registration.account
    grant = get_entitlement_resolver().issue_session(account.id, account.email)
    set_session_cookie(response, grant)
    return RegisterResponse.build(registration, SessionResponse.from_grant(grant))


@router.post("/login", response_model=SessionResponse)
def login(payload: LoginRequest, response: Response) -> SessionResponse:
    try:
        account = get_account_service().authenticate(payload.email, payload.password)
    except PurchaseError as exc:
        raise_http(exc)

    grant = get_entitlement_resolver().issue_session(account.id, account.email)
    set_session_cookie(response, grant)
    return SessionResponse.from_grant(grant)


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
def logout() -> Response:
    response = Response(status_code=status.HTTP_204_NO_CONTENT)
    response.delete_cookie(SESSION_COOKIE_NAME, path="/")
    return response
