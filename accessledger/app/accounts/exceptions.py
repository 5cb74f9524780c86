"""Errors raised by account registration and authentication."""
from __future__ import annotations

from fastapi import status

from ..ledger.exceptions import PurchaseError


class AccountAlreadyExists(PurchaseError):
    def __init__(self, email: str) -> None:
        super().__init__(
            code="account_exists",
            message="Email already registered",
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"email": email},
        )


class InvalidCredentials(PurchaseError):
    def __init__(self) -> None:
        super().__init__(
            code="invalid_credentials",
            message="Invalid email or password",
            status_code=status.HTTP_401_UNAUTHORIZED,
        )


__all__ = ["AccountAlreadyExists", "InvalidCredentials"]
