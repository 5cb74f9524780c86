"""Account registration and password authentication."""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, Optional, Protocol
from uuid import uuid4

from passlib.hash import bcrypt

from ..ledger import AccountLinker, DuplicateWrite, normalize_email
from .exceptions import AccountAlreadyExists, InvalidCredentials
from .models import Account, Registration, StoredAccount

logger = logging.getLogger("accounts")

MIN_PASSWORD_LENGTH = 8


class AccountRepository(Protocol):
    def create_account(self, account: StoredAccount) -> StoredAccount:
        ...

    def get_by_email(self, email: str) -> Optional[StoredAccount]:
        ...


def _public(account: StoredAccount) -> Account:
    return Account(id=account.id, email=account.email, created_at=account.created_at)


class AccountService:
    """Registers accounts and attributes earlier guest purchases to them."""

    def __init__(
        self,
        repository: AccountRepository,
        linker: AccountLinker,
        *,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._repository = repository
        self._linker = linker
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def register(self, email: str, password: str) -> Registration:
        normalized_email = normalize_email(email or "")
        if not normalized_email:
            raise ValueError("email is required")
        if len(password or "") < MIN_PASSWORD_LENGTH:
            raise ValueError(f"password must be at least {MIN_PASSWORD_LENGTH} characters")

        if self._repository.get_by_email(normalized_email) is not None:
            raise AccountAlreadyExists(normalized_email)

        candidate = StoredAccount(
            id=f"acc_{uuid4().hex}",
            email=normalized_email,
            password_hash=bcrypt.hash(password),
            created_at=self._clock(),
        )
        try:
            stored = self._repository.create_account(candidate)
        except DuplicateWrite as exc:
            raise AccountAlreadyExists(normalized_email) from exc

        linked = self._linker.link(stored.id, stored.email)
        logger.info(
            "Registered account %s",
            stored.id,
            extra={"account_id": stored.id, "linked_count": linked},
        )
        return Registration(account=_public(stored), linked_purchases=linked)

    def authenticate(self, email: str, password: str) -> Account:
        normalized_email = normalize_email(email or "")
        stored = self._repository.get_by_email(normalized_email) if normalized_email else None
        if stored is None or not bcrypt.verify(password or "", stored.password_hash):
            logger.info("Rejected login attempt", extra={"email": normalized_email})
            raise InvalidCredentials()
        return _public(stored)


__all__ = ["AccountRepository", "AccountService", "MIN_PASSWORD_LENGTH"]
