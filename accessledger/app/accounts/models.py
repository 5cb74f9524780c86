"""Models describing registered accounts."""
from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..ledger.models import normalize_email


class Account(BaseModel):
    """A registered customer account."""

    id: str
    email: str = Field(min_length=1)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    @field_validator("email")
    @classmethod
    def _normalize_email(cls, value: str) -> str:
        return normalize_email(value)


class StoredAccount(Account):
    """Account row including the password hash; never returned to clients."""

    password_hash: str


class Registration(BaseModel):
    """Outcome of registering an account."""

    account: Account
    linked_purchases: int = 0

    model_config = ConfigDict(frozen=True)
