"""API schemas for account registration and login."""
from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from ..accounts import Registration
from .entitlements import SessionResponse


class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=8, max_length=72)


class LoginRequest(BaseModel):
    email: str = Field(min_length=1)
    password: str = Field(min_length=1)


class AccountOut(BaseModel):
    id: str
    email: str
    created_at: datetime = Field(alias="createdAt")

    model_config = ConfigDict(populate_by_name=True)


class RegisterResponse(BaseModel):
    account: AccountOut
    linked_purchases: int = Field(alias="linkedPurchases", default=0)
    session: SessionResponse

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def build(cls, registration: Registration, session: SessionResponse) -> "RegisterResponse":
        account = registration.account
        return cls(
            account=AccountOut(id=account.id, email=account.email, created_at=account.created_at),
            linked_purchases=registration.linked_purchases,
            session=session,
        )
