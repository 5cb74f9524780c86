"""Customer accounts: registration, login and guest purchase attribution."""

from .exceptions import AccountAlreadyExists, InvalidCredentials
from .models import Account, Registration, StoredAccount
from .service import MIN_PASSWORD_LENGTH, AccountRepository, AccountService

__all__ = [
    "Account",
    "AccountAlreadyExists",
    "AccountRepository",
    "AccountService",
    "InvalidCredentials",
    "MIN_PASSWORD_LENGTH",
    "Registration",
    "StoredAccount",
]
