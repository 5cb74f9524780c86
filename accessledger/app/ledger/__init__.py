"""Purchase ledger package providing models, persistence and account linking."""

from .exceptions import DuplicateWrite, PersistenceFailure, PurchaseError
from .linker import AccountLinker, LinkConflictReporter
from .models import (
    LinkConflict,
    LinkResult,
    PurchaseRecord,
    PurchaseSource,
    PurchaseStatus,
    UpsertResult,
    normalize_email,
)
from .service import PurchaseLedger, PurchaseRepository

__all__ = [
    "AccountLinker",
    "DuplicateWrite",
    "LinkConflict",
    "LinkConflictReporter",
    "LinkResult",
    "PersistenceFailure",
    "PurchaseError",
    "PurchaseLedger",
    "PurchaseRecord",
    "PurchaseRepository",
    "PurchaseSource",
    "PurchaseStatus",
    "UpsertResult",
    "normalize_email",
]
