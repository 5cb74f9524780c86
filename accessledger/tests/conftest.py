"""In-memory collaborators shared by the test modules."""
from __future__ import annotations

import itertools
import threading
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Set

import pytest

from accessledger.app.accounts import StoredAccount
from accessledger.app.catalog import get_normalizer
from accessledger.app.entitlements import EntitlementResolver, JWTSessionSigner
from accessledger.app.ledger import (
    AccountLinker,
    DuplicateWrite,
    LinkConflict,
    PersistenceFailure,
    PurchaseLedger,
    PurchaseRecord,
    PurchaseStatus,
)
from accessledger.app.sync import (
    CheckoutEvent,
    CheckoutTransaction,
    LineItem,
    PurchaseSynchronizer,
    UpstreamFetchFailure,
)


class InMemoryPurchaseRepository:
    """Mirrors the partial unique indexes and ordering of the Postgres repository."""

    def __init__(self) -> None:
        self.records: Dict[str, PurchaseRecord] = {}
        self.fail_with: Optional[Exception] = None
        self._lock = threading.Lock()

    def _check(self) -> None:
        if self.fail_with is not None:
            raise self.fail_with

    def _collides(self, record: PurchaseRecord) -> bool:
        for existing in self.records.values():
            if existing.email != record.email or existing.canonical_product_key != record.canonical_product_key:
                continue
            if record.transaction_id is None and existing.transaction_id is None:
                return True
            if record.transaction_id is not None and existing.transaction_id == record.transaction_id:
                return True
        return False

    def insert_purchase(self, record: PurchaseRecord) -> PurchaseRecord:
        self._check()
        with self._lock:
            if self._collides(record):
                raise DuplicateWrite(detail={"constraint": "ux_purchases"})
            self.records[record.id] = record
        return record

    def find_by_idempotency_key(
        self,
        email: str,
        canonical_product_key: str,
        transaction_id: Optional[str],
    ) -> Optional[PurchaseRecord]:
        self._check()
        with self._lock:
            matches = [
                record
                for record in self.records.values()
                if record.email == email
                and record.canonical_product_key == canonical_product_key
                and (transaction_id is None or record.transaction_id == transaction_id)
            ]
        matches.sort(key=lambda record: record.created_at)
        return matches[0] if matches else None

    def list_purchases(
        self,
        *,
        account_id: Optional[str] = None,
        email: Optional[str] = None,
        status: PurchaseStatus = PurchaseStatus.COMPLETED,
    ) -> List[PurchaseRecord]:
        self._check()
        with self._lock:
            matches = [
                record
                for record in self.records.values()
                if record.status == status
                and (
                    (account_id is not None and record.account_id == account_id)
                    or (email is not None and record.email == email)
                )
            ]
        return sorted(matches, key=lambda record: (record.created_at, record.id), reverse=True)

    def list_by_transaction(self, transaction_id: str) -> List[PurchaseRecord]:
        self._check()
        with self._lock:
            matches = [record for record in self.records.values() if record.transaction_id == transaction_id]
        return sorted(matches, key=lambda record: (record.created_at, record.id))

    def find_conflicting_purchases(self, account_id: str, email: str) -> List[PurchaseRecord]:
        self._check()
        with self._lock:
            return [
                record
                for record in self.records.values()
                if record.email == email
                and record.is_completed
                and record.account_id is not None
                and record.account_id != account_id
            ]

    def link_guest_purchases(self, account_id: str, email: str) -> int:
        self._check()
        linked = 0
        with self._lock:
            for record_id, record in list(self.records.items()):
                if record.email == email and record.account_id is None and record.is_completed:
                    self.records[record_id] = record.model_copy(update={"account_id": account_id})
                    linked += 1
        return linked

    def tuples(self) -> Set[tuple]:
        return {record.idempotency_key for record in self.records.values()}


class RecordingConflictReporter:
    def __init__(self) -> None:
        self.conflicts: List[LinkConflict] = []

    def report(self, conflict: LinkConflict) -> None:
        self.conflicts.append(conflict)


class FakeCheckoutProvider:
    def __init__(self) -> None:
        self.transactions: Dict[str, CheckoutTransaction] = {}
        self.price_products: Dict[str, str] = {}
        self.fetch_calls: List[str] = []

    def add(self, transaction: CheckoutTransaction) -> None:
        self.transactions[transaction.transaction_id] = transaction

    def fetch_transaction(self, transaction_id: str) -> CheckoutTransaction:
        self.fetch_calls.append(transaction_id)
        transaction = self.transactions.get(transaction_id)
        if transaction is None:
            raise UpstreamFetchFailure(transaction_id, "connection refused")
        return transaction

    def resolve_line_item(self, transaction_id: str, item: LineItem) -> LineItem:
        if item.raw_product_id or not item.price_id:
            return item
        product_id = self.price_products.get(item.price_id)
        if product_id is None:
            raise UpstreamFetchFailure(transaction_id, f"unknown price {item.price_id}")
        return item.model_copy(update={"raw_product_id": product_id})


class InMemoryEventLog:
    def __init__(self) -> None:
        self.seen: Set[str] = set()
        self._lock = threading.Lock()

    def record_event(self, event: CheckoutEvent) -> bool:
        with self._lock:
            if event.event_id in self.seen:
                return False
            self.seen.add(event.event_id)
            return True


class InMemoryAccountRepository:
    def __init__(self) -> None:
        self.accounts: Dict[str, StoredAccount] = {}

    def create_account(self, account: StoredAccount) -> StoredAccount:
        if any(existing.email == account.email for existing in self.accounts.values()):
            raise DuplicateWrite(detail={"constraint": "accounts_email_key"})
        self.accounts[account.id] = account
        return account

    def get_by_email(self, email: str) -> Optional[StoredAccount]:
        return next((account for account in self.accounts.values() if account.email == email), None)


class PlainHasher:
    """Stands in for passlib's bcrypt so tests skip the key stretching."""

    @staticmethod
    def hash(password: str) -> str:
        return f"hashed:{password}"

    @staticmethod
    def verify(password: str, password_hash: str) -> bool:
        return password_hash == f"hashed:{password}"


class TickingClock:
    """Each call is one second after the previous one."""

    def __init__(self, start: Optional[datetime] = None) -> None:
        self._start = start or datetime(2025, 1, 1, tzinfo=timezone.utc)
        self._counter = itertools.count()
        self._lock = threading.Lock()

    def __call__(self) -> datetime:
        with self._lock:
            return self._start + timedelta(seconds=next(self._counter))


@pytest.fixture
def purchase_repository() -> InMemoryPurchaseRepository:
    return InMemoryPurchaseRepository()


@pytest.fixture
def ledger(purchase_repository) -> PurchaseLedger:
    return PurchaseLedger(repository=purchase_repository, normalizer=get_normalizer(), clock=TickingClock())


@pytest.fixture
def conflict_reporter() -> RecordingConflictReporter:
    return RecordingConflictReporter()


@pytest.fixture
def linker(purchase_repository, conflict_reporter) -> AccountLinker:
    return AccountLinker(repository=purchase_repository, conflict_reporter=conflict_reporter)


@pytest.fixture
def signer() -> JWTSessionSigner:
    return JWTSessionSigner("test-secret")


@pytest.fixture
def resolver(ledger, linker, signer) -> EntitlementResolver:
    return EntitlementResolver(
        ledger=ledger,
        linker=linker,
        token_signer=signer,
        operator_account_ids=["acc-operator"],
        operator_emails=["Owner@Example.com"],
        ttl_seconds=900,
    )


@pytest.fixture
def provider() -> FakeCheckoutProvider:
    return FakeCheckoutProvider()


@pytest.fixture
def event_log() -> InMemoryEventLog:
    return InMemoryEventLog()


@pytest.fixture
def synchronizer(ledger, provider, event_log) -> PurchaseSynchronizer:
    return PurchaseSynchronizer(ledger=ledger, provider=provider, event_log=event_log, max_workers=3)


@pytest.fixture
def storage_outage() -> PersistenceFailure:
    return PersistenceFailure(detail={"reason": "connection refused"})
