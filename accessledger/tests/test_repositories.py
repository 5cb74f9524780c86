from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, List, Optional

import psycopg2
import psycopg2.errors
import pytest

from accessledger.app.accounts.repository import PostgresAccountRepository
from accessledger.app.accounts import StoredAccount
from accessledger.app.ledger import DuplicateWrite, PersistenceFailure, PurchaseRecord
from accessledger.app.ledger.repository import PostgresPurchaseRepository
from accessledger.app.sync import CheckoutEvent, CheckoutTransaction
from accessledger.app.sync.repository import PostgresCheckoutEventLog


class FakeCursor:
    def __init__(self, connection: "FakeConnection") -> None:
        self._connection = connection
        self.rowcount = connection.rowcount

    def execute(self, sql: str, params: Any = None) -> None:
        self._connection.statements.append((" ".join(sql.split()), params))
        if self._connection.error is not None:
            raise self._connection.error

    def fetchone(self) -> Optional[dict]:
        return self._connection.rows[0] if self._connection.rows else None

    def fetchall(self) -> List[dict]:
        return list(self._connection.rows)

    def close(self) -> None:
        pass


class FakeConnection:
    def __init__(self, *, rows=None, rowcount: int = 0, error: Optional[Exception] = None) -> None:
        self.rows = rows or []
        self.rowcount = rowcount
        self.error = error
        self.statements: List[tuple] = []

    def cursor(self, cursor_factory=None) -> FakeCursor:
        return FakeCursor(self)


def _row(**overrides) -> dict:
    row = {
        "id": "pur_1",
        "email": "a@x.com",
        "account_id": None,
        "canonical_product_key": "prompts",
        "raw_product_id": "2",
        "transaction_id": "tx-1",
        "amount": Decimal("27.00"),
        "status": "completed",
        "source": "event",
        "created_at": datetime(2025, 1, 1, tzinfo=timezone.utc),
    }
    row.update(overrides)
    return row


def test_insert_returns_the_stored_row():
    conn = FakeConnection(rows=[_row()])
    repository = PostgresPurchaseRepository(conn=conn)

    stored = repository.insert_purchase(
        PurchaseRecord(id="pur_1", email="a@x.com", canonical_product_key="prompts", raw_product_id="2", transaction_id="tx-1")
    )

    assert stored.amount == 27.0
    assert conn.statements[0][0].startswith("INSERT INTO purchases")


def test_unique_violation_becomes_duplicate_write():
    conn = FakeConnection(error=psycopg2.errors.UniqueViolation("duplicate key"))
    repository = PostgresPurchaseRepository(conn=conn)

    with pytest.raises(DuplicateWrite):
        repository.insert_purchase(
            PurchaseRecord(id="pur_1", email="a@x.com", canonical_product_key="prompts", raw_product_id="2")
        )


def test_driver_errors_become_persistence_failures():
    conn = FakeConnection(error=psycopg2.OperationalError("server closed the connection"))
    repository = PostgresPurchaseRepository(conn=conn)

    with pytest.raises(PersistenceFailure) as excinfo:
        repository.list_purchases(email="a@x.com")
    assert excinfo.value.status_code == 503


def test_guest_lookup_without_transaction_matches_email_and_product():
    conn = FakeConnection(rows=[_row(transaction_id=None)])
    repository = PostgresPurchaseRepository(conn=conn)

    record = repository.find_by_idempotency_key("a@x.com", "prompts", None)

    assert record.transaction_id is None
    sql, params = conn.statements[0]
    assert "transaction_id" not in sql.split("WHERE", 1)[1]
    assert params == ("a@x.com", "prompts")


def test_list_without_identifiers_skips_the_database():
    conn = FakeConnection()

    assert PostgresPurchaseRepository(conn=conn).list_purchases() == []
    assert conn.statements == []


def test_link_guest_purchases_reports_rowcount():
    conn = FakeConnection(rowcount=3)

    assert PostgresPurchaseRepository(conn=conn).link_guest_purchases("acc-1", "a@x.com") == 3
    assert "account_id IS NULL" in conn.statements[0][0]


@pytest.mark.parametrize("rowcount, first_delivery", [(1, True), (0, False)])
def test_event_log_reports_first_delivery(rowcount, first_delivery):
    conn = FakeConnection(rowcount=rowcount)
    event = CheckoutEvent(
        event_id="evt-1",
        transaction=CheckoutTransaction(transaction_id="tx-1", email="a@x.com"),
    )

    assert PostgresCheckoutEventLog(conn=conn).record_event(event) is first_delivery
    assert "ON CONFLICT (event_id) DO NOTHING" in conn.statements[0][0]


def test_account_email_collision_becomes_duplicate_write():
    conn = FakeConnection(error=psycopg2.errors.UniqueViolation("accounts_email_key"))
    account = StoredAccount(id="acc_1", email="a@x.com", password_hash="hash")

    with pytest.raises(DuplicateWrite):
        PostgresAccountRepository(conn=conn).create_account(account)
