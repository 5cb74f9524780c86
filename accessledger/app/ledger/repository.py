"""Persistence layer for purchase records."""
from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator, List, Optional

import psycopg2
import psycopg2.errors
import psycopg2.extras
from psycopg2.extensions import connection as PgConnection
from psycopg2.extensions import cursor as PgCursor

from ...app_context import get_conn
from .exceptions import DuplicateWrite, PersistenceFailure
from .models import PurchaseRecord, PurchaseSource, PurchaseStatus


@contextmanager
def managed_connection(conn: Optional[PgConnection] = None):
    """Context manager that manages transaction boundaries for optional connections."""

    if conn is not None:
        yield conn, False
        return

    connection = get_conn()
    try:
        yield connection, True
        connection.commit()
    except Exception:
        connection.rollback()
        raise
    finally:
        connection.close()


@contextmanager
def translated_cursor(conn: Optional[PgConnection] = None) -> Iterator[PgCursor]:
    """Yield a dict cursor, converting driver errors into ledger errors."""

    try:
        with managed_connection(conn) as (connection, _managed):
            cursor = connection.cursor(cursor_factory=psycopg2.extras.RealDictCursor)
            try:
                yield cursor
            finally:
                cursor.close()
    except psycopg2.errors.UniqueViolation as exc:
        raise DuplicateWrite(detail={"constraint": getattr(exc.diag, "constraint_name", None)}) from exc
    except psycopg2.Error as exc:
        raise PersistenceFailure(detail={"reason": str(exc).strip()}) from exc


def _row_to_purchase(row: dict) -> PurchaseRecord:
    return PurchaseRecord(
        id=str(row["id"]),
        email=row["email"],
        account_id=row.get("account_id"),
        canonical_product_key=row["canonical_product_key"],
        raw_product_id=row["raw_product_id"],
        transaction_id=row.get("transaction_id"),
        amount=float(row.get("amount") or 0),
        status=PurchaseStatus(row["status"]),
        source=PurchaseSource(row["source"]),
        created_at=row["created_at"],
    )


class PostgresPurchaseRepository:
    """Concrete repository persisting purchase records in PostgreSQL.

    Idempotency is enforced by two partial unique indexes on ``purchases``:
    ``(email, canonical_product_key, transaction_id)`` where the transaction id
    is present, and ``(email, canonical_product_key)`` where it is absent.
    """

    def __init__(self, *, conn: Optional[PgConnection] = None) -> None:
        self._conn = conn

    def insert_purchase(self, record: PurchaseRecord) -> PurchaseRecord:
        """Insert a new record, raising :class:`DuplicateWrite` on key collision."""

        with translated_cursor(self._conn) as cursor:
            cursor.execute(
                """
                INSERT INTO purchases (
                    id,
                    email,
                    account_id,
                    canonical_product_key,
                    raw_product_id,
                    transaction_id,
                    amount,
                    status,
                    source,
                    created_at
                )
                VALUES (%(id)s, %(email)s, %(account_id)s, %(canonical_product_key)s,
                        %(raw_product_id)s, %(transaction_id)s, %(amount)s, %(status)s,
                        %(source)s, %(created_at)s)
                RETURNING *
                """,
                {
                    "id": record.id,
                    "email": record.email,
                    "account_id": record.account_id,
                    "canonical_product_key": record.canonical_product_key,
                    "raw_product_id": record.raw_product_id,
                    "transaction_id": record.transaction_id,
                    "amount": record.amount,
                    "status": record.status.value,
                    "source": record.source.value,
                    "created_at": record.created_at,
                },
            )
            row = cursor.fetchone()
            if not row:
                raise PersistenceFailure("Failed to persist purchase record")
            return _row_to_purchase(row)

    def find_by_idempotency_key(
        self,
        email: str,
        canonical_product_key: str,
        transaction_id: Optional[str],
    ) -> Optional[PurchaseRecord]:
        with translated_cursor(self._conn) as cursor:
            if transaction_id is None:
                cursor.execute(
                    """
                    SELECT *
                    FROM purchases
                    WHERE email = %s AND canonical_product_key = %s
                    ORDER BY created_at ASC
                    LIMIT 1
                    """,
                    (email, canonical_product_key),
                )
            else:
                cursor.execute(
                    """
                    SELECT *
                    FROM purchases
                    WHERE email = %s AND canonical_product_key = %s AND transaction_id = %s
                    LIMIT 1
                    """,
                    (email, canonical_product_key, transaction_id),
                )
            row = cursor.fetchone()
            return _row_to_purchase(row) if row else None

    def list_purchases(
        self,
        *,
        account_id: Optional[str] = None,
        email: Optional[str] = None,
        status: PurchaseStatus = PurchaseStatus.COMPLETED,
    ) -> List[PurchaseRecord]:
        if account_id is None and email is None:
            return []
        with translated_cursor(self._conn) as cursor:
            cursor.execute(
                """
                SELECT *
                FROM purchases
                WHERE status = %(status)s
                  AND (account_id = %(account_id)s OR email = %(email)s)
                ORDER BY created_at DESC, id DESC
                """,
                {"status": status.value, "account_id": account_id, "email": email},
            )
            rows = cursor.fetchall() or []
            return [_row_to_purchase(row) for row in rows]

    def list_by_transaction(self, transaction_id: str) -> List[PurchaseRecord]:
        with translated_cursor(self._conn) as cursor:
            cursor.execute(
                """
                SELECT *
                FROM purchases
                WHERE transaction_id = %s
                ORDER BY created_at ASC, id ASC
                """,
                (transaction_id,),
            )
            rows = cursor.fetchall() or []
            return [_row_to_purchase(row) for row in rows]

    def find_conflicting_purchases(self, account_id: str, email: str) -> List[PurchaseRecord]:
        with translated_cursor(self._conn) as cursor:
            cursor.execute(
                """
                SELECT *
                FROM purchases
                WHERE email = %s
                  AND status = %s
                  AND account_id IS NOT NULL
                  AND account_id <> %s
                ORDER BY created_at ASC
                """,
                (email, PurchaseStatus.COMPLETED.value, account_id),
            )
            rows = cursor.fetchall() or []
            return [_row_to_purchase(row) for row in rows]

    def link_guest_purchases(self, account_id: str, email: str) -> int:
        """Attribute every unowned completed purchase for ``email`` in one UPDATE."""

        with translated_cursor(self._conn) as cursor:
            cursor.execute(
                """
                UPDATE purchases
                SET account_id = %s
                WHERE email = %s
                  AND account_id IS NULL
                  AND status = %s
                """,
                (account_id, email, PurchaseStatus.COMPLETED.value),
            )
            return max(cursor.rowcount, 0)


__all__ = ["PostgresPurchaseRepository", "managed_connection", "translated_cursor"]
