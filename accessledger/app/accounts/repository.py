"""Persistence layer for registered accounts."""
from __future__ import annotations

from typing import Optional

from psycopg2.extensions import connection as PgConnection

from ..ledger.exceptions import PersistenceFailure
from ..ledger.repository import translated_cursor
from .models import StoredAccount


def _row_to_account(row: dict) -> StoredAccount:
    return StoredAccount(
        id=str(row["id"]),
        email=row["email"],
        password_hash=row["password_hash"],
        created_at=row["created_at"],
    )


class PostgresAccountRepository:
    """Stores accounts in the ``accounts`` table; emails are unique."""

    def __init__(self, *, conn: Optional[PgConnection] = None) -> None:
        self._conn = conn

    def create_account(self, account: StoredAccount) -> StoredAccount:
        """Insert ``account``; a taken email surfaces as :class:`DuplicateWrite`."""

        with translated_cursor(self._conn) as cursor:
            cursor.execute(
                """
                INSERT INTO accounts (id, email, password_hash, created_at)
                VALUES (%s, %s, %s, %s)
                RETURNING id, email, password_hash, created_at
                """,
                (account.id, account.email, account.password_hash, account.created_at),
            )
            row = cursor.fetchone()
            if not row:
                raise PersistenceFailure("Failed to persist account")
            return _row_to_account(row)

    def get_by_email(self, email: str) -> Optional[StoredAccount]:
        with translated_cursor(self._conn) as cursor:
            cursor.execute(
                "SELECT id, email, password_hash, created_at FROM accounts WHERE email = %s",
                (email,),
            )
            row = cursor.fetchone()
            return _row_to_account(row) if row else None


__all__ = ["PostgresAccountRepository"]
