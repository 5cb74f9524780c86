"""Persistence of delivered checkout events."""
from __future__ import annotations

from typing import Optional

from psycopg2.extensions import connection as PgConnection

from ..ledger.repository import translated_cursor
from .models import CheckoutEvent


class PostgresCheckoutEventLog:
    """Records each delivered event id once in ``purchase_events``."""

    def __init__(self, *, conn: Optional[PgConnection] = None) -> None:
        self._conn = conn

    def record_event(self, event: CheckoutEvent) -> bool:
        with translated_cursor(self._conn) as cursor:
            cursor.execute(
                """
                INSERT INTO purchase_events (
                    event_id,
                    transaction_id,
                    received_at
                )
                VALUES (%s, %s, %s)
                ON CONFLICT (event_id) DO NOTHING
                """,
                (
                    event.event_id,
                    event.transaction.transaction_id,
                    event.received_at,
                ),
            )
            return cursor.rowcount > 0


__all__ = ["PostgresCheckoutEventLog"]
