"""PostgreSQL schema for the purchase ledger."""
from __future__ import annotations

from typing import Any

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS accounts (
    id TEXT PRIMARY KEY,
    email TEXT NOT NULL UNIQUE,
    password_hash TEXT NOT NULL,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE TABLE IF NOT EXISTS purchases (
    id TEXT PRIMARY KEY,
    email TEXT NOT NULL,
    account_id TEXT,
    canonical_product_key TEXT NOT NULL,
    raw_product_id TEXT NOT NULL,
    transaction_id TEXT,
    amount NUMERIC(12, 2) NOT NULL DEFAULT 0,
    status TEXT NOT NULL CHECK (status IN ('completed', 'pending')),
    source TEXT NOT NULL CHECK (source IN ('event', 'reconciliation', 'manual')),
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE UNIQUE INDEX IF NOT EXISTS ux_purchases_email_product_tx
    ON purchases (email, canonical_product_key, transaction_id)
    WHERE transaction_id IS NOT NULL;

CREATE UNIQUE INDEX IF NOT EXISTS ux_purchases_email_product_guest
    ON purchases (email, canonical_product_key)
    WHERE transaction_id IS NULL;

CREATE INDEX IF NOT EXISTS idx_purchases_account ON purchases (account_id, created_at DESC);
CREATE INDEX IF NOT EXISTS idx_purchases_email ON purchases (email, created_at DESC);
CREATE INDEX IF NOT EXISTS idx_purchases_transaction ON purchases (transaction_id);

CREATE TABLE IF NOT EXISTS purchase_events (
    event_id TEXT PRIMARY KEY,
    transaction_id TEXT NOT NULL,
    received_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);
"""


def init_schema(conn: Any) -> None:
    """Create the ledger tables and indexes if they do not exist yet."""

    with conn.cursor() as cur:
        cur.execute(SCHEMA_SQL)
    conn.commit()
