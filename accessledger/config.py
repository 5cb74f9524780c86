"""Application configuration helpers."""
from __future__ import annotations

import math
import os
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Mapping, Optional, Tuple


@dataclass(frozen=True)
class DatabaseConfig:
    host: str
    port: int
    dbname: str
    user: str
    password: str
    connect_timeout: int

    def as_connect_kwargs(self) -> Dict[str, Any]:
        return {
            "host": self.host,
            "port": self.port,
            "dbname": self.dbname,
            "user": self.user,
            "password": self.password,
            "connect_timeout": self.connect_timeout,
        }


@dataclass(frozen=True)
class AppConfig:
    """Runtime settings for the purchase ledger service."""

    database: DatabaseConfig
    jwt_secret_key: str
    session_ttl_minutes: int
    session_cookie_name: str
    session_cookie_secure: bool
    checkout_api_url: Optional[str]
    checkout_api_key: Optional[str]
    checkout_timeout_seconds: float
    checkout_webhook_secret: Optional[str]
    sync_max_workers: int
    operator_emails: FrozenSet[str] = field(default_factory=frozenset)
    operator_account_ids: FrozenSet[str] = field(default_factory=frozenset)
    cors_allow_origins: Tuple[str, ...] = ("http://localhost:5173",)

    @property
    def session_ttl_seconds(self) -> int:
        return self.session_ttl_minutes * 60


def _to_bool(value: Optional[str], *, default: bool) -> bool:
    if value is None:
        return default
    lowered = value.strip().lower()
    if lowered in {"1", "true", "yes", "on"}:
        return True
    if lowered in {"0", "false", "no", "off"}:
        return False
    return default


def _to_int(value: Optional[str], *, default: int, name: str) -> int:
    if value is None or value.strip() == "":
        return default
    try:
        return int(value)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {value!r}") from exc


def _to_float(value: Optional[str], *, default: float, name: str) -> float:
    if value is None or value.strip() == "":
        return default
    try:
        return float(value)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got {value!r}") from exc


def _split_csv(value: Optional[str], *, lower: bool = False) -> FrozenSet[str]:
    if not value:
        return frozenset()
    items = (item.strip() for item in value.split(","))
    return frozenset(item.lower() if lower else item for item in items if item)


def _connect_timeout(value: Optional[str]) -> int:
    timeout = _to_float(value, default=5.0, name="DB_CONNECT_TIMEOUT")
    if timeout < 0:
        raise ValueError("DB_CONNECT_TIMEOUT must be non-negative")
    return int(math.ceil(timeout))


def load_app_config(env: Optional[Mapping[str, str]] = None) -> AppConfig:
    """Load :class:`AppConfig` from environment variables."""

    env_mapping = os.environ if env is None else env

    database = DatabaseConfig(
        host=env_mapping.get("DB_HOST", "127.0.0.1"),
        port=_to_int(env_mapping.get("DB_PORT"), default=5432, name="DB_PORT"),
        dbname=env_mapping.get("DB_NAME", "accessledger"),
        user=env_mapping.get("DB_USER", "ledger_user"),
        password=env_mapping.get("DB_PASSWORD", "ledger_pass"),
        connect_timeout=_connect_timeout(env_mapping.get("DB_CONNECT_TIMEOUT")),
    )

    return AppConfig(
        database=database,
        jwt_secret_key=env_mapping.get("JWT_SECRET_KEY") or "dev-secret-change-me",
        session_ttl_minutes=max(
            1, _to_int(env_mapping.get("SESSION_TTL_MINUTES"), default=60, name="SESSION_TTL_MINUTES")
        ),
        session_cookie_name=env_mapping.get("SESSION_COOKIE_NAME") or "session",
        session_cookie_secure=_to_bool(env_mapping.get("SESSION_COOKIE_SECURE"), default=False),
        checkout_api_url=(env_mapping.get("CHECKOUT_API_URL") or "").strip() or None,
        checkout_api_key=env_mapping.get("CHECKOUT_API_KEY") or None,
        checkout_timeout_seconds=max(
            0.1,
            _to_float(env_mapping.get("CHECKOUT_TIMEOUT_SECONDS"), default=5.0, name="CHECKOUT_TIMEOUT_SECONDS"),
        ),
        checkout_webhook_secret=env_mapping.get("CHECKOUT_WEBHOOK_SECRET") or None,
        sync_max_workers=max(
            1, _to_int(env_mapping.get("SYNC_MAX_WORKERS"), default=4, name="SYNC_MAX_WORKERS")
        ),
        operator_emails=_split_csv(env_mapping.get("OPERATOR_EMAILS"), lower=True),
        operator_account_ids=_split_csv(env_mapping.get("OPERATOR_ACCOUNT_IDS")),
        cors_allow_origins=tuple(
            sorted(_split_csv(env_mapping.get("CORS_ALLOW_ORIGINS")) or {"http://localhost:5173"})
        ),
    )


__all__ = ["AppConfig", "DatabaseConfig", "load_app_config"]
