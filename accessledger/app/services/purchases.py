"""Application wiring for the purchase ledger, entitlements and sync services."""
from __future__ import annotations

import logging
from functools import lru_cache

from ...config import AppConfig, load_app_config
from ..accounts import AccountService
from ..accounts.repository import PostgresAccountRepository
from ..catalog import get_normalizer
from ..entitlements import EntitlementResolver, JWTSessionSigner
from ..ledger import AccountLinker, LinkConflict, LinkConflictReporter, PurchaseLedger
from ..ledger.repository import PostgresPurchaseRepository
from ..sync import (
    CheckoutProvider,
    HttpCheckoutProvider,
    PurchaseSynchronizer,
    UnconfiguredCheckoutProvider,
)
from ..sync.repository import PostgresCheckoutEventLog

logger = logging.getLogger("ledger.linker")


class LoggingLinkConflictReporter(LinkConflictReporter):
    """Reports link conflicts to the application log for manual review."""

    def report(self, conflict: LinkConflict) -> None:
        logger.warning(
            "Purchase %s for %s already belongs to account %s; not linking to %s",
            conflict.record_id,
            conflict.email,
            conflict.existing_account_id,
            conflict.requested_account_id,
            extra={
                "purchase_id": conflict.record_id,
                "transaction_id": conflict.transaction_id,
                "canonical_product_key": conflict.canonical_product_key,
            },
        )


@lru_cache(maxsize=1)
def get_app_config() -> AppConfig:
    return load_app_config()


@lru_cache(maxsize=1)
def get_purchase_ledger() -> PurchaseLedger:
    return PurchaseLedger(repository=PostgresPurchaseRepository(), normalizer=get_normalizer())


@lru_cache(maxsize=1)
def get_account_linker() -> AccountLinker:
    return AccountLinker(
        repository=PostgresPurchaseRepository(),
        conflict_reporter=LoggingLinkConflictReporter(),
    )


@lru_cache(maxsize=1)
def get_session_signer() -> JWTSessionSigner:
    return JWTSessionSigner(get_app_config().jwt_secret_key)


@lru_cache(maxsize=1)
def get_entitlement_resolver() -> EntitlementResolver:
    config = get_app_config()
    return EntitlementResolver(
        ledger=get_purchase_ledger(),
        linker=get_account_linker(),
        token_signer=get_session_signer(),
        normalizer=get_normalizer(),
        operator_account_ids=config.operator_account_ids,
        operator_emails=config.operator_emails,
        ttl_seconds=config.session_ttl_seconds,
    )


def _build_checkout_provider(config: AppConfig) -> CheckoutProvider:
    if not config.checkout_api_url:
        logger.warning("CHECKOUT_API_URL is not set; reconciliation will report upstream failures")
        return UnconfiguredCheckoutProvider()
    return HttpCheckoutProvider(
        base_url=config.checkout_api_url,
        api_key=config.checkout_api_key,
        timeout=config.checkout_timeout_seconds,
    )


@lru_cache(maxsize=1)
def get_synchronizer() -> PurchaseSynchronizer:
    config = get_app_config()
    return PurchaseSynchronizer(
        ledger=get_purchase_ledger(),
        provider=_build_checkout_provider(config),
        event_log=PostgresCheckoutEventLog(),
        max_workers=config.sync_max_workers,
    )


@lru_cache(maxsize=1)
def get_account_service() -> AccountService:
    return AccountService(repository=PostgresAccountRepository(), linker=get_account_linker())


__all__ = [
    "LoggingLinkConflictReporter",
    "get_account_linker",
    "get_account_service",
    "get_app_config",
    "get_entitlement_resolver",
    "get_purchase_ledger",
    "get_session_signer",
    "get_synchronizer",
]
