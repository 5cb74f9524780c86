"""Service responsible for resolving entitlements and issuing session tokens."""
from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, FrozenSet, Iterable, Optional

from ..catalog import ProductNormalizer, get_normalizer
from ..ledger import AccountLinker, PersistenceFailure, PurchaseLedger, normalize_email
from .models import EntitlementSet, EntitlementSubject, SessionClaims, SessionGrant
from .tokens import TokenSigner

logger = logging.getLogger("entitlements")


class EntitlementResolver:
    """Computes which canonical products an identity may access.

    Linking is eager on session issuance: when both an account id and an
    email are known, guest purchases for the email are attributed to the
    account before the ledger is queried. Read-only lookups pass
    ``link=False`` and leave attribution untouched. Results are the union
    of the account and email queries, so adding an identifier can only add
    entitlements.
    """

    def __init__(
        self,
        ledger: PurchaseLedger,
        linker: AccountLinker,
        token_signer: TokenSigner,
        *,
        normalizer: Optional[ProductNormalizer] = None,
        operator_account_ids: Iterable[str] = (),
        operator_emails: Iterable[str] = (),
        clock: Optional[Callable[[], datetime]] = None,
        ttl_seconds: int = 3600,
    ) -> None:
        self._ledger = ledger
        self._linker = linker
        self._token_signer = token_signer
        self._normalizer = normalizer or get_normalizer()
        self._operator_account_ids: FrozenSet[str] = frozenset(
            value.strip() for value in operator_account_ids if value and value.strip()
        )
        self._operator_emails: FrozenSet[str] = frozenset(
            normalize_email(value) for value in operator_emails if value and value.strip()
        )
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._ttl_seconds = max(ttl_seconds, 60)

    @property
    def token_signer(self) -> TokenSigner:
        return self._token_signer

    def is_operator(self, subject: EntitlementSubject) -> bool:
        if subject.account_id and subject.account_id in self._operator_account_ids:
            return True
        return bool(subject.email and subject.email in self._operator_emails)

    def resolve(
        self,
        account_id: Optional[str] = None,
        email: Optional[str] = None,
        *,
        link: bool = True,
    ) -> EntitlementSet:
        """Return the entitlement set for the identity. Fails closed on storage errors."""

        subject = EntitlementSubject(account_id=account_id, email=email)
        now = self._clock()

        if self.is_operator(subject):
            return EntitlementSet(
                product_keys=self._normalizer.canonical_keys,
                operator=True,
                resolved_at=now,
            )

        if not subject.has_identity:
            return EntitlementSet(resolved_at=now)

        try:
            if link and subject.is_fully_identified:
                self._linker.link(subject.account_id, subject.email)

            keys = set()
            if subject.account_id:
                keys.update(
                    record.canonical_product_key
                    for record in self._ledger.query(account_id=subject.account_id)
                )
            if subject.email:
                keys.update(
                    record.canonical_product_key
                    for record in self._ledger.query(email=subject.email)
                )
        except PersistenceFailure:
            logger.exception(
                "Entitlement resolution failed closed",
                extra={"account_id": subject.account_id, "email": subject.email},
            )
            return EntitlementSet(failed_closed=True, resolved_at=now)

        return EntitlementSet(product_keys=frozenset(keys), resolved_at=now)

    def issue_session(self, account_id: Optional[str] = None, email: Optional[str] = None) -> SessionGrant:
        """Resolve entitlements and sign them into a short-lived session token."""

        subject = EntitlementSubject(account_id=account_id, email=email)
        if not subject.has_identity:
            raise ValueError("account_id or email is required to issue a session")

        entitlements = self.resolve(subject.account_id, subject.email)
        issued_at = self._clock()
        claims = SessionClaims(
            account_id=subject.account_id,
            email=subject.email,
            entitlements=entitlements.sorted_keys(),
            operator=entitlements.operator,
            issued_at=issued_at,
            expires_at=issued_at + timedelta(seconds=self._ttl_seconds),
        )
        token = self._token_signer.sign(claims)
        logger.debug(
            "Issued session with %s entitlement(s)",
            len(entitlements),
            extra={"account_id": subject.account_id, "failed_closed": entitlements.failed_closed},
        )
        return SessionGrant(entitlements=entitlements, claims=claims, token=token)

    def refresh_session(self, token: str) -> SessionGrant:
        """Re-resolve the identity behind ``token`` and issue a fresh one.

        The previous token is not revoked; it stays valid until it expires.
        """

        claims = self._token_signer.verify(token)
        if claims is None:
            raise PermissionError("session token is invalid or expired")
        return self.issue_session(claims.account_id, claims.email)


__all__ = ["EntitlementResolver"]
