"""Attribution of guest purchases to registered accounts."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

from .models import LinkConflict, LinkResult, normalize_email
from .service import PurchaseRepository

logger = logging.getLogger("ledger.linker")


class LinkConflictReporter(Protocol):
    """Surfaces purchases that cannot be linked automatically."""

    def report(self, conflict: LinkConflict) -> None:
        ...


@dataclass
class AccountLinker:
    """Sets ``account_id`` once on completed guest purchases matching an email.

    Records already owned by another account are never reassigned; they are
    handed to the conflict reporter for manual review.
    """

    repository: PurchaseRepository
    conflict_reporter: LinkConflictReporter

    def link(self, account_id: str, email: str) -> int:
        """Link guest purchases for ``email`` and return how many were attributed."""

        return self.relink(account_id, email).linked_count

    def relink(self, account_id: str, email: str) -> LinkResult:
        account = (account_id or "").strip()
        normalized_email = normalize_email(email or "")
        if not account:
            raise ValueError("account_id is required to link purchases")
        if not normalized_email:
            raise ValueError("email is required to link purchases")

        conflicts = [
            LinkConflict.from_record(record, account)
            for record in self.repository.find_conflicting_purchases(account, normalized_email)
        ]
        for conflict in conflicts:
            self.conflict_reporter.report(conflict)

        linked_count = self.repository.link_guest_purchases(account, normalized_email)
        if linked_count:
            logger.info(
                "Linked %s guest purchase(s) for %s to account %s",
                linked_count,
                normalized_email,
                account,
                extra={"account_id": account, "linked_count": linked_count},
            )
        return LinkResult(
            account_id=account,
            email=normalized_email,
            linked_count=linked_count,
            conflicts=conflicts,
        )


__all__ = ["AccountLinker", "LinkConflictReporter"]
