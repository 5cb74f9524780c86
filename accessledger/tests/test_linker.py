from __future__ import annotations

import pytest

from accessledger.app.ledger import PurchaseStatus


def test_scenario_b_guest_purchase_links_to_new_account(ledger, linker, resolver):
    ledger.record_purchase("a@x.com", "2", "tx-1", 27.0)

    assert linker.link("acc-1", "a@x.com") == 1
    assert "prompts" in resolver.resolve("acc-1", None)


def test_link_is_idempotent(ledger, linker):
    ledger.upsert("a@x.com", "prompts", "2", "tx-1", 27.0)

    assert linker.link("acc-1", "a@x.com") == 1
    assert linker.link("acc-1", "a@x.com") == 0


def test_link_matches_email_case_insensitively(ledger, linker, purchase_repository):
    ledger.upsert("a@x.com", "prompts", "2", "tx-1", 27.0)

    assert linker.link("acc-1", " A@X.COM ") == 1
    assert {record.account_id for record in purchase_repository.records.values()} == {"acc-1"}


def test_link_skips_pending_and_foreign_email_records(ledger, linker, purchase_repository):
    ledger.upsert("a@x.com", "prompts", "2", "tx-1", 27.0, status=PurchaseStatus.PENDING)
    ledger.upsert("b@x.com", "ebook", "1", "tx-2", 19.0)

    assert linker.link("acc-1", "a@x.com") == 0
    assert all(record.account_id is None for record in purchase_repository.records.values())


def test_records_owned_by_another_account_are_reported_not_reassigned(
    ledger, linker, purchase_repository, conflict_reporter
):
    owned = ledger.upsert("a@x.com", "ebook", "1", "tx-1", 19.0, account_id="acc-other").record
    ledger.upsert("a@x.com", "prompts", "2", "tx-2", 27.0)

    result = linker.relink("acc-1", "a@x.com")

    assert result.linked_count == 1
    assert [conflict.record_id for conflict in result.conflicts] == [owned.id]
    assert conflict_reporter.conflicts == result.conflicts
    assert result.conflicts[0].existing_account_id == "acc-other"
    assert result.conflicts[0].requested_account_id == "acc-1"
    assert purchase_repository.records[owned.id].account_id == "acc-other"


def test_records_already_owned_by_the_same_account_are_not_conflicts(ledger, linker, conflict_reporter):
    ledger.upsert("a@x.com", "ebook", "1", "tx-1", 19.0, account_id="acc-1")

    result = linker.relink("acc-1", "a@x.com")

    assert result.linked_count == 0
    assert result.conflicts == []
    assert conflict_reporter.conflicts == []


@pytest.mark.parametrize("account_id, email", [("", "a@x.com"), ("acc-1", "  ")])
def test_link_requires_both_identifiers(linker, account_id, email):
    with pytest.raises(ValueError):
        linker.link(account_id, email)
