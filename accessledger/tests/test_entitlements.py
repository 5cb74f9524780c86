from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt

from accessledger.app.catalog import get_normalizer
from accessledger.app.entitlements import (
    EntitlementResolver,
    EntitlementSubject,
    JWTSessionSigner,
    SessionClaims,
)


def test_resolve_unions_account_and_email_records(ledger, resolver):
    ledger.upsert("a@x.com", "ebook", "1", "tx-1", 19.0, account_id="acc-1")
    ledger.upsert("a@x.com", "prompts", "2", "tx-2", 27.0)

    entitlements = resolver.resolve("acc-1", "a@x.com")

    assert entitlements.sorted_keys() == ["ebook", "prompts"]
    assert entitlements.failed_closed is False


def test_resolve_links_eagerly_when_both_identifiers_are_known(ledger, resolver, purchase_repository):
    ledger.upsert("a@x.com", "prompts", "2", "tx-1", 27.0)

    resolver.resolve("acc-1", "a@x.com")

    assert {record.account_id for record in purchase_repository.records.values()} == {"acc-1"}
    assert "prompts" in resolver.resolve("acc-1", None)


def test_read_only_resolve_leaves_attribution_untouched(ledger, resolver, purchase_repository):
    ledger.upsert("a@x.com", "prompts", "2", "tx-1", 27.0)

    entitlements = resolver.resolve("acc-1", "a@x.com", link=False)

    assert entitlements.sorted_keys() == ["prompts"]
    assert {record.account_id for record in purchase_repository.records.values()} == {None}


def test_resolution_is_monotonic_in_identifiers(ledger, resolver):
    ledger.upsert("a@x.com", "prompts", "2", "tx-1", 27.0)
    ledger.upsert("other@x.com", "video", "4", "tx-2", 49.0, account_id="acc-1")

    by_email = resolver.resolve(None, "a@x.com")
    by_both = resolver.resolve("acc-1", "a@x.com")

    assert by_both.issuperset(by_email)
    assert by_both.sorted_keys() == ["prompts", "video"]


def test_anonymous_identity_has_no_entitlements(ledger, resolver):
    ledger.upsert("a@x.com", "prompts", "2", "tx-1", 27.0)

    assert len(resolver.resolve(None, None)) == 0
    assert len(resolver.resolve("  ", "")) == 0


def test_operator_override_grants_every_catalog_key(resolver):
    by_account = resolver.resolve("acc-operator", None)
    by_email = resolver.resolve(None, "owner@example.com")

    assert by_account.operator is True
    assert by_account.product_keys == get_normalizer().canonical_keys
    assert by_email.product_keys == get_normalizer().canonical_keys
    assert resolver.is_operator(EntitlementSubject(email="OWNER@example.com"))


def test_storage_failure_fails_closed(ledger, resolver, purchase_repository, storage_outage):
    ledger.upsert("a@x.com", "prompts", "2", "tx-1", 27.0)
    purchase_repository.fail_with = storage_outage

    entitlements = resolver.resolve("acc-1", "a@x.com")

    assert entitlements.failed_closed is True
    assert len(entitlements) == 0


def test_unmapped_products_are_still_entitlements(ledger, resolver):
    ledger.record_purchase("a@x.com", "xyz-unknown", "tx-1", 5.0)

    assert "xyz-unknown" in resolver.resolve(None, "a@x.com")


def test_issue_session_signs_entitlements_into_claims(ledger, resolver, signer):
    ledger.upsert("a@x.com", "prompts", "2", "tx-1", 27.0)

    grant = resolver.issue_session("acc-1", "A@x.com")
    claims = signer.verify(grant.token)

    assert claims is not None
    assert claims.account_id == "acc-1"
    assert claims.email == "a@x.com"
    assert claims.entitlements == ["prompts"]
    assert grant.expires_at - grant.claims.issued_at == timedelta(seconds=900)


def test_issue_session_requires_an_identity(resolver):
    with pytest.raises(ValueError):
        resolver.issue_session(None, " ")


def test_refresh_picks_up_new_purchases_without_revoking_old_token(ledger, resolver, signer):
    ledger.upsert("a@x.com", "prompts", "2", "tx-1", 27.0)
    original = resolver.issue_session(None, "a@x.com")

    ledger.upsert("a@x.com", "video", "4", "tx-2", 49.0)
    refreshed = resolver.refresh_session(original.token)

    assert refreshed.claims.entitlements == ["prompts", "video"]
    assert signer.verify(original.token).entitlements == ["prompts"]


def test_refresh_rejects_invalid_tokens(resolver):
    with pytest.raises(PermissionError):
        resolver.refresh_session("not-a-token")


def test_signer_rejects_tokens_from_another_secret(signer):
    now = datetime.now(timezone.utc)
    claims = SessionClaims(email="a@x.com", issued_at=now, expires_at=now + timedelta(minutes=5))
    foreign = JWTSessionSigner("other-secret").sign(claims)

    assert signer.verify(foreign) is None
    assert signer.verify("") is None


def test_signer_rejects_expired_tokens(signer):
    issued = datetime.now(timezone.utc) - timedelta(hours=2)
    claims = SessionClaims(email="a@x.com", issued_at=issued, expires_at=issued + timedelta(minutes=5))

    assert signer.verify(signer.sign(claims)) is None


def test_token_claims_use_standard_names(signer):
    now = datetime.now(timezone.utc)
    claims = SessionClaims(
        account_id="acc-1",
        email="a@x.com",
        entitlements=["ebook"],
        issued_at=now,
        expires_at=now + timedelta(minutes=5),
    )

    payload = jwt.decode(signer.sign(claims), "test-secret", algorithms=["HS256"])

    assert payload["sub"] == "acc-1"
    assert payload["entitlements"] == ["ebook"]
    assert payload["exp"] == int(claims.expires_at.timestamp())


def test_short_ttl_is_clamped(ledger, linker, signer):
    resolver = EntitlementResolver(ledger=ledger, linker=linker, token_signer=signer, ttl_seconds=5)

    grant = resolver.issue_session(None, "a@x.com")

    assert grant.expires_at - grant.claims.issued_at == timedelta(seconds=60)
