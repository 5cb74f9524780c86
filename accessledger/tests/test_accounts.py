from __future__ import annotations

import pytest

from accessledger.app.accounts import (
    AccountAlreadyExists,
    AccountService,
    InvalidCredentials,
)
from accessledger.app.accounts import service as account_service_module

from conftest import InMemoryAccountRepository, PlainHasher


@pytest.fixture
def account_repository() -> InMemoryAccountRepository:
    return InMemoryAccountRepository()


@pytest.fixture
def account_service(monkeypatch, account_repository, linker) -> AccountService:
    monkeypatch.setattr(account_service_module, "bcrypt", PlainHasher)
    return AccountService(repository=account_repository, linker=linker)


def test_register_links_earlier_guest_purchases(ledger, account_service, purchase_repository):
    ledger.record_purchase("a@x.com", "2", "tx-1", 27.0)

    registration = account_service.register(" A@X.com ", "correct horse")

    assert registration.account.email == "a@x.com"
    assert registration.account.id.startswith("acc_")
    assert registration.linked_purchases == 1
    assert {record.account_id for record in purchase_repository.records.values()} == {registration.account.id}


def test_register_stores_only_the_password_hash(account_service, account_repository):
    registration = account_service.register("a@x.com", "correct horse")

    stored = account_repository.accounts[registration.account.id]
    assert stored.password_hash == "hashed:correct horse"
    assert "password_hash" not in registration.account.model_dump()


def test_register_rejects_taken_email(account_service):
    account_service.register("a@x.com", "correct horse")

    with pytest.raises(AccountAlreadyExists) as excinfo:
        account_service.register("A@x.com", "another one")
    assert excinfo.value.status_code == 400


@pytest.mark.parametrize("email, password", [("", "correct horse"), ("a@x.com", "short")])
def test_register_validates_input(account_service, email, password):
    with pytest.raises(ValueError):
        account_service.register(email, password)


def test_authenticate_checks_password(account_service):
    registration = account_service.register("a@x.com", "correct horse")

    assert account_service.authenticate("A@x.com", "correct horse").id == registration.account.id
    with pytest.raises(InvalidCredentials):
        account_service.authenticate("a@x.com", "wrong password")
    with pytest.raises(InvalidCredentials):
        account_service.authenticate("nobody@x.com", "correct horse")

