"""Integration tests for reference and card number collisions"""

from decimal import Decimal
from fastapi.testclient import TestClient
from infinity_bank.infrastructure.database import repositories
from infinity_bank.infrastructure.database.models import Card, LedgerTransaction
from infinity_bank.infrastructure.database.repositories import TransactionRepository


def _existing_reference(client: TestClient, user, auth) -> str:
    response = client.post("/v1/transactions", json={"type": "deposit", "amount": 100}, headers=auth(user))
    assert response.status_code == 201
    return response.json()["reference"]


def test_new_reference_skips_one_in_use(client: TestClient, make_user, auth, db, monkeypatch):
    alice = make_user("alice")
    taken = _existing_reference(client, alice, auth)
    drawn = iter([taken, "TXN1700000000000ABCDE"])
    monkeypatch.setattr(repositories, "generate_reference", lambda: next(drawn))

    assert TransactionRepository(db).new_reference() == "TXN1700000000000ABCDE"


def test_transaction_returns_503_when_references_keep_colliding(client: TestClient, make_user, auth, db, monkeypatch):
    alice = make_user("alice")
    taken = _existing_reference(client, alice, auth)
    monkeypatch.setattr(repositories, "generate_reference", lambda: taken)

    response = client.post("/v1/transactions", json={"type": "deposit", "amount": 50}, headers=auth(alice))

    assert response.status_code == 503
    assert response.json()["detail"] == "Please retry the transaction"
    db.refresh(alice)
    assert alice.account_balance == Decimal("100.00")
    assert db.query(LedgerTransaction).count() == 1


def test_card_returns_503_when_numbers_keep_colliding(client: TestClient, make_user, auth, db, monkeypatch):
    asha = make_user("asha")
    debit = client.post(
        "/v1/cards",
        json={"card_type": "debit", "card_network": "Visa", "pin": "1234"},
        headers=auth(asha),
    ).json()
    monkeypatch.setattr(repositories, "generate_card_number", lambda network: debit["card_number"])

    response = client.post(
        "/v1/cards",
        json={"card_type": "credit", "card_network": "Visa", "credit_limit": 20000, "pin": "1234"},
        headers=auth(asha),
    )

    assert response.status_code == 503
    assert db.query(Card).count() == 1
