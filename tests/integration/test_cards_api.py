"""Integration tests for /v1/cards"""

import pytest
from fastapi.testclient import TestClient
from infinity_bank.domain.cards import is_luhn_valid
from infinity_bank.infrastructure.database.models import Card

CREDIT_APPLICATION = {
    "card_type": "credit",
    "card_network": "Visa",
    "card_category": "gold",
    "credit_limit": 75000,
    "pin": "4321",
}

DEBIT_APPLICATION = {
    "card_type": "debit",
    "card_network": "RuPay",
    "card_category": "platinum",
    "pin": "1111",
}


def test_apply_for_credit_card(client: TestClient, make_user, auth):
    asha = make_user("asha")

    response = client.post("/v1/cards", json=CREDIT_APPLICATION, headers=auth(asha))

    assert response.status_code == 201
    card = response.json()
    assert card["status"] == "pending"
    assert card["card_holder"] == "asha"
    assert card["annual_fee"] == 1000
    assert card["rewards_program"] == "cashback"
    assert card["credit_limit"] == 75000
    assert card["available_credit"] == 75000
    assert card["current_balance"] == 0
    assert len(card["card_number"]) == 16
    assert card["card_number"].startswith("4")
    assert is_luhn_valid(card["card_number"])
    assert "cvv" not in card
    assert "pin" not in card


def test_apply_for_debit_card(client: TestClient, make_user, auth):
    asha = make_user("asha")

    response = client.post("/v1/cards", json=DEBIT_APPLICATION, headers=auth(asha))

    assert response.status_code == 201
    card = response.json()
    assert card["card_number"].startswith("6")
    assert card["annual_fee"] == 500
    assert card["rewards_program"] == "none"
    assert card["credit_limit"] == 0


def test_secrets_are_stored(client: TestClient, make_user, auth, db):
    asha = make_user("asha")
    card_id = client.post("/v1/cards", json=CREDIT_APPLICATION, headers=auth(asha)).json()["id"]

    card = db.query(Card).one()
    assert str(card.id) == card_id
    assert card.pin == "4321"
    assert len(card.cvv) == 3


def test_credit_card_requires_limit(client: TestClient, make_user, auth):
    asha = make_user("asha")
    body = {key: value for key, value in CREDIT_APPLICATION.items() if key != "credit_limit"}

    response = client.post("/v1/cards", json=body, headers=auth(asha))
    assert response.status_code == 400


@pytest.mark.parametrize(
    "override",
    [
        {"credit_limit": 9999},
        {"pin": "12a4"},
        {"card_network": "Discover"},
        {"card_category": "titanium"},
    ],
)
def test_card_application_schema_validation(client: TestClient, make_user, auth, override):
    asha = make_user("asha")
    response = client.post("/v1/cards", json={**CREDIT_APPLICATION, **override}, headers=auth(asha))
    assert response.status_code == 422


def test_one_open_card_per_type(client: TestClient, make_user, auth):
    asha = make_user("asha")
    client.post("/v1/cards", json=CREDIT_APPLICATION, headers=auth(asha))

    duplicate = client.post("/v1/cards", json=CREDIT_APPLICATION, headers=auth(asha))
    assert duplicate.status_code == 400
    assert "credit card" in duplicate.json()["detail"]

    other_type = client.post("/v1/cards", json=DEBIT_APPLICATION, headers=auth(asha))
    assert other_type.status_code == 201


@pytest.mark.parametrize("status", ["pending", "approved", "active"])
def test_open_card_blocks_second_of_same_type(client: TestClient, make_user, auth, db, status):
    asha = make_user("asha")
    client.post("/v1/cards", json=CREDIT_APPLICATION, headers=auth(asha))
    db.query(Card).update({Card.status: status})
    db.commit()

    response = client.post("/v1/cards", json=CREDIT_APPLICATION, headers=auth(asha))

    assert response.status_code == 400
    assert db.query(Card).count() == 1


@pytest.mark.parametrize("status", ["cancelled", "blocked", "expired"])
def test_closed_card_frees_the_slot(client: TestClient, make_user, auth, db, status):
    asha = make_user("asha")
    client.post("/v1/cards", json=CREDIT_APPLICATION, headers=auth(asha))
    db.query(Card).update({Card.status: status})
    db.commit()

    assert client.post("/v1/cards", json=CREDIT_APPLICATION, headers=auth(asha)).status_code == 201


def test_unblock_refused_while_replacement_is_open(client: TestClient, make_user, auth, db):
    asha = make_user("asha")
    old_id = client.post("/v1/cards", json=CREDIT_APPLICATION, headers=auth(asha)).json()["id"]
    db.query(Card).update({Card.status: "blocked"})
    db.commit()
    client.post("/v1/cards", json=CREDIT_APPLICATION, headers=auth(asha))

    response = client.patch(f"/v1/cards/{old_id}/toggle-status", json={"action": "unblock"}, headers=auth(asha))

    assert response.status_code == 400
    assert client.get(f"/v1/cards/{old_id}", headers=auth(asha)).json()["status"] == "blocked"


def test_update_and_cancel_pending_card(client: TestClient, make_user, auth):
    asha = make_user("asha")
    card_id = client.post("/v1/cards", json=CREDIT_APPLICATION, headers=auth(asha)).json()["id"]

    updated = client.patch(f"/v1/cards/{card_id}", json={"is_international": True}, headers=auth(asha))
    assert updated.status_code == 200
    assert updated.json()["is_international"] is True
    assert updated.json()["is_contactless"] is True

    cancelled = client.patch(f"/v1/cards/{card_id}/cancel", headers=auth(asha))
    assert cancelled.status_code == 200
    assert cancelled.json()["status"] == "cancelled"

    # Cancelled applications free the slot for a new card of the same type
    assert client.post("/v1/cards", json=CREDIT_APPLICATION, headers=auth(asha)).status_code == 201


def test_block_and_unblock(client: TestClient, make_user, auth, db):
    asha = make_user("asha")
    card_id = client.post("/v1/cards", json=DEBIT_APPLICATION, headers=auth(asha)).json()["id"]

    pending = client.patch(f"/v1/cards/{card_id}/toggle-status", json={"action": "block"}, headers=auth(asha))
    assert pending.status_code == 400

    db.query(Card).update({Card.status: "active"})
    db.commit()

    blocked = client.patch(f"/v1/cards/{card_id}/toggle-status", json={"action": "block"}, headers=auth(asha))
    assert blocked.status_code == 200
    assert blocked.json()["status"] == "blocked"

    again = client.patch(f"/v1/cards/{card_id}/toggle-status", json={"action": "block"}, headers=auth(asha))
    assert again.status_code == 400

    unblocked = client.patch(f"/v1/cards/{card_id}/toggle-status", json={"action": "unblock"}, headers=auth(asha))
    assert unblocked.status_code == 200
    assert unblocked.json()["status"] == "active"

    # Active cards can no longer be edited or cancelled
    assert client.patch(f"/v1/cards/{card_id}", json={"is_contactless": False}, headers=auth(asha)).status_code == 400
    assert client.patch(f"/v1/cards/{card_id}/cancel", headers=auth(asha)).status_code == 400


def test_toggle_rejects_unknown_action(client: TestClient, make_user, auth):
    asha = make_user("asha")
    card_id = client.post("/v1/cards", json=DEBIT_APPLICATION, headers=auth(asha)).json()["id"]

    response = client.patch(f"/v1/cards/{card_id}/toggle-status", json={"action": "freeze"}, headers=auth(asha))
    assert response.status_code == 422


def test_card_access_control(client: TestClient, make_user, auth):
    asha = make_user("asha")
    ravi = make_user("ravi")
    card_id = client.post("/v1/cards", json=DEBIT_APPLICATION, headers=auth(asha)).json()["id"]

    assert client.get(f"/v1/cards/{card_id}", headers=auth(asha)).status_code == 200
    assert client.get(f"/v1/cards/{card_id}", headers=auth(ravi)).status_code == 403
    assert client.patch(f"/v1/cards/{card_id}/cancel", headers=auth(ravi)).status_code == 403
    assert client.get("/v1/cards/00000000-0000-0000-0000-000000000000", headers=auth(asha)).status_code == 404
    assert client.get("/v1/cards/not-a-uuid", headers=auth(asha)).status_code == 400


def test_cards_list_and_stats(client: TestClient, make_user, auth, db):
    asha = make_user("asha")
    client.post("/v1/cards", json=CREDIT_APPLICATION, headers=auth(asha))
    client.post("/v1/cards", json=DEBIT_APPLICATION, headers=auth(asha))

    listing = client.get("/v1/cards", headers=auth(asha)).json()
    assert listing["pagination"]["total"] == 2
    assert all("cvv" not in card for card in listing["cards"])

    credit_only = client.get("/v1/cards?card_type=credit", headers=auth(asha)).json()
    assert [card["card_type"] for card in credit_only["cards"]] == ["credit"]

    # Only active credit cards count towards the total limit
    stats = client.get("/v1/cards/stats/summary", headers=auth(asha)).json()
    assert stats["summary"]["total_cards"] == 2
    assert stats["summary"]["total_credit_limit"] == 0
    assert stats["by_status"] == {"pending": 2}

    db.query(Card).filter(Card.card_type == "credit").update({Card.status: "active"})
    db.commit()

    stats = client.get("/v1/cards/stats/summary", headers=auth(asha)).json()
    assert stats["summary"]["total_credit_limit"] == 75000
    assert stats["by_type"] == {"credit": 1, "debit": 1}
    assert stats["by_status"] == {"active": 1, "pending": 1}
    assert stats["by_network"] == {"Visa": 1, "RuPay": 1}
