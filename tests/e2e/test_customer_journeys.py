"""
E2E tests walking customer journeys through the public API only.

Journeys:
- salaried: opens an account, receives salary, pays rent, takes a personal loan
- merchant: receives payments from customers, checks history and stats
- card holder: links UPI, applies for a credit and a debit card, cancels one
- leaver: empties the account and deactivates it
"""

import pytest
from fastapi.testclient import TestClient


def _open_account(client: TestClient, username: str, mobile: str) -> dict:
    response = client.post("/v1/users", json={"username": username, "mobile": mobile})
    assert response.status_code == 201
    return response.json()


def _headers(account: dict) -> dict:
    return {"X-User-ID": account["id"]}


@pytest.mark.integration
def test_salaried_journey(client: TestClient):
    """
    salaried: deposit, transfer rent, then apply for a loan
    Expected: balance follows every posting, loan priced at the high-tier rate
    """
    meera = _open_account(client, "meera", "9811100001")
    landlord = _open_account(client, "landlord", "9811100002")

    salary = client.post("/v1/transactions", json={"type": "deposit", "amount": 85000}, headers=_headers(meera))
    assert salary.status_code == 201

    rent = client.post(
        "/v1/transactions",
        json={"type": "transfer", "amount": 25000, "receiver_id": landlord["id"], "description": "March rent"},
        headers=_headers(meera),
    )
    assert rent.status_code == 201

    assert client.get("/v1/users/me/balance", headers=_headers(meera)).json()["account_balance"] == 60000
    assert client.get("/v1/users/me/balance", headers=_headers(landlord)).json()["account_balance"] == 25000

    quote = client.post("/v1/loans/calculator", json={"amount": 60000, "term": 18, "interest_rate": 10.5}).json()
    loan = client.post(
        "/v1/loans",
        json={"loan_type": "personal", "amount": 60000, "term": 18, "purpose": "Renovation"},
        headers=_headers(meera),
    ).json()

    assert loan["interest_rate"] == 10.5
    assert loan["monthly_payment"] == pytest.approx(quote["calculation"]["monthly_payment"], abs=0.01)


@pytest.mark.integration
def test_merchant_journey(client: TestClient):
    """
    merchant: collects payments, a customer without funds is declined
    Expected: only settled payments appear in the merchant's totals
    """
    shop = _open_account(client, "corner_shop", "9822200001")
    buyer = _open_account(client, "buyer", "9822200002")
    broke = _open_account(client, "broke_buyer", "9822200003")

    client.post("/v1/transactions", json={"type": "deposit", "amount": 1000}, headers=_headers(buyer))
    for amount in (120, 80.5):
        paid = client.post(
            "/v1/transactions",
            json={"type": "payment", "amount": amount, "receiver_id": shop["id"]},
            headers=_headers(buyer),
        )
        assert paid.status_code == 201

    declined = client.post(
        "/v1/transactions",
        json={"type": "payment", "amount": 10, "receiver_id": shop["id"]},
        headers=_headers(broke),
    )
    assert declined.status_code == 400

    stats = client.get("/v1/transactions/stats/summary", headers=_headers(shop)).json()
    assert stats["summary"]["total_received"] == 200.5
    assert stats["summary"]["total_sent"] == 0
    assert stats["by_type"] == {"payment": 2}

    history = client.get("/v1/transactions?type=payment&limit=1", headers=_headers(shop)).json()
    assert history["pagination"]["total"] == 2
    assert history["pagination"]["has_next_page"] is True


@pytest.mark.integration
def test_card_holder_journey(client: TestClient):
    """
    card holder: links UPI, holds one credit and one debit application
    Expected: card secrets never appear, cancelled application is counted
    """
    kiran = _open_account(client, "kiran", "9833300001")

    upi = client.post(
        "/v1/users/me/upi",
        json={"upi_id": "kiran@oksbi", "bank_name": "SBI", "account_number": "123456789012", "ifsc_code": "SBIN0004321"},
        headers=_headers(kiran),
    )
    assert upi.json()["account_number"] == "9012"

    credit = client.post(
        "/v1/cards",
        json={"card_type": "credit", "card_network": "Mastercard", "card_category": "signature",
              "credit_limit": 200000, "pin": "2580"},
        headers=_headers(kiran),
    ).json()
    debit = client.post(
        "/v1/cards",
        json={"card_type": "debit", "card_network": "American Express", "pin": "0000"},
        headers=_headers(kiran),
    ).json()

    assert credit["rewards_program"] == "miles"
    assert debit["annual_fee"] == 0
    assert debit["card_number"].startswith("3")

    client.patch(f"/v1/cards/{credit['id']}/cancel", headers=_headers(kiran))
    stats = client.get("/v1/cards/stats/summary", headers=_headers(kiran)).json()
    assert stats["by_status"] == {"cancelled": 1, "pending": 1}

    cards = client.get("/v1/cards", headers=_headers(kiran)).json()["cards"]
    assert all("pin" not in card and "cvv" not in card for card in cards)


@pytest.mark.integration
def test_leaver_journey(client: TestClient):
    """
    leaver: withdraws everything then deactivates
    Expected: zero balance, identity no longer accepted
    """
    dev = _open_account(client, "dev", "9844400001")
    client.post("/v1/transactions", json={"type": "deposit", "amount": 500}, headers=_headers(dev))

    overdraw = client.post("/v1/transactions", json={"type": "withdrawal", "amount": 500.01}, headers=_headers(dev))
    assert overdraw.status_code == 400

    client.post("/v1/transactions", json={"type": "withdrawal", "amount": 500}, headers=_headers(dev))
    assert client.get("/v1/users/me/balance", headers=_headers(dev)).json()["account_balance"] == 0

    client.patch("/v1/users/me/deactivate", json={"reason": "Closing"}, headers=_headers(dev))
    assert client.get("/v1/users/me/summary", headers=_headers(dev)).status_code == 401
