from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

import main


@pytest.fixture
def client(fake_db):
    return TestClient(main.app)


@pytest.fixture
def trip_id(client):
    response = client.post("/trips", json={"name": "Hong Kong weekend"})
    assert response.status_code == 201
    trip_id = response.json()["trip_id"]

    for name in ("Alice", "Bob", "Chika"):
        assert client.post(f"/trips/{trip_id}/participants", json={"name": name}).status_code == 201
    return trip_id


def _add_expense(client, trip_id, **fields):
    body = {"amount": 1000, "currency": "JPY", "category": "Dinner",
            "paid_by": "P001", "split_with": ["P001", "P002"], "date": "2025-04-01"}
    body.update(fields)
    return client.post(f"/trips/{trip_id}/expenses", json=body)


def test_health(client):
    assert client.get("/health").json()["status"] == "healthy"


def test_unknown_trip_is_404(client):
    assert client.get("/trips/trip_nope/balances").status_code == 404


def test_two_way_split(client, trip_id):
    assert _add_expense(client, trip_id).status_code == 201

    balances = client.get(f"/trips/{trip_id}/balances").json()
    settlement = client.get(f"/trips/{trip_id}/settlement").json()

    assert balances == {"currency": "JPY", "balances": {"P001": 500.0, "P002": -500.0, "P003": 0.0}}
    assert settlement["settlements"] == [{"from_participant": "P002", "to_participant": "P001", "amount": 500.0}]


def test_hkd_three_way_split(client, trip_id):
    _add_expense(client, trip_id, amount=300, currency="HKD", split_with=["P001", "P002", "P003"])

    settlements = client.get(f"/trips/{trip_id}/settlement").json()["settlements"]

    assert len(settlements) == 2
    assert sum(s["amount"] for s in settlements) == 3840.0
    assert {s["to_participant"] for s in settlements} == {"P001"}


def test_invalid_expense(client, trip_id):
    assert _add_expense(client, trip_id, paid_by="P404").status_code == 400
    assert _add_expense(client, trip_id, currency="EUR").status_code == 400
    assert _add_expense(client, trip_id, split_with=[]).status_code == 422
    assert client.get(f"/trips/{trip_id}/expenses").json() == []


def test_edit_and_delete_expense(client, trip_id):
    _add_expense(client, trip_id)

    edited = client.put(f"/trips/{trip_id}/expenses/E001", json={
        "amount": 3000, "currency": "JPY", "category": "Karaoke",
        "paid_by": "P003", "split_with": ["P001", "P002", "P003"], "date": "2025-04-02"
    })
    assert edited.status_code == 200
    assert client.get(f"/trips/{trip_id}/balances").json()["balances"] == {
        "P001": -1000.0, "P002": -1000.0, "P003": 2000.0
    }

    assert client.delete(f"/trips/{trip_id}/expenses/E001").status_code == 204
    assert client.delete(f"/trips/{trip_id}/expenses/E001").status_code == 404
    assert client.get(f"/trips/{trip_id}/settlement").json()["settlements"] == []


def test_edit_requires_date(client, trip_id):
    _add_expense(client, trip_id)

    response = client.put(f"/trips/{trip_id}/expenses/E001", json={
        "amount": 3000, "category": "Karaoke", "paid_by": "P003", "split_with": ["P003"]
    })

    assert response.status_code == 400


def test_remove_participant(client, trip_id):
    _add_expense(client, trip_id)

    assert client.delete(f"/trips/{trip_id}/participants/P001").status_code == 400
    assert client.delete(f"/trips/{trip_id}/participants/P003").status_code == 200
    assert [p["participant_id"] for p in client.get(f"/trips/{trip_id}/participants").json()] == ["P001", "P002"]


def test_manual_rates_change_balances(client, trip_id):
    _add_expense(client, trip_id, amount=100, currency="AUD")

    response = client.put(f"/trips/{trip_id}/rates", json={"rates": {"AUD": 100}})
    assert response.json()["rates"] == {"JPY": 1.0, "HKD": 19.2, "AUD": 100.0}

    balances = client.get(f"/trips/{trip_id}/balances").json()["balances"]
    assert balances["P001"] == 5000.0

    assert client.put(f"/trips/{trip_id}/rates", json={"rates": {"AUD": 0}}).status_code == 400


def test_refresh_rates_failure_keeps_previous(client, trip_id, monkeypatch):
    client.put(f"/trips/{trip_id}/rates", json={"rates": {"HKD": 20}})
    monkeypatch.setattr(main, "fetch_live_rates", lambda current: dict(current))

    response = client.post(f"/trips/{trip_id}/rates/refresh")

    assert response.status_code == 200
    assert response.json()["rates"]["HKD"] == 20.0


def test_refresh_rates_success(client, trip_id, monkeypatch):
    fresh = {"JPY": Decimal("1"), "HKD": Decimal("18.5"), "AUD": Decimal("99")}
    monkeypatch.setattr(main, "fetch_live_rates", lambda current: fresh)

    client.post(f"/trips/{trip_id}/rates/refresh")

    assert client.get(f"/trips/{trip_id}/rates").json()["rates"] == {"JPY": 1.0, "HKD": 18.5, "AUD": 99.0}


def test_summary_in_display_currency(client, trip_id):
    _add_expense(client, trip_id, amount=300, currency="HKD", split_with=["P001", "P002", "P003"])
    client.put(f"/trips/{trip_id}/display-currency", json={"currency": "HKD"})

    summary = client.get(f"/trips/{trip_id}/summary").json()

    assert summary["currency"] == "HKD"
    assert summary["balances"] == {"P001": 200.0, "P002": -100.0, "P003": -100.0}
    assert [s["amount"] for s in summary["settlements"]] == [100.0, 100.0]
    assert summary["analytics"]["total_spent"] == 5760.0
    assert [e["participant_id"] for e in summary["explanations"]] == ["P001", "P002", "P003"]

    in_yen = client.get(f"/trips/{trip_id}/summary", params={"currency": "JPY"}).json()
    assert in_yen["balances"]["P001"] == 3840.0
    assert client.get(f"/trips/{trip_id}/summary", params={"currency": "EUR"}).status_code == 400


def test_minimal_strategy(client, trip_id):
    for name in ("Dai", "Eri"):
        client.post(f"/trips/{trip_id}/participants", json={"name": name})
    # P001 and P002 settle between themselves; P003, P004, P005 form a second group
    _add_expense(client, trip_id, amount=1200, paid_by="P001", split_with=["P002"])
    _add_expense(client, trip_id, amount=700, paid_by="P003", split_with=["P004", "P005"])
    _add_expense(client, trip_id, amount=100, paid_by="P005", split_with=["P004"])

    greedy = client.get(f"/trips/{trip_id}/settlement").json()["settlements"]
    minimal = client.get(f"/trips/{trip_id}/settlement", params={"strategy": "minimal"}).json()

    assert minimal["strategy"] == "minimal"
    assert len(minimal["settlements"]) == 3
    assert len(minimal["settlements"]) <= len(greedy)
    assert client.get(f"/trips/{trip_id}/settlement", params={"strategy": "best"}).status_code == 422


def test_calculate_persists_snapshot(client, trip_id):
    assert client.get(f"/trips/{trip_id}/results").status_code == 404
    _add_expense(client, trip_id)

    calculated = client.post(f"/trips/{trip_id}/calculate").json()
    saved = client.get(f"/trips/{trip_id}/results").json()

    assert saved == calculated
    assert saved["settlements"] == [{"from_participant": "P002", "to_participant": "P001", "amount": 500.0}]


def test_price_check(client, trip_id):
    response = client.get(f"/trips/{trip_id}/convert", params={"amount": 50, "currency": "HKD"})

    assert response.status_code == 200
    assert response.json() == {
        "amount": 50.0, "currency": "HKD", "rate": 19.2, "amount_in_base": 960.0, "base_currency": "JPY"
    }

    client.put(f"/trips/{trip_id}/rates", json={"rates": {"AUD": 100}})
    assert client.get(f"/trips/{trip_id}/convert", params={"amount": 2.5, "currency": "AUD"}).json()["amount_in_base"] == 250.0

    assert client.get(f"/trips/{trip_id}/convert", params={"amount": 5, "currency": "EUR"}).status_code == 400
    assert client.get(f"/trips/{trip_id}/convert", params={"amount": 0, "currency": "HKD"}).status_code == 422
    assert client.get("/trips/trip_nope/convert", params={"amount": 5, "currency": "HKD"}).status_code == 404


def test_summary_analytics_stay_in_yen(client, trip_id):
    _add_expense(client, trip_id, amount=100, currency="AUD")

    summary = client.get(f"/trips/{trip_id}/summary", params={"currency": "AUD"}).json()

    assert summary["balances"]["P001"] == 50.0
    assert summary["analytics"]["total_spent"] == 9650.0
    assert summary["explanations"][0]["expense_contributions"][0]["amount_in_base"] == 9650.0


def test_minimal_strategy_settles_uneven_splits(client, trip_id):
    client.post(f"/trips/{trip_id}/participants", json={"name": "Dai"})
    _add_expense(client, trip_id, amount=100, paid_by="P001", split_with=["P002", "P003", "P004"])
    _add_expense(client, trip_id, amount=200, paid_by="P002", split_with=["P001", "P003", "P004"])
    _add_expense(client, trip_id, amount=50, paid_by="P003", split_with=["P001", "P002", "P004"])

    balances = client.get(f"/trips/{trip_id}/balances").json()["balances"]
    settlements = client.get(f"/trips/{trip_id}/settlement", params={"strategy": "minimal"}).json()["settlements"]

    for s in settlements:
        balances[s["from_participant"]] += s["amount"]
        balances[s["to_participant"]] -= s["amount"]
    assert all(abs(b) < 0.05 for b in balances.values()), balances


def test_snapshot_drops_removed_participant(client, trip_id):
    _add_expense(client, trip_id)
    client.post(f"/trips/{trip_id}/calculate")
    assert set(client.get(f"/trips/{trip_id}/results").json()["balances"]) == {"P001", "P002", "P003"}

    client.delete(f"/trips/{trip_id}/participants/P003")
    client.post(f"/trips/{trip_id}/calculate")

    assert set(client.get(f"/trips/{trip_id}/results").json()["balances"]) == {"P001", "P002"}
