from decimal import Decimal

from currencies import DEFAULT_RATES
from splitter import calculate_participant_totals
from utils import explain_all_participants, explain_participant_share, present_balances, present_settlements, round_money

participants = [
    {"participant_id": "P001", "name": "Alice"},
    {"participant_id": "P002", "name": "Bob"},
    {"participant_id": "P003", "name": "Chika"},
]

expenses = [
    {
        "expense_id": "E001",
        "paid_by": "P001",
        "amount": 300,
        "currency": "HKD",
        "category": "Dim sum",
        "split_with": ["P001", "P002", "P003"],
        "date": "2025-04-01"
    },
    {
        "expense_id": "E002",
        "paid_by": "P002",
        "amount": 1000,
        "currency": "JPY",
        "category": "Taxi",
        "split_with": ["P001", "P002"],
        "date": "2025-04-02"
    }
]


def test_round_money_rounds_half_up():
    assert round_money(Decimal("2.345")) == 2.35
    assert round_money(Decimal("-333.3333")) == -333.33


def test_explain_participant_share():
    totals = calculate_participant_totals(expenses, participants, DEFAULT_RATES)

    explanation = explain_participant_share("P001", participants, expenses, DEFAULT_RATES, totals)

    assert [c["expense_id"] for c in explanation["expense_contributions"]] == ["E001", "E002"]
    assert explanation["expense_contributions"][0]["amount_in_base"] == 5760.0
    assert explanation["expense_contributions"][0]["participant_share"] == 1920.0
    assert explanation["total_paid"] == 5760.0
    assert explanation["total_share"] == 2420.0
    assert explanation["net_balance"] == 3340.0


def test_explain_unknown_participant():
    explanation = explain_participant_share("P999", participants, expenses, DEFAULT_RATES, {})

    assert explanation["expense_contributions"] == []
    assert "error" in explanation


def test_explain_all_participants_includes_everyone():
    totals = calculate_participant_totals(expenses, participants, DEFAULT_RATES)

    explanations = explain_all_participants(participants, expenses, DEFAULT_RATES, totals)

    assert [e["participant_id"] for e in explanations] == ["P001", "P002", "P003"]
    assert len(explanations[2]["expense_contributions"]) == 1


def test_present_in_display_currency():
    balances = {"P001": Decimal("3840"), "P002": Decimal("-1920"), "P003": Decimal("-1920")}
    settlements = [{"from_participant": "P002", "to_participant": "P001", "amount": Decimal("1920")}]

    assert present_balances(balances, "HKD", DEFAULT_RATES) == {"P001": 200.0, "P002": -100.0, "P003": -100.0}
    assert present_settlements(settlements, "HKD", DEFAULT_RATES)[0]["amount"] == 100.0
