from analytics import generate_analytics
from currencies import DEFAULT_RATES

participants = [
    {"participant_id": "P001", "name": "Alice"},
    {"participant_id": "P002", "name": "Bob"},
    {"participant_id": "P003", "name": "Chika"},
]

expenses = [
    {"paid_by": "P001", "amount": 15000, "currency": "JPY", "category": "Hotel", "date": "2025-04-01"},
    {"paid_by": "P002", "amount": 100, "currency": "HKD", "category": "Food", "date": "2025-04-01"},
    {"paid_by": "P001", "amount": 20, "currency": "AUD", "category": "Transport", "date": "2025-04-02"},
    {"paid_by": "P003", "amount": 1000, "currency": "JPY", "category": "Food", "date": "2025-04-02"},
]


def test_breakdowns_are_in_base_currency():
    analytics = generate_analytics(participants, expenses, DEFAULT_RATES)["analytics"]

    assert analytics["total_spent"] == 19850.0
    assert analytics["category_breakdown"] == {"Hotel": 15000.0, "Food": 2920.0, "Transport": 1930.0}
    assert analytics["daily_spending"] == {"2025-04-01": 16920.0, "2025-04-02": 2930.0}
    assert analytics["highest_spending_day"] == {"date": "2025-04-01", "amount": 16920.0}
    assert analytics["payer_totals"] == {"P001": 16930.0, "P002": 1920.0, "P003": 1000.0}


def test_warnings():
    warnings = generate_analytics(participants, expenses, DEFAULT_RATES)["warnings"]

    assert any("Alice paid" in w for w in warnings)
    assert any("'Hotel' accounts for" in w for w in warnings)
    assert not any("exceeds" in w for w in warnings)


def test_daily_spike_warning():
    spiky = [
        {"paid_by": "P001", "amount": 1000, "currency": "JPY", "category": "Food", "date": "2025-04-01"},
        {"paid_by": "P002", "amount": 1000, "currency": "JPY", "category": "Food", "date": "2025-04-02"},
        {"paid_by": "P003", "amount": 9000, "currency": "JPY", "category": "Fun", "date": "2025-04-03"},
    ]

    warnings = generate_analytics(participants, spiky, DEFAULT_RATES)["warnings"]

    assert any("Spending on 2025-04-03" in w for w in warnings)


def test_no_expenses():
    result = generate_analytics(participants, [], DEFAULT_RATES)

    assert result["analytics"]["total_spent"] == 0.0
    assert result["analytics"]["highest_spending_day"] == {"date": None, "amount": 0.0}
    assert result["warnings"] == []
