"""
Analytics Module

This module provides spending analytics for the trip expense ledger.

Features:
    - Total trip spend in the base currency
    - Category-wise expense breakdown
    - Daily spending analysis
    - Highest spending day identification
    - Per-participant payer totals
    - Smart warnings for spending imbalances

Data Model:
    Input - participants: list of dicts with:
        - participant_id: string
        - name: string (optional)

    Input - expenses: list of dicts with:
        - paid_by: string
        - amount: number
        - currency: string
        - category: string
        - date: string (YYYY-MM-DD)

    Input - rates: rate table (currency -> multiplier into JPY)

    Output - dict containing:
        - analytics: dict with total_spent, category_breakdown, etc. (JPY)
        - warnings: list of warning strings

Functions:
    generate_analytics: Generate analytics and warnings from expense data.
"""

from collections import defaultdict
from decimal import Decimal

from currencies import convert_to_base, format_currency
from utils import round_money


# Warning thresholds (percent of total spend / multiple of daily average)
PAYER_SHARE_LIMIT = 40
CATEGORY_SHARE_LIMIT = 50
DAILY_SPIKE_FACTOR = 2


def generate_analytics(participants: list[dict], expenses: list[dict], rates: dict) -> dict:
    """
    Generate analytics and smart warnings from expense data.

    Analytics computed (all in JPY):
        - total_spent: Sum of all converted expenses
        - category_breakdown: Total per category
        - daily_spending: Total per date
        - highest_spending_day: Date and amount of maximum daily spend
        - payer_totals: Total paid by each participant

    Warnings generated (rule-based):
        - If one participant paid > 40% of total trip cost
        - If one category > 50% of total spend
        - If a day's spend > 2x average daily spend

    Args:
        participants: List of participant dicts (name optional).
        expenses: List of expense dicts.
        rates: Rate table.

    Returns:
        dict: Contains two keys:
            - analytics: dict with the values above, rounded to 2 places
            - warnings: list of warning strings
    """
    category_totals = defaultdict(Decimal)
    daily_totals = defaultdict(Decimal)
    payer_totals = defaultdict(Decimal)
    total_spent = Decimal("0")

    for expense in expenses:
        amount = convert_to_base(expense["amount"], expense.get("currency"), rates)

        category_totals[expense["category"]] += amount
        daily_totals[expense["date"]] += amount
        payer_totals[expense["paid_by"]] += amount
        total_spent += amount

    highest_spending_day = {"date": None, "amount": 0.0}
    if daily_totals:
        max_date = max(sorted(daily_totals), key=daily_totals.get)
        highest_spending_day = {
            "date": max_date,
            "amount": round_money(daily_totals[max_date])
        }

    analytics = {
        "total_spent": round_money(total_spent),
        "category_breakdown": {c: round_money(a) for c, a in category_totals.items()},
        "daily_spending": {d: round_money(a) for d, a in sorted(daily_totals.items())},
        "highest_spending_day": highest_spending_day,
        "payer_totals": {p: round_money(a) for p, a in payer_totals.items()}
    }

    names = {p["participant_id"]: p.get("name") or p["participant_id"] for p in participants}
    warnings = []

    if total_spent > 0:
        for payer_id, amount in payer_totals.items():
            percentage = amount / total_spent * 100
            if percentage > PAYER_SHARE_LIMIT:
                warnings.append(
                    f"Warning: {names.get(payer_id, payer_id)} paid {round_money(percentage)}% "
                    f"of total expenses ({format_currency(amount)} of {format_currency(total_spent)})"
                )

        for category, amount in category_totals.items():
            percentage = amount / total_spent * 100
            if percentage > CATEGORY_SHARE_LIMIT:
                warnings.append(
                    f"Warning: '{category}' accounts for {round_money(percentage)}% of total spend "
                    f"({format_currency(amount)} of {format_currency(total_spent)})"
                )

    if len(daily_totals) > 1:
        avg_daily = total_spent / Decimal(len(daily_totals))
        for date, amount in sorted(daily_totals.items()):
            if amount > avg_daily * DAILY_SPIKE_FACTOR:
                warnings.append(
                    f"Warning: Spending on {date} ({format_currency(amount)}) "
                    f"exceeds {DAILY_SPIKE_FACTOR}x average daily spend ({format_currency(avg_daily)})"
                )

    return {
        "analytics": analytics,
        "warnings": warnings
    }
