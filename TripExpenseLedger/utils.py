"""
Utilities Module

This module provides presentation helpers for the trip expense ledger.

Features:
    - Rounding at the presentation boundary
    - Per-participant expense breakdown explanations
    - Conversion of balances and settlements into a display currency

Data Model:
    Input - participants: list of dicts with participant_id (name optional)

    Input - expenses: list of dicts with:
        - expense_id: string (optional)
        - amount: number
        - currency: string
        - category: string
        - paid_by: string
        - split_with: list of participant_ids
        - date: string (YYYY-MM-DD)

    Input - totals: output of splitter.calculate_participant_totals()

Functions:
    round_money: Round an amount to 2 decimal places as float.
    explain_participant_share: Detailed breakdown for one participant.
    explain_all_participants: Detailed breakdown for all participants.
    present_balances: Balances converted and rounded for display.
    present_settlements: Settlements converted and rounded for display.
"""

from decimal import Decimal, ROUND_HALF_UP

from currencies import convert_from_base, convert_to_base, to_decimal


def round_money(value) -> float:
    """
    Round an amount to 2 decimal places and convert to float.

    Only call this when presenting or storing results, never while
    accumulating.
    """
    return float(to_decimal(value).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def explain_participant_share(
    participant_id: str,
    participants: list[dict],
    expenses: list[dict],
    rates: dict,
    totals: dict
) -> dict:
    """
    Explain how a participant's share was calculated.

    For each expense the participant is split with:
        - Shows expense details (id, category, date, original amount)
        - Shows the converted JPY amount and the split size
        - Shows the participant's share (amount_in_base / len(split_with))

    Args:
        participant_id: ID of the participant to explain.
        participants: List of participant dicts.
        expenses: List of expense dicts.
        rates: Rate table.
        totals: Output from calculate_participant_totals().

    Returns:
        dict: Explanation containing:
            - participant_id: string
            - expense_contributions: list of dicts with expense breakdown
            - total_share: float
            - total_paid: float
            - net_balance: float
            - error: string (only if the participant is unknown)
    """
    known_ids = {p["participant_id"] for p in participants}

    if participant_id not in known_ids:
        return {
            "participant_id": participant_id,
            "expense_contributions": [],
            "total_share": 0.0,
            "total_paid": 0.0,
            "net_balance": 0.0,
            "error": f"Participant {participant_id} not found"
        }

    expense_contributions = []

    for expense in expenses:
        split_with = expense.get("split_with", [])
        if participant_id not in split_with:
            continue

        amount_in_base = convert_to_base(expense["amount"], expense.get("currency"), rates)
        share = amount_in_base / Decimal(len(split_with))

        expense_contributions.append({
            "expense_id": expense.get("expense_id", "N/A"),
            "category": expense.get("category", "unknown"),
            "date": expense.get("date"),
            "amount": round_money(expense["amount"]),
            "currency": expense.get("currency"),
            "amount_in_base": round_money(amount_in_base),
            "paid_by": expense.get("paid_by"),
            "num_split": len(split_with),
            "participant_share": round_money(share)
        })

    participant_totals = totals.get(participant_id, {})

    return {
        "participant_id": participant_id,
        "expense_contributions": expense_contributions,
        "total_share": round_money(participant_totals.get("total_share", 0)),
        "total_paid": round_money(participant_totals.get("total_paid", 0)),
        "net_balance": round_money(participant_totals.get("net_balance", 0))
    }


def explain_all_participants(
    participants: list[dict],
    expenses: list[dict],
    rates: dict,
    totals: dict
) -> list[dict]:
    """
    Generate explanations for all participants, ordered by participant_id.

    Includes participants who have no expenses.
    """
    explanations = [
        explain_participant_share(p["participant_id"], participants, expenses, rates, totals)
        for p in participants
    ]
    explanations.sort(key=lambda x: x["participant_id"])
    return explanations


def present_balances(balances: dict, currency: str, rates: dict) -> dict:
    """Convert JPY balances into `currency` and round them."""
    return {
        participant_id: round_money(convert_from_base(balance, currency, rates))
        for participant_id, balance in balances.items()
    }


def present_settlements(settlements: list[dict], currency: str, rates: dict) -> list[dict]:
    """Convert JPY settlement amounts into `currency` and round them."""
    return [
        {
            "from_participant": s["from_participant"],
            "to_participant": s["to_participant"],
            "amount": round_money(convert_from_base(s["amount"], currency, rates))
        }
        for s in settlements
    ]
