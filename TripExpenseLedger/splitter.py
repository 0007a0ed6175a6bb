"""
Splitter Module

This module handles the balance calculation for the trip expense ledger.

Features:
    - Conversion of every expense into the base currency (JPY)
    - Equal splitting among the members an expense is split with
    - Per-participant net balance calculation
    - Decimal accumulation with no intermediate rounding

Data Model:
    Input - participants (list of dicts):
        - participant_id: string

    Input - expenses (list of dicts):
        - paid_by: string (participant_id)
        - amount: number (> 0)
        - currency: string (JPY, HKD, AUD)
        - split_with: list of participant_ids (non-empty)

    Input - rates (dict):
        - currency code -> multiplier into JPY

    Output - balances (dict keyed by participant_id):
        - Decimal net balance in JPY
            - Positive = participant is owed money
            - Negative = participant owes money

Functions:
    compute_balances: Calculate per-participant net balances.
    calculate_participant_totals: Paid / share / net breakdown per participant.
"""

import logging
from decimal import Decimal

from currencies import convert_to_base
from errors import ValidationError

logger = logging.getLogger(__name__)


def _check_expense(expense: dict, known_ids) -> None:
    """
    Enforce the preconditions the balance calculation relies on.

    Raises:
        ValidationError: If split_with is empty or paid_by is unknown.
    """
    expense_id = expense.get("expense_id", "?")

    if not expense.get("split_with"):
        raise ValidationError(f"expense {expense_id} is not split with anyone")

    if expense.get("paid_by") not in known_ids:
        raise ValidationError(
            f"expense {expense_id} was paid by unknown participant '{expense.get('paid_by')}'"
        )


def _iter_converted(expenses: list[dict], known_ids, rates: dict):
    """Yield (expense, amount_in_base, share) for every valid expense."""
    for expense in expenses:
        _check_expense(expense, known_ids)
        amount_in_base = convert_to_base(expense["amount"], expense.get("currency"), rates)
        share = amount_in_base / Decimal(len(expense["split_with"]))
        yield expense, amount_in_base, share


def compute_balances(expenses: list[dict], participants: list[dict], rates: dict) -> dict:
    """
    Calculate each participant's net balance in the base currency.

    For each expense:
        1. amount_in_base = amount * rate(currency), rate defaults to 1
        2. share = amount_in_base / len(split_with)
        3. The payer is credited the full amount_in_base (even when the
           payer is not in split_with)
        4. Every known participant in split_with is debited one share;
           unknown ids are skipped

    Args:
        expenses: List of expense dicts with paid_by, amount, currency, split_with.
        participants: List of participant dicts with participant_id.
        rates: Rate table (currency -> multiplier into JPY).

    Returns:
        dict: participant_id -> Decimal balance. Every participant appears,
              including those without expenses.

    Raises:
        ValidationError: If an expense has an empty split_with or is paid
                         by an unknown participant.

    Notes:
        - Inputs are not modified
        - Nothing is rounded; round only when presenting
    """
    balances = {p["participant_id"]: Decimal("0") for p in participants}

    for expense, amount_in_base, share in _iter_converted(expenses, balances, rates):
        balances[expense["paid_by"]] += amount_in_base

        for participant_id in expense["split_with"]:
            if participant_id in balances:
                balances[participant_id] -= share

    logger.debug("Computed balances for %d participants over %d expenses",
                 len(balances), len(expenses))
    return balances


def calculate_participant_totals(expenses: list[dict], participants: list[dict], rates: dict) -> dict:
    """
    Break each participant's balance into what they paid and what they owe.

    Uses the same conversion and skipping rules as compute_balances, so
    net_balance here always equals compute_balances()[participant_id].

    Args:
        expenses: List of expense dicts.
        participants: List of participant dicts.
        rates: Rate table.

    Returns:
        dict: Keyed by participant_id containing:
            - total_paid: Decimal (JPY paid for the group)
            - total_share: Decimal (JPY consumed)
            - net_balance: Decimal (total_paid - total_share)
    """
    totals = {
        p["participant_id"]: {"total_paid": Decimal("0"), "total_share": Decimal("0")}
        for p in participants
    }

    for expense, amount_in_base, share in _iter_converted(expenses, totals, rates):
        totals[expense["paid_by"]]["total_paid"] += amount_in_base

        for participant_id in expense["split_with"]:
            if participant_id in totals:
                totals[participant_id]["total_share"] += share

    for entry in totals.values():
        entry["net_balance"] = entry["total_paid"] - entry["total_share"]

    return totals
