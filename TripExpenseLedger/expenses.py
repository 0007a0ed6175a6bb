"""
Expenses Module

This module handles all expense-related operations for the trip expense
ledger.

Features:
    - Add/edit/delete expenses
    - Multi-currency amounts (JPY, HKD, AUD)
    - Free-text categories
    - Track who paid and who the expense is split with

Data Model:
    Expense stored at: trips/{trip_id}/expenses/{expense_id}
    Fields:
        - expense_id: string (E001, E002, ... format)
        - amount: float (must be > 0)
        - currency: string (JPY, HKD, AUD)
        - category: string (free text, non-empty)
        - paid_by: string (participant_id who paid)
        - split_with: list of participant_ids (non-empty)
        - date: string (YYYY-MM-DD)

Functions:
    add_expense: Add a new expense to a trip.
    update_expense: Replace the fields of an existing expense.
    delete_expense: Delete an expense.
    get_expenses: Get all expenses for a trip.
"""

import logging
import re
from datetime import date as date_cls, datetime
from typing import Optional
from config.firebase_config import get_db
from currencies import SUPPORTED_CURRENCIES, to_decimal
from errors import ValidationError

logger = logging.getLogger(__name__)


class Expense:
    """
    Represents a single shared expense.

    Attributes:
        expense_id (str): Unique identifier in E### format.
        amount (float): Amount in `currency` (must be > 0).
        currency (str): One of SUPPORTED_CURRENCIES.
        category (str): Free-text label, e.g. "Ramen".
        paid_by (str): Participant ID of who paid.
        split_with (list[str]): Participant IDs sharing the cost.
        date (str): Date of expense (YYYY-MM-DD).
    """

    def __init__(
        self,
        expense_id: str,
        amount: float,
        currency: str,
        category: str,
        paid_by: str,
        split_with: list[str],
        date: str
    ):
        self.expense_id = expense_id
        self.amount = amount
        self.currency = currency
        self.category = category
        self.paid_by = paid_by
        self.split_with = split_with
        self.date = date

    def to_dict(self) -> dict:
        """Convert expense to dictionary for Firestore storage."""
        return {
            "expense_id": self.expense_id,
            "amount": self.amount,
            "currency": self.currency,
            "category": self.category,
            "paid_by": self.paid_by,
            "split_with": list(self.split_with),
            "date": self.date
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Expense":
        """Create an Expense instance from a dictionary."""
        return cls(
            expense_id=data.get("expense_id"),
            amount=data.get("amount"),
            currency=data.get("currency"),
            category=data.get("category"),
            paid_by=data.get("paid_by"),
            split_with=list(data.get("split_with", [])),
            date=data.get("date")
        )

    def __repr__(self) -> str:
        return (
            f"Expense(id='{self.expense_id}', paid_by='{self.paid_by}', "
            f"amount={self.amount} {self.currency}, category='{self.category}')"
        )


def _generate_next_expense_id(trip_id: str) -> str:
    """
    Generate the next sequential expense ID for a trip.

    Format: E001, E002, E003, ...

    Args:
        trip_id: The ID of the trip.

    Returns:
        str: Next expense ID in format E### (e.g., E001, E002).
    """
    db = get_db()
    if db is None:
        raise RuntimeError("Firestore is not available")

    docs = db.collection("trips").document(trip_id).collection("expenses").stream()

    # Legacy documents may not follow the E### format
    max_num = 0
    pattern = re.compile(r'^E(\d+)$')

    for doc in docs:
        match = pattern.match(doc.id)
        if match:
            max_num = max(max_num, int(match.group(1)))

    return f"E{max_num + 1:03d}"


def _validate_date(date_str: str, field_name: str) -> bool:
    """
    Validate date string format (YYYY-MM-DD).

    Raises:
        ValidationError: If date format is invalid.
    """
    try:
        datetime.strptime(date_str, "%Y-%m-%d")
        return True
    except (TypeError, ValueError):
        raise ValidationError(f"{field_name} must be in YYYY-MM-DD format, got: {date_str}")


def _validate_non_empty_string(value: str, field_name: str) -> bool:
    """
    Validate that a string is non-empty.

    Raises:
        ValidationError: If string is empty or not a string.
    """
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field_name} must be a non-empty string")
    return True


def _get_participant_ids(trip_id: str) -> set[str]:
    """Get all participant IDs for a trip."""
    db = get_db()
    if db is None:
        raise RuntimeError("Firestore is not available")

    docs = db.collection("trips").document(trip_id).collection("participants").stream()
    return {doc.id for doc in docs}


def validate_expense_fields(
    amount,
    currency: str,
    category: str,
    paid_by: str,
    split_with: list[str],
    date: str,
    participant_ids: set[str]
) -> None:
    """
    Validate the fields of an expense against a trip roster.

    Args:
        amount: Expense amount (must be > 0).
        currency: Currency code.
        category: Free-text category.
        paid_by: Participant ID of the payer.
        split_with: Participant IDs sharing the cost.
        date: Expense date (YYYY-MM-DD).
        participant_ids: Known participant IDs of the trip.

    Raises:
        ValidationError: If any field is invalid.
    """
    _validate_non_empty_string(paid_by, "paid_by")
    _validate_non_empty_string(category, "category")
    _validate_date(date, "date")

    if to_decimal(amount) <= 0:
        raise ValidationError(f"amount must be a positive number, got: {amount}")

    if currency not in SUPPORTED_CURRENCIES:
        raise ValidationError(f"currency must be one of {SUPPORTED_CURRENCIES}, got: {currency}")

    if not isinstance(split_with, list) or len(split_with) == 0:
        raise ValidationError("split_with must be a non-empty list of participant IDs")

    if len(set(split_with)) != len(split_with):
        raise ValidationError("split_with must not contain duplicates")

    if paid_by not in participant_ids:
        raise ValidationError(f"paid_by '{paid_by}' is not a participant of this trip")

    for participant_id in split_with:
        if participant_id not in participant_ids:
            raise ValidationError(f"split_with member '{participant_id}' is not a participant of this trip")


def add_expense(
    trip_id: str,
    amount: float,
    currency: str,
    category: str,
    paid_by: str,
    split_with: list[str],
    date: Optional[str] = None
) -> Expense:
    """
    Add a new expense to a trip.

    Args:
        trip_id: The ID of the trip.
        amount: Amount of the expense in `currency` (must be > 0).
        currency: One of SUPPORTED_CURRENCIES.
        category: Free-text category.
        paid_by: Participant ID of who paid.
        split_with: Participant IDs sharing the cost.
        date: Date of the expense (YYYY-MM-DD), defaults to today.

    Returns:
        Expense: The created expense object.

    Raises:
        ValidationError: If input validation fails.
        RuntimeError: If Firestore is not available.

    Notes:
        - The payer does NOT have to be in split_with
        - No cost splitting is performed here
    """
    _validate_non_empty_string(trip_id, "trip_id")
    if date is None:
        date = date_cls.today().isoformat()

    db = get_db()
    if db is None:
        raise RuntimeError("Firestore is not available")

    validate_expense_fields(
        amount, currency, category, paid_by, split_with, date,
        _get_participant_ids(trip_id)
    )

    expense = Expense(
        expense_id=_generate_next_expense_id(trip_id),
        amount=float(amount),
        currency=currency,
        category=category.strip(),
        paid_by=paid_by,
        split_with=list(split_with),
        date=date
    )

    doc_ref = db.collection("trips").document(trip_id) \
                .collection("expenses").document(expense.expense_id)
    doc_ref.set(expense.to_dict())

    logger.info("Added expense %s to trip %s", expense.expense_id, trip_id)
    return expense


def update_expense(
    trip_id: str,
    expense_id: str,
    amount: float,
    currency: str,
    category: str,
    paid_by: str,
    split_with: list[str],
    date: str
) -> Expense:
    """
    Replace every field of an existing expense, keeping its ID.

    Raises:
        ValidationError: If input validation fails.
        LookupError: If the expense does not exist.
        RuntimeError: If Firestore is not available.
    """
    _validate_non_empty_string(trip_id, "trip_id")
    _validate_non_empty_string(expense_id, "expense_id")

    db = get_db()
    if db is None:
        raise RuntimeError("Firestore is not available")

    doc_ref = db.collection("trips").document(trip_id) \
                .collection("expenses").document(expense_id)
    if not doc_ref.get().exists:
        raise LookupError(f"Expense {expense_id} not found in trip {trip_id}")

    validate_expense_fields(
        amount, currency, category, paid_by, split_with, date,
        _get_participant_ids(trip_id)
    )

    expense = Expense(
        expense_id=expense_id,
        amount=float(amount),
        currency=currency,
        category=category.strip(),
        paid_by=paid_by,
        split_with=list(split_with),
        date=date
    )
    doc_ref.set(expense.to_dict())

    logger.info("Updated expense %s in trip %s", expense_id, trip_id)
    return expense


def delete_expense(trip_id: str, expense_id: str) -> None:
    """
    Delete an expense.

    Raises:
        LookupError: If the expense does not exist.
        RuntimeError: If Firestore is not available.
    """
    _validate_non_empty_string(trip_id, "trip_id")
    _validate_non_empty_string(expense_id, "expense_id")

    db = get_db()
    if db is None:
        raise RuntimeError("Firestore is not available")

    doc_ref = db.collection("trips").document(trip_id) \
                .collection("expenses").document(expense_id)
    if not doc_ref.get().exists:
        raise LookupError(f"Expense {expense_id} not found in trip {trip_id}")

    doc_ref.delete()
    logger.info("Deleted expense %s from trip %s", expense_id, trip_id)


def get_expenses(trip_id: str) -> list[Expense]:
    """
    Get all expenses for a trip, ordered by expense_id.

    Raises:
        ValidationError: If trip_id is invalid.
        RuntimeError: If Firestore is not available.
    """
    _validate_non_empty_string(trip_id, "trip_id")

    db = get_db()
    if db is None:
        raise RuntimeError("Firestore is not available")

    docs = db.collection("trips").document(trip_id) \
             .collection("expenses").stream()

    expenses = [Expense.from_dict(doc.to_dict()) for doc in docs]
    expenses.sort(key=lambda e: e.expense_id)
    return expenses
