"""
Firebase Store Module

This module handles trip settings and computed result snapshots in
Firebase Firestore for the trip expense ledger.

Features:
    - Save / load the trip's rate table
    - Save / load the display currency preference
    - Save balance and settlement snapshots
    - All saves are idempotent (safe to overwrite)

Firestore Structure:
    trips/{trip_id}/settings/rates
        - rates: dict (currency -> float)
        - updated_at: timestamp

    trips/{trip_id}/settings/display
        - currency: string
        - updated_at: timestamp

    trips/{trip_id}/results/balances/balances/{participant_id}
        - participant_id: string
        - net_balance: float (JPY, rounded to 2 places)
        - updated_at: timestamp

    trips/{trip_id}/results/settlements/settlements/{settlement_id}
        - settlement_id: string (S001, S002, ...)
        - from_participant: string
        - to_participant: string
        - amount: float (JPY, rounded to 2 places)
        - updated_at: timestamp

Functions:
    save_rates / get_rates: Trip rate table.
    save_display_currency / get_display_currency: Display preference.
    save_balances: Save participant balances.
    save_settlements: Save settlement transactions.
    get_saved_balances / get_saved_settlements: Read the last snapshot.
"""

from datetime import datetime, timezone
from config.firebase_config import get_db
from currencies import BASE_CURRENCY, DEFAULT_RATES, SUPPORTED_CURRENCIES, validate_rates
from errors import ValidationError
from utils import round_money


def _get_timestamp() -> str:
    """Get current UTC timestamp in ISO format."""
    return datetime.now(timezone.utc).isoformat()


def _validate_trip_id(trip_id: str) -> None:
    """
    Validate that trip_id is a non-empty string.

    Raises:
        ValueError: If trip_id is invalid.
    """
    if not isinstance(trip_id, str) or not trip_id.strip():
        raise ValueError("trip_id must be a non-empty string")


def _trip_db(trip_id: str):
    _validate_trip_id(trip_id)

    db = get_db()
    if db is None:
        raise RuntimeError("Firestore is not available")
    return db.collection("trips").document(trip_id)


def save_rates(trip_id: str, rates: dict) -> dict:
    """
    Validate and store the trip's rate table.

    Args:
        trip_id: The ID of the trip.
        rates: Mapping of currency code to multiplier into JPY.

    Returns:
        dict: The normalised rate table that was stored (Decimal values).

    Raises:
        ValidationError: If the rate table is invalid.
        RuntimeError: If Firestore is not available.
    """
    trip_ref = _trip_db(trip_id)
    normalised = validate_rates(rates)

    trip_ref.collection("settings").document("rates").set({
        "rates": {currency: float(rate) for currency, rate in normalised.items()},
        "updated_at": _get_timestamp()
    })
    return normalised


def get_rates(trip_id: str) -> dict:
    """
    Load the trip's rate table.

    Returns:
        dict: Stored rates, or DEFAULT_RATES when none were saved yet.
    """
    trip_ref = _trip_db(trip_id)
    doc = trip_ref.collection("settings").document("rates").get()

    if not doc.exists:
        return dict(DEFAULT_RATES)
    return validate_rates(doc.to_dict().get("rates", {}))


def save_display_currency(trip_id: str, currency: str) -> str:
    """
    Store the currency amounts are displayed in.

    Raises:
        ValidationError: If the currency is not supported.
    """
    if currency not in SUPPORTED_CURRENCIES:
        raise ValidationError(f"currency must be one of {SUPPORTED_CURRENCIES}, got: {currency}")

    trip_ref = _trip_db(trip_id)
    trip_ref.collection("settings").document("display").set({
        "currency": currency,
        "updated_at": _get_timestamp()
    })
    return currency


def get_display_currency(trip_id: str) -> str:
    """Load the display currency, defaulting to the base currency."""
    trip_ref = _trip_db(trip_id)
    doc = trip_ref.collection("settings").document("display").get()

    if not doc.exists:
        return BASE_CURRENCY
    return doc.to_dict().get("currency", BASE_CURRENCY)


def save_balances(trip_id: str, balances: dict) -> dict:
    """
    Save participant balances to Firestore.

    Stores each participant's balance as a separate document at:
        trips/{trip_id}/results/balances/balances/{participant_id}

    Documents of participants missing from `balances` (e.g. removed from
    the trip since the previous snapshot) are deleted.

    Args:
        trip_id: The ID of the trip.
        balances: participant_id -> net balance (JPY).

    Returns:
        dict: Summary of saved documents with count and participant IDs.

    Raises:
        ValueError: If trip_id is invalid.
        RuntimeError: If Firestore is not available.
    """
    trip_ref = _trip_db(trip_id)
    timestamp = _get_timestamp()
    saved_ids = []

    balances_ref = trip_ref.collection("results").document("balances") \
                           .collection("balances")

    for participant_id, balance in balances.items():
        balances_ref.document(participant_id).set({
            "participant_id": participant_id,
            "net_balance": round_money(balance),
            "updated_at": timestamp
        })
        saved_ids.append(participant_id)

    for doc in balances_ref.stream():
        if doc.id not in saved_ids:
            balances_ref.document(doc.id).delete()

    return {
        "saved_count": len(saved_ids),
        "participant_ids": saved_ids,
        "updated_at": timestamp
    }


def save_settlements(trip_id: str, settlements: list) -> dict:
    """
    Save settlement transactions to Firestore.

    Generates sequential settlement IDs (S001, S002, ...) in the order the
    transactions should be carried out, and removes documents left over
    from a previous, longer snapshot.

    Args:
        trip_id: The ID of the trip.
        settlements: List of settlement dicts (from_participant,
                     to_participant, amount).

    Returns:
        dict: Summary of saved documents with count and settlement IDs.

    Raises:
        ValueError: If trip_id is invalid.
        RuntimeError: If Firestore is not available.
    """
    trip_ref = _trip_db(trip_id)
    timestamp = _get_timestamp()
    saved_ids = []

    settlements_ref = trip_ref.collection("results").document("settlements") \
                              .collection("settlements")

    for index, settlement in enumerate(settlements, start=1):
        settlement_id = f"S{index:03d}"
        settlements_ref.document(settlement_id).set({
            "settlement_id": settlement_id,
            "from_participant": settlement["from_participant"],
            "to_participant": settlement["to_participant"],
            "amount": round_money(settlement["amount"]),
            "updated_at": timestamp
        })
        saved_ids.append(settlement_id)

    for doc in settlements_ref.stream():
        if doc.id not in saved_ids:
            settlements_ref.document(doc.id).delete()

    return {
        "saved_count": len(saved_ids),
        "settlement_ids": saved_ids,
        "updated_at": timestamp
    }


def get_saved_settlements(trip_id: str) -> list[dict]:
    """Load the last saved settlement snapshot, ordered by settlement_id."""
    trip_ref = _trip_db(trip_id)
    docs = trip_ref.collection("results").document("settlements") \
                   .collection("settlements").stream()

    settlements = [doc.to_dict() for doc in docs]
    settlements.sort(key=lambda s: s["settlement_id"])
    return settlements


def get_saved_balances(trip_id: str) -> dict:
    """Load the last saved balance snapshot as participant_id -> float."""
    trip_ref = _trip_db(trip_id)
    docs = trip_ref.collection("results").document("balances") \
                   .collection("balances").stream()

    return {doc.id: doc.to_dict().get("net_balance", 0.0) for doc in docs}
