"""
Participants Module

This module handles the trip roster for the trip expense ledger.

Features:
    - Add participants to a trip
    - Remove participants that no expense refers to
    - Retrieve the roster

Data Model:
    Participant stored at: trips/{trip_id}/participants/{participant_id}
    Fields:
        - participant_id: string (P001, P002, ... format)
        - name: string
        - avatar: string (image URL) or None

Functions:
    add_participant: Add a new participant to a trip.
    remove_participant: Delete a participant without expenses.
    get_participants: Get all participants for a trip.
"""

import logging
import re
from typing import Optional
from config.firebase_config import get_db

logger = logging.getLogger(__name__)


def _generate_next_participant_id(trip_id: str) -> str:
    """
    Generate the next sequential participant ID for a trip.

    Format: P001, P002, P003, ...

    IDs that do not match the P### format are ignored, and numbering
    continues after the highest existing number, so IDs of removed
    participants are not reused while a higher one exists.

    Args:
        trip_id: The ID of the trip.

    Returns:
        str: Next participant ID in format P### (e.g., P001, P002).
    """
    db = get_db()
    if db is None:
        raise RuntimeError("Firestore is not available")

    docs = db.collection("trips").document(trip_id).collection("participants").stream()

    max_num = 0
    pattern = re.compile(r'^P(\d+)$')

    for doc in docs:
        match = pattern.match(doc.id)
        if match:
            max_num = max(max_num, int(match.group(1)))

    return f"P{max_num + 1:03d}"


class Participant:
    """
    Represents a member of a trip.

    Attributes:
        participant_id (str): Stable unique identifier.
        name (str): Display name.
        avatar (str | None): Optional avatar image URL.
    """

    def __init__(
        self,
        name: str,
        participant_id: Optional[str] = None,
        avatar: Optional[str] = None
    ):
        self.participant_id = participant_id
        self.name = name
        self.avatar = avatar

    def to_dict(self) -> dict:
        """Convert participant to dictionary for Firestore storage."""
        return {
            "participant_id": self.participant_id,
            "name": self.name,
            "avatar": self.avatar
        }

    def __repr__(self) -> str:
        return f"Participant(id='{self.participant_id}', name='{self.name}')"

    @classmethod
    def from_dict(cls, data: dict) -> "Participant":
        """Create a Participant instance from a dictionary."""
        return cls(
            participant_id=data.get("participant_id"),
            name=data.get("name"),
            avatar=data.get("avatar")
        )


def _validate_non_empty_string(value: str, field_name: str) -> bool:
    """
    Validate that a string is non-empty.

    Raises:
        ValueError: If string is empty or not a string.
    """
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"{field_name} must be a non-empty string")
    return True


def add_participant(
    trip_id: str,
    name: str,
    avatar: Optional[str] = None
) -> Participant:
    """
    Add a new participant to a trip.

    Args:
        trip_id: The ID of the trip.
        name: Name of the participant.
        avatar: Optional avatar image URL.

    Returns:
        Participant: The created participant object.

    Raises:
        ValueError: If input validation fails.
        RuntimeError: If Firestore is not available.
    """
    _validate_non_empty_string(trip_id, "trip_id")
    _validate_non_empty_string(name, "name")

    db = get_db()
    if db is None:
        raise RuntimeError("Firestore is not available")

    participant = Participant(
        name=name.strip(),
        participant_id=_generate_next_participant_id(trip_id),
        avatar=avatar.strip() if avatar else None
    )

    doc_ref = db.collection("trips").document(trip_id) \
                .collection("participants").document(participant.participant_id)
    doc_ref.set(participant.to_dict())

    logger.info("Added participant %s to trip %s", participant.participant_id, trip_id)
    return participant


def remove_participant(trip_id: str, participant_id: str) -> Participant:
    """
    Remove a participant from a trip.

    A participant who paid for or shares in any expense cannot be removed,
    since that would silently change everyone else's balance.

    Args:
        trip_id: The ID of the trip.
        participant_id: The ID of the participant to remove.

    Returns:
        Participant: The removed participant.

    Raises:
        ValueError: If the participant is still referenced by an expense.
        LookupError: If the participant does not exist.
        RuntimeError: If Firestore is not available.
    """
    _validate_non_empty_string(trip_id, "trip_id")
    _validate_non_empty_string(participant_id, "participant_id")

    db = get_db()
    if db is None:
        raise RuntimeError("Firestore is not available")

    trip_ref = db.collection("trips").document(trip_id)
    doc_ref = trip_ref.collection("participants").document(participant_id)
    doc = doc_ref.get()

    if not doc.exists:
        raise LookupError(f"Participant {participant_id} not found in trip {trip_id}")

    for expense_doc in trip_ref.collection("expenses").stream():
        expense = expense_doc.to_dict()
        if expense.get("paid_by") == participant_id or participant_id in expense.get("split_with", []):
            raise ValueError(
                f"Participant {participant_id} is referenced by expense {expense_doc.id}"
            )

    doc_ref.delete()
    logger.info("Removed participant %s from trip %s", participant_id, trip_id)
    return Participant.from_dict(doc.to_dict())


def get_participants(trip_id: str) -> list[Participant]:
    """
    Get all participants for a trip, ordered by participant_id.

    Raises:
        ValueError: If trip_id is invalid.
        RuntimeError: If Firestore is not available.
    """
    _validate_non_empty_string(trip_id, "trip_id")

    db = get_db()
    if db is None:
        raise RuntimeError("Firestore is not available")

    docs = db.collection("trips").document(trip_id) \
             .collection("participants").stream()

    participants = [Participant.from_dict(doc.to_dict()) for doc in docs]
    participants.sort(key=lambda p: p.participant_id)
    return participants
