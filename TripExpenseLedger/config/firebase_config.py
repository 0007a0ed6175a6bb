"""
Firestore client factory.

Credentials come from FIREBASE_SERVICE_ACCOUNT (the service account JSON
itself, as used on hosted deployments) or from the key file named by
FIREBASE_CREDENTIALS_PATH (default config/serviceAccountKey.json).
"""

import json
import logging
import os
import firebase_admin
from firebase_admin import credentials, firestore

logger = logging.getLogger(__name__)

DEFAULT_CREDENTIALS_PATH = "config/serviceAccountKey.json"

_db = None


def _load_credentials():
    if "FIREBASE_SERVICE_ACCOUNT" in os.environ:
        return credentials.Certificate(json.loads(os.environ["FIREBASE_SERVICE_ACCOUNT"]))
    return credentials.Certificate(
        os.environ.get("FIREBASE_CREDENTIALS_PATH", DEFAULT_CREDENTIALS_PATH)
    )


def get_db():
    """
    Return the cached Firestore client, creating it on first use.

    Raises:
        RuntimeError: If Firebase cannot be initialised.
    """
    global _db
    if _db:
        return _db

    try:
        if not firebase_admin._apps:
            firebase_admin.initialize_app(_load_credentials())
        _db = firestore.client()
    except Exception as e:
        raise RuntimeError(f"Firebase init failed: {e}") from e

    logger.info("Firestore client initialised")
    return _db


def set_db(client) -> None:
    """Replace the cached Firestore client (used by tests and scripts)."""
    global _db
    _db = client
