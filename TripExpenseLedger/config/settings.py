"""
Settings Module

Environment-driven configuration for the trip expense ledger.

Variables:
    RATES_API_URL       - exchange rate service (default exchangerate-api.com)
    RATES_TIMEOUT       - request timeout in seconds (default 5)
    SETTLEMENT_EPSILON  - balance tolerance in base currency (default 0.01)
    LOG_LEVEL           - logging level name (default INFO)
"""

import logging
import os
from decimal import Decimal, InvalidOperation


DEFAULT_RATES_API_URL = "https://api.exchangerate-api.com/v4/latest"
DEFAULT_RATES_TIMEOUT = 5.0
DEFAULT_SETTLEMENT_EPSILON = Decimal("0.01")

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def get_rates_api_url() -> str:
    return os.environ.get("RATES_API_URL", DEFAULT_RATES_API_URL).rstrip("/")


def get_rates_timeout() -> float:
    try:
        return float(os.environ.get("RATES_TIMEOUT", DEFAULT_RATES_TIMEOUT))
    except ValueError:
        return DEFAULT_RATES_TIMEOUT


def get_settlement_epsilon() -> Decimal:
    """
    Tolerance below which a balance counts as settled.

    Falls back to 0.01 when the variable is missing, unparsable or not positive.
    """
    raw = os.environ.get("SETTLEMENT_EPSILON")
    if raw is None:
        return DEFAULT_SETTLEMENT_EPSILON
    try:
        epsilon = Decimal(raw)
    except InvalidOperation:
        return DEFAULT_SETTLEMENT_EPSILON
    if not epsilon.is_finite() or epsilon <= 0:
        return DEFAULT_SETTLEMENT_EPSILON
    return epsilon


def configure_logging() -> None:
    level = os.environ.get("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(level=getattr(logging, level, logging.INFO), format=LOG_FORMAT)
