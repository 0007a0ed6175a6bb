"""
Rates Module

This module refreshes the exchange-rate table from an external rate
service.

Features:
    - Fetch current rates for every supported currency against JPY
    - Stale-but-available policy: a failed or partial refresh keeps the
      previous rates in effect

Data Model:
    Service response (GET {RATES_API_URL}/JPY):
        - rates: dict of currency code -> units of that currency per 1 JPY

    Output - rate table:
        - currency code -> Decimal, "1 unit of this currency = N JPY"

Functions:
    fetch_live_rates: Refresh a rate table, falling back to the current one.
"""

import logging
from decimal import Decimal

import requests

from config.settings import get_rates_api_url, get_rates_timeout
from currencies import BASE_CURRENCY, SUPPORTED_CURRENCIES, to_decimal
from errors import ValidationError

logger = logging.getLogger(__name__)


def _parse_rates(payload: dict) -> dict:
    """
    Turn a service response into a rate table.

    The service quotes how much of each currency one JPY buys, so the
    multiplier into JPY is the reciprocal.

    Raises:
        ValidationError: If any supported currency is missing or not positive.
    """
    quoted = payload.get("rates") if isinstance(payload, dict) else None
    if not isinstance(quoted, dict):
        raise ValidationError("rate response has no 'rates' mapping")

    table = {BASE_CURRENCY: Decimal("1")}
    for currency in SUPPORTED_CURRENCIES:
        if currency == BASE_CURRENCY:
            continue
        if currency not in quoted:
            raise ValidationError(f"rate response is missing {currency}")
        per_base = to_decimal(quoted[currency])
        if per_base <= 0:
            raise ValidationError(f"rate response has non-positive {currency}: {per_base}")
        table[currency] = Decimal("1") / per_base

    return table


def fetch_live_rates(current_rates: dict) -> dict:
    """
    Fetch fresh exchange rates, keeping the current ones on any failure.

    Args:
        current_rates: Rate table currently in effect.

    Returns:
        dict: The fresh rate table, or a copy of `current_rates` when the
              request fails or the response is incomplete.

    Notes:
        - Never raises for network or response problems
        - No retries; callers may simply ask again later
    """
    url = f"{get_rates_api_url()}/{BASE_CURRENCY}"

    try:
        response = requests.get(url, timeout=get_rates_timeout())
        response.raise_for_status()
        table = _parse_rates(response.json())
    except (requests.RequestException, ValueError) as e:
        # ValidationError and JSON decode errors are both ValueErrors
        logger.warning("Rate refresh from %s failed, keeping previous rates: %s", url, e)
        return dict(current_rates)

    logger.info("Refreshed rates: %s", {c: str(r) for c, r in table.items()})
    return table
