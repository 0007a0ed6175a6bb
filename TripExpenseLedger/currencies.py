"""
Currencies Module

This module holds the currency rules for the trip expense ledger.

Features:
    - Fixed set of supported currencies (JPY, HKD, AUD)
    - Default rate table relative to the base currency (JPY)
    - Conversion into and out of the base currency
    - Currency symbols for display

Data Model:
    Rate table - dict keyed by currency code:
        - value: positive multiplier, "1 unit of this currency = N JPY"
        - the base currency always maps to 1

Functions:
    get_rate: Look up a multiplier, defaulting to 1.
    convert_to_base: Convert an amount into the base currency.
    convert_from_base: Convert a base amount into a display currency.
    validate_rates: Check and normalise a rate table.
    format_currency: Format an amount with its currency symbol.
"""

import logging
from decimal import Decimal, InvalidOperation

from errors import ValidationError

logger = logging.getLogger(__name__)


BASE_CURRENCY = "JPY"

SUPPORTED_CURRENCIES = ("JPY", "HKD", "AUD")

DEFAULT_RATES = {
    "JPY": Decimal("1"),
    "HKD": Decimal("19.2"),
    "AUD": Decimal("96.5"),
}

CURRENCY_SYMBOLS = {
    "JPY": "¥",
    "HKD": "$",
    "AUD": "$",
}


def to_decimal(value) -> Decimal:
    """
    Convert a number or numeric string to Decimal without float noise.

    Args:
        value: int, float, str or Decimal.

    Returns:
        Decimal: The converted value.

    Raises:
        ValidationError: If the value is not a finite number.
    """
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, bool):
        raise ValidationError(f"not a number: {value!r}")
    else:
        try:
            result = Decimal(str(value))
        except (InvalidOperation, ValueError, TypeError):
            raise ValidationError(f"not a number: {value!r}")
    if not result.is_finite():
        raise ValidationError(f"not a finite number: {value!r}")
    return result


def get_rate(rates: dict, currency: str) -> Decimal:
    """
    Look up the base-currency multiplier for a currency.

    A currency missing from the table (or mapped to a non-positive value)
    is treated as already being in the base currency.

    Args:
        rates: Rate table.
        currency: Currency code.

    Returns:
        Decimal: Multiplier, 1 when absent.
    """
    raw = rates.get(currency)
    if raw is None:
        if currency != BASE_CURRENCY:
            logger.warning("No rate for %s, treating it as %s", currency, BASE_CURRENCY)
        return Decimal("1")

    try:
        rate = to_decimal(raw)
    except ValidationError:
        logger.warning("Unusable rate %r for %s, treating it as 1", raw, currency)
        return Decimal("1")

    if rate <= 0:
        logger.warning("Non-positive rate %s for %s, treating it as 1", rate, currency)
        return Decimal("1")
    return rate


def convert_to_base(amount, currency: str, rates: dict) -> Decimal:
    """Convert an amount in `currency` into the base currency."""
    return to_decimal(amount) * get_rate(rates, currency)


def convert_from_base(amount, target: str, rates: dict) -> Decimal:
    """Convert a base-currency amount into `target` for display."""
    amount = to_decimal(amount)
    if target == BASE_CURRENCY:
        return amount
    return amount / get_rate(rates, target)


def validate_rates(rates: dict) -> dict:
    """
    Validate a rate table and return a normalised copy.

    Args:
        rates: Mapping of currency code to multiplier.

    Returns:
        dict: Copy with Decimal values, base currency forced to 1, and
              any supported currency missing from `rates` filled in from
              DEFAULT_RATES.

    Raises:
        ValidationError: On unknown currency codes or non-positive rates.
    """
    if not isinstance(rates, dict):
        raise ValidationError("rates must be a mapping of currency code to rate")

    normalised = dict(DEFAULT_RATES)
    for currency, raw in rates.items():
        if currency not in SUPPORTED_CURRENCIES:
            raise ValidationError(
                f"currency must be one of {SUPPORTED_CURRENCIES}, got: {currency}"
            )
        rate = to_decimal(raw)
        if rate <= 0:
            raise ValidationError(f"rate for {currency} must be positive, got: {raw}")
        normalised[currency] = rate

    normalised[BASE_CURRENCY] = Decimal("1")
    return normalised


def get_currency_symbol(currency: str) -> str:
    return CURRENCY_SYMBOLS.get(currency, "$")


def format_currency(amount, currency: str = BASE_CURRENCY) -> str:
    """
    Format a monetary amount with the currency symbol.

    JPY has no minor unit and is shown as a whole number.

    Returns:
        str: e.g. "¥1,920" or "$100.50".
    """
    amount = to_decimal(amount)
    symbol = get_currency_symbol(currency)
    if currency == "JPY":
        return f"{symbol}{amount:,.0f}"
    return f"{symbol}{amount:,.2f}"
