"""
Monetary Value Helpers

Decimal coercion, rounding and tolerance comparison for ledger amounts.
NEVER uses float for monetary values; floats arriving from the storage
collaborator are converted through their string form.
"""

from decimal import Decimal, ROUND_HALF_UP, InvalidOperation, getcontext
from typing import Any, Iterable
import re

# Set global decimal context for financial precision
getcontext().prec = 28

ZERO = Decimal('0.00')
CENT = Decimal('0.01')
DEFAULT_TOLERANCE = CENT
THOUSANDS_DOTS = re.compile(r'^[+-]?\d{1,3}(\.\d{3})+$')


def quantize(value: Decimal, precision: int = 2) -> Decimal:
    """Round to the given number of decimal places (half up)"""
    return value.quantize(Decimal('0.1') ** precision, rounding=ROUND_HALF_UP)


def decimal_from_string(value: str) -> Decimal:
    """
    Strictly convert a string to Decimal, handling common formats

    Accepts "1234.56", "1,234.56", "1.234,56", "R$ 1.234,56", "-10,5",
    "1.234.567". A single dot is always the decimal separator.

    Raises:
        ValueError: If string cannot be converted to valid Decimal
    """
    if not value or not isinstance(value, str):
        raise ValueError("Value must be a non-empty string")

    # Remove currency symbols and whitespace
    clean_value = re.sub(r'[^\d.,\-+]', '', value.strip())

    if ',' in clean_value and '.' in clean_value:
        # Whichever separator comes last is the decimal separator
        if clean_value.rfind(',') > clean_value.rfind('.'):
            clean_value = clean_value.replace('.', '').replace(',', '.')
        else:
            clean_value = clean_value.replace(',', '')
    elif ',' in clean_value and clean_value.count(',') == 1:
        parts = clean_value.split(',')
        if len(parts[1]) <= 2:  # Decimal separator
            clean_value = clean_value.replace(',', '.')
        else:  # Thousands separator
            clean_value = clean_value.replace(',', '')
    elif ',' in clean_value:
        clean_value = clean_value.replace(',', '')
    elif clean_value.count('.') > 1:
        # "1.234.567": dots group thousands; a lone dot stays decimal
        if not THOUSANDS_DOTS.match(clean_value):
            raise ValueError(f"Cannot convert '{value}' to Decimal")
        clean_value = clean_value.replace('.', '')

    try:
        result = Decimal(clean_value)
    except InvalidOperation:
        raise ValueError(f"Cannot convert '{value}' to Decimal")
    if not result.is_finite():
        raise ValueError(f"Cannot convert '{value}' to Decimal")
    return result


def to_decimal(value: Any, precision: int = 2) -> Decimal:
    """
    Leniently coerce a stored monetary value to a rounded Decimal.

    None, empty strings, booleans, NaN/infinity and anything unparseable
    coerce to zero so that partial data never breaks a total.
    """
    if value is None or isinstance(value, bool):
        return quantize(ZERO, precision)
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, int):
        result = Decimal(value)
    elif isinstance(value, float):
        result = Decimal(repr(value))
    elif isinstance(value, str):
        try:
            result = decimal_from_string(value)
        except ValueError:
            return quantize(ZERO, precision)
    else:
        return quantize(ZERO, precision)

    if not result.is_finite():
        return quantize(ZERO, precision)
    return quantize(result, precision)


def sum_amounts(values: Iterable[Decimal]) -> Decimal:
    """Sum Decimals starting from 0.00"""
    total = ZERO
    for value in values:
        total += value
    return total


def amounts_match(a: Decimal, b: Decimal, tolerance: Decimal = DEFAULT_TOLERANCE) -> bool:
    """True when |a - b| is strictly below tolerance"""
    return abs(a - b) < tolerance
