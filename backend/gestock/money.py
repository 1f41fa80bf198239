# Overview: Decimal helpers for monetary amounts (two decimal places, JSON-friendly output).

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from flask import current_app, has_app_context

CENTS = Decimal("0.01")
ZERO = Decimal("0.00")
DEFAULT_TOLERANCE = Decimal("0.01")


def parse_decimal(value) -> Decimal | None:
    """
    Convert JSON input (int, float, numeric string) to Decimal.

    Floats go through str() so 0.1 stays 0.1. Booleans, NaN and infinities
    are rejected by returning None.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, float)):
        result = Decimal(str(value))
    elif isinstance(value, str):
        stripped = value.strip().replace(",", ".")
        if not stripped:
            return None
        try:
            result = Decimal(stripped)
        except InvalidOperation:
            return None
    else:
        return None
    if not result.is_finite():
        return None
    return result


def quantize(value: Decimal) -> Decimal:
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


def line_total(quantity: int, unit_price: Decimal) -> Decimal:
    return quantize(Decimal(quantity) * unit_price)


def money_tolerance() -> Decimal:
    if has_app_context():
        configured = parse_decimal(current_app.config.get("MONEY_TOLERANCE"))
        if configured is not None:
            return configured
    return DEFAULT_TOLERANCE


def matches(expected: Decimal, actual: Decimal, tolerance: Decimal | None = None) -> bool:
    """True when two amounts agree within the configured tolerance."""
    if tolerance is None:
        tolerance = money_tolerance()
    return abs(quantize(expected) - quantize(actual)) <= tolerance


def to_number(value) -> float | None:
    """Serialize a stored amount for JSON."""
    if value is None:
        return None
    return float(quantize(Decimal(value)))
