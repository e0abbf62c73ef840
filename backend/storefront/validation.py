from __future__ import annotations

from typing import Any

from .errors import ValidationError


# Maximum amount: 9,999,999.99 in major units (999,999,999 cents)
MAX_AMOUNT_CENTS = 999_999_999


def coerce_int(value: Any, field: str) -> int:
    """
    Strict integer coercion for client input.

    Rejects booleans, floats, decimals and scientific notation so that a
    quantity or amount is never silently truncated.
    """
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be an integer")
        if "e" in stripped.lower():
            raise ValidationError(f"{field} must be a plain integer (scientific notation not allowed)")
        if "." in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    if isinstance(value, float):
        raise ValidationError(f"{field} must be an integer, not a decimal")
    raise ValidationError(f"{field} must be an integer")


def coerce_positive_int(value: Any, field: str) -> int:
    number = coerce_int(value, field)
    if number <= 0:
        raise ValidationError(f"{field} must be greater than zero")
    return number


def coerce_cents(value: Any, field: str, *, default: int | None = 0) -> int | None:
    """Non-negative amount in cents; None/"" falls back to ``default``."""
    if value is None or value == "":
        return default
    cents = coerce_int(value, field)
    if cents < 0:
        raise ValidationError(f"{field} cannot be negative")
    if cents > MAX_AMOUNT_CENTS:
        raise ValidationError(f"{field} exceeds maximum of {MAX_AMOUNT_CENTS} cents")
    return cents


def clean_text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def validate_metadata(value: Any, known_keys: dict[str, type], field: str) -> dict:
    """
    Validate a loosely-typed metadata mapping.

    Keys listed in ``known_keys`` must carry a value of the declared type
    (None is allowed and dropped); any other key is passed through untouched.
    """
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValidationError(f"{field} must be an object")

    cleaned = {}
    for key, item in value.items():
        if item is None:
            continue
        expected = known_keys.get(key)
        if expected is not None:
            if expected is int and (isinstance(item, bool) or not isinstance(item, int)):
                raise ValidationError(f"{field}.{key} must be an integer")
            if expected is not int and not isinstance(item, expected):
                raise ValidationError(f"{field}.{key} must be of type {expected.__name__}")
        cleaned[str(key)] = item
    return cleaned
