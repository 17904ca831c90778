from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any


def strip_prefix(line: str, prefix: str) -> str | None:
    """Return ``line`` without ``prefix``, or None when it does not start with it."""

    if not line.startswith(prefix):
        return None
    return line[len(prefix) :]


def parse_decimal(value: Any) -> Decimal | None:
    """Parse a monetary value transported as a JSON string.

    Empty strings and nulls mean "absent". Numbers are refused so that prices
    never pass through binary floating point.
    """

    if value is None or value == "":
        return None
    if isinstance(value, Decimal):
        return value
    if not isinstance(value, str):
        raise ValueError(f"Decimal values must be transported as strings, got {type(value).__name__}")
    try:
        parsed = Decimal(value.strip())
    except InvalidOperation as err:
        raise ValueError(f"Invalid decimal format: {value!r}") from err
    if not parsed.is_finite():
        raise ValueError(f"Invalid decimal format: {value!r}")
    return parsed


def truncate(text: str, limit: int = 200) -> str:
    if len(text) <= limit:
        return text
    return f"{text[:limit]}..."
