"""Coercion of loosely-typed provider fields into optional clean values.

Blank strings become ``None``, never ``""``. Numbers tolerate thousands
separators and Yahoo's ``{"raw": ..., "fmt": ...}`` wrappers.
"""

from typing import Any

from marketboard.market.series import to_finite_float


def clean_text(value: Any) -> str | None:
    if isinstance(value, str) and value.strip():
        return value.strip()
    if isinstance(value, dict):
        return clean_text(value.get("fmt"))
    return None


def parse_number(value: Any) -> float | None:
    if isinstance(value, str):
        return to_finite_float(value.replace(",", "").strip())
    if isinstance(value, dict):
        return to_finite_float(value.get("raw"))
    return to_finite_float(value)


def positive_number(value: Any) -> float | None:
    number = parse_number(value)
    return number if number is not None and number > 0 else None


def first_finite(*values: Any) -> float | None:
    for value in values:
        number = to_finite_float(value)
        if number is not None:
            return number
    return None
