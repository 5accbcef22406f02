"""Shared canonical normalization functions for vehicle data.

Single source of truth, imported by the classifier, the comparison
normalizer and the selection models.
"""

from __future__ import annotations

import math
from typing import Any

# Substring -> canonical powertrain label, checked in order.
FUEL_TYPE_RULES: tuple[tuple[tuple[str, ...], str], ...] = (
    (("petrol", "gasoline"), "Petrol"),
    (("diesel",), "Diesel"),
    (("hybrid",), "Hybrid"),
    (("electric",), "EV"),
)


def clean_str(value: Any) -> str:
    """Trimmed string, or ``""`` for non-strings and blanks."""
    if not isinstance(value, str):
        return ""
    return value.strip()


def positive_number(value: Any) -> float | None:
    """Return ``value`` as a float when it is a finite number above zero.

    Strings are not coerced: the catalog API sends numbers as JSON numbers
    and anything else is treated as missing.
    """
    if value is None or isinstance(value, bool):
        return None
    if not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value) or value <= 0:
        return None
    return float(value)


def normalize_category(raw: Any) -> str:
    """Trimmed, lower-cased category.  Returns ``""`` for empty."""
    return clean_str(raw).lower()


def normalize_fuel_type(raw: Any) -> str:
    """Map a raw fuel-type string to a powertrain label.

    Returns ``""`` for empty input and ``"?"`` for an unrecognised value.
    """
    normalized = clean_str(raw).lower()
    if not normalized:
        return ""
    for needles, label in FUEL_TYPE_RULES:
        if any(needle in normalized for needle in needles):
            return label
    if normalized == "ev":
        return "EV"
    return "?"
