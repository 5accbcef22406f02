"""Maps a vehicle record to its product line.

Pure logic, no I/O.  Older catalog records only carry a ``category``
string, newer ones an explicit ``vehicleType``; both must classify the
same way.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from compare_mcp.compare.models import ProductLine, VehicleReference
from compare_mcp.constants import (
    BIKE_CATEGORIES,
    BIKE_CATEGORY_HINTS,
    CAR_CATEGORIES,
    CAR_CATEGORY_HINTS,
)
from compare_mcp.normalization import normalize_category


class VocabularyOverlapError(AssertionError):
    """Raised when a category string appears in both vocabularies."""


def assert_vocabularies_disjoint(
    car: frozenset[str] = CAR_CATEGORIES,
    bike: frozenset[str] = BIKE_CATEGORIES,
) -> None:
    overlap = car & bike
    if overlap:
        raise VocabularyOverlapError(
            f"Category vocabularies overlap: {sorted(overlap)}"
        )


assert_vocabularies_disjoint()


def classify_category(category: Any) -> ProductLine | None:
    """Classify from the category string alone (exact match, then substrings)."""
    raw = normalize_category(category)
    if not raw:
        return None

    if raw in CAR_CATEGORIES:
        return ProductLine.CAR
    if raw in BIKE_CATEGORIES:
        return ProductLine.BIKE

    if any(hint in raw for hint in CAR_CATEGORY_HINTS):
        return ProductLine.CAR
    if any(hint in raw for hint in BIKE_CATEGORY_HINTS):
        return ProductLine.BIKE

    return None


def classify(vehicle: Mapping[str, Any] | VehicleReference | None) -> ProductLine | None:
    """Return the product line of ``vehicle`` or ``None`` when unresolvable.

    An explicit ``vehicleType`` wins; otherwise the category decides.
    """
    if vehicle is None:
        return None
    if isinstance(vehicle, VehicleReference):
        vehicle = vehicle.hints()
    if not isinstance(vehicle, Mapping):
        return None

    explicit = ProductLine.parse(vehicle.get("vehicleType", vehicle.get("vehicle_type")))
    if explicit is not None:
        return explicit

    return classify_category(vehicle.get("category"))
