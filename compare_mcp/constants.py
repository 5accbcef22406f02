"""Shared constants used across the compare modules.

Single source of truth for storage keys, the selection capacity and the
category vocabularies the classifier matches against.
"""

from __future__ import annotations

COMPARE_STORAGE_KEY = "autorovers_compare_v1"
VEHICLE_TYPE_STORAGE_KEY = "autorovers_vehicle_type_v1"

MAX_COMPARE_ITEMS = 4
MIN_COMPARE_ITEMS = 2

DEFAULT_VARIANT = "Standard"
DASH = "—"
CURRENCY_GLYPH = "₹"

CAR_CATEGORIES: frozenset[str] = frozenset({
    "suv",
    "hatchback",
    "sedan",
    "coupe",
    "convertible",
    "wagon",
    "muv",
    "mpv",
    "crossover",
    "pickup",
    "truck",
    "van",
})

BIKE_CATEGORIES: frozenset[str] = frozenset({
    "naked",
    "classic",
    "roadster",
    "cruiser",
    "sports",
    "sport",
    "adventure",
    "scooter",
    "commuter",
    "tourer",
    "cafe racer",
    "scrambler",
    "off-road",
    "off road",
})

# Substring fallbacks for categories outside the controlled vocabularies.
CAR_CATEGORY_HINTS: tuple[str, ...] = ("suv", "hatch", "sedan")
BIKE_CATEGORY_HINTS: tuple[str, ...] = ("scooter", "cruiser", "bike")
