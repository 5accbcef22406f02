"""Ordered comparison rows of the compare table and their cell formatting.

Eight shared rows always come first, followed by the two rows of the
locked product line.  Formatting lives here, not in the normalizer: the
comparable vehicle keeps raw numbers and each row renders them with a
fixed unit suffix.  Missing or non-positive numbers render as a dash.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Callable

from compare_mcp.compare.models import (
    ComparableBike,
    ComparableCar,
    ComparableVehicle,
    Powertrain,
    ProductLine,
)
from compare_mcp.constants import CURRENCY_GLYPH, DASH


@dataclass(frozen=True)
class ComparisonFieldRow:
    key: str
    label: str
    accessor: Callable[[ComparableVehicle], str]

    def render(self, vehicle: ComparableVehicle) -> str:
        return self.accessor(vehicle)


# ── Formatting ──────────────────────────────────────────────────────


def _positive(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value) or value <= 0:
        return None
    return float(value)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def fmt_money(value: Any) -> str:
    n = _positive(value)
    rounded = _round_half_up(n) if n is not None else 0
    if not rounded:
        return DASH
    return f"{CURRENCY_GLYPH} {rounded:,}"


def fmt_int(value: Any, unit: str) -> str:
    n = _positive(value)
    rounded = _round_half_up(n) if n is not None else 0
    if not rounded:
        return DASH
    return f"{rounded:,} {unit}"


def fmt_one_decimal(value: Any, unit: str) -> str:
    n = _positive(value)
    rounded = math.floor(n * 10 + 0.5) / 10 if n is not None else 0.0
    # A value that rounds away to nothing is shown as missing, never "0".
    if not rounded:
        return DASH
    text = str(int(rounded)) if rounded.is_integer() else f"{rounded:.1f}"
    return f"{text} {unit}"


def fmt_text(value: Any) -> str:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return DASH


def _mileage_or_range(v: ComparableVehicle) -> str:
    if v.powertrain is Powertrain.EV:
        return fmt_int(v.mileage_or_range, "km")
    return fmt_one_decimal(v.mileage_or_range, "km/l")


def _bike_only(render: Callable[[ComparableBike], str]) -> Callable[[ComparableVehicle], str]:
    def accessor(v: ComparableVehicle) -> str:
        return render(v) if isinstance(v, ComparableBike) else DASH

    return accessor


def _car_only(render: Callable[[ComparableCar], str]) -> Callable[[ComparableVehicle], str]:
    def accessor(v: ComparableVehicle) -> str:
        return render(v) if isinstance(v, ComparableCar) else DASH

    return accessor


# ── Catalog ─────────────────────────────────────────────────────────

SHARED_ROWS: tuple[ComparisonFieldRow, ...] = (
    ComparisonFieldRow("price", "Price (ex-showroom)", lambda v: fmt_money(v.price)),
    ComparisonFieldRow("mileageOrRange", "Mileage / Range", _mileage_or_range),
    ComparisonFieldRow("power", "Power", lambda v: fmt_one_decimal(v.power, "PS")),
    ComparisonFieldRow("torque", "Torque", lambda v: fmt_one_decimal(v.torque, "Nm")),
    ComparisonFieldRow("transmission", "Transmission", lambda v: fmt_text(v.transmission)),
    ComparisonFieldRow("powertrain", "Fuel / Powertrain", lambda v: v.powertrain.value),
    ComparisonFieldRow("warrantyYears", "Warranty", lambda v: fmt_int(v.warranty_years, "yrs")),
    ComparisonFieldRow(
        "serviceIntervalKm",
        "Service Interval",
        lambda v: fmt_int(v.service_interval_km, "km"),
    ),
)

BIKE_ROWS: tuple[ComparisonFieldRow, ...] = (
    ComparisonFieldRow(
        "kerbWeightKg",
        "Kerb Weight",
        _bike_only(lambda v: fmt_int(v.kerb_weight_kg, "kg")),
    ),
    ComparisonFieldRow(
        "fuelTankCapacityL",
        "Fuel Tank Capacity",
        _bike_only(lambda v: fmt_one_decimal(v.fuel_tank_capacity_l, "L")),
    ),
)

CAR_ROWS: tuple[ComparisonFieldRow, ...] = (
    ComparisonFieldRow("bodyType", "Body Type", _car_only(lambda v: fmt_text(v.body_type))),
    ComparisonFieldRow(
        "bootSpaceL",
        "Boot Space",
        _car_only(lambda v: fmt_int(v.boot_space_l, "L")),
    ),
)

_ROWS_BY_LINE: dict[ProductLine, tuple[ComparisonFieldRow, ...]] = {
    ProductLine.BIKE: SHARED_ROWS + BIKE_ROWS,
    ProductLine.CAR: SHARED_ROWS + CAR_ROWS,
}


def rows_for(product_line: ProductLine) -> tuple[ComparisonFieldRow, ...]:
    """Return the ten rows shown for ``product_line``, shared rows first."""
    return _ROWS_BY_LINE[product_line]


def render_table(
    rows: tuple[ComparisonFieldRow, ...],
    vehicles: list[ComparableVehicle],
) -> list[dict[str, Any]]:
    """One entry per row: key, label and the formatted cell per vehicle."""
    return [
        {
            "key": row.key,
            "label": row.label,
            "values": [row.render(v) for v in vehicles],
        }
        for row in rows
    ]
