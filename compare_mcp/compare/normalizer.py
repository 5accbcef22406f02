"""Comparison normalizer — vehicle-with-details DTO to a comparable vehicle.

Pure function, no I/O, no clock.  The catalog API has shipped two shapes of
``details`` over time: nested sub-groups (``engine``, ``ev``,
``dimensions``, ``bike``, ``car``) and the older flat layout with the same
values directly on ``details``.  :class:`DetailsView` resolves each field
once as "nested, else flat, else missing" so nothing past it sees either
shape.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from compare_mcp.compare.models import (
    ComparableBike,
    ComparableCar,
    NormalizationPolicy,
    Normalized,
    NormalizeResult,
    Powertrain,
    ProductLine,
    Rejected,
)
from compare_mcp.constants import DEFAULT_VARIANT
from compare_mcp.normalization import (
    clean_str,
    normalize_fuel_type,
    positive_number,
)


class NormalizationError(ValueError):
    """A required field is missing or invalid.  Internal to this module."""


def _group(details: Mapping[str, Any], name: str) -> Mapping[str, Any] | None:
    value = details.get(name)
    return value if isinstance(value, Mapping) else None


class DetailsView:
    """Read-only adapter over ``dto["details"]`` for both API vintages."""

    def __init__(self, details: Any) -> None:
        self.present = isinstance(details, Mapping)
        self._details: Mapping[str, Any] = details if self.present else {}
        self.engine = _group(self._details, "engine")
        self.ev = _group(self._details, "ev")
        self.dimensions = _group(self._details, "dimensions")
        self.bike = _group(self._details, "bike")
        self.car = _group(self._details, "car")

    def _pick(
        self,
        group: Mapping[str, Any] | None,
        key: str,
        legacy_key: str | None = None,
    ) -> Any:
        if group is not None and group.get(key) is not None:
            return group.get(key)
        return self._details.get(legacy_key or key)

    @property
    def has_ev(self) -> bool:
        return self.ev is not None

    @property
    def fuel_type(self) -> Any:
        return self._pick(self.engine, "fuelType", "engineType")

    @property
    def engine_mileage(self) -> Any:
        return self._pick(self.engine, "mileage")

    @property
    def engine_range(self) -> Any:
        return self._pick(self.engine, "range")

    @property
    def engine_power(self) -> Any:
        return self._pick(self.engine, "power")

    @property
    def engine_torque(self) -> Any:
        return self._pick(self.engine, "torque")

    @property
    def ev_range(self) -> Any:
        return self.ev.get("range") if self.ev is not None else None

    @property
    def motor_power(self) -> Any:
        return self.ev.get("motorPower") if self.ev is not None else None

    @property
    def motor_torque(self) -> Any:
        return self.ev.get("motorTorque") if self.ev is not None else None

    @property
    def weight(self) -> Any:
        return self._pick(self.dimensions, "weight")

    @property
    def tank_size(self) -> Any:
        return self._pick(self.bike, "tankSize")

    @property
    def boot_space(self) -> Any:
        return self._pick(self.car, "bootSpace")

    @property
    def warranty_years(self) -> Any:
        return self._details.get("warrantyYears")

    @property
    def service_interval_km(self) -> Any:
        return self._details.get("serviceIntervalKm")


class _Fields:
    """Required-field readers bound to one validation policy."""

    def __init__(self, policy: NormalizationPolicy) -> None:
        self.strict = policy is NormalizationPolicy.STRICT

    def num(self, value: Any, field: str) -> float:
        parsed = positive_number(value)
        if parsed is None:
            if self.strict:
                raise NormalizationError(f"Missing {field}")
            return 0.0
        return parsed

    def integer(self, value: Any, field: str) -> int:
        return int(self.num(value, field))

    def text(self, value: Any, field: str) -> str:
        cleaned = clean_str(value)
        if not cleaned and self.strict:
            raise NormalizationError(f"Missing {field}")
        return cleaned


def _powertrain(view: DetailsView, fields: _Fields) -> Powertrain:
    if view.has_ev:
        return Powertrain.EV

    label = normalize_fuel_type(view.fuel_type)
    if not label:
        if fields.strict:
            raise NormalizationError("Missing engine.fuelType")
        return Powertrain.PETROL
    if label == "?":
        if fields.strict:
            raise NormalizationError("Unknown fuelType (expected Petrol/Diesel/EV/Hybrid)")
        return Powertrain.PETROL
    return Powertrain(label)


def _mileage_or_range(view: DetailsView, powertrain: Powertrain, fields: _Fields) -> float:
    if powertrain is Powertrain.EV:
        ev_range = positive_number(view.ev_range)
        return ev_range if ev_range is not None else fields.num(view.engine_range, "range")
    return fields.num(view.engine_mileage, "mileage")


def _power(view: DetailsView, powertrain: Powertrain, fields: _Fields) -> float:
    if powertrain is Powertrain.EV and view.motor_power is not None:
        return fields.num(view.motor_power, "power")
    return fields.num(view.engine_power, "power")


def _torque(view: DetailsView, powertrain: Powertrain, fields: _Fields) -> float:
    if powertrain is Powertrain.EV and view.motor_torque is not None:
        return fields.num(view.motor_torque, "torque")
    return fields.num(view.engine_torque, "torque")


def _identity(dto: Mapping[str, Any]) -> tuple[int, str]:
    # The selection is keyed on id and slug, so no policy relaxes these.
    vehicle_id = dto.get("id")
    if isinstance(vehicle_id, bool) or not isinstance(vehicle_id, int) or vehicle_id <= 0:
        raise NormalizationError("Missing id")
    slug = clean_str(dto.get("slug"))
    if not slug:
        raise NormalizationError("Missing slug")
    return vehicle_id, slug


def _build(
    dto: Mapping[str, Any],
    tag: ProductLine,
    fields: _Fields,
) -> ComparableBike | ComparableCar:
    vehicle_id, slug = _identity(dto)

    brand = fields.text(dto.get("brand"), "brand")
    model = fields.text(dto.get("model"), "model")
    variant = clean_str(dto.get("variant")) or DEFAULT_VARIANT
    year = fields.integer(dto.get("year"), "year")
    category = fields.text(dto.get("category"), "category")
    image_url = fields.text(dto.get("imageUrl"), "imageUrl")
    transmission = fields.text(dto.get("transmission"), "transmission")

    view = DetailsView(dto.get("details"))
    if not view.present and fields.strict:
        raise NormalizationError("Missing details")

    price = fields.num(dto.get("price"), "price")
    warranty_years = fields.num(view.warranty_years, "warrantyYears")
    service_interval_km = fields.num(view.service_interval_km, "serviceIntervalKm")

    powertrain = _powertrain(view, fields)
    shared: dict[str, Any] = {
        "id": vehicle_id,
        "slug": slug,
        "brand": brand,
        "model": model,
        "variant": variant,
        "year": year,
        "category": category,
        "image_url": image_url,
        "price": price,
        "mileage_or_range": _mileage_or_range(view, powertrain, fields),
        "power": _power(view, powertrain, fields),
        "torque": _torque(view, powertrain, fields),
        "transmission": transmission,
        "powertrain": powertrain,
        "warranty_years": warranty_years,
        "service_interval_km": service_interval_km,
    }

    if tag is ProductLine.BIKE:
        return ComparableBike(
            **shared,
            kerb_weight_kg=fields.num(view.weight, "dimensions.weight"),
            fuel_tank_capacity_l=fields.num(view.tank_size, "bike.tankSize"),
        )
    return ComparableCar(
        **shared,
        body_type=category,
        boot_space_l=fields.num(view.boot_space, "car.bootSpace"),
    )


def normalize(
    dto: Any,
    tag: ProductLine | None,
    *,
    policy: NormalizationPolicy = NormalizationPolicy.STRICT,
) -> NormalizeResult:
    """Project ``dto`` onto the comparable vehicle for product line ``tag``.

    ``tag`` comes from the classifier and is authoritative over whatever
    ``vehicleType`` the DTO reports about itself.
    """
    if tag is None:
        return Rejected("Unable to infer vehicle type")
    if not isinstance(dto, Mapping):
        return Rejected("Not a vehicle record")
    try:
        return Normalized(_build(dto, tag, _Fields(policy)))
    except NormalizationError as exc:
        return Rejected(str(exc))
