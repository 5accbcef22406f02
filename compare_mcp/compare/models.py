"""Value types shared by the compare selection, normalizer and orchestrator."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, ClassVar

from compare_mcp.normalization import clean_str


class ProductLine(str, Enum):
    """Top-level product line a comparison is locked to."""

    BIKE = "Bike"
    CAR = "Car"

    @classmethod
    def parse(cls, value: Any) -> ProductLine | None:
        """Case-insensitive lookup; ``None`` for anything that is not a known line."""
        if isinstance(value, ProductLine):
            return value
        if not isinstance(value, str):
            return None
        normalized = value.strip().lower()
        for line in cls:
            if line.value.lower() == normalized:
                return line
        return None


class Powertrain(str, Enum):
    PETROL = "Petrol"
    DIESEL = "Diesel"
    EV = "EV"
    HYBRID = "Hybrid"


class NormalizationPolicy(str, Enum):
    """How the normalizer treats missing or invalid fields.

    ``STRICT`` rejects the record and names the first offending field.
    ``LENIENT`` coerces missing numerics to ``0`` and strings to ``""`` so
    the row catalog renders them as dashes, and defaults an absent fuel
    type to petrol.
    """

    STRICT = "strict"
    LENIENT = "lenient"

    @classmethod
    def parse(cls, value: str | None) -> NormalizationPolicy:
        if not value:
            return cls.STRICT
        try:
            return cls(value.strip().lower())
        except ValueError:
            return cls.STRICT


class RejectReason(str, Enum):
    """Why a toggle-on was refused by the selection store."""

    UNCLASSIFIABLE = "unclassifiable"
    CAPACITY = "capacity"
    TYPE_MISMATCH = "duplicate-type"


# ── Selection ───────────────────────────────────────────────────────


@dataclass(frozen=True)
class VehicleReference:
    """Lightweight handle on a catalog vehicle held in the compare selection."""

    id: int
    slug: str
    vehicle_type: str | None = None
    category: str | None = None

    @classmethod
    def from_row(cls, row: Any) -> VehicleReference | None:
        """Build a reference from a public list row, an admin row or a stored item.

        Returns ``None`` when the row has no slug or its id is not a positive
        JSON integer.  Numeric strings are not coerced.
        """
        if not isinstance(row, dict):
            return None
        vehicle_id = row.get("id")
        if isinstance(vehicle_id, bool) or not isinstance(vehicle_id, int) or vehicle_id <= 0:
            return None
        slug = clean_str(row.get("slug"))
        if not slug:
            return None
        vehicle_type = row.get("vehicleType", row.get("vehicle_type"))
        return cls(
            id=vehicle_id,
            slug=slug,
            vehicle_type=clean_str(vehicle_type) or None,
            category=clean_str(row.get("category")) or None,
        )

    def hints(self) -> dict[str, str]:
        """The subset of vehicle fields the classifier needs."""
        out: dict[str, str] = {}
        if self.vehicle_type:
            out["vehicleType"] = self.vehicle_type
        if self.category:
            out["category"] = self.category
        return out

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "slug": self.slug, **self.hints()}


@dataclass(frozen=True)
class SelectionState:
    """Ordered compare selection plus the product line it is locked to."""

    locked_type: ProductLine | None = None
    items: tuple[VehicleReference, ...] = ()

    @classmethod
    def empty(cls) -> SelectionState:
        return cls()

    @property
    def ids(self) -> list[int]:
        return [item.id for item in self.items]

    @property
    def slugs(self) -> list[str]:
        return [item.slug for item in self.items]

    def contains(self, vehicle_id: int) -> bool:
        return any(item.id == vehicle_id for item in self.items)

    def to_dict(self) -> dict[str, Any]:
        return {
            "vehicleType": self.locked_type.value if self.locked_type else None,
            "items": [item.to_dict() for item in self.items],
        }


@dataclass(frozen=True)
class ToggleResult:
    """New selection state and, when the add was refused, the reason."""

    state: SelectionState
    reason: RejectReason | None = None

    @property
    def accepted(self) -> bool:
        return self.reason is None


# ── Comparable vehicles ─────────────────────────────────────────────


@dataclass(frozen=True)
class _ComparableBase:
    id: int
    slug: str

    # Header display, not part of the comparison rows.
    brand: str
    model: str
    variant: str
    year: int
    category: str
    image_url: str

    # Shared comparison fields.
    price: float
    mileage_or_range: float
    power: float
    torque: float
    transmission: str
    powertrain: Powertrain
    warranty_years: float
    service_interval_km: float

    product_line: ClassVar[ProductLine]

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["powertrain"] = self.powertrain.value
        data["vehicle_type"] = self.product_line.value
        return data


@dataclass(frozen=True)
class ComparableBike(_ComparableBase):
    kerb_weight_kg: float = 0.0
    fuel_tank_capacity_l: float = 0.0

    product_line: ClassVar[ProductLine] = ProductLine.BIKE


@dataclass(frozen=True)
class ComparableCar(_ComparableBase):
    body_type: str = ""
    boot_space_l: float = 0.0

    product_line: ClassVar[ProductLine] = ProductLine.CAR


ComparableVehicle = ComparableBike | ComparableCar


@dataclass(frozen=True)
class Normalized:
    value: ComparableVehicle
    ok: ClassVar[bool] = True


@dataclass(frozen=True)
class Rejected:
    reason: str
    ok: ClassVar[bool] = False


NormalizeResult = Normalized | Rejected


@dataclass(frozen=True)
class DroppedVehicle:
    """A selected vehicle that did not make it into the comparison."""

    vehicle_id: int
    slug: str
    cause: str
    reason: str = ""

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

