"""Shared test fixtures — isolated storage, stores, sample catalog records."""

from __future__ import annotations

import copy
from typing import Any

import pytest

from compare_mcp.compare.models import VehicleReference
from compare_mcp.compare.selection import CompareSelectionStore
from compare_mcp.config import CompareConfig
from compare_mcp.data.storage import SqliteKeyValueStorage
from compare_mcp.data.vehicle_type import VehicleTypeLock
from compare_mcp.server import CompareServices, set_services_override

CAR_DTO: dict[str, Any] = {
    "id": 101,
    "slug": "tata-nexon-xz",
    "vehicleType": "Car",
    "brand": "Tata",
    "model": "Nexon",
    "variant": "XZ+",
    "year": 2024,
    "price": 1_149_000,
    "category": "SUV",
    "transmission": "Manual",
    "imageUrl": "https://cdn.example.com/nexon.jpg",
    "details": {
        "warrantyYears": 3,
        "serviceIntervalKm": 10_000,
        "engine": {
            "fuelType": "Petrol",
            "power": 118.3,
            "torque": 170,
            "mileage": 17.44,
        },
        "dimensions": {"weight": 1250},
        "car": {"bootSpace": 382},
    },
}

BIKE_DTO: dict[str, Any] = {
    "id": 201,
    "slug": "re-classic-350",
    "vehicleType": "Bike",
    "brand": "Royal Enfield",
    "model": "Classic 350",
    "variant": "Signals",
    "year": 2023,
    "price": 193_080,
    "category": "Classic",
    "transmission": "5-Speed Manual",
    "imageUrl": "https://cdn.example.com/classic350.jpg",
    "details": {
        "warrantyYears": 3,
        "serviceIntervalKm": 5_000,
        "engine": {
            "fuelType": "Petrol",
            "power": 20.2,
            "torque": 27,
            "mileage": 35,
        },
        "dimensions": {"weight": 195},
        "bike": {"tankSize": 13},
    },
}

EV_CAR_DTO: dict[str, Any] = {
    "id": 102,
    "slug": "tata-nexon-ev",
    "vehicleType": "Car",
    "brand": "Tata",
    "model": "Nexon EV",
    "variant": "Empowered",
    "year": 2024,
    "price": 1_749_000,
    "category": "SUV",
    "transmission": "Automatic",
    "imageUrl": "https://cdn.example.com/nexon-ev.jpg",
    "details": {
        "warrantyYears": 8,
        "serviceIntervalKm": 15_000,
        "ev": {"range": 465, "motorPower": 144, "motorTorque": 215},
        "dimensions": {"weight": 1400},
        "car": {"bootSpace": 350},
    },
}


def car_dto(**overrides: Any) -> dict[str, Any]:
    dto = copy.deepcopy(CAR_DTO)
    dto.update(overrides)
    return dto


def bike_dto(**overrides: Any) -> dict[str, Any]:
    dto = copy.deepcopy(BIKE_DTO)
    dto.update(overrides)
    return dto


def ref(
    vehicle_id: int,
    slug: str | None = None,
    *,
    category: str = "SUV",
    vehicle_type: str | None = None,
) -> VehicleReference:
    return VehicleReference(
        id=vehicle_id,
        slug=slug or f"vehicle-{vehicle_id}",
        vehicle_type=vehicle_type,
        category=category,
    )


class FakeCatalog:
    """Fetch-by-slug collaborator backed by a dict; unknown slugs raise."""

    def __init__(self, records: dict[str, dict[str, Any]] | None = None) -> None:
        self.records = dict(records or {})
        self.failing: set[str] = set()
        self.calls: list[str] = []

    async def get_vehicle_by_slug(self, slug: str) -> dict[str, Any]:
        self.calls.append(slug)
        if slug in self.failing or slug not in self.records:
            raise LookupError(f"Vehicle '{slug}' not found")
        return copy.deepcopy(self.records[slug])

    async def list_vehicles(self) -> list[dict[str, Any]]:
        return [copy.deepcopy(r) for r in self.records.values()]


@pytest.fixture()
def storage() -> SqliteKeyValueStorage:
    """A fresh in-memory key-value storage for each test."""
    kv = SqliteKeyValueStorage(":memory:")
    yield kv
    kv.close()


@pytest.fixture()
def selection_store(storage: SqliteKeyValueStorage) -> CompareSelectionStore:
    return CompareSelectionStore(storage)


@pytest.fixture()
def vehicle_type_lock(storage: SqliteKeyValueStorage) -> VehicleTypeLock:
    return VehicleTypeLock(storage)


@pytest.fixture()
def fake_catalog() -> FakeCatalog:
    return FakeCatalog()


@pytest.fixture(autouse=True)
def _inject_test_services():
    """Give every test isolated, in-memory server services."""
    kv = SqliteKeyValueStorage(":memory:")
    services = CompareServices(
        config=CompareConfig(api_base_url="https://catalog.test", state_db_path=":memory:"),
        storage=kv,
        selection=CompareSelectionStore(kv),
        vehicle_type=VehicleTypeLock(kv),
    )
    set_services_override(services)
    yield services
    set_services_override(None)
    kv.close()
