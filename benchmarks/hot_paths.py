#!/usr/bin/env python3
"""Performance benchmark for the comparison normalize/render and orchestrator paths."""

from __future__ import annotations

import argparse
import asyncio
import time

from compare_mcp.compare.classifier import classify
from compare_mcp.compare.models import ProductLine, SelectionState, VehicleReference
from compare_mcp.compare.normalizer import normalize
from compare_mcp.compare.orchestrator import ComparisonOrchestrator
from compare_mcp.compare.rows import render_table, rows_for
from compare_mcp.compare.selection import CompareSelectionStore
from compare_mcp.data.storage import SqliteKeyValueStorage

BRANDS = ["Tata", "Hyundai", "Maruti", "Mahindra", "Kia"]
CATEGORIES = ["SUV", "Hatchback", "Sedan", "MUV", "Compact SUV"]
FUELS = ["Petrol", "Diesel", "Hybrid", "Electric", "Petrol"]


def make_vehicle(i: int) -> dict:
    details: dict = {
        "warrantyYears": 2 + (i % 4),
        "serviceIntervalKm": 10_000,
        "dimensions": {"weight": 1_100 + (i % 400)},
        "car": {"bootSpace": 300 + (i % 150)},
    }
    if FUELS[i % 5] == "Electric":
        details["ev"] = {"range": 300 + (i % 200), "motorPower": 140, "motorTorque": 215}
    else:
        details["engine"] = {
            "fuelType": FUELS[i % 5],
            "mileage": 14 + (i % 90) / 10,
            "power": 80 + (i % 70),
            "torque": 110 + (i % 150),
        }
    return {
        "id": i + 1,
        "slug": f"bm-{i:07d}",
        "vehicleType": "Car",
        "brand": BRANDS[i % 5],
        "model": f"Model {i % 37}",
        "variant": "Base",
        "year": 2018 + (i % 7),
        "price": 600_000 + (i % 200) * 7_500,
        "category": CATEGORIES[i % 5],
        "transmission": "Manual" if i % 2 else "Automatic",
        "imageUrl": f"https://cdn.example.com/{i}.jpg",
        "details": details,
    }


# ── Benchmarks ────────────────────────────────────────────────────────


def bench_normalize_render(records: int) -> tuple[float, float]:
    dtos = [make_vehicle(i) for i in range(records)]
    rows = rows_for(ProductLine.CAR)

    start = time.perf_counter()
    vehicles = []
    for dto in dtos:
        result = normalize(dto, classify(dto))
        if result.ok:
            vehicles.append(result.value)
    for offset in range(0, len(vehicles), 4):
        render_table(rows, vehicles[offset : offset + 4])
    elapsed = time.perf_counter() - start
    return elapsed, records / max(elapsed, 1e-9)


async def bench_orchestrator(records: int, repeats: int) -> tuple[float, float]:
    catalog = {dto["slug"]: dto for dto in (make_vehicle(i) for i in range(records))}

    async def fetch(slug: str) -> dict:
        await asyncio.sleep(0)
        return catalog[slug]

    storage = SqliteKeyValueStorage(":memory:")
    store = CompareSelectionStore(storage)
    state = SelectionState(
        locked_type=ProductLine.CAR,
        items=tuple(
            VehicleReference(id=dto["id"], slug=dto["slug"], vehicle_type="Car")
            for dto in list(catalog.values())[:4]
        ),
    )
    orchestrator = ComparisonOrchestrator(store, fetch)

    start = time.perf_counter()
    for _ in range(repeats):
        await orchestrator.run(state)
    elapsed = time.perf_counter() - start
    storage.close()
    return elapsed, (elapsed / max(repeats, 1)) * 1000


# ── Main ──────────────────────────────────────────────────────────────


async def main() -> None:
    parser = argparse.ArgumentParser(description="Benchmark comparison hot paths.")
    parser.add_argument("--records", type=int, default=50_000)
    parser.add_argument("--repeats", type=int, default=500)
    args = parser.parse_args()

    print("compare_hot_path_benchmark")
    print(f"records={args.records}")
    print(f"repeats={args.repeats}")
    print()

    norm_elapsed, norm_rps = bench_normalize_render(args.records)
    print(f"normalize_render_seconds={norm_elapsed:.6f}")
    print(f"normalize_render_records_per_sec={norm_rps:.0f}")
    print()

    orch_elapsed, orch_avg_ms = await bench_orchestrator(min(args.records, 100), args.repeats)
    print(f"orchestrator_total_seconds={orch_elapsed:.6f}")
    print(f"orchestrator_avg_ms={orch_avg_ms:.4f}")


if __name__ == "__main__":
    asyncio.run(main())
