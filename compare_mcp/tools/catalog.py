"""Vehicle-type preference and catalog browsing tool implementations."""

from __future__ import annotations

from collections.abc import Awaitable
from typing import Any, Callable

from compare_mcp.compare.classifier import classify
from compare_mcp.compare.models import ProductLine
from compare_mcp.compare.selection import CompareSelectionStore
from compare_mcp.data.vehicle_type import VehicleTypeLock
from compare_mcp.tools.responses import build_error, build_response

_TOOL_GET_TYPE = "get_vehicle_type"
_TOOL_SET_TYPE = "set_vehicle_type"
_TOOL_CLEAR_TYPE = "clear_vehicle_type"
_TOOL_LIST = "list_catalog"

ListVehicles = Callable[[], Awaitable[list[dict[str, Any]]]]


def _type_value(line: ProductLine | None) -> str | None:
    return line.value if line is not None else None


def get_vehicle_type_impl(lock: VehicleTypeLock) -> str:
    return build_response(_TOOL_GET_TYPE, {"vehicle_type": _type_value(lock.get())})


def set_vehicle_type_impl(
    lock: VehicleTypeLock,
    store: CompareSelectionStore,
    *,
    vehicle_type: str,
) -> str:
    """Switch the browsed product line.

    A compare selection locked to the other line is cleared, since it can
    no longer grow from the catalog the user is now looking at.
    """
    line = ProductLine.parse(vehicle_type)
    if line is None:
        return build_error(
            _TOOL_SET_TYPE,
            code="INVALID_VEHICLE_TYPE",
            message=f"Unknown vehicle type '{vehicle_type}'. Use 'Bike' or 'Car'.",
        )

    lock.set(line)
    selection = store.load()
    cleared = selection.locked_type is not None and selection.locked_type is not line
    if cleared:
        store.clear()

    return build_response(
        _TOOL_SET_TYPE,
        {
            "vehicle_type": line.value,
            "selection_cleared": cleared,
            "selection": store.snapshot(),
        },
    )


def clear_vehicle_type_impl(lock: VehicleTypeLock) -> str:
    lock.clear()
    return build_response(_TOOL_CLEAR_TYPE, {"vehicle_type": None})


async def list_catalog_impl(
    list_vehicles: ListVehicles,
    lock: VehicleTypeLock,
    store: CompareSelectionStore,
) -> str:
    """List public catalog rows for the browsed product line."""
    line = lock.get()
    rows = await list_vehicles()
    selected = set(store.load().ids)

    vehicles: list[dict[str, Any]] = []
    for row in rows:
        row_line = classify(row)
        if line is not None and row_line is not line:
            continue
        vehicles.append(
            {
                **row,
                "vehicle_type": _type_value(row_line),
                "in_compare": row.get("id") in selected,
                "can_compare": bool(row.get("slug")) and row_line is not None,
            }
        )

    return build_response(
        _TOOL_LIST,
        {
            "vehicle_type": _type_value(line),
            "count": len(vehicles),
            "vehicles": vehicles,
            "selection": store.snapshot(),
        },
    )
