"""Compare selection and comparison tool implementations."""

from __future__ import annotations

from typing import Any

from compare_mcp.compare.models import NormalizationPolicy, VehicleReference
from compare_mcp.compare.orchestrator import ComparisonOrchestrator, FetchBySlug
from compare_mcp.compare.selection import CompareSelectionStore
from compare_mcp.constants import MAX_COMPARE_ITEMS
from compare_mcp.tools.responses import build_error, build_response

_TOOL_TOGGLE = "toggle_compare"
_TOOL_REMOVE = "remove_from_compare"
_TOOL_CLEAR = "clear_compare"
_TOOL_SELECTION = "get_compare_selection"
_TOOL_COMPARE = "compare_selection"

_REJECT_MESSAGES = {
    "unclassifiable": "This vehicle cannot be compared because its type is unknown.",
    "capacity": f"You can compare up to {MAX_COMPARE_ITEMS} vehicles at a time.",
    "duplicate-type": "Only vehicles of the same type can be compared together.",
}


def toggle_compare_impl(
    store: CompareSelectionStore,
    *,
    vehicle: dict[str, Any],
) -> str:
    """Add a catalog row to the compare list, or remove it if already there."""
    ref = VehicleReference.from_row(vehicle)
    if ref is None:
        return build_error(
            _TOOL_TOGGLE,
            code="INVALID_VEHICLE",
            message="Vehicle must have a positive integer id and a slug to be compared.",
        )

    # Always mutate the freshest state, never a snapshot held by the caller.
    result = store.toggle(store.load(), ref)
    data: dict[str, Any] = {
        "accepted": result.accepted,
        "selected": result.state.contains(ref.id),
        "selection": store.snapshot(),
    }
    if result.reason is not None:
        data["reason"] = result.reason.value
        data["message"] = _REJECT_MESSAGES[result.reason.value]
    return build_response(_TOOL_TOGGLE, data)


def remove_from_compare_impl(store: CompareSelectionStore, *, vehicle_id: int) -> str:
    """Remove one vehicle from the compare list by id."""
    before = store.load()
    store.remove(before, vehicle_id)
    return build_response(
        _TOOL_REMOVE,
        {"removed": before.contains(vehicle_id), "selection": store.snapshot()},
    )


def clear_compare_impl(store: CompareSelectionStore) -> str:
    store.clear()
    return build_response(_TOOL_CLEAR, {"selection": store.snapshot()})


def get_compare_selection_impl(store: CompareSelectionStore) -> str:
    return build_response(_TOOL_SELECTION, {"selection": store.snapshot()})


async def compare_selection_impl(
    store: CompareSelectionStore,
    fetch_by_slug: FetchBySlug,
    *,
    policy: NormalizationPolicy = NormalizationPolicy.STRICT,
) -> str:
    """Run the comparison over the stored selection and return the table."""
    orchestrator = ComparisonOrchestrator(store, fetch_by_slug, policy=policy)
    result = await orchestrator.run()
    data = result.to_dict()
    if not result.ready:
        data["message"] = "Select at least 2 vehicles of the same type to compare."
    return build_response(_TOOL_COMPARE, data)
