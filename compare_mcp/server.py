"""AutoRovers compare MCP server — FastMCP entry point for catalog comparison."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from mcp.server.fastmcp import FastMCP

from compare_mcp.clients.catalog import (
    SHARED_CATALOG_CACHE,
    CatalogClient,
    CatalogClientError,
)
from compare_mcp.compare.selection import CompareSelectionStore
from compare_mcp.config import CompareConfig, load_config
from compare_mcp.data.storage import SqliteKeyValueStorage
from compare_mcp.data.vehicle_type import VehicleTypeLock
from compare_mcp.tools.catalog import (
    clear_vehicle_type_impl,
    get_vehicle_type_impl,
    list_catalog_impl,
    set_vehicle_type_impl,
)
from compare_mcp.tools.compare import (
    clear_compare_impl,
    compare_selection_impl,
    get_compare_selection_impl,
    remove_from_compare_impl,
    toggle_compare_impl,
)
from compare_mcp.tools.responses import format_catalog_exception, log_and_return_tool_error

mcp = FastMCP("AutoRoversCompare")
logger = logging.getLogger(__name__)


@dataclass
class CompareServices:
    """Everything the tools need, built once and injected into each call."""

    config: CompareConfig
    storage: SqliteKeyValueStorage
    selection: CompareSelectionStore
    vehicle_type: VehicleTypeLock

    @classmethod
    def from_config(cls, config: CompareConfig) -> CompareServices:
        storage = SqliteKeyValueStorage(config.state_db_path)
        return cls(
            config=config,
            storage=storage,
            selection=CompareSelectionStore(storage),
            vehicle_type=VehicleTypeLock(storage),
        )

    def catalog_client(self) -> CatalogClient:
        return CatalogClient(
            self.config.api_base_url,
            token=self.config.api_token,
            timeout_seconds=self.config.fetch_timeout_seconds,
            cache=SHARED_CATALOG_CACHE,
        )


_services: CompareServices | None = None


def get_services() -> CompareServices:
    """Return the server's services, building them from the environment on first use."""
    global _services  # noqa: PLW0603
    if _services is None:
        _services = CompareServices.from_config(load_config())
    return _services


def set_services_override(services: CompareServices | None) -> None:
    """Inject services (e.g. in-memory storage) for testing."""
    global _services  # noqa: PLW0603
    _services = services


# ── Tool registrations ──────────────────────────────────────────────


@mcp.tool()
def get_vehicle_type() -> str:
    """Return the product line (Bike or Car) the user is browsing, if chosen."""
    try:
        return get_vehicle_type_impl(get_services().vehicle_type)
    except Exception as exc:
        return log_and_return_tool_error(
            tool_name="get_vehicle_type",
            exc=exc,
            user_message="I am having trouble reading the vehicle type right now.",
        )


@mcp.tool()
def set_vehicle_type(vehicle_type: str) -> str:
    """Choose the product line to browse: 'Bike' or 'Car'.

    Switching lines clears a compare list locked to the other line.
    """
    try:
        services = get_services()
        return set_vehicle_type_impl(
            services.vehicle_type,
            services.selection,
            vehicle_type=vehicle_type,
        )
    except Exception as exc:
        return log_and_return_tool_error(
            tool_name="set_vehicle_type",
            exc=exc,
            user_message="I am having trouble saving the vehicle type right now.",
        )


@mcp.tool()
def clear_vehicle_type() -> str:
    """Forget the chosen product line."""
    try:
        return clear_vehicle_type_impl(get_services().vehicle_type)
    except Exception as exc:
        return log_and_return_tool_error(
            tool_name="clear_vehicle_type",
            exc=exc,
            user_message="I am having trouble clearing the vehicle type right now.",
        )


@mcp.tool()
async def list_catalog() -> str:
    """List public catalog vehicles for the chosen product line, flagging compared ones."""
    services = get_services()
    try:
        async with services.catalog_client() as client:
            return await list_catalog_impl(
                client.list_vehicles,
                services.vehicle_type,
                services.selection,
            )
    except CatalogClientError as exc:
        return format_catalog_exception("list_catalog", exc)
    except Exception as exc:
        return log_and_return_tool_error(
            tool_name="list_catalog",
            exc=exc,
            user_message="I am having trouble loading the catalog right now.",
        )


@mcp.tool()
def toggle_compare(vehicle: dict[str, Any]) -> str:
    """Add a catalog vehicle to the compare list, or remove it if already added.

    vehicle: a catalog row with at least id, slug and vehicleType or category.
    """
    try:
        return toggle_compare_impl(get_services().selection, vehicle=vehicle)
    except Exception as exc:
        return log_and_return_tool_error(
            tool_name="toggle_compare",
            exc=exc,
            user_message="I am having trouble updating the compare list right now.",
        )


@mcp.tool()
def remove_from_compare(vehicle_id: int) -> str:
    """Remove one vehicle from the compare list."""
    try:
        return remove_from_compare_impl(get_services().selection, vehicle_id=vehicle_id)
    except Exception as exc:
        return log_and_return_tool_error(
            tool_name="remove_from_compare",
            exc=exc,
            user_message="I am having trouble updating the compare list right now.",
        )


@mcp.tool()
def clear_compare() -> str:
    """Empty the compare list."""
    try:
        return clear_compare_impl(get_services().selection)
    except Exception as exc:
        return log_and_return_tool_error(
            tool_name="clear_compare",
            exc=exc,
            user_message="I am having trouble clearing the compare list right now.",
        )


@mcp.tool()
def get_compare_selection() -> str:
    """Return the compare list, its locked product line and whether it can be compared."""
    try:
        return get_compare_selection_impl(get_services().selection)
    except Exception as exc:
        return log_and_return_tool_error(
            tool_name="get_compare_selection",
            exc=exc,
            user_message="I am having trouble reading the compare list right now.",
        )


@mcp.tool()
async def compare_selection() -> str:
    """Build the spec-by-spec comparison table for the vehicles in the compare list."""
    services = get_services()
    try:
        async with services.catalog_client() as client:
            return await compare_selection_impl(
                services.selection,
                client.get_vehicle_by_slug,
                policy=services.config.normalization_policy,
            )
    except CatalogClientError as exc:
        return format_catalog_exception("compare_selection", exc)
    except Exception as exc:
        return log_and_return_tool_error(
            tool_name="compare_selection",
            exc=exc,
            user_message=(
                "I am having trouble building the comparison right now. "
                "Please try again in a moment."
            ),
        )


if __name__ == "__main__":
    mcp.run()
