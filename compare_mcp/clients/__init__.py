"""Shared external API clients."""

from compare_mcp.clients.catalog import (
    SHARED_CATALOG_CACHE,
    CatalogClient,
    CatalogClientError,
)

__all__ = [
    "CatalogClient",
    "CatalogClientError",
    "SHARED_CATALOG_CACHE",
]
