"""Shared response envelope helpers for tool implementations."""

from __future__ import annotations

import json
import logging
from typing import Any

from compare_mcp.clients.catalog import CatalogClientError

logger = logging.getLogger(__name__)


def build_response(tool_name: str, data: dict[str, Any]) -> str:
    payload = {
        "_raw": True,
        "_tool": tool_name,
        "_meta": {"schema_version": 1},
        "data": data,
    }
    return json.dumps(payload, indent=2, default=str, ensure_ascii=False)


def build_error(
    tool_name: str,
    *,
    code: str,
    message: str,
    details: dict[str, Any] | None = None,
) -> str:
    payload: dict[str, Any] = {"error": True, "code": code, "message": message}
    if details:
        payload["details"] = details
    return build_response(tool_name, payload)


def format_catalog_exception(tool_name: str, exc: CatalogClientError) -> str:
    details: dict[str, Any] = {}
    if exc.status is not None:
        details["status"] = exc.status
    if exc.details:
        details["details"] = exc.details
    return build_error(tool_name, code=exc.code, message=str(exc), details=details)


def log_and_return_tool_error(*, tool_name: str, exc: Exception, user_message: str) -> str:
    """Log an unexpected tool failure and return a user-facing error envelope."""
    logger.exception("Tool %s failed: %s", tool_name, exc)
    return build_error(tool_name, code="INTERNAL_ERROR", message=user_message)
