"""Shared async client for the AutoRovers public catalog API."""

from __future__ import annotations

import json
import logging
import time
from typing import Any
from urllib.parse import quote

import aiohttp

logger = logging.getLogger(__name__)

_DEFAULT_TIMEOUT_SECONDS = 12
_CACHE_TTL_SECONDS = 300  # 5 minutes

PUBLIC_VEHICLES_PATH = "/api/Vehicles"


class CatalogClientError(RuntimeError):
    """Raised for catalog request/config errors with structured metadata."""

    def __init__(
        self,
        message: str,
        *,
        code: str,
        status: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.status = status
        self.details = details or {}


class _TTLCache:
    """Simple in-memory cache with per-entry TTL."""

    def __init__(self, ttl: int = _CACHE_TTL_SECONDS) -> None:
        self._store: dict[str, tuple[float, Any]] = {}
        self._ttl = ttl

    def get(self, key: str) -> Any | None:
        entry = self._store.get(key)
        if entry is None:
            return None
        ts, value = entry
        if time.monotonic() - ts > self._ttl:
            del self._store[key]
            return None
        return value

    def set(self, key: str, value: Any) -> None:
        self._store[key] = (time.monotonic(), value)

    def clear(self) -> None:
        self._store.clear()


SHARED_CATALOG_CACHE = _TTLCache()


def extract_error_message(payload: Any, fallback: str) -> str:
    """Pull a readable message out of an ASP.NET ProblemDetails body."""
    if not isinstance(payload, dict):
        return fallback

    errors = payload.get("errors")
    if isinstance(errors, dict):
        lines: list[str] = []
        for field_name, msgs in errors.items():
            if isinstance(msgs, list):
                lines.extend(f"{field_name}: {m}" for m in msgs)
            elif msgs is not None:
                lines.append(f"{field_name}: {msgs}")
        if lines:
            return "\n".join(lines)

    for key in ("detail", "title", "message", "error"):
        value = payload.get(key)
        if isinstance(value, str) and value.strip():
            return value
    return fallback


class CatalogClient:
    """Async client for the public vehicle endpoints."""

    def __init__(
        self,
        base_url: str,
        *,
        token: str = "",
        timeout_seconds: float = _DEFAULT_TIMEOUT_SECONDS,
        cache: _TTLCache | None = None,
    ) -> None:
        self.base_url = base_url.strip().rstrip("/")
        self.token = token.strip()
        self.session: aiohttp.ClientSession | None = None
        self._timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self._cache = cache or _TTLCache()

    async def __aenter__(self) -> CatalogClient:
        if not self.base_url:
            raise CatalogClientError(
                "AUTOROVERS_API_BASE_URL is not configured.",
                code="MISSING_BASE_URL",
            )
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        self.session = aiohttp.ClientSession(headers=headers)
        return self

    async def __aexit__(self, *args: Any) -> None:
        if self.session:
            await self.session.close()

    async def _request(self, path: str) -> Any:
        if not self.session:
            raise RuntimeError("Client not entered as context manager")

        url = f"{self.base_url}{path}"
        cached = self._cache.get(url)
        if cached is not None:
            return cached

        try:
            async with self.session.get(url, timeout=self._timeout) as resp:
                raw_text = await resp.text()
                payload: Any = {}
                if raw_text:
                    try:
                        payload = json.loads(raw_text)
                    except json.JSONDecodeError:
                        payload = {"raw": raw_text}

                if resp.status >= 400:
                    fallback = f"Request failed: {resp.status} ({url})"
                    message = extract_error_message(payload, fallback)
                    if message == fallback and isinstance(payload, dict) and payload.get("raw"):
                        message = str(payload["raw"])
                    raise CatalogClientError(
                        message,
                        code="CATALOG_HTTP_ERROR",
                        status=resp.status,
                        details=payload if isinstance(payload, dict) else {"response": payload},
                    )

                self._cache.set(url, payload)
                return payload
        except CatalogClientError:
            raise
        except TimeoutError as exc:
            raise CatalogClientError(
                "Catalog request timed out.",
                code="TIMEOUT",
                details={"path": path},
            ) from exc
        except aiohttp.ClientError as exc:
            logger.error("Catalog client error (%s): %s", path, exc)
            raise CatalogClientError(
                "Catalog request failed due to a network/client error.",
                code="NETWORK_ERROR",
                details={"path": path, "error": str(exc)},
            ) from exc

    async def get_vehicle_by_slug(self, slug: str) -> dict[str, Any]:
        """Fetch one vehicle with its nested ``details`` by slug."""
        normalized = slug.strip()
        if not normalized:
            raise ValueError("Slug must not be empty.")
        data = await self._request(f"{PUBLIC_VEHICLES_PATH}/slug/{quote(normalized, safe='')}")
        if not isinstance(data, dict):
            raise CatalogClientError(
                "Catalog returned an unexpected vehicle payload.",
                code="BAD_PAYLOAD",
                details={"slug": normalized},
            )
        return data

    async def list_vehicles(self) -> list[dict[str, Any]]:
        """Fetch the public list rows."""
        data = await self._request(PUBLIC_VEHICLES_PATH)
        if isinstance(data, list):
            return [row for row in data if isinstance(row, dict)]
        if isinstance(data, dict):
            for key in ("items", "results", "data"):
                rows = data.get(key)
                if isinstance(rows, list):
                    return [row for row in rows if isinstance(row, dict)]
        return []
