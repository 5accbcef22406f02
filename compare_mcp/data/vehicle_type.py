"""Persisted product-line preference (which line the user is browsing)."""

from __future__ import annotations

import logging
from typing import Callable

from compare_mcp.compare.models import ProductLine
from compare_mcp.constants import VEHICLE_TYPE_STORAGE_KEY
from compare_mcp.data.events import ChangeNotifier
from compare_mcp.data.storage import KeyValueStorage

logger = logging.getLogger(__name__)

VehicleTypeCallback = Callable[["ProductLine | None"], None]


class VehicleTypeLock:
    """Reads and writes the single persisted :class:`ProductLine` value."""

    def __init__(
        self,
        storage: KeyValueStorage,
        *,
        key: str = VEHICLE_TYPE_STORAGE_KEY,
    ) -> None:
        self._storage = storage
        self._key = key
        self._notifier: ChangeNotifier[ProductLine | None] = ChangeNotifier("vehicle type")

    @property
    def key(self) -> str:
        return self._key

    def get(self) -> ProductLine | None:
        """Return the stored line, or ``None`` when unset or unreadable."""
        try:
            raw = self._storage.get(self._key)
        except Exception:
            logger.warning("Could not read vehicle type from storage", exc_info=True)
            return None
        return ProductLine.parse(raw)

    def set(self, line: ProductLine) -> ProductLine:
        self._storage.set(self._key, line.value)
        logger.debug("Vehicle type set to %s", line.value)
        self._notifier.emit(line)
        return line

    def clear(self) -> None:
        self._storage.remove(self._key)
        self._notifier.emit(None)

    def subscribe(self, callback: VehicleTypeCallback) -> Callable[[], None]:
        """Notify ``callback`` of same-process and cross-process changes."""
        off_local = self._notifier.register(callback)

        def _on_storage(_key: str, value: str | None) -> None:
            callback(ProductLine.parse(value))

        off_storage = self._storage.add_listener(self._key, _on_storage)

        def _unsubscribe() -> None:
            off_local()
            off_storage()

        return _unsubscribe
