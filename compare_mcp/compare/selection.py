"""Compare selection store — the only mutation surface for the compare list.

Every invariant of the selection is enforced here:

* at most ``MAX_COMPARE_ITEMS`` references, unique by id;
* every reference classifies to the locked product line;
* the lock is unset exactly when the selection is empty.

Refused additions never raise; :meth:`CompareSelectionStore.toggle`
returns the unchanged state together with a :class:`RejectReason`.
Callers should re-``load()`` right before mutating rather than holding on
to an old snapshot.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from typing import Any, Callable

from compare_mcp.compare.classifier import classify
from compare_mcp.compare.models import (
    ProductLine,
    RejectReason,
    SelectionState,
    ToggleResult,
    VehicleReference,
)
from compare_mcp.constants import (
    COMPARE_STORAGE_KEY,
    MAX_COMPARE_ITEMS,
    MIN_COMPARE_ITEMS,
)
from compare_mcp.data.events import ChangeNotifier
from compare_mcp.data.storage import KeyValueStorage

logger = logging.getLogger(__name__)

SelectionCallback = Callable[[SelectionState], None]
Classifier = Callable[[VehicleReference], "ProductLine | None"]


class CompareSelectionStore:
    """Persisted compare selection with add/remove/clear/sanitize operations."""

    def __init__(
        self,
        storage: KeyValueStorage,
        *,
        key: str = COMPARE_STORAGE_KEY,
        classifier: Classifier = classify,
    ) -> None:
        self._storage = storage
        self._key = key
        self._classify = classifier
        self._notifier: ChangeNotifier[SelectionState] = ChangeNotifier("compare selection")

    @property
    def key(self) -> str:
        return self._key

    # ── Reads ──────────────────────────────────────────────────────

    def load(self) -> SelectionState:
        """Read the persisted selection.  Anything unreadable yields the empty state."""
        try:
            raw = self._storage.get(self._key)
        except Exception:
            logger.warning("Could not read compare selection from storage", exc_info=True)
            return SelectionState.empty()
        return self._decode(raw)

    def _decode(self, raw: str | None) -> SelectionState:
        if not raw:
            return SelectionState.empty()
        try:
            parsed = json.loads(raw)
        except (TypeError, ValueError):
            logger.warning("Discarding corrupted compare selection under %s", self._key)
            return SelectionState.empty()
        if not isinstance(parsed, dict) or not isinstance(parsed.get("items"), list):
            logger.warning("Discarding malformed compare selection under %s", self._key)
            return SelectionState.empty()

        refs = [VehicleReference.from_row(row) for row in parsed["items"]]
        return self._rebuild(ref for ref in refs if ref is not None)

    def _rebuild(self, refs: Iterable[VehicleReference]) -> SelectionState:
        """Re-apply the selection invariants to an untrusted sequence of references."""
        items: list[VehicleReference] = []
        locked: ProductLine | None = None
        for ref in refs:
            if len(items) >= MAX_COMPARE_ITEMS:
                break
            if any(item.id == ref.id for item in items):
                continue
            line = self._classify(ref)
            if line is None:
                continue
            if locked is None:
                locked = line
            elif line != locked:
                continue
            items.append(ref)
        return SelectionState(locked_type=locked, items=tuple(items))

    def _lock_for(self, items: tuple[VehicleReference, ...]) -> ProductLine | None:
        return self._classify(items[0]) if items else None

    # ── Mutations ──────────────────────────────────────────────────

    def _persist(self, state: SelectionState) -> SelectionState:
        self._storage.set(self._key, json.dumps(state.to_dict()))
        self._notifier.emit(state)
        return state

    def toggle(self, state: SelectionState, ref: VehicleReference) -> ToggleResult:
        """Remove ``ref`` if selected, otherwise try to append it."""
        if state.contains(ref.id):
            return ToggleResult(self.remove(state, ref.id))

        incoming = self._classify(ref)
        reason: RejectReason | None = None
        if incoming is None:
            reason = RejectReason.UNCLASSIFIABLE
        elif len(state.items) >= MAX_COMPARE_ITEMS:
            reason = RejectReason.CAPACITY
        elif state.items and incoming != (state.locked_type or self._lock_for(state.items)):
            reason = RejectReason.TYPE_MISMATCH

        if reason is not None:
            logger.debug("Rejected compare add for vehicle %s: %s", ref.id, reason.value)
            return ToggleResult(state, reason)

        items = (*state.items, ref)
        locked = incoming if not state.items else state.locked_type or incoming
        return ToggleResult(self._persist(SelectionState(locked_type=locked, items=items)))

    def remove(self, state: SelectionState, vehicle_id: int) -> SelectionState:
        """Drop one vehicle by id.  Unknown ids leave ``state`` untouched."""
        if not state.contains(vehicle_id):
            return state
        items = tuple(item for item in state.items if item.id != vehicle_id)
        return self._persist(
            SelectionState(locked_type=self._lock_for(items), items=items)
        )

    def clear(self) -> SelectionState:
        return self._persist(SelectionState.empty())

    def sanitize(
        self,
        state: SelectionState,
        keep_ids: Iterable[int],
        resolved_type: ProductLine | None,
    ) -> SelectionState:
        """Keep only ``keep_ids`` (in their current order) under ``resolved_type``.

        Kept references that do not classify to the resolved line are dropped
        too, so a later ``load()`` derives the same lock.  With no resolved
        line the first classifiable kept reference decides it.
        """
        keep = set(keep_ids)
        candidates = tuple(item for item in state.items if item.id in keep)
        locked = resolved_type or next(
            (line for line in map(self._classify, candidates) if line is not None),
            None,
        )
        items = tuple(item for item in candidates if self._classify(item) is locked)
        next_state = SelectionState(
            locked_type=locked if items else None,
            items=items,
        )
        logger.info(
            "Sanitized compare selection: %d -> %d item(s)",
            len(state.items),
            len(items),
        )
        return self._persist(next_state)

    # ── Notifications ──────────────────────────────────────────────

    def subscribe(self, callback: SelectionCallback) -> Callable[[], None]:
        """Call ``callback`` with a fresh state after any change, local or remote."""
        off_local = self._notifier.register(callback)

        def _on_storage(_key: str, value: str | None) -> None:
            callback(self._decode(value))

        off_storage = self._storage.add_listener(self._key, _on_storage)

        def _unsubscribe() -> None:
            off_local()
            off_storage()

        return _unsubscribe

    def snapshot(self) -> dict[str, Any]:
        """Current selection plus the counters a list view shows."""
        state = self.load()
        return {
            **state.to_dict(),
            "count": len(state.items),
            "capacity": MAX_COMPARE_ITEMS,
            "can_compare": len(state.items) >= MIN_COMPARE_ITEMS,
        }
