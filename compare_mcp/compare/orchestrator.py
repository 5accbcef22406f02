"""Comparison orchestrator — selection in, render-ready comparison out.

Fetches every selected slug concurrently, classifies and normalizes each
record, locks the comparison to the product line of the first vehicle that
normalizes, and feeds anything unusable back into the selection store via
``sanitize`` so the stored selection matches what was rendered.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Mapping
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Callable

from compare_mcp.compare.classifier import classify
from compare_mcp.compare.models import (
    ComparableVehicle,
    DroppedVehicle,
    NormalizationPolicy,
    ProductLine,
    Rejected,
    SelectionState,
    VehicleReference,
)
from compare_mcp.compare.normalizer import normalize
from compare_mcp.compare.rows import ComparisonFieldRow, render_table, rows_for
from compare_mcp.compare.selection import CompareSelectionStore
from compare_mcp.constants import MIN_COMPARE_ITEMS

logger = logging.getLogger(__name__)

FetchBySlug = Callable[[str], Awaitable[Mapping[str, Any]]]

DROP_FETCH_FAILED = "fetch-failed"
DROP_REJECTED = "rejected"
DROP_TYPE_MISMATCH = "type-mismatch"


class ComparisonStatus(str, Enum):
    READY = "ready"
    INSUFFICIENT = "insufficient"


@dataclass(frozen=True)
class ComparisonResult:
    status: ComparisonStatus
    selection: SelectionState
    product_line: ProductLine | None = None
    rows: tuple[ComparisonFieldRow, ...] = ()
    vehicles: tuple[ComparableVehicle, ...] = ()
    dropped: tuple[DroppedVehicle, ...] = field(default_factory=tuple)

    @property
    def ready(self) -> bool:
        return self.status is ComparisonStatus.READY

    def table(self) -> list[dict[str, Any]]:
        return render_table(self.rows, list(self.vehicles))

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "vehicle_type": self.product_line.value if self.product_line else None,
            "vehicles": [v.to_dict() for v in self.vehicles],
            "rows": self.table(),
            "dropped": [d.to_dict() for d in self.dropped],
            "selection": self.selection.to_dict(),
        }


class ComparisonOrchestrator:
    """Runs one comparison pass over the current compare selection."""

    def __init__(
        self,
        store: CompareSelectionStore,
        fetch_by_slug: FetchBySlug,
        *,
        policy: NormalizationPolicy = NormalizationPolicy.STRICT,
    ) -> None:
        self._store = store
        self._fetch = fetch_by_slug
        self._policy = policy

    async def _fetch_all(self, refs: list[VehicleReference]) -> list[Any]:
        # All fetches settle; failures come back as exception values.
        return await asyncio.gather(
            *(self._fetch(ref.slug) for ref in refs),
            return_exceptions=True,
        )

    async def run(self, state: SelectionState | None = None) -> ComparisonResult:
        """Compare the vehicles in ``state`` (or the stored selection)."""
        if state is None:
            state = self._store.load()
        refs = list(state.items)
        if len(refs) < MIN_COMPARE_ITEMS:
            return ComparisonResult(ComparisonStatus.INSUFFICIENT, selection=state)

        fetched = await self._fetch_all(refs)

        survivors: list[ComparableVehicle] = []
        dropped: list[DroppedVehicle] = []
        resolved: dict[int, ProductLine] = {}
        locked: ProductLine | None = None

        for ref, outcome in zip(refs, fetched):
            if isinstance(outcome, Exception):
                logger.warning("Fetch failed for compare slug %s: %s", ref.slug, outcome)
                dropped.append(DroppedVehicle(ref.id, ref.slug, DROP_FETCH_FAILED, str(outcome)))
                continue
            if isinstance(outcome, BaseException):
                raise outcome

            result = normalize(outcome, classify(outcome), policy=self._policy)
            if isinstance(result, Rejected):
                logger.info("Compare slug %s rejected: %s", ref.slug, result.reason)
                dropped.append(DroppedVehicle(ref.id, ref.slug, DROP_REJECTED, result.reason))
                continue

            vehicle = result.value
            if locked is None:
                locked = vehicle.product_line
            elif vehicle.product_line is not locked:
                dropped.append(
                    DroppedVehicle(
                        ref.id,
                        ref.slug,
                        DROP_TYPE_MISMATCH,
                        f"{vehicle.product_line.value} does not match {locked.value}",
                    )
                )
                continue
            survivors.append(vehicle)
            resolved[ref.id] = vehicle.product_line

        # Stored hints may disagree with the catalog's own type for a record.
        stale = any(classify(ref) is not resolved[ref.id] for ref in refs if ref.id in resolved)
        selection = state
        if dropped or stale:
            selection = self._resync(dropped, locked, resolved)

        if len(survivors) < MIN_COMPARE_ITEMS:
            logger.info(
                "Comparison insufficient: %d of %d vehicle(s) usable",
                len(survivors),
                len(refs),
            )
            # Survivors are reported, but an insufficient result never carries rows.
            return ComparisonResult(
                ComparisonStatus.INSUFFICIENT,
                selection=selection,
                product_line=locked,
                vehicles=tuple(survivors),
                dropped=tuple(dropped),
            )

        assert locked is not None
        return ComparisonResult(
            ComparisonStatus.READY,
            selection=selection,
            product_line=locked,
            rows=rows_for(locked),
            vehicles=tuple(survivors),
            dropped=tuple(dropped),
        )

    def _resync(
        self,
        dropped: list[DroppedVehicle],
        locked: ProductLine | None,
        resolved: Mapping[int, ProductLine],
    ) -> SelectionState:
        """Drop unusable vehicles from the selection as it stands *now*.

        Vehicles added while the fetch batch was in flight are kept; only
        the ones this pass found unusable are removed.  References that were
        compared are re-tagged with the line the catalog reported for them.
        """
        current = self._store.load()
        dropped_ids = {d.vehicle_id for d in dropped}
        items = tuple(
            replace(item, vehicle_type=resolved[item.id].value) if item.id in resolved else item
            for item in current.items
        )
        keep = [item.id for item in items if item.id not in dropped_ids]
        return self._store.sanitize(
            replace(current, items=items),
            keep,
            locked or current.locked_type,
        )
