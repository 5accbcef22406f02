"""Compare selection store tests — capacity, type lock, persistence, change signals."""

from __future__ import annotations

import itertools
import json
import random

import pytest
from conftest import ref

from compare_mcp.compare.classifier import classify
from compare_mcp.compare.models import (
    ProductLine,
    RejectReason,
    SelectionState,
    VehicleReference,
)
from compare_mcp.compare.selection import CompareSelectionStore
from compare_mcp.constants import COMPARE_STORAGE_KEY, MAX_COMPARE_ITEMS
from compare_mcp.data.storage import SqliteKeyValueStorage


def _bike(vehicle_id: int) -> VehicleReference:
    return ref(vehicle_id, category="Naked")


def _fill(store: CompareSelectionStore, *refs: VehicleReference) -> SelectionState:
    state = store.load()
    for r in refs:
        result = store.toggle(state, r)
        assert result.accepted, result.reason
        state = result.state
    return state


def _assert_consistent(store: CompareSelectionStore, state: SelectionState) -> None:
    assert len(state.items) <= MAX_COMPARE_ITEMS
    assert len(set(state.ids)) == len(state.ids)
    assert (state.locked_type is None) == (not state.items)
    assert all(classify(item) is state.locked_type for item in state.items)
    assert store.load() == state


# Ref 9's explicit tag overrides its bike category; ref 10 is unclassifiable.
_POOL = (
    ref(1),
    ref(2, category="Sedan"),
    ref(3, category="Hatchback"),
    ref(4, category="MPV"),
    ref(5, category="Wagon"),
    _bike(6),
    _bike(7),
    ref(8, category="Scooter"),
    ref(9, category="Naked", vehicle_type="Car"),
    ref(10, category="Tractor"),
)


# ── Toggle ──────────────────────────────────────────────────────


class TestToggle:
    def test_first_add_locks_type(self, selection_store):
        result = selection_store.toggle(SelectionState.empty(), ref(1))
        assert result.accepted
        assert result.state.locked_type is ProductLine.CAR
        assert result.state.ids == [1]

    def test_toggle_is_self_inverse(self, selection_store):
        state = _fill(selection_store, ref(1), ref(2))
        added = selection_store.toggle(state, ref(3)).state
        back = selection_store.toggle(added, ref(3)).state
        assert back == state

    def test_removing_last_item_unlocks(self, selection_store):
        state = _fill(selection_store, ref(1))
        state = selection_store.toggle(state, ref(1)).state
        assert state == SelectionState.empty()
        assert selection_store.load() == SelectionState.empty()

    def test_car_then_bike_keeps_only_car(self, selection_store):
        state = selection_store.toggle(SelectionState.empty(), ref(1, "a")).state
        result = selection_store.toggle(state, ref(2, "b", category="Scooter"))
        assert result.reason is RejectReason.TYPE_MISMATCH
        assert result.state.slugs == ["a"]

    def test_type_mismatch_is_refused(self, selection_store):
        state = _fill(selection_store, ref(1))
        result = selection_store.toggle(state, _bike(2))
        assert not result.accepted
        assert result.reason is RejectReason.TYPE_MISMATCH
        assert result.state == state
        assert selection_store.load().ids == [1]

    def test_unclassifiable_is_refused(self, selection_store):
        result = selection_store.toggle(SelectionState.empty(), ref(1, category="Tractor"))
        assert result.reason is RejectReason.UNCLASSIFIABLE
        assert result.state == SelectionState.empty()

    def test_explicit_type_beats_category(self, selection_store):
        state = _fill(selection_store, ref(1, category="Naked", vehicle_type="Car"))
        assert state.locked_type is ProductLine.CAR

    def test_fifth_add_hits_capacity(self, selection_store):
        state = _fill(selection_store, *(ref(i) for i in range(1, MAX_COMPARE_ITEMS + 1)))
        result = selection_store.toggle(state, ref(5))
        assert result.reason is RejectReason.CAPACITY
        assert result.state.ids == [1, 2, 3, 4]

    def test_capacity_is_checked_before_type(self, selection_store):
        state = _fill(selection_store, *(ref(i) for i in range(1, 5)))
        assert selection_store.toggle(state, _bike(9)).reason is RejectReason.CAPACITY

    def test_full_selection_still_removes(self, selection_store):
        state = _fill(selection_store, *(ref(i) for i in range(1, 5)))
        result = selection_store.toggle(state, ref(2))
        assert result.accepted
        assert result.state.ids == [1, 3, 4]

    def test_switching_lines_after_clear(self, selection_store):
        _fill(selection_store, ref(1), ref(2))
        cleared = selection_store.clear()
        state = _fill(selection_store, _bike(7))
        assert cleared == SelectionState.empty()
        assert state.locked_type is ProductLine.BIKE


class TestToggleSequences:
    def test_every_short_sequence_keeps_invariants(self, selection_store):
        pool = (ref(1), ref(2, category="Sedan"), _bike(3), ref(4, category="Tractor"))
        for sequence in itertools.product(pool, repeat=4):
            state = selection_store.clear()
            for r in sequence:
                state = selection_store.toggle(state, r).state
                _assert_consistent(selection_store, state)

    def test_random_walk_keeps_invariants(self, selection_store):
        rng = random.Random(0)
        state = selection_store.load()
        for _ in range(500):
            roll = rng.random()
            if roll < 0.8:
                state = selection_store.toggle(state, rng.choice(_POOL)).state
            elif roll < 0.95:
                state = selection_store.remove(state, rng.choice(_POOL).id)
            else:
                state = selection_store.clear()
            _assert_consistent(selection_store, state)

    def test_shuffled_adds_fill_up_to_capacity(self, selection_store):
        # Six cars and three bikes: the first classifiable ref decides how far it fills.
        rng = random.Random(0)
        for _ in range(50):
            order = list(_POOL)
            rng.shuffle(order)
            state = selection_store.clear()
            for r in order:
                state = selection_store.toggle(state, r).state
                _assert_consistent(selection_store, state)
            first = next(line for line in map(classify, order) if line is not None)
            assert len(state.items) == (MAX_COMPARE_ITEMS if first is ProductLine.CAR else 3)


class TestRemove:
    def test_remove_keeps_order(self, selection_store):
        state = _fill(selection_store, ref(1), ref(2), ref(3))
        assert selection_store.remove(state, 2).ids == [1, 3]
        assert selection_store.load().ids == [1, 3]

    def test_remove_unknown_id_is_noop(self, selection_store, storage):
        state = _fill(selection_store, ref(1))
        before = storage.get(COMPARE_STORAGE_KEY)
        assert selection_store.remove(state, 99) is state
        assert storage.get(COMPARE_STORAGE_KEY) == before


# ── Sanitize ────────────────────────────────────────────────────


class TestSanitize:
    def test_keeps_subset_in_order(self, selection_store):
        state = _fill(selection_store, ref(1), ref(2), ref(3))
        result = selection_store.sanitize(state, [3, 1], ProductLine.CAR)
        assert result.ids == [1, 3]
        assert result.locked_type is ProductLine.CAR

    def test_never_adds_unknown_ids(self, selection_store):
        state = _fill(selection_store, ref(1), ref(2))
        result = selection_store.sanitize(state, [1, 2, 42], ProductLine.CAR)
        assert result.ids == [1, 2]

    def test_empty_result_drops_lock(self, selection_store):
        state = _fill(selection_store, ref(1))
        result = selection_store.sanitize(state, [], ProductLine.CAR)
        assert result == SelectionState.empty()
        assert selection_store.load() == SelectionState.empty()

    def test_drops_kept_refs_of_another_line(self, selection_store):
        state = SelectionState(locked_type=ProductLine.CAR, items=(_bike(1), ref(2), ref(3)))
        result = selection_store.sanitize(state, [1, 2, 3], ProductLine.CAR)
        assert result.ids == [2, 3]
        assert selection_store.load() == result

    def test_lock_matches_items_after_reload(self, selection_store):
        state = SelectionState(items=(_bike(1), ref(2)))
        result = selection_store.sanitize(state, [1, 2], ProductLine.BIKE)
        assert result.ids == [1]
        assert result.locked_type is ProductLine.BIKE
        assert selection_store.load() == result

    def test_without_resolved_type_first_item_decides(self, selection_store):
        state = SelectionState(items=(ref(5, category="Tractor"), _bike(1), ref(2)))
        result = selection_store.sanitize(state, [5, 1, 2], None)
        assert result == SelectionState(locked_type=ProductLine.BIKE, items=(_bike(1),))

    def test_is_persisted(self, selection_store):
        state = _fill(selection_store, ref(1), ref(2), ref(3))
        selection_store.sanitize(state, [2, 3], ProductLine.CAR)
        assert selection_store.load().ids == [2, 3]


# ── Persistence ─────────────────────────────────────────────────


class TestLoad:
    def test_round_trip(self, selection_store, storage):
        state = _fill(selection_store, ref(1, "nexon"), ref(2, "creta"))
        fresh = CompareSelectionStore(storage)
        assert fresh.load() == state

    def test_wire_format(self, selection_store, storage):
        _fill(selection_store, ref(1, "nexon"))
        stored = json.loads(storage.get(COMPARE_STORAGE_KEY))
        assert stored == {
            "vehicleType": "Car",
            "items": [{"id": 1, "slug": "nexon", "category": "SUV"}],
        }

    def test_empty_storage(self, selection_store):
        assert selection_store.load() == SelectionState.empty()

    @pytest.mark.parametrize(
        "raw",
        ["{not json", "[]", '{"items": "nope"}', '{"vehicleType": "Car"}', "null"],
    )
    def test_corrupted_value_loads_empty(self, selection_store, storage, raw):
        storage.set(COMPARE_STORAGE_KEY, raw)
        assert selection_store.load() == SelectionState.empty()

    def test_invariants_are_reapplied(self, selection_store, storage):
        items = [
            {"id": 1, "slug": "a", "category": "SUV"},
            {"id": 1, "slug": "a-dup", "category": "SUV"},
            {"id": 2, "slug": "b", "category": "Naked"},
            {"id": 3, "slug": "", "category": "SUV"},
            {"id": 4, "slug": "d", "category": "Tractor"},
            {"id": 5, "slug": "e", "category": "Sedan"},
            {"id": 6, "slug": "f", "category": "MPV"},
            {"id": 7, "slug": "g", "category": "Hatchback"},
            {"id": 8, "slug": "h", "category": "Wagon"},
            "garbage",
        ]
        storage.set(COMPARE_STORAGE_KEY, json.dumps({"vehicleType": "Bike", "items": items}))
        state = selection_store.load()
        assert state.ids == [1, 5, 6, 7]
        assert state.locked_type is ProductLine.CAR

    @pytest.mark.parametrize("raw_id", ["12abc", "12", " 12 ", True, 0, -3, 12.0, None])
    def test_ids_must_be_positive_json_integers(self, raw_id):
        assert VehicleReference.from_row({"id": raw_id, "slug": "nexon"}) is None

    def test_from_row_reads_hints(self):
        row = {"id": 12, "slug": " nexon ", "vehicleType": "Car", "category": "SUV"}
        assert VehicleReference.from_row(row) == VehicleReference(12, "nexon", "Car", "SUV")

    def test_string_ids_in_storage_are_discarded(self, selection_store, storage):
        items = [
            {"id": "12abc", "slug": "a", "category": "SUV"},
            {"id": 4, "slug": "c", "category": "SUV"},
        ]
        storage.set(COMPARE_STORAGE_KEY, json.dumps({"vehicleType": "Car", "items": items}))
        assert selection_store.load().ids == [4]

    def test_unreadable_storage_loads_empty(self):
        class _Broken:
            def get(self, key):
                raise OSError("disk gone")

        store = CompareSelectionStore(_Broken())  # type: ignore[arg-type]
        assert store.load() == SelectionState.empty()

    def test_snapshot_counts(self, selection_store):
        _fill(selection_store, ref(1))
        snap = selection_store.snapshot()
        assert snap["count"] == 1
        assert snap["capacity"] == 4
        assert snap["can_compare"] is False
        _fill(selection_store, ref(2))
        assert selection_store.snapshot()["can_compare"] is True


# ── Change signals ──────────────────────────────────────────────


class TestSubscribe:
    def test_local_mutations_notify(self, selection_store):
        seen: list[SelectionState] = []
        selection_store.subscribe(seen.append)
        state = _fill(selection_store, ref(1))
        selection_store.remove(state, 1)
        assert [s.ids for s in seen] == [[1], []]

    def test_refused_add_does_not_notify(self, selection_store):
        state = _fill(selection_store, ref(1))
        seen: list[SelectionState] = []
        selection_store.subscribe(seen.append)
        selection_store.toggle(state, _bike(2))
        assert seen == []

    def test_unsubscribe(self, selection_store):
        seen: list[SelectionState] = []
        off = selection_store.subscribe(seen.append)
        off()
        _fill(selection_store, ref(1))
        assert seen == []

    def test_failing_callback_does_not_block_others(self, selection_store):
        seen: list[SelectionState] = []

        def _boom(_state):
            raise RuntimeError("listener bug")

        selection_store.subscribe(_boom)
        selection_store.subscribe(seen.append)
        _fill(selection_store, ref(1))
        assert len(seen) == 1

    def test_other_connection_writes_notify(self, tmp_path):
        db = str(tmp_path / "state.db")
        tab_a = SqliteKeyValueStorage(db)
        tab_b = SqliteKeyValueStorage(db)
        try:
            store_a = CompareSelectionStore(tab_a)
            store_b = CompareSelectionStore(tab_b)
            seen: list[SelectionState] = []
            store_b.subscribe(seen.append)

            _fill(store_a, ref(1), ref(2))
            assert seen == []

            assert tab_b.poll_changes() == [COMPARE_STORAGE_KEY]
            assert seen[-1].ids == [1, 2]
            assert seen[-1].locked_type is ProductLine.CAR
            assert store_b.load().ids == [1, 2]
        finally:
            tab_a.close()
            tab_b.close()
