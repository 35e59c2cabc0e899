"""
Tests for point-index masks, the view list and mask combination.
"""

import itertools

import numpy as np
import pytest

from gssel import (
    BooleanPredicate,
    Events,
    MaskCombiner,
    MaskOperator,
    MaskPredicate,
    MaskSet,
    PointAttributeStore,
    State,
    StateSelection,
    ViewList,
    combine,
)


def _store(n: int = 10, state=None) -> PointAttributeStore:
    return PointAttributeStore({"x": np.arange(n, dtype=np.float32)}, state=state)


def _selected(store: PointAttributeStore) -> set[int]:
    return {int(i) for i in np.flatnonzero(store.state & State.SELECTED)}


# ============================================================================
# MaskSet
# ============================================================================


class TestMaskSet:
    """Test MaskSet construction and set algebra."""

    def test_sorted_unique(self):
        mask = MaskSet([5, 1, 3, 1, 5])
        np.testing.assert_array_equal(mask.indices, [1, 3, 5])
        assert len(mask) == 3
        assert list(mask) == [1, 3, 5]

    def test_empty(self):
        mask = MaskSet()
        assert len(mask) == 0
        assert mask.max_index() == -1
        assert mask.indices.dtype == np.int64

    def test_indices_read_only(self):
        mask = MaskSet([1, 2])
        with pytest.raises(ValueError):
            mask.indices[0] = 7

    def test_negative_index(self):
        with pytest.raises(ValueError, match="non-negative"):
            MaskSet([3, -1])

    def test_non_integer_indices(self):
        with pytest.raises(TypeError, match="integers"):
            MaskSet([0.5, 1.0])

    def test_from_bool(self):
        mask = MaskSet.from_bool([False, True, True, False, True])
        assert list(mask) == [1, 2, 4]

    def test_contains(self):
        mask = MaskSet([2, 4, 8])
        assert 4 in mask
        assert np.int64(8) in mask
        assert 3 not in mask
        assert 100 not in mask
        assert "4" not in mask

    def test_set_operations(self):
        a = MaskSet([1, 2, 3, 4])
        b = MaskSet([3, 4, 5])
        assert a.intersection(b) == MaskSet([3, 4])
        assert a.union(b) == MaskSet([1, 2, 3, 4, 5])
        assert a.difference(b) == MaskSet([1, 2])

    def test_equality_ignores_input_order(self):
        assert MaskSet([3, 1, 2]) == MaskSet([1, 2, 3])
        assert MaskSet([1]) != MaskSet([2])

    def test_unhashable(self):
        with pytest.raises(TypeError):
            hash(MaskSet([1]))

    def test_to_bool_ignores_out_of_range(self):
        mask = MaskSet([0, 3, 12])
        np.testing.assert_array_equal(mask.to_bool(5), [True, False, False, True, False])

    def test_repr(self):
        assert repr(MaskSet([1, 2])) == "MaskSet(2 indices)"


class TestCombine:
    """Test intersection of saved views."""

    def test_empty_sequence(self):
        assert combine([]) is None

    def test_single_mask(self):
        assert combine([MaskSet([1, 2])]) == MaskSet([1, 2])

    def test_intersection(self):
        masks = [MaskSet([1, 2, 3, 4]), MaskSet([2, 3, 4, 9]), MaskSet([0, 3, 4])]
        assert combine(masks) == MaskSet([3, 4])

    def test_order_independent(self):
        rng = np.random.default_rng(5)
        masks = [MaskSet(rng.choice(200, 120, replace=False)) for _ in range(4)]

        expected = combine(masks)
        for order in itertools.permutations(masks):
            assert combine(list(order)) == expected

    def test_disjoint(self):
        assert len(combine([MaskSet([1]), MaskSet([2])])) == 0


class TestPredicates:
    """Test mask-backed predicates."""

    def test_mask_predicate(self):
        predicate = MaskPredicate(MaskSet([1, 3]))
        assert predicate(1)
        assert not predicate(2)
        np.testing.assert_array_equal(predicate.evaluate(4), [False, True, False, True])

    def test_boolean_predicate(self):
        predicate = BooleanPredicate(np.array([True, False]))
        assert predicate(0)
        assert not predicate(1)
        with pytest.raises(ValueError, match="doesn't match"):
            predicate.evaluate(3)


# ============================================================================
# ViewList
# ============================================================================


class TestViewList:
    """Test named view bookkeeping."""

    def test_add_auto_names(self):
        views = ViewList()
        assert views.add_auto(MaskSet([1])) == "View 1"
        assert views.add_auto(MaskSet([2])) == "View 2"
        assert views.names == ["View 1", "View 2"]

    def test_add_auto_skips_taken_names(self):
        views = ViewList()
        views.add_auto(MaskSet([1]))
        views.add_auto(MaskSet([2]))
        views.remove("View 1")

        assert views.add_auto(MaskSet([3])) == "View 3"
        assert views.names == ["View 2", "View 3"]

    def test_duplicate_name(self):
        views = ViewList()
        views.add("front", MaskSet([1]))
        with pytest.raises(ValueError, match="already exists"):
            views.add("front", MaskSet([2]))

    def test_lookup(self):
        views = ViewList()
        views.add("front", MaskSet([1, 2]))
        assert "front" in views
        assert views["front"] == MaskSet([1, 2])
        assert views.get("front") == MaskSet([1, 2])
        assert list(views) == ["front"]
        assert len(views) == 1

    def test_remove_fires_update(self):
        events = Events()
        fired = []
        events.on("viewlist.updated", lambda: fired.append(True))
        views = ViewList(events)
        views.add_auto(MaskSet([1]))

        views.remove("missing")
        assert fired == []
        views.remove("View 1")
        assert fired == [True]

    def test_clear_fires_update(self):
        events = Events()
        fired = []
        events.on("viewlist.updated", lambda: fired.append(True))
        views = ViewList(events)
        views.add_auto(MaskSet([1]))
        views.clear()

        assert len(views) == 0
        assert fired == [True]

    def test_summary(self, capsys):
        views = ViewList()
        views.summary(10)
        views.add_auto(MaskSet([1, 2, 3]))
        views.summary(10)

        out = capsys.readouterr().out
        assert "No views" in out
        assert "View 1: 3/10 (30.0%)" in out

    def test_repr(self):
        views = ViewList()
        assert repr(views) == "ViewList(0 views)"
        views.add_auto(MaskSet([1]))
        assert repr(views) == "ViewList(1 views: View 1)"


# ============================================================================
# MaskCombiner
# ============================================================================


class TestApplyViews:
    """Test selecting the intersection of saved views."""

    def test_no_views_changes_nothing(self):
        store = _store(state=np.array([1, 0, 0, 0, 0, 0, 0, 0, 0, 0], dtype=np.uint8))
        combiner = MaskCombiner(StateSelection(store))
        assert combiner.apply_views() == 0
        assert _selected(store) == {0}

    def test_replaces_selection_with_intersection(self):
        store = _store(state=np.array([1, 1, 0, 0, 0, 0, 0, 0, 0, 0], dtype=np.uint8))
        views = ViewList()
        views.add_auto(MaskSet([2, 3, 4, 5]))
        views.add_auto(MaskSet([4, 5, 6]))

        MaskCombiner(StateSelection(store), views).apply_views()
        assert _selected(store) == {4, 5}

    def test_hidden_and_deleted_never_selected(self):
        state = np.zeros(10, dtype=np.uint8)
        state[4] = State.HIDDEN
        state[5] = State.DELETED
        store = _store(state=state)
        views = ViewList()
        views.add_auto(MaskSet([3, 4, 5]))

        MaskCombiner(StateSelection(store), views).apply_views()
        assert _selected(store) == {3}
        assert store.state[4] == State.HIDDEN
        assert store.state[5] == State.DELETED

    def test_view_removal_recomputes(self):
        events = Events()
        store = _store()
        views = ViewList(events)
        combiner = MaskCombiner(StateSelection(store, events), views, events)

        views.add_auto(MaskSet([1, 2, 3]))
        views.add_auto(MaskSet([2, 3, 4]))
        combiner.apply_views()
        assert _selected(store) == {2, 3}

        views.remove("View 2")
        assert _selected(store) == {1, 2, 3}

    def test_default_view_list_uses_events(self):
        events = Events()
        combiner = MaskCombiner(StateSelection(_store()), events=events)
        assert combiner.view_list.events is events


class TestApplyMask:
    """Test set/or/and application of a single mask."""

    @pytest.fixture
    def store(self):
        # 0, 1 selected; 2 hidden; 3 deleted; 4 selected and hidden
        state = np.array([1, 1, 2, 4, 3, 0, 0, 0], dtype=np.uint8)
        return _store(8, state=state)

    def test_set(self, store):
        MaskCombiner(StateSelection(store)).apply_mask(MaskSet([1, 2, 3, 5]), "set", store.state)
        assert _selected(store) == {1, 4, 5}

    def test_or(self, store):
        MaskCombiner(StateSelection(store)).apply_mask(MaskSet([2, 6]), MaskOperator.OR, store.state)
        assert _selected(store) == {0, 1, 4, 6}

    def test_and(self, store):
        MaskCombiner(StateSelection(store)).apply_mask(MaskSet([1, 4, 5]), "and", store.state)
        assert _selected(store) == {1, 4}

    def test_ineligible_points_keep_their_bits(self, store):
        before = store.state.copy()
        MaskCombiner(StateSelection(store)).apply_mask(MaskSet(), "set", store.state)

        np.testing.assert_array_equal(store.state[2:5], before[2:5])

    def test_empty_mask_set_clears_selection(self, store):
        MaskCombiner(StateSelection(store)).apply_mask(MaskSet(), "set", store.state)
        assert _selected(store) == {4}

    def test_empty_mask_and_clears_selection(self, store):
        MaskCombiner(StateSelection(store)).apply_mask(None, "and", store.state)
        assert _selected(store) == {4}

    def test_empty_mask_or_keeps_selection(self, store):
        changed = MaskCombiner(StateSelection(store)).apply_mask(MaskSet(), "or", store.state)
        assert changed == 0
        assert _selected(store) == {0, 1, 4}

    def test_returns_change_count(self, store):
        changed = MaskCombiner(StateSelection(store)).apply_mask(MaskSet([5, 6, 7]), "set", store.state)
        assert changed == 5

    def test_index_out_of_range(self, store):
        with pytest.raises(ValueError, match="out of range"):
            MaskCombiner(StateSelection(store)).apply_mask(MaskSet([8]), "set", store.state)

    def test_unknown_operator(self, store):
        with pytest.raises(ValueError, match="Valid options"):
            MaskCombiner(StateSelection(store)).apply_mask(MaskSet([1]), "xor", store.state)
