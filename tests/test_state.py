"""
Tests for state flags and selection operations.
"""

import numpy as np
import pytest

from gssel import (
    Events,
    Histogram,
    PointAttributeStore,
    RangePredicate,
    SelectOp,
    State,
    StateSelection,
    ValueResolver,
)
from gssel.state import eligible_mask, evaluate_predicate, selected_mask


@pytest.fixture
def store():
    # 0..3 normal, 4..5 selected, 6 hidden, 7 deleted, 8 selected+hidden, 9 selected+deleted
    state = np.array([0, 0, 0, 0, 1, 1, 2, 4, 3, 5], dtype=np.uint8)
    return PointAttributeStore({"x": np.arange(10, dtype=np.float32)}, state=state)


def _selected(store):
    return set(np.flatnonzero(selected_mask(store.state)).tolist())


class EvenPredicate:
    """Vectorized predicate selecting even indices."""

    def __call__(self, index):
        return index % 2 == 0

    def evaluate(self, count):
        return np.arange(count) % 2 == 0


class TestStateFlags:
    """Test flag values and masks."""

    def test_values(self):
        assert State.SELECTED == 1
        assert State.HIDDEN == 2
        assert State.DELETED == 4

    def test_masks(self, store):
        assert eligible_mask(store.state).tolist() == [True] * 6 + [False] * 4
        assert _selected(store) == {4, 5, 8, 9}


class TestInclusionRule:
    """Bytes with unknown bits are treated the same everywhere."""

    STATE = [0, 1, 8, 9, 3, 16, 0, 1]
    INCLUDED = [True, True, False, False, False, False, True, True]

    @pytest.fixture
    def odd_store(self):
        return PointAttributeStore(
            {"x": np.arange(8, dtype=np.float32)}, state=np.array(self.STATE, dtype=np.uint8)
        )

    def test_eligible_mask(self, odd_store):
        assert eligible_mask(odd_store.state).tolist() == self.INCLUDED

    def test_selection_leaves_excluded_bytes(self, odd_store):
        StateSelection(odd_store).apply_selection_op("replace", lambda i: True)
        assert odd_store.state.tolist() == [1, 1, 8, 9, 3, 16, 1, 1]

    def test_histogram_counts_included_only(self, odd_store):
        result = Histogram(4).build(ValueResolver(odd_store).resolve("x"), odd_store.state)
        assert result.total_included == 4
        assert result.total_selected == 2
        assert result.max_value == 7.0

    def test_range_predicate_agrees(self, odd_store):
        func = ValueResolver(odd_store).resolve("x")
        result = Histogram(4).build(func, odd_store.state)
        predicate = RangePredicate(func, odd_store.state, result, 0, 3)

        assert predicate.evaluate(8).tolist() == self.INCLUDED
        assert [predicate(i) for i in range(8)] == self.INCLUDED

    def test_selected_count_ignores_excluded_bytes(self, odd_store):
        assert odd_store.num_selected == 2


class TestEvaluatePredicate:
    """Test predicate evaluation."""

    def test_plain_callable(self):
        np.testing.assert_array_equal(evaluate_predicate(lambda i: i > 2, 5), [False, False, False, True, True])

    def test_vectorized(self):
        np.testing.assert_array_equal(evaluate_predicate(EvenPredicate(), 4), [True, False, True, False])

    def test_wrong_shape(self):
        class Bad:
            def __call__(self, index):
                return True

            def evaluate(self, count):
                return np.ones(count + 1, dtype=bool)

        with pytest.raises(ValueError, match="doesn't match"):
            evaluate_predicate(Bad(), 3)


class TestApplySelectionOp:
    """Test replace/add/subtract/intersect."""

    def test_replace(self, store):
        changed = StateSelection(store).apply_selection_op(SelectOp.REPLACE, lambda i: i in (0, 1))
        assert _selected(store) == {0, 1, 8, 9}
        assert changed == 4

    def test_add(self, store):
        changed = StateSelection(store).apply_selection_op("add", lambda i: i in (0, 4))
        assert _selected(store) == {0, 4, 5, 8, 9}
        assert changed == 1

    def test_subtract(self, store):
        changed = StateSelection(store).apply_selection_op("subtract", lambda i: i in (4, 8))
        assert _selected(store) == {5, 8, 9}
        assert changed == 1

    def test_intersect(self, store):
        changed = StateSelection(store).apply_selection_op("intersect", lambda i: i in (0, 5))
        assert _selected(store) == {5, 8, 9}
        assert changed == 1

    def test_vectorized_predicate(self, store):
        StateSelection(store).apply_selection_op("replace", EvenPredicate())
        assert _selected(store) == {0, 2, 4, 8, 9}

    def test_hidden_and_deleted_never_gain_selection(self, store):
        StateSelection(store).apply_selection_op("add", lambda i: True)
        assert store.state[6] == State.HIDDEN
        assert store.state[7] == State.DELETED

    def test_other_bits_preserved(self, store):
        StateSelection(store).apply_selection_op("replace", lambda i: False)
        np.testing.assert_array_equal(store.state, [0, 0, 0, 0, 0, 0, 2, 4, 3, 5])

    def test_fires_state_changed(self, store):
        events = Events()
        received = []
        events.on("state.changed", received.append)
        selection = StateSelection(store, events)

        selection.apply_selection_op("add", lambda i: i == 4)
        assert received == []

        selection.apply_selection_op("add", lambda i: i == 0)
        assert received == [store]

    def test_unknown_op(self, store):
        with pytest.raises(ValueError, match="Valid options"):
            StateSelection(store).apply_selection_op("toggle", lambda i: True)

    def test_empty_store(self):
        store = PointAttributeStore({"x": np.zeros(0)})
        assert StateSelection(store).apply_selection_op("add", lambda i: True) == 0
