"""
Per-point state flags, selection operations and the reference selection-apply
collaborator.

The state byte of a point is 0 for a normal, visible, unselected point. Bits:
    SELECTED = 1
    HIDDEN   = 2
    DELETED  = 4
"""

from __future__ import annotations

import enum
import logging
from collections.abc import Callable
from typing import TYPE_CHECKING

import numpy as np

from gssel import kernels
from gssel.protocols import Predicate
from gssel.validators import validate_choices

if TYPE_CHECKING:
    from gssel.events import Events
    from gssel.store import PointAttributeStore

logger = logging.getLogger(__name__)


class State(enum.IntFlag):
    """Bit flags stored in the per-point state byte."""

    NORMAL = 0
    SELECTED = 1
    HIDDEN = 2
    DELETED = 4



class SelectOp(str, enum.Enum):
    """How a predicate combines with the current selection."""

    REPLACE = "replace"
    ADD = "add"
    SUBTRACT = "subtract"
    INTERSECT = "intersect"


class MaskOperator(str, enum.Enum):
    """Boolean operator for applying a segmentation mask to the selection."""

    SET = "set"
    OR = "or"
    AND = "and"


def evaluate_predicate(predicate: Predicate | Callable[[int], bool], count: int) -> np.ndarray:
    """
    Evaluate a predicate for every index in [0, count).

    Predicates implementing evaluate() are computed in one vectorized pass;
    plain callables are called once per index.

    Returns:
        Boolean mask [count]
    """
    if isinstance(predicate, Predicate):
        mask = np.asarray(predicate.evaluate(count), dtype=bool)
        if mask.shape != (count,):
            raise ValueError(f"Predicate mask shape {mask.shape} doesn't match point count {count}")
        return mask

    return np.fromiter((bool(predicate(i)) for i in range(count)), dtype=bool, count=count)


def eligible_mask(state: np.ndarray) -> np.ndarray:
    """
    Boolean mask of points that may be selected.

    Same rule the histogram counts with: state 0 or exactly SELECTED. Hidden,
    deleted and any unknown flag bits make a point ineligible.
    """
    out = np.empty(len(state), dtype=np.bool_)
    kernels.included_mask(np.asarray(state, dtype=np.uint8), out)
    return out


def selected_mask(state: np.ndarray) -> np.ndarray:
    """Boolean mask of points whose SELECTED bit is set."""
    return (state & int(State.SELECTED)) != 0


class StateSelection:
    """
    Applies selection operations to the state bytes of a point store.

    Only eligible points (see eligible_mask) change; the SELECTED bit
    of every other point is left as it was. The predicate is evaluated in full
    before any byte is written, so an operation never observes its own partial
    result.

    Example:
        >>> selection = StateSelection(store, events)
        >>> selection.apply_selection_op(SelectOp.ADD, lambda i: i % 2 == 0)
    """

    def __init__(self, store: PointAttributeStore, events: Events | None = None):
        self.store = store
        self.events = events

    @validate_choices({op.value for op in SelectOp}, "op")
    def apply_selection_op(self, op: SelectOp | str, predicate: Predicate | Callable[[int], bool]) -> int:
        """
        Combine predicate with the current selection.

        Args:
            op: replace, add, subtract or intersect
            predicate: Index predicate (vectorized Predicate or plain callable)

        Returns:
            Number of points whose SELECTED bit changed
        """
        op = SelectOp(op)
        state = self.store.state
        n = len(state)
        if n == 0:
            return 0

        mask = evaluate_predicate(predicate, n)
        eligible = eligible_mask(state)
        selected = selected_mask(state)

        match op:
            case SelectOp.REPLACE:
                wanted = mask
            case SelectOp.ADD:
                wanted = selected | mask
            case SelectOp.SUBTRACT:
                wanted = selected & ~mask
            case SelectOp.INTERSECT:
                wanted = selected & mask

        wanted = np.where(eligible, wanted, selected)
        changed = wanted != selected

        state[changed & wanted] |= np.uint8(int(State.SELECTED))
        state[changed & ~wanted] &= np.uint8(~int(State.SELECTED) & 0xFF)

        n_changed = int(changed.sum())
        logger.debug("[StateSelection] %s changed %d of %d points", op.value, n_changed, n)

        if n_changed and self.events is not None:
            self.events.fire("state.changed", self.store)

        return n_changed
