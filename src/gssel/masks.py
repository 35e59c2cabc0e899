"""
Point-index masks from image-space segmentation and their combination.

A MaskSet holds the indices of the points whose projection fell inside a
segmentation foreground. Saved views are kept in a ViewList; the selection is
the intersection of every saved view. A single fresh mask can also be applied
directly with set/or/and semantics.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Sequence
from functools import reduce
from typing import TYPE_CHECKING

import numpy as np
from numpy.typing import ArrayLike

from gssel import kernels
from gssel.constants import VIEW_NAME_PREFIX
from gssel.protocols import SelectionApplier
from gssel.state import MaskOperator, SelectOp, State, eligible_mask
from gssel.validators import validate_choices

if TYPE_CHECKING:
    from gssel.events import Events

logger = logging.getLogger(__name__)


class MaskSet:
    """
    Immutable set of unique point indices.

    Indices are stored sorted, so equality and set operations do not depend on
    the order the indices were produced in.

    Example:
        >>> a = MaskSet([4, 1, 2, 2])
        >>> b = MaskSet([2, 3, 4])
        >>> a.intersection(b)
        MaskSet(2 indices)
        >>> 4 in a
        True
    """

    __slots__ = ("_indices",)

    def __init__(self, indices: ArrayLike = ()):
        array = np.asarray(indices)
        if array.size == 0:
            array = np.empty(0, dtype=np.int64)
        elif not np.issubdtype(array.dtype, np.integer):
            raise TypeError(f"indices must be integers, got {array.dtype}")

        array = np.unique(array.astype(np.int64, copy=False).reshape(-1))
        if array.size and array[0] < 0:
            raise ValueError(f"indices must be non-negative, got {array[0]}")

        array.flags.writeable = False
        self._indices = array

    @classmethod
    def from_bool(cls, mask: ArrayLike) -> MaskSet:
        """MaskSet of the True positions of a boolean mask [N]."""
        return cls(np.flatnonzero(np.asarray(mask, dtype=bool)))

    @property
    def indices(self) -> np.ndarray:
        """Sorted unique indices (read-only)."""
        return self._indices

    def max_index(self) -> int:
        """Largest index, or -1 for an empty set."""
        return int(self._indices[-1]) if len(self._indices) else -1

    def intersection(self, other: MaskSet) -> MaskSet:
        return MaskSet(np.intersect1d(self._indices, other._indices, assume_unique=True))

    def union(self, other: MaskSet) -> MaskSet:
        return MaskSet(np.union1d(self._indices, other._indices))

    def difference(self, other: MaskSet) -> MaskSet:
        return MaskSet(np.setdiff1d(self._indices, other._indices, assume_unique=True))

    def to_bool(self, count: int) -> np.ndarray:
        """
        Boolean mask [count] with True at every index of the set.

        Indices >= count are ignored.
        """
        out = np.zeros(count, dtype=np.bool_)
        if len(self._indices) and count:
            kernels.scatter_indices(self._indices, out)
        return out

    def __contains__(self, index: object) -> bool:
        if not isinstance(index, (int, np.integer)):
            return False
        pos = np.searchsorted(self._indices, index)
        return bool(pos < len(self._indices) and self._indices[pos] == index)

    def __iter__(self) -> Iterator[int]:
        return (int(i) for i in self._indices)

    def __len__(self) -> int:
        return len(self._indices)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, MaskSet):
            return NotImplemented
        return np.array_equal(self._indices, other._indices)

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"MaskSet({len(self)} indices)"


class MaskPredicate:
    """Predicate true for the indices of a MaskSet."""

    __slots__ = ("mask",)

    def __init__(self, mask: MaskSet):
        self.mask = mask

    def __call__(self, index: int) -> bool:
        return index in self.mask

    def evaluate(self, count: int) -> np.ndarray:
        return self.mask.to_bool(count)


class BooleanPredicate:
    """Predicate backed by a precomputed boolean mask [N]."""

    __slots__ = ("values",)

    def __init__(self, values: np.ndarray):
        self.values = np.asarray(values, dtype=bool)

    def __call__(self, index: int) -> bool:
        return bool(self.values[index])

    def evaluate(self, count: int) -> np.ndarray:
        if count != len(self.values):
            raise ValueError(f"count {count} doesn't match mask length {len(self.values)}")
        return self.values


def combine(masks: Sequence[MaskSet]) -> MaskSet | None:
    """
    Intersect masks.

    Args:
        masks: MaskSets to intersect, in any order

    Returns:
        Intersection of all masks, or None for an empty sequence
    """
    if len(masks) == 0:
        return None
    # Smallest first keeps every intermediate result small
    ordered = sorted(masks, key=len)
    return reduce(MaskSet.intersection, ordered[1:], ordered[0])


class ViewList:
    """
    Ordered, named MaskSets, one per accepted segmentation.

    Removing a view or clearing the list fires "viewlist.updated" so the
    combined selection can be recomputed.

    Example:
        >>> views = ViewList(events)
        >>> views.add_auto(front_mask)   # "View 1"
        >>> views.add_auto(side_mask)    # "View 2"
        >>> views.names
        ['View 1', 'View 2']
        >>> views.remove("View 1")
    """

    def __init__(self, events: Events | None = None):
        self.events = events
        self._views: dict[str, MaskSet] = {}

    def add(self, name: str, mask: MaskSet) -> None:
        """
        Add a named view.

        Raises:
            ValueError: If a view with that name already exists
        """
        if name in self._views:
            raise ValueError(f"View '{name}' already exists")
        self._views[name] = mask
        logger.debug("[ViewList] Added '%s' (%d points)", name, len(mask))

    def add_auto(self, mask: MaskSet) -> str:
        """Add mask under the next free "View N" name and return the name."""
        number = len(self._views) + 1
        name = f"{VIEW_NAME_PREFIX} {number}"
        while name in self._views:
            number += 1
            name = f"{VIEW_NAME_PREFIX} {number}"
        self.add(name, mask)
        return name

    def remove(self, name: str) -> None:
        """Remove a view. Unknown names are ignored."""
        if self._views.pop(name, None) is None:
            return
        logger.debug("[ViewList] Removed '%s'", name)
        self._fire_updated()

    def clear(self) -> None:
        """Remove every view."""
        self._views.clear()
        logger.debug("[ViewList] Cleared")
        self._fire_updated()

    def get(self, name: str) -> MaskSet:
        return self._views[name]

    def masks(self) -> list[MaskSet]:
        """MaskSets in insertion order."""
        return list(self._views.values())

    def summary(self, count: int) -> None:
        """
        Print the size of each view relative to count points.

        Example:
            >>> views.summary(len(store))
            View 1: 71/100 (71.0%)
            View 2: 40/100 (40.0%)
        """
        if not self._views:
            print("No views")
            return

        for name, mask in self._views.items():
            pct = (len(mask) / count * 100) if count > 0 else 0
            print(f"{name}: {len(mask)}/{count} ({pct:.1f}%)")

    @property
    def names(self) -> list[str]:
        return list(self._views)

    def _fire_updated(self) -> None:
        if self.events is not None:
            self.events.fire("viewlist.updated")

    def __len__(self) -> int:
        return len(self._views)

    def __contains__(self, name: str) -> bool:
        return name in self._views

    def __getitem__(self, name: str) -> MaskSet:
        return self._views[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._views)

    def __repr__(self) -> str:
        if not self._views:
            return "ViewList(0 views)"
        return f"ViewList({len(self)} views: {', '.join(self._views)})"


class MaskCombiner:
    """
    Applies segmentation masks to the selection.

    With an event bus, the combiner re-applies the view intersection whenever
    the view list reports an update.

    Example:
        >>> combiner = MaskCombiner(StateSelection(store, events), views, events)
        >>> views.add_auto(mask_a)
        >>> combiner.apply_views()                       # select A
        >>> combiner.apply_mask(mask_b, "and", store.state)  # select A and B
    """

    def __init__(self, applier: SelectionApplier, view_list: ViewList | None = None, events: Events | None = None):
        self.applier = applier
        self.view_list = view_list if view_list is not None else ViewList(events)
        if events is not None:
            events.on("viewlist.updated", self._on_views_updated)

    def _on_views_updated(self) -> None:
        self.apply_views()

    def apply_views(self) -> int:
        """
        Replace the selection with the intersection of all saved views.

        Returns:
            Number of points whose selection changed (0 when there are no views)
        """
        combined = combine(self.view_list.masks())
        if combined is None:
            logger.debug("[MaskCombiner] No views, selection unchanged")
            return 0

        logger.info(
            "[MaskCombiner] Intersection of %d views: %d points", len(self.view_list), len(combined)
        )
        return self.applier.apply_selection_op(SelectOp.REPLACE, MaskPredicate(combined))

    @validate_choices({op.value for op in MaskOperator}, "operator", param_index=2)
    def apply_mask(self, mask: MaskSet | None, operator: MaskOperator | str, state: np.ndarray) -> int:
        """
        Combine mask with the current selection.

        set: the selection becomes the mask
        or:  the selection gains the mask
        and: the selection keeps only points inside the mask

        Hidden and deleted points are never part of the result. The result is
        computed from a snapshot of state taken before anything is applied.

        Args:
            mask: Matched point indices (None counts as empty)
            operator: set, or, and
            state: Current state bytes [N]

        Returns:
            Number of points whose selection changed

        Raises:
            ValueError: If mask holds an index outside [0, N)
        """
        operator = MaskOperator(operator)
        snapshot = np.array(state, dtype=np.uint8, copy=True)
        n = len(snapshot)

        if mask is None:
            mask = MaskSet()
        if mask.max_index() >= n:
            raise ValueError(f"mask index {mask.max_index()} out of range for {n} points")

        inside = mask.to_bool(n)

        match operator:
            case MaskOperator.SET:
                result = inside
            case MaskOperator.OR:
                result = ((snapshot & int(State.SELECTED)) != 0) | inside
            case MaskOperator.AND:
                # Reads the low selection bit only
                result = ((snapshot & 1) != 0) & inside

        result &= eligible_mask(snapshot)

        logger.info(
            "[MaskCombiner] %s with %d mask points -> %d selected",
            operator.value, len(mask), int(result.sum()),
        )
        return self.applier.apply_selection_op(SelectOp.REPLACE, BooleanPredicate(result))
