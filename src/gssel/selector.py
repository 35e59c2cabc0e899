"""
Bucket-range selection.

Turns an inclusive bucket range of a histogram back into a point predicate.
The predicate uses the histogram's own edge mapping and inclusion rule, so the
points selected are exactly the points the user saw in those bars.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np

from gssel import kernels
from gssel.errors import InvalidBucketRangeError
from gssel.histogram import HistogramResult
from gssel.protocols import SelectionApplier
from gssel.state import SelectOp
from gssel.values import ValueFunction

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class RangePredicate:
    """
    True for visible, non-deleted points whose value falls in [start, end].

    Attributes:
        value_function: Attribute the histogram was built from
        state: State bytes [N], read at evaluation time
        histogram: Histogram whose edges define the buckets
        start: First bucket (inclusive)
        end: Last bucket (inclusive)
    """

    value_function: ValueFunction
    state: np.ndarray
    histogram: HistogramResult
    start: int
    end: int

    def __call__(self, index: int) -> bool:
        index = int(index)
        if not 0 <= index < len(self.state):
            raise IndexError(f"point index {index} outside [0, {len(self.state)})")
        if self.histogram.is_empty:
            return False
        if not kernels.is_included(int(self.state[index])):
            return False
        value = self.value_function(index)
        if not np.isfinite(value):
            return False
        bucket = self.histogram.value_to_bucket(value)
        return self.start <= bucket <= self.end

    def evaluate(self, count: int) -> np.ndarray:
        out = np.zeros(count, dtype=np.bool_)
        if count == 0 or self.histogram.is_empty:
            return out
        if count != len(self.state):
            raise ValueError(f"count {count} doesn't match state length {len(self.state)}")

        a, b, c = self.value_function.sources
        h = self.histogram
        kernels.range_mask(
            int(self.value_function.kind), a, b, c, self.state,
            h.min_value, h.max_value, h.log_scale, h.bucket_count, h.epsilon,
            self.start, self.end, out,
        )
        return out


def clamp_bucket_range(start: int, end: int, bucket_count: int) -> tuple[int, int]:
    """
    Clamp a bucket range to [0, bucket_count - 1].

    Raises:
        InvalidBucketRangeError: If start > end
    """
    start = int(start)
    end = int(end)
    if start > end:
        raise InvalidBucketRangeError(f"start bucket {start} is after end bucket {end}")
    last = bucket_count - 1
    return min(max(start, 0), last), min(max(end, 0), last)


class PredicateSelector:
    """
    Selects points by histogram bucket range.

    Example:
        >>> selector = PredicateSelector(result, StateSelection(store, events))
        >>> selector.select_range(SelectOp.ADD, 10, 20, value_function, store.state)
    """

    def __init__(self, histogram: HistogramResult, applier: SelectionApplier):
        self.histogram = histogram
        self.applier = applier

    def predicate(self, start: int, end: int, value_function: ValueFunction, state: np.ndarray) -> RangePredicate:
        """
        Build the predicate for buckets [start, end] without applying it.

        Out-of-range bucket indices are clamped.

        Raises:
            InvalidBucketRangeError: If start > end
        """
        start, end = clamp_bucket_range(start, end, self.histogram.bucket_count)
        return RangePredicate(
            value_function=value_function,
            state=np.asarray(state),
            histogram=self.histogram,
            start=start,
            end=end,
        )

    def select_range(
        self,
        op: SelectOp | str,
        start: int,
        end: int,
        value_function: ValueFunction,
        state: np.ndarray,
    ) -> int:
        """
        Apply op with the points of buckets [start, end].

        Returns:
            Number of points whose selection changed, as reported by the applier
        """
        predicate = self.predicate(start, end, value_function, state)
        op = SelectOp(op)
        logger.info(
            "[PredicateSelector] %s buckets [%d, %d] of '%s'",
            op.value, predicate.start, predicate.end, value_function.key,
        )
        return self.applier.apply_selection_op(op, predicate)
