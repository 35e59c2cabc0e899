"""
Selection-aware histogram over resolved attribute values.

Only points whose state byte is 0 or exactly SELECTED are counted, each bucket
tracking selected and unselected points separately. Buckets partition the
observed [min, max] of the included values, either in equal widths (linear) or
in equal ratios (log scale).
"""

from __future__ import annotations

import logging
import math
from collections.abc import Callable
from dataclasses import dataclass, field

import numpy as np

from gssel import kernels
from gssel.constants import DEFAULT_BUCKET_COUNT, DEFAULT_LOG_EPSILON, MAX_BUCKET_COUNT, MIN_BUCKET_COUNT
from gssel.validators import validate_positive, validate_range
from gssel.values import ValueFunction

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OverlayInfo:
    """Hover readout for one bucket."""

    bucket: int
    value: float
    count: int
    selected: int
    percentage: float

    def __str__(self) -> str:
        return (
            f"value: {self.value:.2f} cnt: {self.count} "
            f"({self.percentage:.2f}%) sel: {self.selected}"
        )


@dataclass(frozen=True, eq=False)
class HistogramResult:
    """
    Bucket counts plus the edge mapping used to produce them.

    Attributes:
        selected_counts: Selected points per bucket [K] int64
        unselected_counts: Unselected points per bucket [K] int64
        min_value: Smallest included value (0.0 when nothing was included)
        max_value: Largest included value (0.0 when nothing was included)
        total_included: Number of points counted
        log_scale: Whether edges are spaced by equal ratio
        epsilon: Lower clamp applied in log scale
    """

    selected_counts: np.ndarray
    unselected_counts: np.ndarray
    min_value: float
    max_value: float
    total_included: int
    log_scale: bool = False
    epsilon: float = DEFAULT_LOG_EPSILON
    counts: np.ndarray = field(init=False, repr=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "counts", self.selected_counts + self.unselected_counts)

    @property
    def bucket_count(self) -> int:
        return len(self.selected_counts)

    @property
    def total_selected(self) -> int:
        return int(self.selected_counts.sum())

    @property
    def is_empty(self) -> bool:
        return self.total_included == 0

    def value_to_bucket(self, value: float) -> int:
        """
        Map a value to its bucket with the same edges used for counting.

        Out-of-range values clamp to the first or last bucket.
        """
        return kernels.bucket_index(
            float(value),
            float(self.min_value),
            float(self.max_value),
            bool(self.log_scale),
            self.bucket_count,
            float(self.epsilon),
        )

    def bucket_value(self, bucket: int) -> float:
        """Lower edge of bucket (inverse of value_to_bucket)."""
        t = bucket / self.bucket_count
        if self.log_scale:
            lo = math.log(max(self.min_value, self.epsilon))
            hi = math.log(max(self.max_value, self.epsilon))
            return math.exp(lo + t * (hi - lo))
        return self.min_value + t * (self.max_value - self.min_value)

    def bucket_edges(self) -> np.ndarray:
        """Bucket edges [K + 1], first edge at min and last at max."""
        edges = np.array([self.bucket_value(b) for b in range(self.bucket_count + 1)])
        if self.log_scale:
            edges[-1] = max(self.max_value, self.epsilon)
        else:
            edges[-1] = self.max_value
        return edges

    def overlay_info(self, bucket: int) -> OverlayInfo:
        """Hover readout for bucket: value, count, share of all included points, selected."""
        if not 0 <= bucket < self.bucket_count:
            raise IndexError(f"bucket {bucket} outside [0, {self.bucket_count})")
        selected = int(self.selected_counts[bucket])
        count = selected + int(self.unselected_counts[bucket])
        percentage = count / self.total_included * 100 if self.total_included else 0.0
        return OverlayInfo(
            bucket=bucket,
            value=self.bucket_value(bucket),
            count=count,
            selected=selected,
            percentage=percentage,
        )

    def __repr__(self) -> str:
        scale = "log" if self.log_scale else "linear"
        return (
            f"HistogramResult({self.bucket_count} {scale} buckets, "
            f"range=[{self.min_value:.4g}, {self.max_value:.4g}], "
            f"included={self.total_included}, selected={self.total_selected})"
        )


class Histogram:
    """
    Fixed-bucket histogram builder.

    Example:
        >>> histogram = Histogram(bucket_count=256)
        >>> result = histogram.build(resolver.resolve("opacity"), store.state)
        >>> result.counts.sum() == result.total_included
        True
        >>> result.value_to_bucket(0.5)
        127
    """

    __slots__ = ("bucket_count", "epsilon")

    @validate_range(MIN_BUCKET_COUNT, MAX_BUCKET_COUNT, "bucket_count")
    @validate_positive("epsilon", param_index=2)
    def __init__(self, bucket_count: int = DEFAULT_BUCKET_COUNT, epsilon: float = DEFAULT_LOG_EPSILON):
        """
        Args:
            bucket_count: Number of buckets K
            epsilon: Lower clamp for log-scale bucketing
        """
        if int(bucket_count) != bucket_count:
            raise TypeError(f"bucket_count must be an integer, got {bucket_count}")
        self.bucket_count = int(bucket_count)
        self.epsilon = float(epsilon)

    def empty(self, log_scale: bool = False) -> HistogramResult:
        """Histogram with zero totals."""
        return HistogramResult(
            selected_counts=np.zeros(self.bucket_count, dtype=np.int64),
            unselected_counts=np.zeros(self.bucket_count, dtype=np.int64),
            min_value=0.0,
            max_value=0.0,
            total_included=0,
            log_scale=log_scale,
            epsilon=self.epsilon,
        )

    def build(self, value_function: ValueFunction, state: np.ndarray, log_scale: bool = False) -> HistogramResult:
        """
        Build the histogram of value_function over the points of state.

        Values are computed on the fly in two compiled passes; no value array
        is materialized.

        Args:
            value_function: Resolved attribute
            state: State bytes [N] uint8
            log_scale: Space bucket edges by equal ratio

        Returns:
            HistogramResult
        """
        state = np.asarray(state)
        if len(value_function) != len(state):
            raise ValueError(
                f"value function covers {len(value_function)} points, state has {len(state)}"
            )

        if len(state) == 0:
            return self.empty(log_scale)

        kind = int(value_function.kind)
        a, b, c = value_function.sources

        lo, hi, count = kernels.histogram_range(kind, a, b, c, state)
        if count == 0:
            logger.debug("[Histogram] No included points for '%s'", value_function.key)
            return self.empty(log_scale)

        selected_counts = np.zeros(self.bucket_count, dtype=np.int64)
        unselected_counts = np.zeros(self.bucket_count, dtype=np.int64)
        kernels.histogram_fill(
            kind, a, b, c, state, lo, hi, bool(log_scale), self.epsilon,
            selected_counts, unselected_counts,
        )

        logger.debug(
            "[Histogram] Built %d buckets for '%s': %d included, range=[%.4g, %.4g], log=%s",
            self.bucket_count, value_function.key, count, lo, hi, log_scale,
        )
        return HistogramResult(
            selected_counts=selected_counts,
            unselected_counts=unselected_counts,
            min_value=float(lo),
            max_value=float(hi),
            total_included=int(count),
            log_scale=bool(log_scale),
            epsilon=self.epsilon,
        )

    def build_from_callables(
        self,
        count: int,
        value_func: Callable[[int], float | None],
        selected_func: Callable[[int], bool],
        log_scale: bool = False,
    ) -> HistogramResult:
        """
        Build a histogram from arbitrary per-index callables.

        Args:
            count: Number of points
            value_func: Value of point i, or None to exclude it
            selected_func: Whether point i is selected
            log_scale: Space bucket edges by equal ratio

        Returns:
            HistogramResult
        """
        if count <= 0:
            return self.empty(log_scale)

        values = np.zeros(count, dtype=np.float64)
        included = np.zeros(count, dtype=np.bool_)
        selected = np.zeros(count, dtype=np.bool_)

        for i in range(count):
            value = value_func(i)
            if value is None:
                continue
            value = float(value)
            if not math.isfinite(value):
                continue
            values[i] = value
            included[i] = True
            selected[i] = bool(selected_func(i))

        total = int(np.count_nonzero(included))
        if total == 0:
            return self.empty(log_scale)

        lo = float(values[included].min())
        hi = float(values[included].max())

        selected_counts = np.zeros(self.bucket_count, dtype=np.int64)
        unselected_counts = np.zeros(self.bucket_count, dtype=np.int64)
        kernels.histogram_fill_values(
            values, included, selected, lo, hi, bool(log_scale), self.epsilon,
            selected_counts, unselected_counts,
        )

        return HistogramResult(
            selected_counts=selected_counts,
            unselected_counts=unselected_counts,
            min_value=lo,
            max_value=hi,
            total_included=total,
            log_scale=bool(log_scale),
            epsilon=self.epsilon,
        )
