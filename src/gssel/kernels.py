"""
Numba-optimized kernels for attribute evaluation, histogram bucketing and
range predicates.

Every kernel reads values through value_at(), so the histogram that is drawn
and the predicate that selects always see identical numbers and bucket edges.
Value kinds are plain integers here; gssel.values.ValueKind names them.

Source arrays are passed as three slots (a, b, c). Single-property kinds only
read slot a; callers pass the same array in the unused slots.
"""

import math

import numpy as np
from numba import njit, prange

from gssel.constants import SH_C0

# Value kinds (mirrored by gssel.values.ValueKind)
KIND_RAW = 0
KIND_SCALE = 1
KIND_COLOR = 2
KIND_OPACITY = 3
KIND_DISTANCE = 4
KIND_VOLUME = 5
KIND_SURFACE_AREA = 6
KIND_HUE = 7
KIND_SATURATION = 8
KIND_VALUE = 9

# State byte of a selected, visible point (gssel.state.State.SELECTED)
_SELECTED = 1


# ============================================================================
# Scalar helpers
# ============================================================================


@njit(cache=True, nogil=True)
def sigmoid(v: float) -> float:
    """Numerically-stable logistic function."""
    if v >= 0.0:
        return 1.0 / (1.0 + math.exp(-v))
    e = math.exp(v)
    return e / (1.0 + e)


@njit(cache=True, nogil=True)
def sh_to_color(v: float) -> float:
    """Decode a spherical-harmonic DC coefficient to a linear color channel."""
    return 0.5 + v * SH_C0


@njit(cache=True, nogil=True)
def rgb_to_hsv(r: float, g: float, b: float) -> tuple[float, float, float]:
    """
    Convert RGB to HSV with all three components in [0, 1] for in-gamut input.

    Zero chroma gives hue 0; black gives saturation 0.
    """
    v = max(r, max(g, b))
    c = v - min(r, min(g, b))

    h = 0.0
    if c > 0.0:
        if v == r:
            h = (g - b) / c
        elif v == g:
            h = 2.0 + (b - r) / c
        else:
            h = 4.0 + (r - g) / c
        if h < 0.0:
            h += 6.0

    s = 0.0
    if v != 0.0:
        s = c / v

    return h / 6.0, s, v


@njit(cache=True, nogil=True)
def is_included(s: int) -> bool:
    """
    Whether a point with state byte s is counted and selectable.

    Only a plain point (0) or a plain selected point (SELECTED) qualifies; any
    other bit, known or not, excludes it.
    """
    return s == 0 or s == _SELECTED


@njit(cache=True, nogil=True)
def value_at(kind: int, a: np.ndarray, b: np.ndarray, c: np.ndarray, i: int) -> float:
    """
    Evaluate one value kind for point i.

    Args:
        kind: Value kind tag
        a, b, c: Source property arrays [N]
        i: Point index

    Returns:
        Decoded or derived value as float64 (may be non-finite for bad input)
    """
    if kind == KIND_RAW:
        return float(a[i])
    elif kind == KIND_SCALE:
        return math.exp(float(a[i]))
    elif kind == KIND_COLOR:
        return sh_to_color(float(a[i]))
    elif kind == KIND_OPACITY:
        return sigmoid(float(a[i]))
    elif kind == KIND_DISTANCE:
        x = float(a[i])
        y = float(b[i])
        z = float(c[i])
        return math.sqrt(x * x + y * y + z * z)
    elif kind == KIND_VOLUME:
        return math.exp(float(a[i])) * math.exp(float(b[i])) * math.exp(float(c[i]))
    elif kind == KIND_SURFACE_AREA:
        sx = math.exp(float(a[i]))
        sy = math.exp(float(b[i]))
        sz = math.exp(float(c[i]))
        return sx * sx + sy * sy + sz * sz
    else:
        h, s, v = rgb_to_hsv(
            sh_to_color(float(a[i])),
            sh_to_color(float(b[i])),
            sh_to_color(float(c[i])),
        )
        if kind == KIND_HUE:
            return h * 360.0
        elif kind == KIND_SATURATION:
            return s
        elif kind == KIND_VALUE:
            return v
    return math.nan


@njit(cache=True, nogil=True)
def bucket_index(
    value: float,
    lo: float,
    hi: float,
    log_scale: bool,
    bucket_count: int,
    epsilon: float,
) -> int:
    """
    Map a value to its bucket, clamped to [0, bucket_count - 1].

    Log scale spaces edges by equal ratio over [max(lo, epsilon), hi]; values
    at or below epsilon land in bucket 0. A zero-width range maps everything
    to bucket 0.
    """
    if log_scale:
        value = math.log(max(value, epsilon))
        lo = math.log(max(lo, epsilon))
        hi = math.log(max(hi, epsilon))

    span = hi - lo
    if not span > 0.0:
        return 0

    t = (value - lo) / span * bucket_count
    # Negative and NaN both fall through to bucket 0
    if not t >= 0.0:
        return 0
    if t >= bucket_count:
        return bucket_count - 1
    return int(t)


# ============================================================================
# Array kernels
# ============================================================================


@njit(parallel=True, cache=True, nogil=True)
def evaluate_values(kind: int, a: np.ndarray, b: np.ndarray, c: np.ndarray, out: np.ndarray) -> None:
    """
    Evaluate a value kind for every point.

    Args:
        kind: Value kind tag
        a, b, c: Source property arrays [N]
        out: Output values [N] float64 (modified in-place)
    """
    n = out.shape[0]
    for i in prange(n):
        out[i] = value_at(kind, a, b, c, i)


@njit(cache=True, nogil=True)
def histogram_range(
    kind: int,
    a: np.ndarray,
    b: np.ndarray,
    c: np.ndarray,
    state: np.ndarray,
) -> tuple[float, float, int]:
    """
    First histogram pass: min, max and count of included values.

    A point is included when its state is 0 or exactly SELECTED and its value
    is finite.

    Returns:
        (min, max, count); (inf, -inf, 0) when nothing is included
    """
    n = state.shape[0]
    lo = math.inf
    hi = -math.inf
    count = 0

    for i in range(n):
        s = state[i]
        if not is_included(s):
            continue
        v = value_at(kind, a, b, c, i)
        if not math.isfinite(v):
            continue
        if v < lo:
            lo = v
        if v > hi:
            hi = v
        count += 1

    return lo, hi, count


@njit(cache=True, nogil=True)
def histogram_fill(
    kind: int,
    a: np.ndarray,
    b: np.ndarray,
    c: np.ndarray,
    state: np.ndarray,
    lo: float,
    hi: float,
    log_scale: bool,
    epsilon: float,
    selected_counts: np.ndarray,
    unselected_counts: np.ndarray,
) -> None:
    """
    Second histogram pass: count included points per bucket.

    Args:
        selected_counts: Per-bucket selected counts [K] (modified in-place)
        unselected_counts: Per-bucket unselected counts [K] (modified in-place)
    """
    n = state.shape[0]
    k = selected_counts.shape[0]

    for i in range(n):
        s = state[i]
        if not is_included(s):
            continue
        v = value_at(kind, a, b, c, i)
        if not math.isfinite(v):
            continue
        bucket = bucket_index(v, lo, hi, log_scale, k, epsilon)
        if s == _SELECTED:
            selected_counts[bucket] += 1
        else:
            unselected_counts[bucket] += 1


@njit(cache=True, nogil=True)
def histogram_fill_values(
    values: np.ndarray,
    included: np.ndarray,
    selected: np.ndarray,
    lo: float,
    hi: float,
    log_scale: bool,
    epsilon: float,
    selected_counts: np.ndarray,
    unselected_counts: np.ndarray,
) -> None:
    """
    Count pre-evaluated values per bucket.

    Args:
        values: Values [N] float64
        included: Inclusion mask [N]
        selected: Selection mask [N]
    """
    n = values.shape[0]
    k = selected_counts.shape[0]

    for i in range(n):
        if not included[i]:
            continue
        bucket = bucket_index(values[i], lo, hi, log_scale, k, epsilon)
        if selected[i]:
            selected_counts[bucket] += 1
        else:
            unselected_counts[bucket] += 1


@njit(parallel=True, cache=True, nogil=True)
def range_mask(
    kind: int,
    a: np.ndarray,
    b: np.ndarray,
    c: np.ndarray,
    state: np.ndarray,
    lo: float,
    hi: float,
    log_scale: bool,
    bucket_count: int,
    epsilon: float,
    start: int,
    end: int,
    out: np.ndarray,
) -> None:
    """
    Mark points whose value falls in buckets [start, end] (inclusive).

    Points that are hidden or deleted, or whose value is not finite, are never
    marked.

    Args:
        out: Output mask [N] (modified in-place)
    """
    n = state.shape[0]

    for i in prange(n):
        s = state[i]
        hit = False
        if is_included(s):
            v = value_at(kind, a, b, c, i)
            if math.isfinite(v):
                bucket = bucket_index(v, lo, hi, log_scale, bucket_count, epsilon)
                hit = bucket >= start and bucket <= end
        out[i] = hit


@njit(parallel=True, cache=True, nogil=True)
def included_mask(state: np.ndarray, out: np.ndarray) -> None:
    """
    Mark points that are counted and selectable (see is_included).

    Args:
        state: State bytes [N]
        out: Output mask [N] (modified in-place)
    """
    n = state.shape[0]
    for i in prange(n):
        out[i] = is_included(state[i])


@njit(cache=True, nogil=True)
def scatter_indices(indices: np.ndarray, out: np.ndarray) -> None:
    """
    Set out[indices] to True, ignoring indices outside [0, len(out)).

    Args:
        indices: Point indices [M]
        out: Output mask [N] (modified in-place)
    """
    n = out.shape[0]
    for j in range(indices.shape[0]):
        i = indices[j]
        if i >= 0 and i < n:
            out[i] = True
