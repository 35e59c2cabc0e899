"""
Attribute resolution: maps an attribute key to a pure per-point value function.

Keys name either a raw stored property or a derived metric:

    ==================  =========================================  ============
    key                 value                                      kind
    ==================  =========================================  ============
    scale_*             exp(raw)                                   SCALE
    f_dc_*              0.5 + raw * SH_C0                          COLOR
    opacity             sigmoid(raw)                               OPACITY
    distance            sqrt(x^2 + y^2 + z^2)                      DISTANCE
    volume              exp(s0) * exp(s1) * exp(s2)                VOLUME
    surface-area        exp(s0)^2 + exp(s1)^2 + exp(s2)^2          SURFACE_AREA
    hue                 HSV hue of decoded f_dc_0..2, in degrees   HUE
    saturation          HSV saturation of decoded f_dc_0..2        SATURATION
    value               HSV value of decoded f_dc_0..2             VALUE
    anything else       raw                                        RAW
    ==================  =========================================  ============

"surface-area" is the sum of squared scales, not the ellipsoid surface area.
Existing consumers depend on this exact number.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass

import numpy as np

from gssel import kernels
from gssel.constants import (
    COLOR_PROPERTIES,
    DERIVED_METRICS,
    OPACITY_PROPERTY,
    POSITION_PROPERTIES,
    SCALE_PROPERTIES,
    SUPPRESSED_PROPERTIES,
)
from gssel.errors import UnresolvableAttributeError
from gssel.protocols import AttributeSource

logger = logging.getLogger(__name__)


class ValueKind(enum.IntEnum):
    """Closed set of value computations understood by the kernels."""

    RAW = kernels.KIND_RAW
    SCALE = kernels.KIND_SCALE
    COLOR = kernels.KIND_COLOR
    OPACITY = kernels.KIND_OPACITY
    DISTANCE = kernels.KIND_DISTANCE
    VOLUME = kernels.KIND_VOLUME
    SURFACE_AREA = kernels.KIND_SURFACE_AREA
    HUE = kernels.KIND_HUE
    SATURATION = kernels.KIND_SATURATION
    VALUE = kernels.KIND_VALUE


def classify(key: str) -> tuple[ValueKind, tuple[str, ...]]:
    """
    Determine the value kind of key and the raw properties it reads.

    Args:
        key: Attribute key

    Returns:
        (kind, source property names)

    Example:
        >>> classify("volume")
        (<ValueKind.VOLUME: 5>, ('scale_0', 'scale_1', 'scale_2'))
        >>> classify("f_dc_1")
        (<ValueKind.COLOR: 2>, ('f_dc_1',))
    """
    match key:
        case "distance":
            return ValueKind.DISTANCE, POSITION_PROPERTIES
        case "volume":
            return ValueKind.VOLUME, SCALE_PROPERTIES
        case "surface-area":
            return ValueKind.SURFACE_AREA, SCALE_PROPERTIES
        case "hue":
            return ValueKind.HUE, COLOR_PROPERTIES
        case "saturation":
            return ValueKind.SATURATION, COLOR_PROPERTIES
        case "value":
            return ValueKind.VALUE, COLOR_PROPERTIES
        case _ if key in SCALE_PROPERTIES:
            return ValueKind.SCALE, (key,)
        case _ if key in COLOR_PROPERTIES:
            return ValueKind.COLOR, (key,)
        case "opacity":
            return ValueKind.OPACITY, (OPACITY_PROPERTY,)
        case _:
            return ValueKind.RAW, (key,)


@dataclass(frozen=True, eq=False)
class ValueFunction:
    """
    Pure function from point index to value.

    Holds the source arrays only, never the store, so it does not keep a
    replaced point set alive beyond its own lifetime.

    Attributes:
        key: Attribute key this function was resolved from
        kind: Value computation
        sources: Source arrays (a, b, c); single-property kinds repeat the array
    """

    key: str
    kind: ValueKind
    sources: tuple[np.ndarray, np.ndarray, np.ndarray]

    def __call__(self, index: int) -> float:
        """
        Value of point index.

        Raises:
            IndexError: If index is outside [0, N); negative indices do not wrap
        """
        index = int(index)
        if not 0 <= index < len(self):
            raise IndexError(f"point index {index} outside [0, {len(self)})")
        a, b, c = self.sources
        return kernels.value_at(int(self.kind), a, b, c, index)

    def __len__(self) -> int:
        return len(self.sources[0])

    def evaluate(self, out: np.ndarray | None = None) -> np.ndarray:
        """
        Evaluate every point in one pass.

        Args:
            out: Optional float64 output buffer [N]

        Returns:
            Values [N] float64
        """
        n = len(self)
        if out is None:
            out = np.empty(n, dtype=np.float64)
        elif out.shape != (n,) or out.dtype != np.float64:
            raise ValueError(f"out must be float64 with shape ({n},), got {out.dtype} {out.shape}")

        if n:
            a, b, c = self.sources
            kernels.evaluate_values(int(self.kind), a, b, c, out)
        return out

    def __repr__(self) -> str:
        return f"ValueFunction(key='{self.key}', kind={self.kind.name}, n={len(self)})"


class ValueResolver:
    """
    Resolves attribute keys against one point store.

    Create a new resolver (or call resolve() again) whenever the active key or
    the store changes; value functions are never cached.

    Example:
        >>> resolver = ValueResolver(store)
        >>> volume = resolver.resolve("volume")
        >>> volume(0)
        1.0
        >>> resolver.resolve("missing") is None
        True
    """

    def __init__(self, store: AttributeSource):
        self.store = store

    def resolve(self, key: str) -> ValueFunction | None:
        """
        Resolve key to a value function.

        Returns:
            ValueFunction, or None if the store lacks a required property
        """
        try:
            return self.require(key)
        except UnresolvableAttributeError as e:
            logger.warning("[ValueResolver] %s", e)
            return None

    def require(self, key: str) -> ValueFunction:
        """
        Resolve key to a value function.

        Raises:
            UnresolvableAttributeError: If the store lacks a required property
        """
        kind, names = classify(key)

        arrays = []
        missing = []
        for name in names:
            array = self.store.get_property(name)
            if array is None:
                missing.append(name)
            else:
                arrays.append(array)

        if missing:
            raise UnresolvableAttributeError(key, tuple(missing))

        if len(arrays) == 1:
            sources = (arrays[0], arrays[0], arrays[0])
        else:
            sources = tuple(arrays)

        logger.debug("[ValueResolver] Resolved '%s' as %s from %s", key, kind.name, names)
        return ValueFunction(key=key, kind=kind, sources=sources)

    def can_resolve(self, key: str) -> bool:
        """Whether the store has every raw property key reads."""
        _, names = classify(key)
        return all(self.store.get_property(name) is not None for name in names)

    def available_keys(self) -> list[str]:
        """
        Keys offered in the attribute selector.

        Raw properties in storage order, then the derived metrics whose sources
        exist, minus the suppressed properties.
        """
        raw = [name for name in self.store.property_names() if name not in SUPPRESSED_PROPERTIES]
        derived = [key for key in DERIVED_METRICS if key not in raw and self.can_resolve(key)]
        return raw + derived
