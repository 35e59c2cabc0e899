"""
Read-only view over per-point raw property arrays.

Properties are keyed by their PLY column names (x, y, z, scale_0..2,
f_dc_0..2, opacity, ...). The state byte array is the only mutable column; it
is shared with the owning application, never copied.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping

import numpy as np
from gsply import GSData
from numpy.typing import ArrayLike

from gssel.constants import (
    COLOR_PROPERTIES,
    OPACITY_PROPERTY,
    POSITION_PROPERTIES,
    ROTATION_PROPERTIES,
    SCALE_PROPERTIES,
    STATE_PROPERTY,
)
from gssel.state import State, eligible_mask, selected_mask

logger = logging.getLogger(__name__)


def _readonly_view(values: ArrayLike, name: str) -> np.ndarray:
    array = np.asarray(values)
    if array.ndim != 1:
        raise ValueError(f"property '{name}' must be 1D, got shape {array.shape}")
    # View so the caller's own array keeps its flags
    view = array.view()
    view.flags.writeable = False
    return view


class PointAttributeStore:
    """
    Per-point raw properties plus the mutable state byte of every point.

    Attributes:
        state: State bytes [N] uint8 (shared with the caller when passed as uint8)

    Example:
        >>> store = PointAttributeStore({
        ...     "x": xs, "y": ys, "z": zs,
        ...     "scale_0": s0, "scale_1": s1, "scale_2": s2,
        ... })
        >>> store.property_names()
        ('x', 'y', 'z', 'scale_0', 'scale_1', 'scale_2')
        >>> store.state[3] = State.DELETED
    """

    __slots__ = ("_properties", "_state")

    def __init__(self, properties: Mapping[str, ArrayLike], state: ArrayLike | None = None):
        """
        Args:
            properties: Raw property arrays keyed by name, all of length N
            state: Optional state bytes [N]. A "state" entry in properties is
                used when this is None; all zeros otherwise.

        Raises:
            ValueError: If arrays are not 1D or lengths differ
        """
        self._properties: dict[str, np.ndarray] = {}

        n_points = None
        for name, values in properties.items():
            if name == STATE_PROPERTY:
                if state is None:
                    state = values
                continue
            view = _readonly_view(values, name)
            if n_points is None:
                n_points = len(view)
            elif len(view) != n_points:
                raise ValueError(
                    f"property '{name}' has {len(view)} values, expected {n_points}"
                )
            self._properties[name] = view

        if state is None:
            self._state = np.zeros(n_points or 0, dtype=np.uint8)
        else:
            state_array = np.asarray(state)
            if state_array.dtype != np.uint8:
                state_array = state_array.astype(np.uint8)
            if state_array.ndim != 1:
                raise ValueError(f"state must be 1D, got shape {state_array.shape}")
            if n_points is not None and len(state_array) != n_points:
                raise ValueError(
                    f"state has {len(state_array)} values, expected {n_points}"
                )
            self._state = state_array

        logger.debug(
            "[PointAttributeStore] %d points, %d properties", len(self._state), len(self._properties)
        )

    @classmethod
    def from_gsdata(cls, data: GSData, state: ArrayLike | None = None) -> PointAttributeStore:
        """
        Lay out a GSData as PLY-named property columns.

        Columns are strided views into the GSData arrays, not copies. Values
        are taken as stored (log scales, logit opacities, SH coefficients), as
        read by gsply.plyread.

        Args:
            data: GSData with means, scales, quats, opacities, sh0 and optional shN
            state: Optional state bytes [N]

        Returns:
            PointAttributeStore over the GSData columns

        Example:
            >>> import gsply
            >>> store = PointAttributeStore.from_gsdata(gsply.plyread("scene.ply"))
        """
        properties: dict[str, np.ndarray] = {}

        means = np.asarray(data.means)
        for axis, name in enumerate(POSITION_PROPERTIES):
            properties[name] = means[:, axis]

        sh0 = np.asarray(data.sh0).reshape(len(means), -1)
        for channel, name in enumerate(COLOR_PROPERTIES):
            properties[name] = sh0[:, channel]

        # PLY stores higher-order SH channel-major: f_rest_{c * K + k} = shN[:, k, c]
        if data.shN is not None:
            shN = np.asarray(data.shN)
            if shN.ndim == 3 and shN.shape[1] > 0:
                n_bands = shN.shape[1]
                for channel in range(shN.shape[2]):
                    for band in range(n_bands):
                        properties[f"f_rest_{channel * n_bands + band}"] = shN[:, band, channel]

        properties[OPACITY_PROPERTY] = np.asarray(data.opacities).reshape(len(means))

        scales = np.asarray(data.scales)
        for axis, name in enumerate(SCALE_PROPERTIES):
            properties[name] = scales[:, axis]

        quats = np.asarray(data.quats)
        for axis, name in enumerate(ROTATION_PROPERTIES):
            properties[name] = quats[:, axis]

        logger.info("[PointAttributeStore] Loaded %d Gaussians from GSData", len(means))
        return cls(properties, state=state)

    # ------------------------------------------------------------------
    # Raw properties
    # ------------------------------------------------------------------

    def get_property(self, name: str) -> np.ndarray | None:
        """Read-only raw values of name, or None if the property is absent."""
        if name == STATE_PROPERTY:
            return self._state
        return self._properties.get(name)

    def property_names(self) -> tuple[str, ...]:
        """Raw property names in storage order, followed by "state"."""
        return tuple(self._properties) + (STATE_PROPERTY,)

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def state(self) -> np.ndarray:
        """Mutable state bytes [N] uint8."""
        return self._state

    def get_state_byte(self, index: int) -> int:
        return int(self._state[index])

    @property
    def num_points(self) -> int:
        return len(self._state)

    @property
    def num_deleted(self) -> int:
        return int(np.count_nonzero(self._state & int(State.DELETED)))

    @property
    def num_hidden(self) -> int:
        """Hidden points that are not also deleted."""
        hidden = (self._state & int(State.HIDDEN)) != 0
        deleted = (self._state & int(State.DELETED)) != 0
        return int(np.count_nonzero(hidden & ~deleted))

    @property
    def num_selected(self) -> int:
        """Selected points that are visible and not deleted."""
        return int(np.count_nonzero(selected_mask(self._state) & eligible_mask(self._state)))

    def __len__(self) -> int:
        return len(self._state)

    def __contains__(self, name: str) -> bool:
        return name in self._properties or name == STATE_PROPERTY

    def __repr__(self) -> str:
        return f"PointAttributeStore({len(self)} points, {len(self._properties)} properties)"
