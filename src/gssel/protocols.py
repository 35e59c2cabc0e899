"""
Protocol definitions for gssel collaborator interfaces.

The selection-apply step, the segmentation model and the pixel-to-point
mapping live outside this package; these protocols describe what gssel
expects from them.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, Protocol, runtime_checkable

import numpy as np

if TYPE_CHECKING:
    from gssel.masks import MaskSet
    from gssel.state import MaskOperator, SelectOp


@runtime_checkable
class Predicate(Protocol):
    """
    Index predicate that can also evaluate every index in one pass.

    Implementations must be side-effect free.
    """

    def __call__(self, index: int) -> bool:
        """Return True if point index is included."""
        ...

    def evaluate(self, count: int) -> np.ndarray:
        """
        Evaluate the predicate for every index in [0, count).

        Returns:
            Boolean mask [count]
        """
        ...


@runtime_checkable
class AttributeSource(Protocol):
    """Read access to per-point raw property arrays and state bytes."""

    def get_property(self, name: str) -> np.ndarray | None:
        """Raw values of property name indexed by point, or None if absent."""
        ...

    def property_names(self) -> tuple[str, ...]:
        """Names of the available raw properties, in storage order."""
        ...

    def get_state_byte(self, index: int) -> int:
        """State flags of point index."""
        ...


@runtime_checkable
class SelectionApplier(Protocol):
    """Mutates per-point selection state from a predicate."""

    def apply_selection_op(
        self, op: SelectOp | str, predicate: Predicate | Callable[[int], bool]
    ) -> int:
        """
        Apply predicate to the selection with the given operation.

        Returns:
            Number of points whose selection changed
        """
        ...


class Segmenter(Protocol):
    """Interactive image segmentation model."""

    async def segment(self, image: np.ndarray, keypoint: tuple[float, float]) -> np.ndarray | None:
        """
        Segment the object under keypoint.

        Args:
            image: Rendered image [H, W, C]
            keypoint: Click point in normalized image coordinates (x, y) in [0, 1]

        Returns:
            Category mask [h, w] uint8 (0 = foreground, 255 = background), or
            None if nothing was segmented
        """
        ...


class MaskCalculator(Protocol):
    """Maps an image-space mask to the indices of the points projecting into it."""

    def calculate_mask(
        self, store: AttributeSource, operator: MaskOperator | str, mask_image: np.ndarray
    ) -> MaskSet | None:
        """
        Args:
            store: Point store the mask applies to
            operator: Operator the mask will be applied with
            mask_image: Boolean foreground mask [h, w]

        Returns:
            Matched point indices, or None if no point matched
        """
        ...
