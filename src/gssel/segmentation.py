"""
Interactive segmentation session.

States:
    idle            nothing pending
    awaiting-click  waiting for the user to click the object to segment
    mask-ready      a segmentation mask is pending accept or cancel

    idle --start()--> awaiting-click --click()--> mask-ready
    mask-ready --accept()/cancel()--> idle

The pending mask is kept in image space. It is mapped to point indices only
when accepted, so the mapping sees the point states of that moment. A result
that arrives after cancel() is discarded.
"""

from __future__ import annotations

import enum
import logging
from typing import TYPE_CHECKING

import numpy as np

from gssel.constants import FOREGROUND_CATEGORY
from gssel.errors import SegmentationUnavailableError
from gssel.masks import MaskCombiner, MaskSet
from gssel.protocols import MaskCalculator, Segmenter
from gssel.state import MaskOperator, State

if TYPE_CHECKING:
    from gssel.events import Events
    from gssel.store import PointAttributeStore

logger = logging.getLogger(__name__)


class SegmentationState(str, enum.Enum):
    IDLE = "idle"
    AWAITING_CLICK = "awaiting-click"
    MASK_READY = "mask-ready"


def foreground_mask(category_mask: np.ndarray) -> np.ndarray:
    """
    Boolean foreground mask from a segmenter category mask.

    Args:
        category_mask: Category per pixel [h, w] (0 = foreground, 255 = background)

    Returns:
        Boolean mask [h, w]
    """
    category_mask = np.asarray(category_mask)
    if category_mask.ndim != 2:
        raise ValueError(f"category mask must be [h, w], got shape {category_mask.shape}")
    return category_mask == FOREGROUND_CATEGORY


class SegmentationSession:
    """
    Drives one segment-then-accept interaction against a point store.

    Example:
        >>> session = SegmentationSession(store, segmenter, calculator, combiner, events)
        >>> session.start()
        >>> await session.click(412, 230, rendered_image)
        >>> session.accept()            # save as a view, select the intersection
        >>> # or
        >>> session.accept("and")       # intersect the selection with this mask
    """

    def __init__(
        self,
        store: PointAttributeStore,
        segmenter: Segmenter | None,
        calculator: MaskCalculator,
        combiner: MaskCombiner,
        events: Events | None = None,
    ):
        """
        Args:
            store: Point store masks are mapped onto (reassignable)
            segmenter: Segmentation model, or None if it failed to load
            calculator: Image-mask to point-index mapping
            combiner: Applies accepted masks to the selection
            events: Optional bus; "segmentation.changed" fires on every transition
        """
        self.store = store
        self.segmenter = segmenter
        self.calculator = calculator
        self.combiner = combiner
        self.events = events

        self._state = SegmentationState.IDLE
        self._pending: np.ndarray | None = None
        self._request = 0

    @property
    def state(self) -> SegmentationState:
        return self._state

    @property
    def pending_mask(self) -> np.ndarray | None:
        """Foreground mask awaiting accept, in image space."""
        return self._pending

    @property
    def is_active(self) -> bool:
        return self._state is not SegmentationState.IDLE

    def _transition(self, state: SegmentationState) -> None:
        if state is SegmentationState.IDLE:
            self._pending = None
        if state is not self._state:
            logger.debug("[Segmentation] %s -> %s", self._state.value, state.value)
            self._state = state
            if self.events is not None:
                self.events.fire("segmentation.changed", state)

    def start(self) -> None:
        """Begin listening for a click."""
        if self._state is not SegmentationState.IDLE:
            logger.debug("[Segmentation] start() ignored in state %s", self._state.value)
            return
        self._request += 1
        self._transition(SegmentationState.AWAITING_CLICK)

    async def click(self, x: float, y: float, image: np.ndarray) -> np.ndarray | None:
        """
        Segment the object under pixel (x, y) of image.

        A second click while a mask is ready replaces the pending mask.

        Args:
            x: Click column in pixels
            y: Click row in pixels
            image: Rendered image [H, W, C]

        Returns:
            Foreground mask [h, w], or None if the session was cancelled while
            the segmenter was running

        Raises:
            RuntimeError: If no segmentation is in progress
            SegmentationUnavailableError: If the segmenter is missing or fails;
                the session is back in idle
        """
        if self._state is SegmentationState.IDLE:
            raise RuntimeError("click() requires start() first")

        image = np.asarray(image)
        height, width = image.shape[:2]
        if width == 0 or height == 0:
            raise ValueError(f"image must be non-empty, got shape {image.shape}")
        keypoint = (x / width, y / height)

        if self.segmenter is None:
            self._transition(SegmentationState.IDLE)
            raise SegmentationUnavailableError("segmentation model is not loaded")

        request = self._request
        try:
            category_mask = await self.segmenter.segment(image, keypoint)
        except Exception as e:
            if request == self._request:
                self._transition(SegmentationState.IDLE)
            raise SegmentationUnavailableError(f"segmentation failed: {e}") from e

        if request != self._request:
            logger.debug("[Segmentation] Discarding result of cancelled request")
            return None

        if category_mask is None:
            self._transition(SegmentationState.IDLE)
            raise SegmentationUnavailableError("segmenter returned no mask")

        self._pending = foreground_mask(category_mask)
        logger.info(
            "[Segmentation] Mask ready at (%.3f, %.3f): %d foreground pixels",
            keypoint[0], keypoint[1], int(self._pending.sum()),
        )
        self._transition(SegmentationState.MASK_READY)
        return self._pending

    def accept(self, operator: MaskOperator | str | None = None) -> MaskSet | None:
        """
        Apply the pending mask and return to idle.

        Without operator the mask is saved as a new view and the selection
        becomes the intersection of all views. With operator (set, or, and) the
        mask is combined directly with the current selection.

        Returns:
            Point indices of the accepted mask, or None if no point matched

        Raises:
            RuntimeError: If no mask is ready
            SegmentationUnavailableError: If the mask calculator fails; the
                session is back in idle
        """
        if self._state is not SegmentationState.MASK_READY:
            raise RuntimeError(f"accept() requires a ready mask, state is {self._state.value}")

        image_mask = self._pending
        self._request += 1
        self._transition(SegmentationState.IDLE)

        if operator is not None:
            operator = MaskOperator(operator)
        try:
            mask = self.calculator.calculate_mask(self.store, operator or MaskOperator.SET, image_mask)
        except Exception as e:
            raise SegmentationUnavailableError(f"mask calculation failed: {e}") from e
        if mask is None:
            logger.info("[Segmentation] No points matched the mask")
            return None

        # Deleted points may have changed since the click
        deleted = MaskSet.from_bool((self.store.state & int(State.DELETED)) != 0)
        mask = mask.difference(deleted)

        if operator is None:
            name = self.combiner.view_list.add_auto(mask)
            logger.info("[Segmentation] Saved %s (%d points)", name, len(mask))
            self.combiner.apply_views()
        else:
            self.combiner.apply_mask(mask, operator, self.store.state)

        return mask

    def cancel(self) -> None:
        """Discard any pending mask or in-flight request and return to idle."""
        self._request += 1
        self._transition(SegmentationState.IDLE)
