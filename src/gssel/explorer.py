"""
DataExplorer: headless controller behind the data panel.

Keeps the attribute histogram in step with the active point set. The histogram
is rebuilt from scratch on every trigger:
    - the active attribute or the log-scale flag changes
    - "state.changed" (selection, hide or delete modified state bytes)
    - "selection.changed" (a different point set became active)
    - the panel is expanded, or toggled via "panel.toggle"

While collapsed nothing is computed. Each rebuild fires "histogram.updated"
with the new HistogramResult.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from gssel.config import ExplorerConfig
from gssel.events import Events
from gssel.histogram import Histogram, HistogramResult
from gssel.selector import PredicateSelector
from gssel.state import SelectOp, StateSelection
from gssel.store import PointAttributeStore
from gssel.values import ValueFunction, ValueResolver

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Totals:
    """Point counts shown next to the histogram."""

    splats: int
    selected: int
    hidden: int
    deleted: int

    @classmethod
    def of(cls, store: PointAttributeStore) -> Totals:
        deleted = store.num_deleted
        return cls(
            splats=store.num_points - deleted,
            selected=store.num_selected,
            hidden=store.num_hidden,
            deleted=deleted,
        )


class DataExplorer:
    """
    Attribute histogram and bucket-range selection for the active point set.

    Example:
        >>> events = Events()
        >>> explorer = DataExplorer(events)
        >>> events.fire("selection.changed", store)
        >>> explorer.expand()
        >>> explorer.set_attribute("opacity")
        >>> explorer.result.total_included
        1000
        >>> explorer.select("add", 200, 255)   # select the most opaque points
    """

    def __init__(self, events: Events, config: ExplorerConfig | None = None):
        self.events = events
        self.config = config if config is not None else ExplorerConfig()
        self.histogram = Histogram(self.config.bucket_count, self.config.log_epsilon)

        self.store: PointAttributeStore | None = None
        self.applier: StateSelection | None = None
        self.attribute = self.config.default_attribute
        self.log_scale = self.config.log_scale
        self.collapsed = True

        self.options: list[str] = []
        self.result: HistogramResult | None = None
        self.totals: Totals | None = None

        events.on("state.changed", self._on_state_changed)
        events.on("selection.changed", self._on_selection_changed)
        events.on("panel.toggle", self.toggle)

        logger.info("[DataExplorer] Initialized with %d buckets", self.config.bucket_count)

    # ------------------------------------------------------------------
    # Event handlers
    # ------------------------------------------------------------------

    def _on_selection_changed(self, store: PointAttributeStore) -> None:
        self.store = store
        self.applier = StateSelection(store, self.events)
        self.options = ValueResolver(store).available_keys()
        self.update()

    def _on_state_changed(self, store: PointAttributeStore) -> None:
        if store is not self.store:
            self._on_selection_changed(store)
            return
        self.update()

    # ------------------------------------------------------------------
    # Controls
    # ------------------------------------------------------------------

    def set_attribute(self, key: str) -> None:
        if key != self.attribute:
            self.attribute = key
            self.update()

    def set_log_scale(self, enabled: bool) -> None:
        if bool(enabled) != self.log_scale:
            self.log_scale = bool(enabled)
            self.update()

    def expand(self) -> None:
        self.collapsed = False
        self.update()

    def collapse(self) -> None:
        self.collapsed = True

    def toggle(self) -> None:
        self.collapsed = not self.collapsed
        self.update()

    # ------------------------------------------------------------------
    # Recompute
    # ------------------------------------------------------------------

    def value_function(self) -> ValueFunction | None:
        """
        Resolve the active attribute against the active store.

        Falls back to the first available attribute when the active one cannot
        be resolved.
        """
        if self.store is None:
            return None

        resolver = ValueResolver(self.store)
        func = resolver.resolve(self.attribute)
        if func is not None:
            return func

        for key in self.options:
            func = resolver.resolve(key)
            if func is not None:
                logger.warning(
                    "[DataExplorer] '%s' unavailable, falling back to '%s'", self.attribute, key
                )
                self.attribute = key
                return func
        return None

    def update(self) -> HistogramResult | None:
        """Rebuild totals and histogram unless collapsed or no store is active."""
        if self.store is None or self.collapsed:
            return None

        self.totals = Totals.of(self.store)

        func = self.value_function()
        if func is None:
            self.result = self.histogram.empty(self.log_scale)
        else:
            self.result = self.histogram.build(func, self.store.state, self.log_scale)

        logger.debug("[DataExplorer] %r", self.result)
        self.events.fire("histogram.updated", self.result)
        return self.result

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    def select(self, op: SelectOp | str, start: int, end: int) -> int:
        """
        Apply op with the points in buckets [start, end] of the current attribute.

        Buckets are taken from a histogram of the current attribute, state and
        log scale, so they match what update() would display even while the
        panel is collapsed.

        Returns:
            Number of points whose selection changed
        """
        if self.store is None or self.applier is None:
            return 0

        func = self.value_function()
        if func is None:
            return 0

        result = self.histogram.build(func, self.store.state, self.log_scale)
        selector = PredicateSelector(result, self.applier)
        return selector.select_range(op, start, end, func, self.store.state)
