"""
gssel - Gaussian Splat Selection

Attribute histograms and selection predicates for 3D Gaussian Splatting scenes.

Features:
- Attribute resolution for raw PLY properties and derived metrics
  (distance, volume, surface-area, hue, saturation, value)
- Decode transforms applied on the fly: exp scales, SH DC colors, sigmoid opacity
- Selection-aware histograms (selected/unselected per bucket, hidden and
  deleted points excluded) with linear or log-scale buckets
- Bucket-range selection using the exact edges of the displayed histogram
- Segmentation mask combination: multi-view intersection and set/or/and
- Numba-compiled scans, no per-attribute value arrays materialized

Example - Histogram and range selection:
    >>> import gsply
    >>> from gssel import Histogram, PointAttributeStore, PredicateSelector, StateSelection, ValueResolver
    >>>
    >>> store = PointAttributeStore.from_gsdata(gsply.plyread("scene.ply"))
    >>> volume = ValueResolver(store).resolve("volume")
    >>> result = Histogram(256).build(volume, store.state, log_scale=True)
    >>>
    >>> # Select the largest splats
    >>> selector = PredicateSelector(result, StateSelection(store))
    >>> selector.select_range("replace", 240, 255, volume, store.state)

Example - Multi-view segmentation:
    >>> from gssel import MaskCombiner, MaskSet, ViewList
    >>>
    >>> views = ViewList()
    >>> views.add_auto(MaskSet(front_indices))
    >>> views.add_auto(MaskSet(side_indices))
    >>> MaskCombiner(StateSelection(store), views).apply_views()
"""

__version__ = "0.1.0"

# Configuration
from gssel.config import UI_RANGES, ExplorerConfig

# Errors
from gssel.errors import (
    GsselError,
    InvalidBucketRangeError,
    SegmentationUnavailableError,
    UnresolvableAttributeError,
)

# Notification bus
from gssel.events import Events

# Data panel controller
from gssel.explorer import DataExplorer, Totals

# Histogram
from gssel.histogram import Histogram, HistogramResult, OverlayInfo

# Mask combination
from gssel.masks import BooleanPredicate, MaskCombiner, MaskPredicate, MaskSet, ViewList, combine

# Protocols
from gssel.protocols import AttributeSource, MaskCalculator, Predicate, SelectionApplier, Segmenter

# Segmentation interaction
from gssel.segmentation import SegmentationSession, SegmentationState, foreground_mask

# Range selection
from gssel.selector import PredicateSelector, RangePredicate

# State flags and selection operations
from gssel.state import MaskOperator, SelectOp, State, StateSelection

# Point store
from gssel.store import PointAttributeStore

# Attribute resolution
from gssel.values import ValueFunction, ValueKind, ValueResolver

__all__ = [
    # Version
    "__version__",
    # Data structures
    "PointAttributeStore",
    "State",
    # Attribute resolution
    "ValueResolver",
    "ValueFunction",
    "ValueKind",
    # Histogram
    "Histogram",
    "HistogramResult",
    "OverlayInfo",
    # Selection
    "SelectOp",
    "StateSelection",
    "PredicateSelector",
    "RangePredicate",
    # Masks
    "MaskSet",
    "MaskOperator",
    "MaskPredicate",
    "BooleanPredicate",
    "MaskCombiner",
    "ViewList",
    "combine",
    # Segmentation
    "SegmentationSession",
    "SegmentationState",
    "foreground_mask",
    # Controller
    "DataExplorer",
    "Totals",
    "Events",
    # Configuration
    "ExplorerConfig",
    "UI_RANGES",
    # Protocols
    "AttributeSource",
    "Predicate",
    "SelectionApplier",
    "Segmenter",
    "MaskCalculator",
    # Errors
    "GsselError",
    "UnresolvableAttributeError",
    "InvalidBucketRangeError",
    "SegmentationUnavailableError",
]
