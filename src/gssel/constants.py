"""
Constants and default values for gssel.

Centralizes magic numbers and configuration defaults for better maintainability.
"""

from __future__ import annotations

# =============================================================================
# Decode Constants
# =============================================================================

# Spherical Harmonics DC component constant, 1/(2*sqrt(pi))
SH_C0 = 0.28209479177387814

# =============================================================================
# Histogram Constants
# =============================================================================

DEFAULT_BUCKET_COUNT = 256  # Matches the 256px wide histogram canvas
MIN_BUCKET_COUNT = 1
MAX_BUCKET_COUNT = 65536

# Lower clamp for log-scale bucketing (log domain must stay positive)
DEFAULT_LOG_EPSILON = 1e-6

# =============================================================================
# Attribute Constants
# =============================================================================

# Derived metrics offered after the raw properties, in display order
DERIVED_METRICS = ("distance", "volume", "surface-area", "hue", "saturation", "value")

# Default attribute shown when a point set is first selected
DEFAULT_ATTRIBUTE = "surface-area"

# Raw properties never offered in the attribute selector
SUPPRESSED_PROPERTIES = frozenset(["state", "transform"] + [f"f_rest_{i}" for i in range(45)])

# PLY column names for the per-point attributes
POSITION_PROPERTIES = ("x", "y", "z")
SCALE_PROPERTIES = ("scale_0", "scale_1", "scale_2")
COLOR_PROPERTIES = ("f_dc_0", "f_dc_1", "f_dc_2")
ROTATION_PROPERTIES = ("rot_0", "rot_1", "rot_2", "rot_3")
OPACITY_PROPERTY = "opacity"
STATE_PROPERTY = "state"

# =============================================================================
# Segmentation Constants
# =============================================================================

# Category values produced by the interactive segmenter
FOREGROUND_CATEGORY = 0
BACKGROUND_CATEGORY = 255

# Name prefix for views added to the view list
VIEW_NAME_PREFIX = "View"
