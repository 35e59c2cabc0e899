"""
Configuration for the attribute explorer.

Provides the configuration structure for histogram bucketing and the initial
attribute shown when a point set is selected.
"""

from dataclasses import dataclass

from gssel.constants import (
    DEFAULT_ATTRIBUTE,
    DEFAULT_BUCKET_COUNT,
    DEFAULT_LOG_EPSILON,
    MAX_BUCKET_COUNT,
    MIN_BUCKET_COUNT,
)


@dataclass
class ExplorerConfig:
    """
    Configuration for DataExplorer.

    Attributes:
        bucket_count: Number of histogram buckets (independent of point count)
        log_epsilon: Lower clamp for log-scale bucketing
        log_scale: Start with log-scale buckets
        default_attribute: Attribute shown first; falls back to the first
            available attribute when the point set lacks it
    """

    bucket_count: int = DEFAULT_BUCKET_COUNT
    log_epsilon: float = DEFAULT_LOG_EPSILON
    log_scale: bool = False
    default_attribute: str = DEFAULT_ATTRIBUTE

    def __post_init__(self):
        """Validate configuration parameters."""
        if isinstance(self.bucket_count, bool) or int(self.bucket_count) != self.bucket_count:
            raise TypeError(f"bucket_count must be an integer, got {self.bucket_count!r}")

        if not MIN_BUCKET_COUNT <= self.bucket_count <= MAX_BUCKET_COUNT:
            raise ValueError(
                f"bucket_count must be between {MIN_BUCKET_COUNT} and {MAX_BUCKET_COUNT}"
            )

        if self.log_epsilon <= 0.0:
            raise ValueError("log_epsilon must be positive")

        if not self.default_attribute:
            raise ValueError("default_attribute must be a non-empty key")


# Default UI control ranges for building interfaces
UI_RANGES = {
    "bucket_count": {"min": 16, "max": 1024, "step": 16, "default": DEFAULT_BUCKET_COUNT},
    "log_scale": {"default": False},
}
