"""
Exception types raised by gssel.

All errors derive from GsselError so applications can catch them in one place.
"""

from __future__ import annotations


class GsselError(Exception):
    """Base class for gssel errors."""


class UnresolvableAttributeError(GsselError, KeyError):
    """Attribute key references raw properties the point set does not have."""

    def __init__(self, key: str, missing: tuple[str, ...] = ()):
        self.key = key
        self.missing = missing
        super().__init__(key)

    def __str__(self) -> str:
        if self.missing:
            return f"Attribute '{self.key}' requires missing properties: {', '.join(self.missing)}"
        return f"Attribute '{self.key}' is not available on this point set"


class InvalidBucketRangeError(GsselError, ValueError):
    """Bucket range where start lies after end."""


class SegmentationUnavailableError(GsselError, RuntimeError):
    """Segmentation model failed to load or did not produce a mask."""
