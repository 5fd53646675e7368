"""Exceptions and warnings raised by landslide-geometry."""

from __future__ import annotations

__all__ = [
    "AlignmentError",
    "EmptyZoneResult",
    "GeometryError",
    "LandslideGeometryError",
    "SingularityWarning",
]


class LandslideGeometryError(Exception):
    """Base class for unrecoverable errors in a derived field."""


class AlignmentError(LandslideGeometryError, ValueError):
    """The CRS, resolution or pixel grid of two rasters cannot be reconciled."""


class GeometryError(LandslideGeometryError, ValueError):
    """Look-direction or incidence data is missing for the requested area."""


class SingularityWarning(RuntimeWarning):
    """Pixels hit a singular point of a formula and were clamped."""


class EmptyZoneResult(UserWarning):
    """One or more polygons contain no valid pixels; their statistic is null."""
