"""Slope and aspect of an elevation raster.

Conventions
-----------
- Slope: degrees from horizontal, range [0, 90].
- Aspect: degrees clockwise from north (0/360 = N, 90 = E), range [0, 360),
  pointing **downslope** (direction of steepest descent). Flat pixels get 0.
- Gradients use the Horn (1981) weighted 3x3 neighborhood. Border pixels, and
  pixels with any no-data neighbor, are no-data.

Slope and aspect depend on the orientation of the pixel grid, so compute them on
the pinned DEM projection (see `alignment.mosaic`) before any reprojection.
"""

from __future__ import annotations

import numpy as np

from .constants import METERS_PER_DEGREE
from .raster import RasterField

__all__ = ["aspect", "gradient", "slope", "slope_aspect"]


def gradient(dem: RasterField) -> tuple[np.ndarray, np.ndarray]:
    """Get the elevation derivatives (dz/d_east, dz/d_north) of a DEM.

    Geographic CRSs are converted to meters using the latitude of each row.

    Returns
    -------
    dz_dx, dz_dy : np.ndarray
        Derivatives toward east and toward north (unitless, rise over run).

    """
    z = np.pad(dem.data, 1, mode="constant", constant_values=np.nan)
    # Neighborhood, named by position:
    # a b c
    # d e f
    # g h i
    a, b, c = z[:-2, :-2], z[:-2, 1:-1], z[:-2, 2:]
    d, f = z[1:-1, :-2], z[1:-1, 2:]
    g, h, i = z[2:, :-2], z[2:, 1:-1], z[2:, 2:]

    dz_dcol = ((c + 2 * f + i) - (a + 2 * d + g)) / 8.0
    dz_drow = ((g + 2 * h + i) - (a + 2 * b + c)) / 8.0

    dx, dy = _pixel_size_meters(dem)
    # A north-up transform has a negative `e`, so dividing by it flips rows
    # (increasing southward) into a northward derivative.
    dz_dx = dz_dcol / dx
    dz_dy = dz_drow / dy
    return dz_dx, dz_dy


def slope_aspect(dem: RasterField) -> tuple[RasterField, RasterField]:
    """Compute slope and aspect, in degrees, from an elevation field.

    Parameters
    ----------
    dem : RasterField
        Elevation in meters, NaN for no data.

    Returns
    -------
    slope, aspect : RasterField
        Fields on the same grid as `dem`.

    """
    dz_dx, dz_dy = gradient(dem)
    slope_deg = np.degrees(np.arctan(np.hypot(dz_dx, dz_dy)))

    # Downslope vector is -grad(z); bearing is atan2(east, north)
    with np.errstate(invalid="ignore"):
        aspect_deg = np.degrees(np.arctan2(-dz_dx, -dz_dy)) % 360.0
        flat = slope_deg == 0
    aspect_deg = np.where(flat, 0.0, aspect_deg)
    aspect_deg = np.where(np.isnan(slope_deg), np.nan, aspect_deg)

    return (
        dem.with_data(np.clip(slope_deg, 0.0, 90.0), name="slope", units="degrees"),
        dem.with_data(aspect_deg, name="aspect", units="degrees"),
    )


def slope(dem: RasterField) -> RasterField:
    """Slope in degrees from horizontal."""
    return slope_aspect(dem)[0]


def aspect(dem: RasterField) -> RasterField:
    """Downslope bearing in degrees clockwise from north."""
    return slope_aspect(dem)[1]


def _pixel_size_meters(field: RasterField) -> tuple[np.ndarray | float, float]:
    """Signed (x, y) pixel size in meters; x varies per row for lat/lon grids."""
    t = field.transform
    if not field.crs.is_geographic:
        factor = 1.0
        if field.crs.axis_info:
            factor = field.crs.axis_info[0].unit_conversion_factor
        return t.a * factor, t.e * factor

    rows = np.arange(field.shape[0]) + 0.5
    lat_centers = t.f + rows * t.e
    dx = t.a * METERS_PER_DEGREE * np.cos(np.radians(lat_centers))
    dx = np.where(dx == 0, np.nan, dx)[:, np.newaxis]
    return dx, t.e * METERS_PER_DEGREE
