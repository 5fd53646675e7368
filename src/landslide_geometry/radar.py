"""Terrain-relative SAR viewing geometry.

Conventions
-----------
- Inputs: incidence angle theta_i, terrain slope alpha_s and aspect phi_s, and
  the look direction phi_i, all in degrees.
- Outputs are in radians.
- relative aspect:      phi_r = phi_i - phi_s (not wrapped; only cos(phi_r) is used)
- range slope:          alpha_r = atan(tan(alpha_s) * cos(phi_r))
- local incidence:      theta_loc = theta_i - alpha_r

References
----------
Lee and Liu (1999), "Analysis of topographic decorrelation in SAR
interferometry using ratio coherence imagery", IGARSS.
"""

from __future__ import annotations

import logging
import warnings
from dataclasses import dataclass
from typing import Union

import numpy as np
from affine import Affine
from numpy.typing import ArrayLike
from pyproj import CRS
from rasterio.features import geometry_mask
from shapely.geometry import box
from shapely.geometry.base import BaseGeometry

from ._helpers import reproject_geometry
from ._types import Bbox
from .errors import GeometryError, SingularityWarning
from .raster import RasterField
from .terrain import slope_aspect

__all__ = [
    "RadarGeometry",
    "compute_radar_geometry",
    "estimate_look_direction",
    "local_incidence",
    "range_slope",
    "relative_aspect",
]

logger = logging.getLogger(__name__)

FieldOrArray = Union[RasterField, ArrayLike]

# Slopes at or above this (degrees) saturate the range-slope projection
SATURATION_SLOPE = 90.0


@dataclass(frozen=True, eq=False)
class RadarGeometry:
    """Terrain-relative radar geometry on the SAR grid (angles in radians)."""

    look_direction: float
    """Look direction estimate, in degrees clockwise from north."""
    incidence: RasterField
    relative_aspect: RasterField
    range_slope: RasterField
    local_incidence: RasterField


def estimate_look_direction(
    incidence: RasterField,
    aoi: BaseGeometry | Bbox | None = None,
    aoi_crs: CRS | int | str = 4326,
    subsample_factor: int = 1,
) -> float:
    """Estimate the sensor look direction from an incidence-angle raster.

    The incidence angle grows monotonically across the swath, so the aspect of
    the incidence raster points along the look direction. The estimate is the
    circular mean of that aspect over the area of interest.

    Parameters
    ----------
    incidence : RasterField
        Incidence angle, in degrees.
    aoi : shapely geometry or Bbox, optional
        Area of interest. Defaults to the whole raster.
    aoi_crs : CRS, int or str
        CRS of `aoi`. Default is EPSG:4326 (lon/lat).
    subsample_factor : int
        Decimate the incidence raster by this factor before taking its aspect.
        Coarse sampling smooths out quantization steps in the angle band.

    Returns
    -------
    float
        Look direction, in degrees clockwise from north, in [0, 360).

    Raises
    ------
    GeometryError
        If `aoi` does not intersect the raster, or has no valid aspect pixels.

    """
    if subsample_factor < 1:
        msg = f"subsample_factor must be >= 1, got {subsample_factor}"
        raise ValueError(msg)
    if subsample_factor > 1:
        f = subsample_factor
        incidence = RasterField(
            incidence.data[::f, ::f],
            incidence.crs,
            incidence.transform @ Affine.scale(f, f),
            name=incidence.name,
            units=incidence.units,
        )

    inc_slope, inc_aspect = slope_aspect(incidence)
    valid = inc_aspect.valid_mask & (inc_slope.data > 0)

    if aoi is not None:
        if isinstance(aoi, tuple):
            aoi = box(*aoi)
        aoi_local = reproject_geometry(aoi, aoi_crs, incidence.crs)
        if not aoi_local.intersects(box(*incidence.bounds)):
            msg = "Area of interest does not intersect the incidence-angle raster"
            raise GeometryError(msg)
        inside = geometry_mask(
            [aoi_local],
            out_shape=incidence.shape,
            transform=incidence.transform,
            all_touched=True,
            invert=True,
        )
        valid &= inside

    if not valid.any():
        msg = "No valid incidence-angle pixels in the area of interest"
        raise GeometryError(msg)

    bearings = np.radians(inc_aspect.data[valid])
    mean_sin, mean_cos = np.sin(bearings).mean(), np.cos(bearings).mean()
    if np.hypot(mean_sin, mean_cos) < 1e-9:
        msg = "Incidence-angle aspect has no dominant direction"
        raise GeometryError(msg)
    look = float(np.degrees(np.arctan2(mean_sin, mean_cos)) % 360.0)
    logger.info(f"Estimated look direction: {look:.3f} degrees from {valid.sum()} px")
    return look


def relative_aspect(
    look_direction: float | FieldOrArray, aspect: FieldOrArray
) -> FieldOrArray:
    """Bearing of the downslope direction relative to the look direction, radians.

    The result is phi_i - phi_s and is not wrapped to [-pi, pi].
    `look_direction` is a scalar, or a field on the grid of `aspect`.
    """
    _check_same_grid(look_direction, aspect)
    phi_r = np.radians(_values(look_direction)) - np.radians(_values(aspect))
    return _wrap(aspect, phi_r, "relative_aspect", "radians")


def range_slope(
    slope: FieldOrArray,
    aspect: FieldOrArray,
    look_direction: float | FieldOrArray,
) -> FieldOrArray:
    """Component of the terrain slope in the range direction, in radians.

    Parameters
    ----------
    slope : RasterField or ArrayLike
        Terrain slope, in degrees.
    aspect : RasterField or ArrayLike
        Terrain aspect, in degrees clockwise from north.
    look_direction : float or RasterField
        Look direction, in degrees clockwise from north. Either one value for
        the whole scene, or a field on the grid of `slope`.

    Returns
    -------
    RasterField or np.ndarray
        alpha_r = atan(tan(alpha_s) * cos(phi_r)).
        Vertical slopes (alpha_s >= 90 degrees) saturate to +/- pi/2 with the
        sign of cos(phi_r), or 0 when the slope faces across the range direction.

    """
    _check_same_grid(slope, aspect, look_direction)
    slope_deg = np.asarray(_values(slope), dtype=np.float64)
    cos_phi_r = np.cos(_values(relative_aspect(look_direction, _values(aspect))))

    with np.errstate(invalid="ignore"):
        saturated = slope_deg >= SATURATION_SLOPE
        alpha_r = np.arctan(np.tan(np.radians(slope_deg)) * cos_phi_r)
    if saturated.any():
        crossing = np.abs(cos_phi_r) < 1e-12
        limit = np.where(crossing, 0.0, np.copysign(np.pi / 2, cos_phi_r))
        alpha_r = np.where(saturated, limit, alpha_r)
        n = int(saturated.sum())
        warnings.warn(
            f"{n} pixel(s) with slope >= {SATURATION_SLOPE} degrees saturated"
            " to maximal range slope",
            SingularityWarning,
            stacklevel=2,
        )
    return _wrap(slope, alpha_r, "range_slope", "radians")


def local_incidence(incidence: FieldOrArray, range_slope: FieldOrArray) -> FieldOrArray:
    """Local incidence angle theta_i - alpha_r, in radians.

    Parameters
    ----------
    incidence : RasterField or ArrayLike
        Incidence angle theta_i, in degrees.
    range_slope : RasterField or ArrayLike
        Range slope alpha_r, in radians.

    """
    _check_same_grid(incidence, range_slope)
    theta_loc = np.radians(_values(incidence)) - np.asarray(_values(range_slope))
    return _wrap(incidence, theta_loc, "local_incidence", "radians")


def compute_radar_geometry(
    incidence: RasterField,
    slope: RasterField,
    aspect: RasterField,
    look_direction: float | None = None,
    aoi: BaseGeometry | Bbox | None = None,
    aoi_crs: CRS | int | str = 4326,
    subsample_factor: int = 1,
) -> RadarGeometry:
    """Combine SAR incidence and terrain slope/aspect into local geometry.

    All three fields must already be on the same grid
    (see `alignment.align_to_grid`).
    If `look_direction` is None, it is estimated from `incidence` over `aoi`.
    """
    incidence.check_same_grid(slope, aspect)
    if look_direction is None:
        look_direction = estimate_look_direction(
            incidence, aoi=aoi, aoi_crs=aoi_crs, subsample_factor=subsample_factor
        )
    phi_r = relative_aspect(look_direction, aspect)
    alpha_r = range_slope(slope, aspect, look_direction)
    theta_loc = local_incidence(incidence, alpha_r)
    incidence_rad = incidence.with_data(
        np.radians(incidence.data), name="incidence_angle", units="radians"
    )
    return RadarGeometry(
        look_direction=look_direction,
        incidence=incidence_rad,
        relative_aspect=phi_r,
        range_slope=alpha_r,
        local_incidence=theta_loc,
    )


def _values(x: FieldOrArray):
    return x.data if isinstance(x, RasterField) else np.asarray(x, dtype=np.float64)


def _wrap(like: FieldOrArray, data: np.ndarray, name: str, units: str):
    if isinstance(like, RasterField):
        return like.with_data(data, name=name, units=units)
    return data


def _check_same_grid(*items: FieldOrArray) -> None:
    fields = [x for x in items if isinstance(x, RasterField)]
    if len(fields) > 1:
        fields[0].check_same_grid(*fields[1:])
