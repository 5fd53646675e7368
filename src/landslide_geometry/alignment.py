"""alignment.py: utilities for putting rasters on a common pixel grid.

Pixel-wise arithmetic between two rasters is only meaningful when both share a
CRS, a resolution and a pixel origin. Mosaics of many tiles have no reliable
projection of their own, so the projection of one representative tile is pinned
explicitly before merging.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Sequence

import numpy as np
from affine import Affine
from pyproj import CRS
from pyproj.exceptions import CRSError
from rasterio.enums import Resampling
from rasterio.warp import reproject

from . import _io
from ._helpers import reproject_bounds
from ._types import Bbox, GridSpec, PathOrStr
from .constants import METERS_PER_DEGREE
from .errors import AlignmentError
from .raster import RasterField

__all__ = [
    "align_angle_to_grid",
    "align_to_grid",
    "clip_to",
    "grid_from_raster",
    "mosaic",
    "pin_projection",
    "resample_to_scale",
]

logger = logging.getLogger(__name__)


def grid_from_raster(source: RasterField | PathOrStr) -> GridSpec:
    """Get the canonical pixel grid of a representative raster.

    Parameters
    ----------
    source : RasterField or PathOrStr
        In-memory field, or path to a raster file.

    Returns
    -------
    GridSpec
        CRS, transform and shape of `source`.

    Raises
    ------
    AlignmentError
        If the CRS is missing or invalid, or the transform is degenerate.

    """
    if isinstance(source, RasterField):
        grid = source.grid
    else:
        crs = _io.get_raster_crs(source)
        if crs is None:
            msg = f"{source} has no coordinate reference system"
            raise AlignmentError(msg)
        transform = _io.get_raster_transform(source)
        bounds = _io.get_raster_bounds(source)
        width = round((bounds.right - bounds.left) / abs(transform.a))
        height = round((bounds.top - bounds.bottom) / abs(transform.e))
        grid = GridSpec(crs, transform, width, height)
    validate_grid(grid)
    return grid


def validate_grid(grid: GridSpec) -> None:
    """Check that `grid` has a usable CRS and a north-up, non-empty transform."""
    if grid.crs is None:
        msg = "Grid has no coordinate reference system"
        raise AlignmentError(msg)
    try:
        CRS.from_user_input(grid.crs)
    except CRSError as e:
        msg = f"Invalid coordinate reference system: {grid.crs}"
        raise AlignmentError(msg) from e
    t = grid.transform
    if t.b != 0 or t.d != 0:
        msg = f"Rotated transforms are not supported: {t}"
        raise AlignmentError(msg)
    if t.a == 0 or t.e == 0 or not (np.isfinite(t.a) and np.isfinite(t.e)):
        msg = f"Degenerate pixel size in transform: {t}"
        raise AlignmentError(msg)
    if grid.width <= 0 or grid.height <= 0:
        msg = f"Empty grid shape: {grid.shape}"
        raise AlignmentError(msg)


def pin_projection(tiles: Sequence[PathOrStr]) -> tuple[CRS, tuple[float, float]]:
    """Get the explicit CRS and (x, y) resolution to use for a set of tiles.

    The first tile is taken as the representative one.
    """
    if not tiles:
        msg = "No tiles given"
        raise ValueError(msg)
    grid = grid_from_raster(tiles[0])
    logger.debug(f"Pinned projection of {tiles[0]}: {grid.crs.name} {grid.resolution}")
    return grid.crs, grid.resolution


def mosaic(
    tiles: Sequence[PathOrStr | RasterField],
    crs: CRS | None = None,
    resolution: tuple[float, float] | None = None,
    resampling: str = "bilinear",
    band: int = 1,
    name: str = "mosaic",
    units: str = "",
) -> RasterField:
    """Merge tiles into one field on an explicitly pinned projection.

    Parameters
    ----------
    tiles : Sequence[PathOrStr | RasterField]
        Raster files (or fields) to merge.
    crs : pyproj.CRS, optional
        Output CRS. Defaults to the CRS of the first tile.
    resolution : tuple[float, float], optional
        Output (x, y) pixel size in units of `crs`.
        Defaults to the resolution of the first tile.
    resampling : str, default="bilinear"
        Name of the `rasterio.enums.Resampling` method for warping tiles that
        are not on the output pixel lattice.
    band : int, default=1
        Band to read from raster files.
    name : str
        Name of the output field.
    units : str
        Units of the output field.

    Returns
    -------
    RasterField
        Merged field. Where tiles overlap, the earliest tile in `tiles` wins.
        The output grid keeps the pixel origin of the first tile, extended by
        whole pixels to cover all tiles.

    """
    if not tiles:
        msg = "No tiles given to mosaic"
        raise ValueError(msg)
    fields = [
        t if isinstance(t, RasterField) else _io.load_raster(t, band=band, units=units)
        for t in tiles
    ]
    first_grid = grid_from_raster(fields[0])
    if crs is None:
        crs = first_grid.crs
    if resolution is None:
        resolution = first_grid.resolution

    if len(fields) == 1 and first_grid.crs == CRS.from_user_input(crs):
        if np.allclose(first_grid.resolution, resolution):
            logger.info("Only one tile, no mosaicking needed")
            return fields[0].with_data(fields[0].data, name=name, units=units)

    out_grid = _anchored_grid(fields, crs, resolution)
    logger.info(
        f"Mosaicking {len(fields)} tiles onto {out_grid.crs.name},"
        f" resolution {resolution}, shape {out_grid.shape}"
    )
    out = np.full(out_grid.shape, np.nan)
    for field in fields:
        offset = _lattice_offset(field.grid, out_grid)
        if offset is None:
            warped = align_to_grid(field, out_grid, resampling=resampling).data
            empty = np.isnan(out)
            out[empty] = warped[empty]
            continue
        row, col = offset
        rows = slice(max(row, 0), min(row + field.shape[0], out_grid.height))
        cols = slice(max(col, 0), min(col + field.shape[1], out_grid.width))
        src = field.data[
            rows.start - row : rows.stop - row, cols.start - col : cols.stop - col
        ]
        window = out[rows, cols]
        empty = np.isnan(window)
        window[empty] = src[empty]
    return RasterField.from_grid(out, out_grid, name=name, units=units)


def align_to_grid(
    field: RasterField, grid: GridSpec, resampling: str = "bilinear"
) -> RasterField:
    """Re-express `field` on the pixel grid `grid`.

    Parameters
    ----------
    field : RasterField
        Field to reproject.
    grid : GridSpec
        Target grid (e.g. from `grid_from_raster` on the SAR raster).
    resampling : str, default="bilinear"
        Name of the `rasterio.enums.Resampling` method.

    Returns
    -------
    RasterField
        Field on `grid`. Cells not covered by valid source pixels are NaN.

    Raises
    ------
    AlignmentError
        If either grid has a missing/invalid CRS or degenerate transform.

    """
    validate_grid(grid)
    validate_grid(field.grid)
    if field.grid.matches(grid):
        return field

    resampling_method = get_resampling(resampling)
    logger.debug(f"Aligning {field.name!r} from {field.grid} to {grid}")
    destination = np.full(grid.shape, np.nan, dtype=np.float64)
    reproject(
        source=field.data,
        destination=destination,
        src_transform=field.transform,
        src_crs=field.crs.to_wkt(),
        src_nodata=np.nan,
        dst_transform=grid.transform,
        dst_crs=CRS.from_user_input(grid.crs).to_wkt(),
        dst_nodata=np.nan,
        resampling=resampling_method,
    )
    return RasterField.from_grid(destination, grid, name=field.name, units=field.units)


def align_angle_to_grid(
    field: RasterField, grid: GridSpec, resampling: str = "bilinear"
) -> RasterField:
    """Re-express a field of bearings (in degrees) on the pixel grid `grid`.

    The sine and cosine are resampled separately, so interpolation across the
    0/360 wrap stays on the correct side of north.
    """
    if field.grid.matches(grid):
        return field
    radians = np.radians(field.data)
    sin = align_to_grid(field.with_data(np.sin(radians)), grid, resampling)
    cos = align_to_grid(field.with_data(np.cos(radians)), grid, resampling)
    bearing = np.degrees(np.arctan2(sin.data, cos.data)) % 360.0
    return RasterField.from_grid(bearing, grid, name=field.name, units=field.units)


def clip_to(field: RasterField, reference: RasterField) -> RasterField:
    """Mask `field` to the valid footprint of `reference` (same grid required)."""
    reference.check_same_grid(field)
    return field.with_data(np.where(reference.valid_mask, field.data, np.nan))


def resample_to_scale(
    field: RasterField, scale: float, resampling: str = "nearest"
) -> RasterField:
    """Resample a field to a sampling scale given in meters.

    For geographic CRSs the scale is converted to degrees at the centre
    latitude of the field.
    If the field is already at the requested scale, it is returned unchanged.
    """
    if not scale > 0:
        msg = f"scale must be positive, got {scale}"
        raise ValueError(msg)
    res = scale_to_resolution(field.grid, scale)
    if np.allclose(field.grid.resolution, res, rtol=1e-6):
        return field
    bounds = _align_bounds(field.bounds, res)
    grid = _grid_from_bounds(bounds, field.crs, res)
    return align_to_grid(field, grid, resampling=resampling)


def scale_to_resolution(grid: GridSpec, scale: float) -> tuple[float, float]:
    """Convert a scale in meters to an (x, y) pixel size in units of `grid.crs`."""
    crs = CRS.from_user_input(grid.crs)
    if not crs.is_geographic:
        unit_factor = crs.axis_info[0].unit_conversion_factor if crs.axis_info else 1.0
        return (scale / unit_factor, scale / unit_factor)
    bounds = grid.bounds
    center_lat = (bounds.top + bounds.bottom) / 2
    dy = scale / METERS_PER_DEGREE
    dx = scale / (METERS_PER_DEGREE * math.cos(math.radians(center_lat)))
    return (dx, dy)


def get_resampling(name: str | Resampling) -> Resampling:
    """Get the rasterio `Resampling` member from its name."""
    if isinstance(name, Resampling):
        return name
    try:
        return Resampling[name]
    except KeyError:
        choices = [r.name for r in Resampling]
        msg = f"Unknown resampling method {name!r}. Choices: {choices}"
        raise ValueError(msg) from None


def _combined_bounds(fields: Iterable[RasterField], dst_crs: CRS) -> Bbox:
    """Union of the bounds of all `fields`, in `dst_crs`."""
    out = [reproject_bounds(f.bounds, f.crs, dst_crs) for f in fields]
    return Bbox(
        min(b.left for b in out),
        min(b.bottom for b in out),
        max(b.right for b in out),
        max(b.top for b in out),
    )


def _align_bounds(bounds: Iterable[float], res: tuple[float, float]) -> Bbox:
    """Align boundary with an integer multiple of the resolution."""
    left, bottom, right, top = bounds
    left = math.floor(left / res[0]) * res[0]
    right = math.ceil(right / res[0]) * res[0]
    bottom = math.floor(bottom / res[1]) * res[1]
    top = math.ceil(top / res[1]) * res[1]
    return Bbox(left, bottom, right, top)


def _grid_from_bounds(bounds: Bbox, crs: CRS, res: tuple[float, float]) -> GridSpec:
    width = max(round((bounds.right - bounds.left) / res[0]), 1)
    height = max(round((bounds.top - bounds.bottom) / res[1]), 1)
    transform = Affine(res[0], 0.0, bounds.left, 0.0, -res[1], bounds.top)
    return GridSpec(CRS.from_user_input(crs), transform, width, height)


def _whole_pixels(distance: float, res: float) -> int:
    """Number of whole pixels of size `res` needed to span `distance`."""
    n = distance / res
    if abs(n - round(n)) < 1e-6:
        return max(round(n), 0)
    return max(math.ceil(n), 0)


def _anchored_grid(
    fields: Sequence[RasterField], crs: CRS, res: tuple[float, float]
) -> GridSpec:
    """Grid on the pixel lattice of the first field covering the union of `fields`."""
    union = _combined_bounds(fields, crs)
    first = fields[0]
    if CRS.from_user_input(crs) == first.crs:
        x0, y0 = first.transform.c, first.transform.f
    else:
        anchor = reproject_bounds(first.bounds, first.crs, crs)
        x0, y0 = anchor.left, anchor.top
    left = x0 - _whole_pixels(x0 - union.left, res[0]) * res[0]
    top = y0 + _whole_pixels(union.top - y0, res[1]) * res[1]
    width = max(_whole_pixels(union.right - left, res[0]), 1)
    height = max(_whole_pixels(top - union.bottom, res[1]), 1)
    transform = Affine(res[0], 0.0, left, 0.0, -res[1], top)
    return GridSpec(CRS.from_user_input(crs), transform, width, height)


def _lattice_offset(grid: GridSpec, target: GridSpec) -> tuple[int, int] | None:
    """Get the (row, col) offset of `grid` inside `target`.

    Returns None unless both grids share a CRS, a pixel size and a pixel
    lattice, in which case samples can be copied without resampling.
    """
    if CRS.from_user_input(grid.crs) != CRS.from_user_input(target.crs):
        return None
    src, dst = grid.transform, target.transform
    if not (np.isclose(src.a, dst.a) and np.isclose(src.e, dst.e)):
        return None
    col = (src.c - dst.c) / dst.a
    row = (src.f - dst.f) / dst.e
    if abs(col - round(col)) > 1e-6 or abs(row - round(row)) > 1e-6:
        return None
    return round(row), round(col)
