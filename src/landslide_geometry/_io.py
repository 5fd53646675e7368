from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import numpy as np
import rasterio as rio
from affine import Affine
from pyproj import CRS
from rasterio.enums import Resampling

from ._types import Bbox, PathOrStr
from .errors import AlignmentError
from .raster import RasterField

__all__ = [
    "load_raster",
    "write_raster",
]

logger = logging.getLogger(__name__)

DEFAULT_RASTERIO_PROFILE = {
    "driver": "GTiff",
    "dtype": rio.float32,
    "count": 1,
    "tiled": True,
    "blockxsize": 128,
    "blockysize": 128,
    "compress": "deflate",
    "zlevel": 4,
}


def load_raster(
    filename: PathOrStr,
    band: int = 1,
    subsample_factor: int | tuple[int, int] = 1,
    name: str | None = None,
    units: str = "",
) -> RasterField:
    """Load one band of a raster file into a `RasterField`.

    Parameters
    ----------
    filename : str or Path
        Path to the file to load.
    band : int, optional
        Band to load, by default 1.
    subsample_factor : int or tuple[int, int], optional
        Subsample the data by this factor as (rows, cols).
        Default is 1 (no subsampling). Uses nearest neighbor resampling.
    name : str, optional
        Name of the output field. Defaults to the file stem.
    units : str, optional
        Units of the band values.

    Returns
    -------
    RasterField
        Field with the file's nodata values (and NaNs) marked as NaN.

    Raises
    ------
    AlignmentError
        If the file has no CRS.

    """
    if isinstance(subsample_factor, int):
        subsample_factor = (subsample_factor, subsample_factor)
    row_factor, col_factor = subsample_factor
    if row_factor < 1 or col_factor < 1:
        msg = f"subsample_factor must be >= 1, got {subsample_factor}"
        raise ValueError(msg)

    with rio.open(filename) as src:
        if src.crs is None:
            msg = f"{filename} has no coordinate reference system"
            raise AlignmentError(msg)
        out_shape = (
            max(src.height // row_factor, 1),
            max(src.width // col_factor, 1),
        )
        arr = src.read(
            band,
            out_shape=out_shape,
            masked=True,
            resampling=Resampling.nearest,
        )
        transform = src.transform @ Affine.scale(
            src.width / out_shape[1], src.height / out_shape[0]
        )
        crs = CRS.from_user_input(src.crs.to_wkt())

    data = np.ma.filled(arr.astype(np.float64), np.nan)
    if name is None:
        name = Path(filename).stem
    logger.debug(f"Loaded {filename} band {band}: shape {data.shape}")
    return RasterField(data, crs, transform, name=name, units=units)


def write_raster(
    field: RasterField,
    filename: PathOrStr,
    nodata: float = np.nan,
    **profile_kwargs,
) -> None:
    """Write a `RasterField` to a single-band GeoTIFF.

    Parameters
    ----------
    field : RasterField
        Field to save.
    filename : str or Path
        Output path.
    nodata : float
        Value written in place of NaN pixels. Default is NaN.
    **profile_kwargs
        Overrides for the rasterio creation profile.

    """
    height, width = field.shape
    profile = dict(DEFAULT_RASTERIO_PROFILE)
    if width < 128 or height < 128:
        # Block sizes must not exceed the raster size for tiled GeoTIFFs
        profile.pop("tiled")
        profile.pop("blockxsize")
        profile.pop("blockysize")
    profile.update(
        width=width,
        height=height,
        crs=field.crs.to_wkt(),
        transform=field.transform,
        nodata=nodata,
    )
    profile.update(profile_kwargs)
    out = np.where(field.valid_mask, field.data, nodata).astype(profile["dtype"])
    with rio.open(filename, "w", **profile) as dst:
        dst.write(out, 1)
        if field.units:
            dst.units = [field.units]
        if field.name:
            dst.descriptions = [field.name]


def get_raster_crs(filename: PathOrStr) -> CRS | None:
    """Get the pyproj CRS from a file, or None if it is not georeferenced."""
    crs = _get_dataset_attr(filename, "crs")
    return None if crs is None else CRS.from_user_input(crs.to_wkt())


def get_raster_transform(filename: PathOrStr) -> Affine:
    """Get the rasterio `Affine` transform from a file."""
    return _get_dataset_attr(filename, "transform")


def get_raster_bounds(filename: PathOrStr) -> Bbox:
    """Get the (left, bottom, right, top) bounds of the image."""
    return Bbox(*_get_dataset_attr(filename, "bounds"))


def _get_dataset_attr(filename: PathOrStr, attr_name: str) -> Any:
    with rio.open(filename) as src:
        return getattr(src, attr_name)
