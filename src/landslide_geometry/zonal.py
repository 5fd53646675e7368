"""Per-polygon reduction of raster fields."""

from __future__ import annotations

import logging
import math
import warnings
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor

import numpy as np
import pandas as pd
from affine import Affine
from rasterio.features import geometry_mask
from shapely.geometry.base import BaseGeometry
from tqdm.auto import tqdm

from .alignment import resample_to_scale
from .errors import EmptyZoneResult
from .inventory import Inventory
from .raster import RasterField

__all__ = ["median_of_valid", "zonal_median", "zonal_statistic"]

logger = logging.getLogger(__name__)

Reducer = Callable[[np.ndarray], float]


def median_of_valid(values: np.ndarray) -> float:
    """Median of the finite entries of `values`; NaN if there are none.

    Even counts average the two middle values.
    """
    values = np.asarray(values, dtype=np.float64).ravel()
    finite = values[np.isfinite(values)]
    if finite.size == 0:
        return np.nan
    return float(np.median(finite))


def zonal_statistic(
    field: RasterField,
    inventory: Inventory,
    reducer: Reducer = median_of_valid,
    scale: float | None = 10.0,
    column: str = "median",
    all_touched: bool = False,
    num_workers: int = 1,
    show_progress: bool = False,
) -> pd.DataFrame:
    """Reduce a raster field to one value per polygon.

    Parameters
    ----------
    field : RasterField
        Field to reduce. NaN pixels are excluded.
    inventory : Inventory
        Polygons to reduce over. Reprojected to the CRS of `field`.
    reducer : Callable[[np.ndarray], float]
        Statistic computed from the pixel values inside each polygon.
        Must return NaN when no pixel is valid.
    scale : float, optional
        Sampling resolution in meters. The field is resampled (nearest
        neighbor) to this scale before reducing. None uses the native grid.
    column : str
        Name of the output value column.
    all_touched : bool
        If True, include every pixel touched by a polygon. Default is False:
        only pixels whose center lies inside the polygon are used.
    num_workers : int
        Number of threads for computing polygons in parallel.
    show_progress : bool
        Show a progress bar over polygons.

    Returns
    -------
    pd.DataFrame
        Columns `[inventory.id_field, column]`, one row per polygon in
        inventory order. Polygons with no valid pixels have a NaN value.

    """
    if scale is not None:
        field = resample_to_scale(field, scale)
    polygons = inventory.to_crs(field.crs)

    def _reduce(geom: BaseGeometry | None) -> float:
        return reducer(_pixels_in_polygon(field, geom, all_touched=all_touched))

    geometries = polygons.geometries
    progress = tqdm(total=len(geometries), disable=not show_progress)
    if num_workers > 1:
        with ThreadPoolExecutor(max_workers=num_workers) as executor:
            values = []
            # `map` yields in submission order
            for value in executor.map(_reduce, geometries):
                values.append(value)
                progress.update(1)
    else:
        values = []
        for geom in geometries:
            values.append(_reduce(geom))
            progress.update(1)
    progress.close()

    num_empty = sum(1 for v in values if np.isnan(v))
    if num_empty:
        warnings.warn(
            f"{num_empty} of {len(values)} polygon(s) have no valid {field.name!r}"
            " pixels; their value is null",
            EmptyZoneResult,
            stacklevel=2,
        )
    logger.debug(f"Reduced {field.name!r} over {len(values)} polygons")
    return pd.DataFrame(
        {inventory.id_field: list(inventory.ids), column: np.asarray(values, float)}
    )


def zonal_median(
    field: RasterField,
    inventory: Inventory,
    scale: float | None = 10.0,
    all_touched: bool = False,
    num_workers: int = 1,
    show_progress: bool = False,
) -> pd.DataFrame:
    """Spatial median of `field` inside each polygon of `inventory`.

    See `zonal_statistic` for the parameters.
    """
    return zonal_statistic(
        field,
        inventory,
        reducer=median_of_valid,
        scale=scale,
        column="median",
        all_touched=all_touched,
        num_workers=num_workers,
        show_progress=show_progress,
    )


def _pixels_in_polygon(
    field: RasterField, geom: BaseGeometry | None, all_touched: bool = False
) -> np.ndarray:
    """Get the field values (including NaNs) of pixels inside `geom`."""
    if geom is None or geom.is_empty:
        return np.empty(0)
    height, width = field.shape
    inv = ~field.transform
    left, bottom, right, top = geom.bounds
    cols, rows = zip(*(inv @ (x, y) for x in (left, right) for y in (bottom, top)))
    col_start = max(math.floor(min(cols)), 0)
    col_stop = min(math.ceil(max(cols)), width)
    row_start = max(math.floor(min(rows)), 0)
    row_stop = min(math.ceil(max(rows)), height)
    if col_stop <= col_start or row_stop <= row_start:
        return np.empty(0)

    window_transform = field.transform @ Affine.translation(col_start, row_start)
    inside = geometry_mask(
        [geom],
        out_shape=(row_stop - row_start, col_stop - col_start),
        transform=window_transform,
        all_touched=all_touched,
        invert=True,
    )
    return field.data[row_start:row_stop, col_start:col_stop][inside]
