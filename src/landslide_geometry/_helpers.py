from __future__ import annotations

from functools import lru_cache

from pyproj import CRS, Transformer
from rasterio.warp import transform_bounds
from shapely import ops
from shapely.geometry.base import BaseGeometry

from ._types import Bbox

__all__ = ["reproject_bounds", "reproject_geometry"]


def reproject_bounds(bounds: Bbox, src_crs: CRS | int, dst_crs: CRS | int) -> Bbox:
    """Reproject the (left, bottom, right top) from `src_crs` to `dst_crs`."""
    src, dst = _to_crs(src_crs), _to_crs(dst_crs)
    if src == dst:
        return Bbox(*bounds)
    left, bottom, right, top = transform_bounds(src.to_wkt(), dst.to_wkt(), *bounds)
    return Bbox(left, bottom, right, top)


def reproject_geometry(
    geom: BaseGeometry, src_crs: CRS | int, dst_crs: CRS | int
) -> BaseGeometry:
    """Reproject a shapely geometry from `src_crs` to `dst_crs`."""
    src, dst = _to_crs(src_crs), _to_crs(dst_crs)
    if src == dst:
        return geom
    t = _get_transformer(src.to_wkt(), dst.to_wkt())
    return ops.transform(t.transform, geom)


@lru_cache(maxsize=32)
def _get_transformer(src_wkt: str, dst_wkt: str) -> Transformer:
    return Transformer.from_crs(src_wkt, dst_wkt, always_xy=True)


def _to_crs(crs: CRS | int | str) -> CRS:
    return CRS.from_user_input(crs)
