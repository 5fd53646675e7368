"""Landslide polygon inventories read from vector files."""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Hashable
from dataclasses import dataclass

import geopandas as gpd
from pyproj import CRS
from shapely.geometry.base import BaseGeometry

from ._types import Bbox, PathOrStr
from .constants import DEFAULT_ID_FIELD

__all__ = ["Inventory", "read_inventory"]

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class Inventory:
    """Polygons keyed by a unique identifier attribute.

    Attributes
    ----------
    ids : tuple
        Unique identifier of each polygon, in file order.
    geometries : tuple[BaseGeometry | None, ...]
        Polygon of each feature. None for features without a geometry.
    crs : pyproj.CRS
        CRS of the geometries.
    id_field : str
        Name of the identifying attribute.

    """

    ids: tuple[Hashable, ...]
    geometries: tuple[BaseGeometry | None, ...]
    crs: CRS
    id_field: str = DEFAULT_ID_FIELD

    def __post_init__(self):
        if len(self.ids) != len(self.geometries):
            msg = f"Got {len(self.ids)} ids for {len(self.geometries)} geometries"
            raise ValueError(msg)
        duplicates = [i for i, count in Counter(self.ids).items() if count > 1]
        if duplicates:
            msg = f"Duplicate {self.id_field} values: {sorted(map(str, duplicates))}"
            raise ValueError(msg)
        object.__setattr__(self, "crs", CRS.from_user_input(self.crs))

    def __len__(self) -> int:
        return len(self.ids)

    def __iter__(self):
        return iter(zip(self.ids, self.geometries))

    @classmethod
    def from_geodataframe(
        cls, gdf: gpd.GeoDataFrame, id_field: str = DEFAULT_ID_FIELD
    ) -> Inventory:
        """Build an inventory from the rows of a GeoDataFrame."""
        if id_field not in gdf.columns:
            msg = f"No {id_field!r} attribute. Columns: {list(gdf.columns)}"
            raise ValueError(msg)
        missing = gdf.index[gdf[id_field].isna()].tolist()
        if missing:
            msg = f"Features {missing} have no {id_field!r} attribute"
            raise ValueError(msg)
        ids = tuple(gdf[id_field].tolist())
        return cls(ids, tuple(gdf.geometry), gdf.crs, id_field)

    @property
    def bounds(self) -> Bbox:
        """Combined (left, bottom, right, top) of all non-empty geometries."""
        all_bounds = [
            g.bounds for g in self.geometries if g is not None and not g.is_empty
        ]
        if not all_bounds:
            msg = "Inventory has no geometries"
            raise ValueError(msg)
        return Bbox(
            min(b[0] for b in all_bounds),
            min(b[1] for b in all_bounds),
            max(b[2] for b in all_bounds),
            max(b[3] for b in all_bounds),
        )

    def to_crs(self, crs: CRS | int | str) -> Inventory:
        """Reproject all geometries to `crs`."""
        dst = CRS.from_user_input(crs)
        if dst == self.crs:
            return self
        reprojected = gpd.GeoSeries(list(self.geometries), crs=self.crs).to_crs(dst)
        return Inventory(self.ids, tuple(reprojected), dst, self.id_field)


def read_inventory(
    filename: PathOrStr,
    id_field: str = DEFAULT_ID_FIELD,
    crs: CRS | int | str | None = None,
) -> Inventory:
    """Read landslide polygons from a vector file.

    Parameters
    ----------
    filename : PathOrStr
        Any format readable by `geopandas.read_file`, such as a shapefile,
        GeoPackage or GeoJSON.
    id_field : str
        Attribute holding the unique identifier. Default is "object_id".
    crs : CRS, optional
        CRS of the coordinates, overriding the one stored in the file.
        Files without a CRS are taken to be EPSG:4326.

    Returns
    -------
    Inventory

    Raises
    ------
    ValueError
        If a feature lacks `id_field`, or identifiers are not unique.

    """
    gdf = gpd.read_file(filename)
    if crs is not None:
        gdf = gdf.set_crs(crs, allow_override=True)
    elif gdf.crs is None:
        logger.warning(f"{filename} has no CRS, assuming EPSG:4326")
        gdf = gdf.set_crs(4326)
    inventory = Inventory.from_geodataframe(gdf, id_field=id_field)
    logger.info(f"Read {len(inventory)} polygons from {filename}")
    return inventory
