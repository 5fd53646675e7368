"""In-memory raster fields on an explicit pixel grid."""

from __future__ import annotations

from dataclasses import dataclass, replace

import numpy as np
from affine import Affine
from numpy.typing import ArrayLike
from pyproj import CRS

from ._types import Bbox, GridSpec
from .errors import AlignmentError

__all__ = ["RasterField"]


@dataclass(frozen=True, eq=False)
class RasterField:
    """A named 2D field of values on a georeferenced pixel grid.

    No-data pixels are stored as NaN: every operation on the field propagates
    them, and reductions skip them.

    Attributes
    ----------
    data : np.ndarray
        2D float64 array of shape (rows, cols).
    crs : pyproj.CRS
        Coordinate reference system of the grid.
    transform : affine.Affine
        Pixel-corner affine transform.
    name : str
        Short name of the field, e.g. "slope".
    units : str
        Units of `data`, e.g. "degrees" or "radians".

    """

    data: np.ndarray
    crs: CRS
    transform: Affine
    name: str = ""
    units: str = ""

    def __post_init__(self):
        data = np.asarray(self.data, dtype=np.float64)
        if data.ndim != 2:
            msg = f"RasterField data must be 2D, got shape {data.shape}"
            raise ValueError(msg)
        object.__setattr__(self, "data", data)
        if self.crs is None:
            msg = f"RasterField {self.name!r} has no CRS"
            raise AlignmentError(msg)
        object.__setattr__(self, "crs", CRS.from_user_input(self.crs))

    @classmethod
    def constant(
        cls, value: float, like: RasterField, name: str = "", units: str = ""
    ) -> RasterField:
        """Broadcast a scalar over the grid (and valid footprint) of `like`."""
        data = np.where(like.valid_mask, float(value), np.nan)
        return cls(data, like.crs, like.transform, name=name, units=units)

    @classmethod
    def from_grid(
        cls, data: ArrayLike, grid: GridSpec, name: str = "", units: str = ""
    ) -> RasterField:
        return cls(np.asarray(data), grid.crs, grid.transform, name=name, units=units)

    @property
    def shape(self) -> tuple[int, int]:
        return self.data.shape  # type: ignore[return-value]

    @property
    def grid(self) -> GridSpec:
        height, width = self.shape
        return GridSpec(self.crs, self.transform, width, height)

    @property
    def bounds(self) -> Bbox:
        return self.grid.bounds

    @property
    def valid_mask(self) -> np.ndarray:
        """Boolean array, True where the pixel holds data."""
        return np.isfinite(self.data)

    @property
    def num_valid(self) -> int:
        return int(self.valid_mask.sum())

    def with_data(self, data: ArrayLike, name: str | None = None, units=None):
        """New field on the same grid with replaced values."""
        data = np.asarray(data, dtype=np.float64)
        if data.shape != self.shape:
            msg = f"Shape {data.shape} does not match grid shape {self.shape}"
            raise AlignmentError(msg)
        kwargs = {"data": data}
        if name is not None:
            kwargs["name"] = name
        if units is not None:
            kwargs["units"] = units
        return replace(self, **kwargs)

    def check_same_grid(self, *others: RasterField) -> None:
        """Raise `AlignmentError` unless all `others` share this field's grid."""
        for other in others:
            if not self.grid.matches(other.grid):
                msg = (
                    f"Field {other.name!r} is not on the grid of {self.name!r}:"
                    f" {other.grid} != {self.grid}"
                )
                raise AlignmentError(msg)

    def to_file(self, filename, **profile_kwargs) -> None:
        """Write the field as a single-band float32 GeoTIFF."""
        from ._io import write_raster

        write_raster(self, filename, **profile_kwargs)

    def __repr__(self) -> str:
        return (
            f"RasterField(name={self.name!r}, units={self.units!r},"
            f" shape={self.shape}, crs={self.crs.to_string()!r})"
        )
