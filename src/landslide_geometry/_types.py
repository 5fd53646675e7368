from __future__ import annotations

from os import PathLike
from typing import TYPE_CHECKING, NamedTuple, Union

from affine import Affine
from pyproj import CRS

# Some classes are declared as generic in stubs, but not at runtime.
if TYPE_CHECKING:
    PathLikeStr = PathLike[str]
else:
    PathLikeStr = PathLike


PathOrStr = Union[str, PathLikeStr]


class Bbox(NamedTuple):
    """Bounding box named tuple, defining extent in cartesian coordinates.

    Usage:

        Bbox(left, bottom, right, top)

    Attributes
    ----------
    left : float
        Left coordinate (xmin)
    bottom : float
        Bottom coordinate (ymin)
    right : float
        Right coordinate (xmax)
    top : float
        Top coordinate (ymax)

    """

    left: float
    bottom: float
    right: float
    top: float


class GridSpec(NamedTuple):
    """Canonical pixel grid: CRS, affine transform and array shape.

    Two rasters on the same `GridSpec` can be combined pixel by pixel.

    Attributes
    ----------
    crs : pyproj.CRS
        Coordinate reference system of the grid.
    transform : affine.Affine
        Affine transform mapping (col, row) to (x, y) of the pixel corner.
    width : int
        Number of columns.
    height : int
        Number of rows.

    """

    crs: CRS
    transform: Affine
    width: int
    height: int

    @property
    def shape(self) -> tuple[int, int]:
        return (self.height, self.width)

    @property
    def resolution(self) -> tuple[float, float]:
        """Pixel size as positive (x, y) values in CRS units."""
        return (abs(self.transform.a), abs(self.transform.e))

    @property
    def bounds(self) -> Bbox:
        left, top = self.transform @ (0, 0)
        right, bottom = self.transform @ (self.width, self.height)
        return Bbox(
            min(left, right), min(bottom, top), max(left, right), max(bottom, top)
        )

    def matches(self, other: GridSpec) -> bool:
        """Check that `other` has the same CRS, pixel grid and shape."""
        return (
            self.shape == other.shape
            and self.transform.almost_equals(other.transform)
            and CRS.from_user_input(self.crs) == CRS.from_user_input(other.crs)
        )
