from __future__ import annotations

import json

import numpy as np
import pytest
import rasterio as rio
from affine import Affine
from pyproj import CRS

from landslide_geometry.raster import RasterField

# Synthetic scene: 60 x 60 pixels of 10 m in UTM zone 11N
UTM_CRS = CRS.from_epsg(32611)
X0, Y0 = 500_000.0, 4_000_000.0
RES = 10.0
SHAPE = (60, 60)
# DEM plane rising toward the east: downslope bearing 270 (west)
DEM_SLOPE_DEG = 10.0
# Incidence angle grows toward the east, so its aspect points west
INCIDENCE_NEAR = 30.0
INCIDENCE_STEP = 0.01


def write_tif(filename, data, crs=UTM_CRS, transform=None, nodata=np.nan):
    data = np.asarray(data, dtype="float64")
    if transform is None:
        transform = Affine(RES, 0.0, X0, 0.0, -RES, Y0)
    with rio.open(
        filename,
        "w",
        driver="GTiff",
        width=data.shape[1],
        height=data.shape[0],
        dtype="float64",
        count=1,
        crs=crs,
        transform=transform,
        nodata=nodata,
    ) as dst:
        dst.write(data, 1)
    return filename


def square(left, bottom, size):
    return {
        "type": "Polygon",
        "coordinates": [
            [
                [left, bottom],
                [left + size, bottom],
                [left + size, bottom + size],
                [left, bottom + size],
                [left, bottom],
            ]
        ],
    }


def feature_collection(features, crs_name="EPSG:32611"):
    return {
        "type": "FeatureCollection",
        "crs": {"type": "name", "properties": {"name": crs_name}},
        "features": features,
    }


@pytest.fixture
def transform():
    return Affine(RES, 0.0, X0, 0.0, -RES, Y0)


@pytest.fixture
def incidence_data():
    cols = np.arange(SHAPE[1])
    return np.tile(INCIDENCE_NEAR + INCIDENCE_STEP * cols, (SHAPE[0], 1))


@pytest.fixture
def dem_data():
    x = X0 + RES * (np.arange(SHAPE[1]) + 0.5)
    z = 1000.0 + np.tan(np.radians(DEM_SLOPE_DEG)) * (x - X0)
    return np.tile(z, (SHAPE[0], 1))


@pytest.fixture
def incidence_field(incidence_data, transform):
    return RasterField(
        incidence_data, UTM_CRS, transform, name="incidence", units="degrees"
    )


@pytest.fixture
def dem_field(dem_data, transform):
    return RasterField(dem_data, UTM_CRS, transform, name="dem", units="meters")


@pytest.fixture
def incidence_file(tmp_path, incidence_data):
    return write_tif(tmp_path / "incidence.tif", incidence_data)


@pytest.fixture
def dem_tiles(tmp_path, dem_data, transform):
    """Two overlapping DEM tiles covering the scene: cols 0-35 and 25-60."""
    west = write_tif(tmp_path / "dem_west.tif", dem_data[:, :35], transform=transform)
    east_transform = transform @ Affine.translation(25, 0)
    east = write_tif(
        tmp_path / "dem_east.tif", dem_data[:, 25:], transform=east_transform
    )
    return [west, east]


@pytest.fixture
def inventory_features():
    return [
        # Pixel centers of cols 10-19 and rows 10-19
        {
            "type": "Feature",
            "properties": {"object_id": 1},
            "geometry": square(X0 + 100, Y0 - 200, 100),
        },
        # Cols 30-39 and rows 20-29
        {
            "type": "Feature",
            "properties": {"object_id": 2},
            "geometry": square(X0 + 300, Y0 - 300, 100),
        },
        # Far outside the scene
        {
            "type": "Feature",
            "properties": {"object_id": 3},
            "geometry": square(X0 + 50_000, Y0 + 50_000, 100),
        },
    ]


@pytest.fixture
def inventory_file(tmp_path, inventory_features):
    filename = tmp_path / "landslides.geojson"
    filename.write_text(json.dumps(feature_collection(inventory_features)))
    return filename
