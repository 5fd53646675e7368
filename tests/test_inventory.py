import json

import geopandas as gpd
import pytest
from pyproj import CRS
from shapely.geometry import box

from landslide_geometry.inventory import Inventory, read_inventory

from .conftest import UTM_CRS, X0, Y0, feature_collection, square


def test_read_inventory(inventory_file):
    inv = read_inventory(inventory_file)
    assert len(inv) == 3
    assert inv.ids == (1, 2, 3)
    assert inv.crs == UTM_CRS
    assert inv.id_field == "object_id"
    assert inv.geometries[0].bounds == (X0 + 100, Y0 - 200, X0 + 200, Y0 - 100)


def test_read_inventory_defaults_to_lonlat(tmp_path, inventory_features):
    fc = feature_collection(inventory_features)
    del fc["crs"]
    filename = tmp_path / "lonlat.geojson"
    filename.write_text(json.dumps(fc))
    crs = read_inventory(filename).crs
    assert crs.equals(CRS.from_epsg(4326), ignore_axis_order=True)
    # An explicit CRS takes precedence
    assert read_inventory(filename, crs=UTM_CRS).crs == UTM_CRS


def test_custom_id_field(tmp_path):
    features = [
        {"type": "Feature", "properties": {"slide": "s1"}, "geometry": square(0, 0, 1)},
        {"type": "Feature", "properties": {"slide": "s2"}, "geometry": None},
    ]
    filename = tmp_path / "custom.geojson"
    filename.write_text(json.dumps(feature_collection(features, "EPSG:4326")))
    inv = read_inventory(filename, id_field="slide")
    assert inv.ids == ("s1", "s2")
    assert inv.geometries[1] is None


def test_missing_id(tmp_path):
    features = [{"type": "Feature", "properties": {}, "geometry": square(0, 0, 1)}]
    filename = tmp_path / "missing.geojson"
    filename.write_text(json.dumps(feature_collection(features)))
    with pytest.raises(ValueError, match="object_id"):
        read_inventory(filename)


def test_duplicate_ids():
    with pytest.raises(ValueError, match="Duplicate"):
        Inventory((1, 1), (box(0, 0, 1, 1), box(1, 1, 2, 2)), crs=4326)


def test_bounds_and_reprojection(inventory_file):
    inv = read_inventory(inventory_file)
    assert inv.bounds == (X0 + 100, Y0 - 300, X0 + 50_100, Y0 + 50_100)

    lonlat = inv.to_crs(4326)
    assert lonlat.crs == CRS.from_epsg(4326)
    assert lonlat.ids == inv.ids
    lon, lat = lonlat.geometries[0].centroid.coords[0]
    # UTM 11N is centered on 117 W
    assert -117.1 < lon < -116.9
    assert 30 < lat < 40
    assert inv.to_crs(UTM_CRS) is inv


@pytest.mark.parametrize("ext", [".shp", ".gpkg"])
def test_read_other_formats(tmp_path, ext):
    filename = tmp_path / f"landslides{ext}"
    gdf = gpd.GeoDataFrame(
        {"object_id": [7, 8]},
        geometry=[box(X0, Y0, X0 + 10, Y0 + 10), box(X0 + 20, Y0, X0 + 40, Y0 + 20)],
        crs=UTM_CRS,
    )
    gdf.to_file(filename)

    inv = read_inventory(filename)
    assert inv.ids == (7, 8)
    assert inv.crs.to_epsg() == 32611
    assert inv.geometries[1].bounds == (X0 + 20, Y0, X0 + 40, Y0 + 20)


def test_missing_id_column(tmp_path):
    filename = tmp_path / "other.gpkg"
    gdf = gpd.GeoDataFrame({"name": ["a"]}, geometry=[box(0, 0, 1, 1)], crs=4326)
    gdf.to_file(filename)
    with pytest.raises(ValueError, match="No 'object_id' attribute"):
        read_inventory(filename)
