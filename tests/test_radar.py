import numpy as np
import pytest
from affine import Affine
from shapely.geometry import box

from landslide_geometry import radar
from landslide_geometry._types import Bbox
from landslide_geometry.errors import AlignmentError, GeometryError, SingularityWarning
from landslide_geometry.raster import RasterField
from landslide_geometry.terrain import slope_aspect

from .conftest import DEM_SLOPE_DEG, UTM_CRS, X0, Y0


def test_range_slope_full_projection():
    alpha_r = radar.range_slope([[30.0]], [[0.0]], look_direction=0.0)
    assert np.degrees(alpha_r[0, 0]) == pytest.approx(30.0)


def test_range_slope_across_range_is_zero():
    # Relative aspect of 90 degrees: no tilt in the range direction
    alpha_r = radar.range_slope([[30.0]], [[270.0]], look_direction=0.0)
    assert np.degrees(alpha_r[0, 0]) == pytest.approx(0.0, abs=1e-12)


def test_range_slope_facing_away_is_negative():
    alpha_r = radar.range_slope([[30.0]], [[180.0]], look_direction=0.0)
    assert np.degrees(alpha_r[0, 0]) == pytest.approx(-30.0)


def test_local_incidence_scenario():
    alpha_r = radar.range_slope([[30.0]], [[0.0]], look_direction=0.0)
    theta_loc = radar.local_incidence([[40.0]], alpha_r)
    assert np.degrees(theta_loc[0, 0]) == pytest.approx(10.0)


def test_relative_aspect_is_not_wrapped():
    phi_r = radar.relative_aspect(10.0, np.array([350.0]))
    assert phi_r[0] == pytest.approx(np.radians(-340.0))
    # Same cosine as the wrapped value of +20 degrees
    assert np.cos(phi_r[0]) == pytest.approx(np.cos(np.radians(20.0)))


def test_range_slope_never_exceeds_slope():
    rng = np.random.default_rng(0)
    slope = rng.uniform(0, 89.9, size=(50, 50))
    aspect = rng.uniform(0, 360, size=(50, 50))
    alpha_r = radar.range_slope(slope, aspect, look_direction=rng.uniform(0, 360))
    assert np.all(np.abs(alpha_r) <= np.radians(slope) + 1e-12)


def test_local_incidence_plus_range_slope_is_incidence():
    rng = np.random.default_rng(42)
    incidence = rng.uniform(20, 50, size=(40, 40))
    slope = rng.uniform(0, 80, size=(40, 40))
    aspect = rng.uniform(0, 360, size=(40, 40))
    for look in rng.uniform(0, 360, size=5):
        alpha_r = radar.range_slope(slope, aspect, look_direction=look)
        theta_loc = radar.local_incidence(incidence, alpha_r)
        np.testing.assert_allclose(theta_loc + alpha_r, np.radians(incidence))


def test_range_slope_geographic_grid():
    # 1 arcsecond pixels at 60 N, rising 1 m per pixel toward the east
    res = 1 / 3600
    z = np.tile(np.arange(9) * 1.0, (9, 1))
    dem = RasterField(z, "EPSG:4326", Affine(res, 0, 10.0, 0, -res, 60.0))
    slope, aspect = slope_aspect(dem)
    alpha_r = radar.range_slope(slope, aspect, look_direction=270.0)

    lat = 60.0 - 4.5 * res
    dx = 111_320.0 * res * np.cos(np.radians(lat))
    assert alpha_r.data[4, 4] == pytest.approx(np.arctan(1 / dx), rel=1e-6)
    # Looking north, the slope is across the range direction
    across = radar.range_slope(slope, aspect, look_direction=0.0)
    assert across.data[4, 4] == pytest.approx(0.0, abs=1e-12)


def test_look_direction_field_matches_scalar(incidence_field, dem_field):
    slope, aspect = slope_aspect(dem_field)
    look = RasterField.constant(270.0, like=incidence_field, units="degrees")
    from_field = radar.range_slope(slope, aspect, look)
    from_scalar = radar.range_slope(slope, aspect, 270.0)
    np.testing.assert_array_equal(from_field.data, from_scalar.data)

    shifted = RasterField(
        look.data, look.crs, look.transform @ Affine.translation(0, 1)
    )
    with pytest.raises(AlignmentError):
        radar.range_slope(slope, aspect, shifted)


def test_vertical_slope_saturates():
    slope = np.array([[90.0, 90.0, 90.0]])
    aspect = np.array([[0.0, 180.0, 90.0]])
    with pytest.warns(SingularityWarning, match="saturated"):
        alpha_r = radar.range_slope(slope, aspect, look_direction=0.0)
    np.testing.assert_allclose(alpha_r[0, :2], [np.pi / 2, -np.pi / 2])
    # cos(phi_r) is ~6e-17 here, across the range direction
    assert alpha_r[0, 2] == 0.0


def test_nodata_propagates():
    slope = np.array([[np.nan, 20.0]])
    aspect = np.array([[0.0, np.nan]])
    alpha_r = radar.range_slope(slope, aspect, look_direction=0.0)
    assert np.isnan(alpha_r).all()


def test_fields_on_different_grids_raise(incidence_field):
    shifted = RasterField(
        incidence_field.data,
        incidence_field.crs,
        incidence_field.transform @ Affine.translation(1, 0),
    )
    with pytest.raises(AlignmentError):
        radar.range_slope(incidence_field, shifted, look_direction=0.0)


def test_estimate_look_direction(incidence_field):
    # Incidence grows toward the east, so its downslope aspect points west
    assert radar.estimate_look_direction(incidence_field) == pytest.approx(270.0)

    flipped = incidence_field.with_data(incidence_field.data[:, ::-1])
    assert radar.estimate_look_direction(flipped) == pytest.approx(90.0)


def test_estimate_look_direction_subsampled(incidence_field):
    look = radar.estimate_look_direction(incidence_field, subsample_factor=4)
    assert look == pytest.approx(270.0)


def test_estimate_look_direction_aoi(incidence_field):
    aoi = Bbox(X0 + 100, Y0 - 300, X0 + 300, Y0 - 100)
    look = radar.estimate_look_direction(incidence_field, aoi=aoi, aoi_crs=UTM_CRS)
    assert look == pytest.approx(270.0)


def test_estimate_look_direction_aoi_outside(incidence_field):
    aoi = box(X0 + 50_000, Y0 + 50_000, X0 + 51_000, Y0 + 51_000)
    with pytest.raises(GeometryError, match="does not intersect"):
        radar.estimate_look_direction(incidence_field, aoi=aoi, aoi_crs=UTM_CRS)


def test_estimate_look_direction_no_valid_pixels(incidence_field):
    empty = incidence_field.with_data(np.full(incidence_field.shape, np.nan))
    with pytest.raises(GeometryError, match="No valid"):
        radar.estimate_look_direction(empty)

    constant = incidence_field.with_data(np.full(incidence_field.shape, 35.0))
    with pytest.raises(GeometryError):
        radar.estimate_look_direction(constant)


def test_compute_radar_geometry(incidence_field, dem_field):
    slope, aspect = slope_aspect(dem_field)
    geom = radar.compute_radar_geometry(incidence_field, slope, aspect)

    assert geom.look_direction == pytest.approx(270.0)
    interior = (slice(1, -1), slice(1, -1))
    # Slope faces the look direction: the full slope is in range
    np.testing.assert_allclose(
        geom.range_slope.data[interior], np.radians(DEM_SLOPE_DEG), atol=1e-9
    )
    np.testing.assert_allclose(
        geom.local_incidence.data[interior],
        np.radians(incidence_field.data[interior] - DEM_SLOPE_DEG),
        atol=1e-9,
    )
    np.testing.assert_allclose(
        geom.incidence.data, np.radians(incidence_field.data), atol=1e-12
    )
    assert np.isnan(geom.range_slope.data[0, 0])
