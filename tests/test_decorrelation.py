import numpy as np
import pytest

from landslide_geometry.constants import (
    SENSOR_PRESETS,
    SENTINEL1_IW1,
    SENTINEL1_IW2,
    SPEED_OF_LIGHT,
    SensorConstants,
    get_sensor,
)
from landslide_geometry.decorrelation import critical_baseline, geometric_coherence
from landslide_geometry.errors import SingularityWarning


def _expected(theta, bperp, sensor=SENTINEL1_IW2):
    return 1 - SPEED_OF_LIGHT * bperp / (
        sensor.wavelength * sensor.slant_range * sensor.bandwidth * np.tan(theta)
    )


def test_reference_value():
    coh = geometric_coherence(np.array([0.6]), bperp=150)
    assert coh[0] == pytest.approx(_expected(0.6, 150), abs=1e-9)
    assert coh[0] == pytest.approx(0.9646, abs=1e-3)


def test_zero_baseline_is_fully_coherent():
    theta = np.linspace(0.05, 1.5, 20)
    np.testing.assert_array_equal(geometric_coherence(theta, bperp=0), 1.0)


def test_sign_of_baseline_is_ignored():
    theta = np.array([0.3, 0.6, 0.9])
    np.testing.assert_allclose(
        geometric_coherence(theta, bperp=-150), geometric_coherence(theta, bperp=150)
    )


def test_coherence_decreases_with_baseline():
    theta = np.array([0.6])
    values = [geometric_coherence(theta, bperp=b)[0] for b in (0, 50, 150, 500)]
    assert all(a > b for a, b in zip(values, values[1:]))


def test_coherence_increases_with_local_incidence():
    theta = np.linspace(0.1, 1.4, 30)
    coh = geometric_coherence(theta, bperp=150)
    assert np.all(np.diff(coh) >= 0)


def test_clamped_to_unit_interval():
    # Near-grazing local incidence decorrelates entirely
    coh = geometric_coherence(np.array([0.001, -0.5, 0.6]), bperp=1000)
    assert coh[0] == 0.0
    assert np.all((coh >= 0) & (coh <= 1))


def test_negative_local_incidence_uses_magnitude():
    np.testing.assert_allclose(
        geometric_coherence(np.array([-0.6]), bperp=150),
        geometric_coherence(np.array([0.6]), bperp=150),
    )


def test_singular_local_incidence():
    with pytest.warns(SingularityWarning):
        coh = geometric_coherence(np.array([0.0, 0.6]), bperp=150)
    assert coh[0] == 0.0
    assert 0 < coh[1] < 1

    with pytest.warns(SingularityWarning):
        coh = geometric_coherence(np.array([0.0]), bperp=0)
    assert coh[0] == 1.0


def test_nodata_propagates():
    coh = geometric_coherence(np.array([np.nan, 0.6]), bperp=150)
    assert np.isnan(coh[0])
    assert np.isfinite(coh[1])


def test_raster_field_input(incidence_field):
    theta = incidence_field.with_data(np.radians(incidence_field.data))
    coh = geometric_coherence(theta, bperp=150)
    assert coh.name == "coherence"
    assert coh.grid.matches(incidence_field.grid)
    np.testing.assert_allclose(coh.data, _expected(theta.data, 150))


def test_critical_baseline_zeroes_coherence():
    theta = np.array([0.3, 0.6, 1.0])
    b_crit = critical_baseline(theta)
    np.testing.assert_allclose(
        [geometric_coherence(theta[i : i + 1], b)[0] for i, b in enumerate(b_crit)],
        0.0,
        atol=1e-9,
    )
    # Larger bandwidth tolerates a longer baseline
    assert np.all(critical_baseline(theta, SENTINEL1_IW1) > b_crit)


def test_sensor_presets():
    assert set(SENSOR_PRESETS) == {"iw1", "iw2", "iw3"}
    assert get_sensor("IW2") is SENTINEL1_IW2
    assert SENTINEL1_IW2.bandwidth == 48_300_000
    with pytest.raises(ValueError, match="Unknown sensor"):
        get_sensor("stripmap")
    with pytest.raises(ValueError, match="wavelength"):
        SensorConstants(wavelength=0, slant_range=1, bandwidth=1)
