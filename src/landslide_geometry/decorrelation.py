"""First-order geometric (baseline) decorrelation model.

The modelled coherence for a perpendicular baseline Bperp is

    coh = 1 - c * |Bperp| / (lambda * r * Bw * |tan(theta_loc)|)

(Lee and Liu, 1999). It only accounts for geometric decorrelation of a single
baseline under a flat-earth, single-bounce approximation: volume and temporal
decorrelation are not modelled, so it overestimates coherence over vegetation.
"""

from __future__ import annotations

import warnings
from typing import Union

import numpy as np
from numpy.typing import ArrayLike

from .constants import SENTINEL1_IW2, SensorConstants
from .errors import SingularityWarning
from .raster import RasterField

__all__ = ["critical_baseline", "geometric_coherence"]

FieldOrArray = Union[RasterField, ArrayLike]

# |tan(theta_loc)| below this is treated as a zero denominator
SINGULARITY_EPS = 1e-12


def geometric_coherence(
    local_incidence: FieldOrArray,
    bperp: float,
    sensor: SensorConstants = SENTINEL1_IW2,
) -> FieldOrArray:
    """Model geometric coherence from the local incidence angle.

    Parameters
    ----------
    local_incidence : RasterField or ArrayLike
        Local incidence angle theta_loc, in radians.
    bperp : float
        Perpendicular baseline, in meters. Only its magnitude is used.
    sensor : SensorConstants
        Wavelength, earth-satellite distance, bandwidth and speed of light
        for the acquisition mode. Default is Sentinel-1 IW2.

    Returns
    -------
    RasterField or np.ndarray
        Coherence clamped into [0, 1]; NaN where `local_incidence` is NaN.
        Where |tan(theta_loc)| vanishes (grazing geometry) the coherence is 0,
        or 1 if `bperp` is 0.

    """
    theta = np.asarray(_values(local_incidence), dtype=np.float64)
    numerator = sensor.speed_of_light * abs(bperp)
    tan_abs = np.abs(np.tan(theta))
    denominator = sensor.wavelength * sensor.slant_range * sensor.bandwidth * tan_abs

    with np.errstate(divide="ignore", invalid="ignore"):
        singular = tan_abs < SINGULARITY_EPS
        coh = 1.0 - numerator / denominator
    if singular.any():
        coh = np.where(singular, 1.0 if numerator == 0 else 0.0, coh)
        warnings.warn(
            f"{int(singular.sum())} pixel(s) with |tan(local incidence)| <"
            f" {SINGULARITY_EPS} set to coherence {1 if numerator == 0 else 0}",
            SingularityWarning,
            stacklevel=2,
        )
    # NaN passes through np.clip unchanged
    coh = np.clip(coh, 0.0, 1.0)
    if isinstance(local_incidence, RasterField):
        return local_incidence.with_data(coh, name="coherence", units="")
    return coh


def critical_baseline(
    local_incidence: FieldOrArray,
    sensor: SensorConstants = SENTINEL1_IW2,
) -> FieldOrArray:
    """Perpendicular baseline, in meters, at which modelled coherence reaches 0.

    B_crit = lambda * r * Bw * |tan(theta_loc)| / c
    """
    theta = np.asarray(_values(local_incidence), dtype=np.float64)
    b_crit = (
        sensor.wavelength
        * sensor.slant_range
        * sensor.bandwidth
        * np.abs(np.tan(theta))
        / sensor.speed_of_light
    )
    if isinstance(local_incidence, RasterField):
        return local_incidence.with_data(b_crit, name="critical_baseline", units="m")
    return b_crit


def _values(x: FieldOrArray):
    return x.data if isinstance(x, RasterField) else x
