from __future__ import annotations

from dataclasses import dataclass

SPEED_OF_LIGHT = 299_792_458

# Sentinel-1 C-band wavelength (m) and nominal earth-satellite distance (m)
SENTINEL1_WAVELENGTH = 0.05547
SENTINEL1_SLANT_RANGE = 693_000.0

METERS_PER_DEGREE = 111_320.0

# Name of the polygon attribute identifying each landslide
DEFAULT_ID_FIELD = "object_id"


@dataclass(frozen=True)
class SensorConstants:
    """Acquisition constants for one SAR sensor and acquisition mode.

    Attributes
    ----------
    wavelength : float
        Radar wavelength, in meters.
    slant_range : float
        Earth-satellite distance, in meters.
    bandwidth : float
        Range chirp bandwidth, in Hz.
    speed_of_light : float
        Speed of light, in m/s.
    name : str
        Label used in logs and output tables.

    """

    wavelength: float
    slant_range: float
    bandwidth: float
    speed_of_light: float = SPEED_OF_LIGHT
    name: str = "custom"

    def __post_init__(self):
        for attr in ("wavelength", "slant_range", "bandwidth", "speed_of_light"):
            value = getattr(self, attr)
            if not value > 0:
                msg = f"{attr} must be positive, got {value}"
                raise ValueError(msg)


# Range bandwidths per interferometric wide swath sub-swath
SENTINEL1_IW1 = SensorConstants(
    wavelength=SENTINEL1_WAVELENGTH,
    slant_range=SENTINEL1_SLANT_RANGE,
    bandwidth=56_500_000.0,
    name="sentinel1-iw1",
)
SENTINEL1_IW2 = SensorConstants(
    wavelength=SENTINEL1_WAVELENGTH,
    slant_range=SENTINEL1_SLANT_RANGE,
    bandwidth=48_300_000.0,
    name="sentinel1-iw2",
)
SENTINEL1_IW3 = SensorConstants(
    wavelength=SENTINEL1_WAVELENGTH,
    slant_range=SENTINEL1_SLANT_RANGE,
    bandwidth=42_800_000.0,
    name="sentinel1-iw3",
)

SENSOR_PRESETS: dict[str, SensorConstants] = {
    "iw1": SENTINEL1_IW1,
    "iw2": SENTINEL1_IW2,
    "iw3": SENTINEL1_IW3,
}


def get_sensor(name: str) -> SensorConstants:
    """Look up a sensor preset by its short name (e.g. "iw2")."""
    try:
        return SENSOR_PRESETS[name.lower()]
    except KeyError:
        msg = f"Unknown sensor preset {name!r}. Choices: {list(SENSOR_PRESETS)}"
        raise ValueError(msg) from None
