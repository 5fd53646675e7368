from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

from ._types import Bbox, GridSpec
from .alignment import align_to_grid, grid_from_raster, mosaic, pin_projection
from .constants import SENSOR_PRESETS, SensorConstants, get_sensor
from .decorrelation import critical_baseline, geometric_coherence
from .errors import (
    AlignmentError,
    EmptyZoneResult,
    GeometryError,
    LandslideGeometryError,
    SingularityWarning,
)
from .inventory import Inventory, read_inventory
from .pipeline import PipelineConfig, PipelineResult, Product, run_pipeline
from .radar import (
    compute_radar_geometry,
    estimate_look_direction,
    local_incidence,
    range_slope,
)
from .raster import RasterField
from .terrain import slope_aspect
from .zonal import zonal_median

try:
    __version__ = version("landslide-geometry")
except PackageNotFoundError:
    __version__ = "0.0.0"

__all__ = [
    "SENSOR_PRESETS",
    "AlignmentError",
    "Bbox",
    "EmptyZoneResult",
    "GeometryError",
    "GridSpec",
    "Inventory",
    "LandslideGeometryError",
    "PipelineConfig",
    "PipelineResult",
    "Product",
    "RasterField",
    "SensorConstants",
    "SingularityWarning",
    "align_to_grid",
    "compute_radar_geometry",
    "critical_baseline",
    "estimate_look_direction",
    "geometric_coherence",
    "get_sensor",
    "grid_from_raster",
    "local_incidence",
    "mosaic",
    "pin_projection",
    "range_slope",
    "read_inventory",
    "run_pipeline",
    "slope_aspect",
    "zonal_median",
]
