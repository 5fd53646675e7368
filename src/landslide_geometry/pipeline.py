"""Per-landslide SAR geometry products.

Wires grid alignment, terrain, radar geometry and decorrelation into named
products, each reduced independently to one median per landslide polygon and
written as a CSV table.
"""

from __future__ import annotations

import logging
import warnings
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

import numpy as np
import pandas as pd

from . import _io, alignment, radar, terrain
from ._types import Bbox, PathOrStr
from .constants import DEFAULT_ID_FIELD, SensorConstants, get_sensor
from .decorrelation import geometric_coherence
from .errors import GeometryError, LandslideGeometryError
from .inventory import Inventory, read_inventory
from .raster import RasterField
from .zonal import zonal_median

__all__ = [
    "FieldGraph",
    "PipelineConfig",
    "PipelineResult",
    "Product",
    "build_graph",
    "run_pipeline",
    "write_table",
]

logger = logging.getLogger(__name__)


class Product(str, Enum):
    """Fields reduced to one value per landslide."""

    INCIDENCE_ANGLE = "incidence_angle"
    """SAR incidence angle theta_i (radians)."""
    RANGE_SLOPE = "range_slope"
    """Terrain slope in the range direction alpha_r (radians)."""
    SLOPE = "slope"
    """Terrain slope alpha_s (radians)."""
    ASPECT = "aspect"
    """Terrain aspect phi_s (radians clockwise from north)."""
    LOCAL_INCIDENCE = "local_incidence"
    """Difference theta_i - alpha_r between incidence and range slope (radians)."""
    COHERENCE = "coherence"
    """Modelled geometric coherence (unitless, [0, 1])."""

    def __str__(self) -> str:
        return self.value

    @property
    def stem(self) -> str:
        """Base name of the output table."""
        return PRODUCT_STEMS[self]


PRODUCT_STEMS = {
    Product.INCIDENCE_ANGLE: "ls_theta",
    Product.RANGE_SLOPE: "ls_slope_in_LOS",
    Product.SLOPE: "ls_slopes",
    Product.ASPECT: "ls_aspects",
    Product.LOCAL_INCIDENCE: "ls_theta_alpha_difference",
    Product.COHERENCE: "ls_modelled_coh_geom",
}


@dataclass
class PipelineConfig:
    """Inputs and options for computing the landslide geometry products.

    Attributes
    ----------
    dem_files : list[Path]
        Elevation tiles (meters). The first tile sets the pinned projection.
    incidence_file : Path
        SAR raster with the incidence angle band (degrees).
    inventory_file : Path
        Landslide polygons, in any format readable by `geopandas.read_file`.
    output_dir : Path
        Directory for the output CSV tables.
    incidence_band : int
        Band of `incidence_file` holding the incidence angle.
    id_field : str
        Attribute uniquely identifying each landslide.
    suffix : str
        Label appended to output names, e.g. the track "T019D".
    bperp : float
        Perpendicular baseline, in meters.
    sensor : str
        Sensor preset name ("iw1", "iw2", "iw3").
    wavelength, slant_range, bandwidth : float, optional
        Override individual constants of the `sensor` preset.
    scale : float
        Sampling resolution of the zonal medians, in meters.
    look_direction : float, optional
        Known look direction (degrees). Estimated from the incidence raster if None.
    look_subsample_factor : int
        Decimation of the incidence raster for the look-direction estimate.
    aoi : tuple[float, float, float, float], optional
        Area of interest (west, south, east, north) in degrees for the
        look-direction estimate. Defaults to the inventory's bounds.
    resampling : str
        Resampling method used to align DEM products with the SAR grid.
    num_workers : int
        Threads used for the per-polygon reduction.
    products : list[Product]
        Products to compute. Default is all of them.
    overwrite : bool
        Overwrite existing output tables.
    save_rasters : bool
        Also write each product raster as a GeoTIFF, for inspection.

    """

    dem_files: list[Path]
    incidence_file: Path
    inventory_file: Path
    output_dir: Path = Path()
    incidence_band: int = 1
    id_field: str = DEFAULT_ID_FIELD
    suffix: str = ""
    bperp: float = 150.0
    sensor: str = "iw2"
    wavelength: float | None = None
    slant_range: float | None = None
    bandwidth: float | None = None
    scale: float = 10.0
    look_direction: float | None = None
    look_subsample_factor: int = 1
    aoi: tuple[float, float, float, float] | None = None
    resampling: str = "bilinear"
    num_workers: int = 1
    products: list[Product] = field(default_factory=lambda: list(Product))
    overwrite: bool = False
    save_rasters: bool = False

    def get_sensor(self) -> SensorConstants:
        """Sensor preset, with any explicitly given constants replacing its own."""
        preset = get_sensor(self.sensor)
        overrides = {
            k: v
            for k, v in (
                ("wavelength", self.wavelength),
                ("slant_range", self.slant_range),
                ("bandwidth", self.bandwidth),
            )
            if v is not None
        }
        if not overrides:
            return preset
        return SensorConstants(
            **{
                "wavelength": preset.wavelength,
                "slant_range": preset.slant_range,
                "bandwidth": preset.bandwidth,
                "speed_of_light": preset.speed_of_light,
                **overrides,
            },
            name=f"{preset.name}-custom",
        )

    def output_path(self, product: Product, ext: str = ".csv") -> Path:
        name = product.stem if not self.suffix else f"{product.stem}_{self.suffix}"
        return Path(self.output_dir) / f"{name}{ext}"


@dataclass
class PipelineResult:
    """Tables, output files and diagnostics from `run_pipeline`."""

    tables: dict[Product, pd.DataFrame] = field(default_factory=dict)
    outputs: dict[Product, Path] = field(default_factory=dict)
    skipped: dict[Product, Path] = field(default_factory=dict)
    failures: dict[Product, str] = field(default_factory=dict)
    warnings: dict[Product, list[str]] = field(default_factory=dict)
    look_direction: float | None = None

    @property
    def ok(self) -> bool:
        return not self.failures


class _Failed:
    __slots__ = ("error",)

    def __init__(self, error: LandslideGeometryError):
        self.error = error


class FieldGraph:
    """Directed acyclic graph of named, pure field computations.

    Nodes are evaluated on demand and memoised. Nodes may only depend on nodes
    added before them, so the graph cannot contain cycles. A node that fails
    with a `LandslideGeometryError` stores the error, and every node depending
    on it re-raises it without recomputing.

    Warnings raised while computing a node are recorded with it, so they can be
    reported for every node downstream, including those computed later from the
    memoised value.
    """

    def __init__(self):
        self._nodes: dict[str, tuple[Callable[..., Any], tuple[str, ...]]] = {}
        self._cache: dict[str, Any] = {}
        self._warnings: dict[str, list[str]] = {}

    def __contains__(self, name: str) -> bool:
        return name in self._nodes

    @property
    def names(self) -> list[str]:
        return list(self._nodes)

    def add(self, name: str, func: Callable[..., Any], *deps: str) -> None:
        """Register `func(*[value of dep for dep in deps])` as node `name`."""
        if name in self._nodes:
            msg = f"Node {name!r} already exists"
            raise ValueError(msg)
        missing = [d for d in deps if d not in self._nodes]
        if missing:
            msg = f"Node {name!r} depends on unknown nodes {missing}"
            raise ValueError(msg)
        self._nodes[name] = (func, deps)

    def evaluate(self, name: str) -> Any:
        """Compute (or fetch the memoised) value of node `name`."""
        if name in self._cache:
            cached = self._cache[name]
            if isinstance(cached, _Failed):
                raise cached.error
            return cached

        func, deps = self._nodes[name]
        caught: list[warnings.WarningMessage] = []
        try:
            inputs = [self.evaluate(d) for d in deps]
            logger.debug(f"Evaluating {name}")
            with warnings.catch_warnings(record=True) as caught:
                warnings.simplefilter("always")
                value = func(*inputs)
        except LandslideGeometryError as e:
            self._cache[name] = _Failed(e)
            raise
        finally:
            self._warnings[name] = [str(w.message) for w in caught]
        for w in caught:
            warnings.warn_explicit(w.message, w.category, w.filename, w.lineno)
        self._cache[name] = value
        return value

    def warnings_for(self, name: str) -> list[str]:
        """Get the warnings from computing `name` and every node it depends on.

        Messages are in evaluation order, without repeats.
        """
        messages: list[str] = []
        visited: set[str] = set()

        def _visit(node: str) -> None:
            if node in visited:
                return
            visited.add(node)
            for dep in self._nodes[node][1]:
                _visit(dep)
            for msg in self._warnings.get(node, []):
                if msg not in messages:
                    messages.append(msg)

        _visit(name)
        return messages

    def is_evaluated(self, name: str) -> bool:
        cached = self._cache.get(name)
        return name in self._cache and not isinstance(cached, _Failed)


def build_graph(config: PipelineConfig, inventory: Inventory) -> FieldGraph:
    """Build the dataflow from source rasters to every `Product` field."""
    graph = FieldGraph()
    sensor = config.get_sensor()

    # Sources
    graph.add(
        "incidence_deg",
        lambda: _io.load_raster(
            config.incidence_file,
            band=config.incidence_band,
            name="incidence_angle",
            units="degrees",
        ),
    )
    graph.add("sar_grid", alignment.grid_from_raster, "incidence_deg")
    graph.add("dem", lambda: _load_dem(config.dem_files, config.resampling))

    # Terrain, on the pinned DEM projection, then moved to the SAR grid
    graph.add("terrain", terrain.slope_aspect, "dem")
    graph.add(
        "slope_deg",
        lambda t, grid, inc: alignment.clip_to(
            alignment.align_to_grid(t[0], grid, config.resampling), inc
        ),
        "terrain",
        "sar_grid",
        "incidence_deg",
    )
    graph.add(
        "aspect_deg",
        lambda t, grid, inc: alignment.clip_to(
            alignment.align_angle_to_grid(t[1], grid, config.resampling), inc
        ),
        "terrain",
        "sar_grid",
        "incidence_deg",
    )

    # Single full-area reduction: everything downstream waits on this scalar
    def _look_direction(incidence: RasterField) -> float:
        if config.look_direction is not None:
            return float(config.look_direction)
        aoi = Bbox(*config.aoi) if config.aoi is not None else None
        aoi_crs: Any = 4326
        if aoi is None:
            try:
                aoi, aoi_crs = inventory.bounds, inventory.crs
            except ValueError as e:
                raise GeometryError(str(e)) from e
        return radar.estimate_look_direction(
            incidence,
            aoi=aoi,
            aoi_crs=aoi_crs,
            subsample_factor=config.look_subsample_factor,
        )

    graph.add("look_direction", _look_direction, "incidence_deg")
    graph.add(
        "look_direction_deg",
        lambda inc, look: RasterField.constant(
            look, like=inc, name="look_direction", units="degrees"
        ),
        "incidence_deg",
        "look_direction",
    )
    graph.add(
        "range_slope",
        radar.range_slope,
        "slope_deg",
        "aspect_deg",
        "look_direction_deg",
    )
    graph.add("local_incidence", radar.local_incidence, "incidence_deg", "range_slope")

    # Products, in radians
    graph.add(
        Product.INCIDENCE_ANGLE.value,
        lambda inc: _to_radians(inc, Product.INCIDENCE_ANGLE),
        "incidence_deg",
    )
    graph.add(
        Product.SLOPE.value,
        lambda slope: _to_radians(slope, Product.SLOPE),
        "slope_deg",
    )
    graph.add(
        Product.ASPECT.value,
        lambda aspect: _to_radians(aspect, Product.ASPECT),
        "aspect_deg",
    )
    graph.add(
        Product.RANGE_SLOPE.value,
        lambda alpha_r: alpha_r.with_data(alpha_r.data, name=Product.RANGE_SLOPE.value),
        "range_slope",
    )
    graph.add(
        Product.LOCAL_INCIDENCE.value,
        lambda theta: theta.with_data(theta.data, name=Product.LOCAL_INCIDENCE.value),
        "local_incidence",
    )
    graph.add(
        Product.COHERENCE.value,
        lambda theta: geometric_coherence(theta, config.bperp, sensor),
        "local_incidence",
    )
    return graph


def run_pipeline(config: PipelineConfig) -> PipelineResult:
    """Compute every requested product and write one CSV table per product.

    Each product is computed and reduced independently: an alignment or
    geometry error in one product is recorded in `PipelineResult.failures`
    and does not stop the others.
    """
    inventory = read_inventory(config.inventory_file, id_field=config.id_field)
    graph = build_graph(config, inventory)
    output_dir = Path(config.output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    sensor = config.get_sensor()
    logger.info(
        f"Running {len(config.products)} products for {len(inventory)} landslides,"
        f" Bperp={config.bperp} m, sensor {sensor.name}"
    )

    result = PipelineResult()
    for product in map(Product, config.products):
        logger.info(f"Computing {product}")
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always")
            try:
                product_field = graph.evaluate(product.value)
            except LandslideGeometryError as e:
                reason = f"{type(e).__name__}: {e}"
                logger.error(f"Product {product} failed: {reason}")
                result.failures[product] = reason
                continue
            table = zonal_median(
                product_field,
                inventory,
                scale=config.scale,
                num_workers=config.num_workers,
            )
        zonal_messages = [str(w.message) for w in caught]
        node_messages = graph.warnings_for(product.value)
        messages = list(dict.fromkeys(node_messages + zonal_messages))
        for msg in messages:
            logger.warning(f"{product}: {msg}")
        if messages:
            result.warnings[product] = messages

        out_path = config.output_path(product)
        result.tables[product] = table
        if not write_table(table, out_path, overwrite=config.overwrite):
            result.skipped[product] = out_path
            continue
        result.outputs[product] = out_path
        if config.save_rasters:
            tif_path = config.output_path(product, ext=".tif")
            product_field.to_file(tif_path)

    if graph.is_evaluated("look_direction"):
        result.look_direction = graph.evaluate("look_direction")
    return result


def write_table(df: pd.DataFrame, path: PathOrStr, overwrite: bool = False) -> bool:
    """Write a result table as CSV. Null statistics are written as empty cells.

    Returns False, without writing, if `path` exists and `overwrite` is False.
    """
    path = Path(path)
    if path.exists():
        if not overwrite:
            logger.warning(f"{path} already exists, skipping")
            return False
        logger.info(f"Overwrite=True: removing {path}")
        path.unlink()
    df.to_csv(path, index=False, na_rep="")
    logger.info(f"Wrote {len(df)} rows to {path}")
    return True


def _load_dem(dem_files: list[Path], resampling: str) -> RasterField:
    crs, resolution = alignment.pin_projection(dem_files)
    return alignment.mosaic(
        dem_files,
        crs=crs,
        resolution=resolution,
        resampling=resampling,
        name="elevation",
        units="meters",
    )


def _to_radians(field_deg: RasterField, product: Product) -> RasterField:
    return field_deg.with_data(
        np.radians(field_deg.data), name=product.value, units="radians"
    )
