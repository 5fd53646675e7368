"""Command-line interface for landslide-geometry."""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Sequence
from pathlib import Path

import numpy as np
import tyro

from . import _io
from .constants import SENSOR_PRESETS, get_sensor
from .decorrelation import critical_baseline as _critical_baseline
from .decorrelation import geometric_coherence
from .pipeline import PipelineConfig, Product, run_pipeline
from .radar import estimate_look_direction


def run(
    incidence_file: Path,
    inventory_file: Path,
    /,
    *,
    dem_files: list[Path],
    output_dir: Path = Path(),
    incidence_band: int = 1,
    id_field: str = "object_id",
    suffix: str = "",
    bperp: float = 150.0,
    sensor: str = "iw2",
    wavelength: float | None = None,
    slant_range: float | None = None,
    bandwidth: float | None = None,
    scale: float = 10.0,
    look_direction: float | None = None,
    look_subsample_factor: int = 1,
    aoi: tuple[float, float, float, float] | None = None,
    resampling: str = "bilinear",
    num_workers: int = 1,
    products: list[str] | None = None,
    overwrite: bool = False,
    save_rasters: bool = False,
) -> None:
    """Compute per-landslide median SAR geometry and write one CSV per product.

    Parameters
    ----------
    incidence_file : Path
        SAR incidence angle raster, in degrees.
    inventory_file : Path
        Landslide polygons, in any format readable by `geopandas.read_file`.
    dem_files : list[Path]
        Elevation tiles. The first tile sets the projection of the mosaic.
    output_dir : Path
        Directory for the output tables.
    incidence_band : int
        Band of `incidence_file` with the incidence angle.
    id_field : str
        Polygon attribute with a unique landslide identifier.
    suffix : str
        Label appended to output names, e.g. the track "T019D".
    bperp : float
        Perpendicular baseline, in meters.
    sensor : str
        Sensor preset for the coherence model (see `sensors`).
    wavelength : float, optional
        Radar wavelength in meters, replacing the preset value.
    slant_range : float, optional
        Slant range distance in meters, replacing the preset value.
    bandwidth : float, optional
        Range bandwidth in Hz, replacing the preset value.
    scale : float
        Sampling resolution of the zonal medians, in meters.
    look_direction : float, optional
        Look direction in degrees from north. Estimated if not given.
    look_subsample_factor : int
        Decimation of the incidence raster for the look-direction estimate.
    aoi : tuple[float, float, float, float], optional
        Area of interest (west, south, east, north) in degrees for the
        look-direction estimate. Default is the bounds of the inventory.
    resampling : str
        Resampling method for aligning terrain to the SAR grid.
    num_workers : int
        Threads for the per-polygon reduction.
    products : list[str], optional
        Subset of products to compute, by name (e.g. "slope", "coherence").
        Default is all.
    overwrite : bool
        Overwrite existing output tables.
    save_rasters : bool
        Also save each product raster as a GeoTIFF.

    """
    config = PipelineConfig(
        dem_files=dem_files,
        incidence_file=incidence_file,
        inventory_file=inventory_file,
        output_dir=output_dir,
        incidence_band=incidence_band,
        id_field=id_field,
        suffix=suffix,
        bperp=bperp,
        sensor=sensor,
        wavelength=wavelength,
        slant_range=slant_range,
        bandwidth=bandwidth,
        scale=scale,
        look_direction=look_direction,
        look_subsample_factor=look_subsample_factor,
        aoi=aoi,
        resampling=resampling,
        num_workers=num_workers,
        products=[Product(p) for p in products] if products else list(Product),
        overwrite=overwrite,
        save_rasters=save_rasters,
    )
    result = run_pipeline(config)
    for product, path in result.outputs.items():
        print(f"{product}: {path}")
    for product, path in result.skipped.items():
        print(f"{product}: {path} exists, skipped")
    if result.failures:
        for product, reason in result.failures.items():
            print(f"{product}: FAILED ({reason})")
        raise SystemExit(1)


def look_direction(
    incidence_file: Path,
    /,
    band: int = 1,
    bbox: tuple[float, float, float, float] | None = None,
    subsample_factor: int = 1,
) -> None:
    """Estimate the satellite look direction from an incidence angle raster.

    Prints the direction in degrees clockwise from north.

    Parameters
    ----------
    incidence_file : Path
        SAR incidence angle raster, in degrees.
    band : int
        Band with the incidence angle.
    bbox : tuple[float, float, float, float], optional
        Area of interest (west, south, east, north) in degrees.
        Default is the whole raster.
    subsample_factor : int
        Decimate the raster by this factor before estimating.

    """
    incidence = _io.load_raster(incidence_file, band=band, units="degrees")
    look = estimate_look_direction(
        incidence, aoi=bbox, subsample_factor=subsample_factor
    )
    print(f"{look:.4f}")


def coherence(
    local_incidence: Sequence[float],
    /,
    bperp: float = 150.0,
    sensor: str = "iw2",
    degrees: bool = False,
) -> None:
    """Print the modelled geometric coherence for local incidence angles.

    Parameters
    ----------
    local_incidence : Sequence[float]
        Local incidence angles, in radians (or degrees with `--degrees`).
    bperp : float
        Perpendicular baseline, in meters.
    sensor : str
        Sensor preset (see `sensors`).
    degrees : bool
        Interpret the angles as degrees.

    """
    theta = np.asarray(local_incidence, dtype=float)
    if degrees:
        theta = np.radians(theta)
    coh = geometric_coherence(theta, bperp, get_sensor(sensor))
    print(json.dumps([round(float(c), 6) for c in coh]))


def critical_baseline(
    local_incidence: Sequence[float],
    /,
    sensor: str = "iw2",
    degrees: bool = False,
) -> None:
    """Print the critical perpendicular baseline (meters) for local incidence angles.

    Parameters
    ----------
    local_incidence : Sequence[float]
        Local incidence angles, in radians (or degrees with `--degrees`).
    sensor : str
        Sensor preset (see `sensors`).
    degrees : bool
        Interpret the angles as degrees.

    """
    theta = np.asarray(local_incidence, dtype=float)
    if degrees:
        theta = np.radians(theta)
    b_crit = _critical_baseline(theta, get_sensor(sensor))
    print(json.dumps([round(float(b), 3) for b in b_crit]))


def sensors() -> None:
    """List the sensor presets for the coherence model."""
    from rich.console import Console
    from rich.table import Table

    console = Console()
    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Name")
    table.add_column("Wavelength (m)", justify="right")
    table.add_column("Slant range (m)", justify="right")
    table.add_column("Bandwidth (MHz)", justify="right")

    for key, preset in SENSOR_PRESETS.items():
        table.add_row(
            key,
            f"{preset.wavelength:.5f}",
            f"{preset.slant_range:.0f}",
            f"{preset.bandwidth / 1e6:.1f}",
        )
    console.print(table)


def cli_app() -> None:
    """landslide-geometry command-line interface."""
    handler = logging.StreamHandler()
    logger = logging.getLogger("landslide_geometry")
    logger.setLevel(logging.INFO)
    logger.addHandler(handler)
    cli_dict: dict[str, Callable] = {
        "run": run,
        "look-direction": look_direction,
        "coherence": coherence,
        "critical-baseline": critical_baseline,
        "sensors": sensors,
    }
    tyro.extras.subcommand_cli_from_dict(
        cli_dict,
        prog="landslide-geometry",
        description="SAR geometric decorrelation metrics for landslide inventories.",
    )


if __name__ == "__main__":
    cli_app()
