from __future__ import annotations
import logging
from enum import Enum
from pathlib import Path
from typing import List, Optional

import typer

from .errors import ExtentMapError
from .logging_utils import setup_logger
from .pipeline import run_flood, run_optical
from .products import PRODUCTS, get_product
from .types import Bands, Options

logger = logging.getLogger("extentmap")

app = typer.Typer(add_completion=False, no_args_is_help=True)


class Composite(str, Enum):
    median = "median"
    mean = "mean"
    min = "min"
    max = "max"


class SlopeUnits(str, Enum):
    degrees = "degrees"
    percent = "percent"


def _check_connectivity(value: Optional[int]) -> Optional[int]:
    if value is not None and value not in (4, 8):
        raise typer.BadParameter("must be 4 or 8")
    return value


def _configure(verbose: bool, logs_dir: Path) -> None:
    setup_logger(str(logs_dir), name="extentmap", verbose=verbose)


def _report(stats: dict) -> None:
    for name, ha in stats["hectares"].items():
        logger.info(f"{name}: {ha:,} ha")
    logger.info(f"Outputs in: {stats['outdir']}")


@app.command()
def optical(
    product: str = typer.Argument(..., help='Product: "vegetation", "soil" or "moisture"'),
    inputs: List[str] = typer.Argument(..., help="One or more glob patterns for multiband GeoTIFF scenes"),
    outdir: Path = typer.Option(Path("outputs"), help="Output directory"),
    aoi: Optional[Path] = typer.Option(None, help="GeoJSON area of interest (default: whole grid)"),
    water: Optional[Path] = typer.Option(None, help="Surface-water seasonality raster (months/year)"),
    # bands
    blue_band: int = typer.Option(2, help="1-based band index for Blue"),
    green_band: int = typer.Option(3, help="1-based band index for Green"),
    red_band: int = typer.Option(4, help="1-based band index for Red"),
    nir_band: int = typer.Option(8, help="1-based band index for NIR"),
    swir1_band: int = typer.Option(11, help="1-based band index for SWIR1"),
    swir2_band: int = typer.Option(12, help="1-based band index for SWIR2"),
    reflectance_scale: float = typer.Option(10000.0, help="Divide band values by this (1 for reflectance input)"),
    # algo
    k: Optional[float] = typer.Option(None, help="Override k for every index"),
    min_size: Optional[int] = typer.Option(None, help="Minimum connected-component size in pixels"),
    connectivity: Optional[int] = typer.Option(None, callback=_check_connectivity, help="4 or 8"),
    composite: Optional[Composite] = typer.Option(None, help="Temporal reducer"),
    workers: int = typer.Option(1, help="Index pipelines to run in parallel"),
    no_masks: bool = typer.Option(False, "--no-masks", help="Skip writing mask GeoTIFFs"),
    logs_dir: Path = typer.Option(Path("logs"), help="Log directory"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
):
    """Threshold optical indices into vegetation, hydric soil or moisture extent."""
    _configure(verbose, logs_dir)
    try:
        cfg = get_product(product).with_overrides(
            k=k, min_size=min_size, connectivity=connectivity,
            composite=composite.value if composite else None,
        )
        bands = Bands(blue=blue_band, green=green_band, red=red_band,
                      nir=nir_band, swir1=swir1_band, swir2=swir2_band)
        opts = Options(
            aoi=str(aoi) if aoi else None,
            water=str(water) if water else None,
            reflectance_scale=reflectance_scale,
            max_workers=workers,
            write_masks=not no_masks,
        )
        stats = run_optical(cfg.name, inputs, outdir, bands, opts, product=cfg)
    except ExtentMapError as e:
        logger.error(str(e))
        raise typer.Exit(code=1)
    _report(stats)


@app.command()
def flood(
    before: List[str] = typer.Option(..., help="Glob pattern(s) for pre-event SAR scenes"),
    after: List[str] = typer.Option(..., help="Glob pattern(s) for post-event SAR scenes"),
    outdir: Path = typer.Option(Path("outputs"), help="Output directory"),
    aoi: Optional[Path] = typer.Option(None, help="GeoJSON area of interest (default: whole grid)"),
    water: Optional[Path] = typer.Option(None, help="Surface-water seasonality raster (months/year)"),
    dem: Optional[Path] = typer.Option(None, help="Elevation raster for the slope exclusion"),
    band: int = typer.Option(1, help="1-based band index of the VH backscatter"),
    slope_units: SlopeUnits = typer.Option(SlopeUnits.degrees, help="Units of the DEM slope threshold"),
    min_size: Optional[int] = typer.Option(None, help="Minimum connected-component size in pixels"),
    connectivity: Optional[int] = typer.Option(None, callback=_check_connectivity, help="4 or 8"),
    speckle_radius: Optional[float] = typer.Option(None, help="Focal median radius in metres (0 disables)"),
    workers: int = typer.Option(1, help="Index pipelines to run in parallel"),
    no_masks: bool = typer.Option(False, "--no-masks", help="Skip writing mask GeoTIFFs"),
    logs_dir: Path = typer.Option(Path("logs"), help="Log directory"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
):
    """Map flood extent from SAR backscatter before and after an event."""
    _configure(verbose, logs_dir)
    try:
        cfg = get_product("flood").with_overrides(
            min_size=min_size, connectivity=connectivity, speckle_radius=speckle_radius,
        )
        opts = Options(
            aoi=str(aoi) if aoi else None,
            water=str(water) if water else None,
            dem=str(dem) if dem else None,
            slope_units=slope_units.value,
            max_workers=workers,
            write_masks=not no_masks,
        )
        stats = run_flood(before, after, outdir, band=band, opts=opts, product=cfg)
    except ExtentMapError as e:
        logger.error(str(e))
        raise typer.Exit(code=1)
    _report(stats)


@app.command()
def products():
    """List the built-in product configurations."""
    for p in PRODUCTS.values():
        rules = ", ".join(f"{c.name} k={c.k} {c.direction}" for c in p.indices)
        typer.echo(f"{p.name:<11} min_size={p.min_size} connectivity={p.connectivity}  {rules}")


def entrypoint():
    app()


if __name__ == "__main__":
    entrypoint()
