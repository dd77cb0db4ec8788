from __future__ import annotations
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence

import numpy as np

from .compositing import composite, speckle_filter
from .errors import EmptyInputError, UnknownProductError
from .indices import compute_index, required_bands
from .io import (
    discover_inputs, load_exclusion_mask, load_terrain_slope, read_aoi, read_raster,
    read_scenes, write_geojson, write_geotiff,
)
from .masking import exclude_region, filter_small_components, steep_terrain_mask
from .products import get_product
from .reporting import log_product_summary, write_summary
from .thresholding import normalize, region_statistics, threshold
from .types import (
    AreaSummary, Bands, BinaryMask, Grid, IndexConfig, Options, Polygon, ProductConfig,
    RasterIndex, Region, Statistics,
)
from .vectorize import area_summary, vectorize

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IndexResult:
    """Every named intermediate of one index run."""
    config: IndexConfig
    region: Region
    raw_stats: Statistics
    normalized: RasterIndex
    normalized_stats: Statistics
    threshold: float
    thresholded: BinaryMask
    refined: BinaryMask
    area: AreaSummary
    connectivity: int = 8

    @property
    def name(self) -> str:
        return self.config.name

    def polygons(self) -> Iterator[Polygon]:
        return vectorize(self.refined, self.region, label=self.name, connectivity=self.connectivity)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "index": self.name,
            "k": self.config.k,
            "direction": self.config.direction,
            "raw": self.raw_stats.as_dict(),
            "normalized": self.normalized_stats.as_dict(),
            "threshold": self.threshold,
            "thresholded_pixels": self.thresholded.count,
            "refined_pixels": self.refined.count,
            "hectares": self.area.hectares,
        }


@dataclass(frozen=True)
class ProductResult:
    product: ProductConfig
    results: Dict[str, IndexResult]

    def __iter__(self):
        return iter(self.results.values())

    def __getitem__(self, name: str) -> IndexResult:
        return self.results[name.upper()]

    def as_dict(self) -> Dict[str, Any]:
        return {
            "product": self.product.name,
            "min_size": self.product.min_size,
            "connectivity": self.product.connectivity,
            "indices": [r.as_dict() for r in self],
        }


def run_index(
    index: RasterIndex,
    region: Region,
    config: IndexConfig,
    min_size: int,
    connectivity: int = 8,
    scale: Optional[float] = None,
    exclusion: Optional[BinaryMask] = None,
    terrain_exclusion: Optional[BinaryMask] = None,
) -> IndexResult:
    """normalize -> threshold -> exclude -> drop small components -> (terrain) -> area."""
    raw_stats = region_statistics(index, region, scale)
    normalized = normalize(index, region, scale)
    normalized_stats = region_statistics(normalized, region, scale)
    thr, thresholded = threshold(normalized, region, scale, k=config.k, direction=config.direction)

    refined = thresholded
    if exclusion is not None:
        refined = exclude_region(refined, exclusion)
    refined = filter_small_components(refined, min_size, connectivity)
    if terrain_exclusion is not None:
        refined = exclude_region(refined, terrain_exclusion)

    area = area_summary(refined, region, scale, label=config.name)
    logger.info("%s: threshold=%.4f, %d -> %d pixels, %d ha",
                config.name, thr, thresholded.count, refined.count, area.hectares)
    return IndexResult(
        config=config,
        region=region,
        raw_stats=raw_stats,
        normalized=normalized,
        normalized_stats=normalized_stats,
        threshold=thr,
        thresholded=thresholded,
        refined=refined,
        area=area,
        connectivity=connectivity,
    )


def run_product(
    product: ProductConfig,
    indices: Mapping[str, RasterIndex],
    region: Region,
    exclusion: Optional[BinaryMask] = None,
    slope: Optional[RasterIndex] = None,
    scale: Optional[float] = None,
    max_workers: int = 1,
) -> ProductResult:
    """Run every index of ``product``. Index pipelines share only read-only inputs."""
    missing = [cfg.name for cfg in product.indices if cfg.name not in indices]
    if missing:
        raise EmptyInputError(f"No raster supplied for {', '.join(missing)}")

    if product.permanent_water and exclusion is None:
        logger.warning("%s: no permanent-water layer given, skipping water exclusion", product.name)
    if not product.permanent_water:
        exclusion = None

    terrain = None
    if product.max_slope is not None:
        if slope is None:
            logger.warning("%s: no elevation given, skipping slope exclusion", product.name)
        else:
            terrain = steep_terrain_mask(slope, product.max_slope)

    def _one(cfg: IndexConfig) -> IndexResult:
        return run_index(
            indices[cfg.name], region, cfg,
            min_size=product.min_size,
            connectivity=product.connectivity,
            scale=scale,
            exclusion=exclusion,
            terrain_exclusion=terrain,
        )

    if max_workers > 1:
        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            results = list(pool.map(_one, product.indices))
    else:
        results = [_one(cfg) for cfg in product.indices]
    return ProductResult(product, {r.name: r for r in results})


def build_optical_indices(
    scenes: Sequence[Mapping[str, np.ndarray]],
    grid: Grid,
    product: ProductConfig,
) -> Dict[str, RasterIndex]:
    """Per-scene index, then temporal composite per index."""
    if not scenes:
        raise EmptyInputError("No scenes supplied")
    out: Dict[str, RasterIndex] = {}
    for cfg in product.indices:
        per_scene = [RasterIndex(compute_index(cfg.name, bands), grid, cfg.name) for bands in scenes]
        out[cfg.name] = composite(per_scene, product.composite, name=cfg.name)
    return out


def build_flood_indices(
    before: Sequence[RasterIndex],
    after: Sequence[RasterIndex],
    product: ProductConfig,
) -> Dict[str, RasterIndex]:
    """Mean pre-event and minimum post-event backscatter, then speckle-filtered change indices."""
    if not before or not after:
        raise EmptyInputError("Flood mapping needs scenes before and after the event")
    mean_before = composite(before, "mean", name="before")
    min_after = composite(after, "min", name="after")
    bands = {"before": mean_before.data, "after": min_after.data}
    out: Dict[str, RasterIndex] = {}
    for cfg in product.indices:
        idx = RasterIndex(compute_index(cfg.name, bands), mean_before.grid, cfg.name)
        if product.speckle_radius:
            idx = speckle_filter(idx, product.speckle_radius)
        out[cfg.name] = idx
    return out


def _region(opts: Options, grid: Grid) -> Region:
    if opts.aoi is None:
        return Region.full(grid)
    return Region.from_geometry(read_aoi(Path(opts.aoi), grid.crs), grid)


def _write_outputs(result: ProductResult, outdir: Path, grid: Grid, write_masks: bool) -> Dict[str, Any]:
    outdir.mkdir(parents=True, exist_ok=True)
    files: Dict[str, List[str]] = {}
    for r in result:
        stem = f"{result.product.name}_{r.name.lower()}"
        paths = []
        if write_masks:
            mask_path = outdir / f"{stem}_mask.tif"
            write_geotiff(mask_path, grid, r.refined.data.astype("uint8"))
            paths.append(str(mask_path))
        poly_path = outdir / f"{stem}_polygons.geojson"
        n = write_geojson(poly_path, r.polygons(), grid.crs)
        logger.debug("%s: %d polygons -> %s", r.name, n, poly_path)
        paths.append(str(poly_path))
        files[r.name] = paths
    summary_path = outdir / f"{result.product.name}_summary.json"
    write_summary(summary_path, result)
    return {"outdir": str(outdir.resolve()), "summary": str(summary_path), "files": files}


def run_optical(
    product_name: str,
    inputs: Sequence[str],
    outdir: Path,
    bands: Bands = Bands(),
    opts: Options = Options(),
    product: Optional[ProductConfig] = None,
) -> Dict[str, Any]:
    product = product or get_product(product_name)
    paths = discover_inputs(inputs)
    logger.info("%s: %d scene(s)", product.name, len(paths))
    band_map = bands.as_dict()
    needed = sorted({b for cfg in product.indices for b in required_bands(cfg.name)})
    if any(b not in band_map for b in needed):
        raise UnknownProductError(f"{product.name} is not an optical product")
    scenes, grid = read_scenes(paths, {b: band_map[b] for b in needed}, scale_factor=opts.reflectance_scale)
    indices = build_optical_indices(scenes, grid, product)
    region = _region(opts, grid)
    exclusion = load_exclusion_mask(Path(opts.water), grid, months=product.water_months) if opts.water else None
    result = run_product(product, indices, region, exclusion=exclusion, max_workers=opts.max_workers)
    log_product_summary(result)
    stats = _write_outputs(result, outdir, grid, opts.write_masks)
    stats["hectares"] = {r.name: r.area.hectares for r in result}
    return stats


def run_flood(
    before: Sequence[str],
    after: Sequence[str],
    outdir: Path,
    band: int = 1,
    opts: Options = Options(),
    product: Optional[ProductConfig] = None,
) -> Dict[str, Any]:
    product = product or get_product("flood")
    before_scenes = [read_raster(p, band, name="before") for p in discover_inputs(before)]
    after_scenes = [read_raster(p, band, name="after") for p in discover_inputs(after)]
    logger.info("flood: %d scene(s) before, %d after", len(before_scenes), len(after_scenes))
    indices = build_flood_indices(before_scenes, after_scenes, product)
    grid = before_scenes[0].grid
    region = _region(opts, grid)
    exclusion = load_exclusion_mask(Path(opts.water), grid, months=product.water_months) if opts.water else None
    slope = load_terrain_slope(Path(opts.dem), grid, units=opts.slope_units) if opts.dem else None
    result = run_product(product, indices, region, exclusion=exclusion, slope=slope, max_workers=opts.max_workers)
    log_product_summary(result)
    stats = _write_outputs(result, outdir, grid, opts.write_masks)
    stats["hectares"] = {r.name: r.area.hectares for r in result}
    return stats
