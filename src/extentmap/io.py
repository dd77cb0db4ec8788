from __future__ import annotations
import glob
import json
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

import numpy as np
import rasterio
from rasterio.crs import CRS
from rasterio.io import DatasetReader
from rasterio.warp import transform_geom

from .errors import BandIndexError, EmptyInputError
from .masking import permanent_water_mask, terrain_slope
from .types import BinaryMask, Grid, Polygon, RasterIndex


def discover_inputs(patterns: Sequence[str]) -> List[Path]:
    """Expand glob patterns into a sorted, de-duplicated list of files."""
    files: List[str] = []
    for patt in patterns:
        files.extend(glob.glob(str(patt)))
    if not files:
        raise EmptyInputError(f"No input files found for: {' '.join(map(str, patterns))}")
    return sorted({Path(f).resolve() for f in files})


def grid_of(ds: DatasetReader) -> Grid:
    return Grid(shape=(ds.height, ds.width), transform=ds.transform, crs=ds.crs)


def _read_band(ds: DatasetReader, idx: int, scale_factor: float = 1.0) -> np.ndarray:
    arr = ds.read(idx).astype("float32")
    mask = ds.read_masks(idx) == 0
    arr[mask] = np.nan
    if scale_factor != 1.0:
        arr /= scale_factor
    return arr


def _ensure_contains_bands(ds: DatasetReader, indices: Iterable[int]) -> None:
    for idx in indices:
        if not (1 <= idx <= ds.count):
            raise BandIndexError(f"Band index {idx} not in dataset with {ds.count} bands: {ds.name}")


def read_raster(path: Path, band: int = 1, name: str = "index", scale_factor: float = 1.0) -> RasterIndex:
    with rasterio.open(path) as ds:
        _ensure_contains_bands(ds, [band])
        return RasterIndex(_read_band(ds, band, scale_factor), grid_of(ds), name)


def read_scenes(
    paths: Sequence[Path],
    bands: Mapping[str, int],
    scale_factor: float = 1.0,
) -> Tuple[List[Dict[str, np.ndarray]], Grid]:
    """Read named bands from every scene. All scenes must share one grid."""
    if not paths:
        raise EmptyInputError("No scenes to read")
    scenes: List[Dict[str, np.ndarray]] = []
    grid: Optional[Grid] = None
    for p in paths:
        with rasterio.open(p) as ds:
            _ensure_contains_bands(ds, bands.values())
            g = grid_of(ds)
            if grid is None:
                grid = g
            else:
                grid.require_match(g, what=str(p))
            scenes.append({name: _read_band(ds, idx, scale_factor) for name, idx in bands.items()})
    assert grid is not None
    return scenes, grid


def load_exclusion_mask(path: Path, grid: Grid, months: int = 10, band: int = 1) -> BinaryMask:
    """Permanent water from a seasonality layer (months of water per year)."""
    seasonality = read_raster(path, band, name="seasonality")
    grid.require_match(seasonality.grid, what="seasonality")
    return permanent_water_mask(seasonality, months)


def load_terrain_slope(path: Path, grid: Grid, units: str = "degrees", band: int = 1) -> RasterIndex:
    dem = read_raster(path, band, name="elevation")
    grid.require_match(dem.grid, what="elevation")
    return terrain_slope(dem, units)


GEOJSON_CRS = "EPSG:4326"


def _is_projected(crs: Any) -> bool:
    return crs is not None and not CRS.from_user_input(crs).is_geographic


def read_aoi(path: Path, crs: Any = None) -> List[Dict[str, Any]]:
    """Geometries from a GeoJSON FeatureCollection, Feature or bare geometry.

    GeoJSON coordinates are lon/lat; with a projected ``crs`` the geometries
    are reprojected into it so they can be burned onto that grid.
    """
    with open(path) as f:
        obj = json.load(f)
    kind = obj.get("type")
    if kind == "FeatureCollection":
        geoms = [feat["geometry"] for feat in obj.get("features", []) if feat.get("geometry")]
    elif kind == "Feature":
        geoms = [obj["geometry"]] if obj.get("geometry") else []
    else:
        geoms = [obj]
    if not geoms:
        raise EmptyInputError(f"No geometry in {path}")
    if _is_projected(crs):
        geoms = [dict(transform_geom(GEOJSON_CRS, crs, g)) for g in geoms]
    return geoms


def write_geotiff(path: Path, grid: Grid, array: np.ndarray) -> None:
    """Write a single-band GeoTIFF with dtype inferred from the array."""
    path.parent.mkdir(parents=True, exist_ok=True)
    prof = {
        "driver": "GTiff",
        "height": grid.shape[0],
        "width": grid.shape[1],
        "count": 1,
        "transform": grid.transform,
        "crs": grid.crs,
    }
    if array.dtype == np.uint8:
        prof.update(dtype="uint8", nodata=None)
    elif array.dtype == np.float32:
        prof.update(dtype="float32", nodata=np.nan)
    else:
        prof.update(dtype=str(array.dtype))
    with rasterio.open(path, "w", **prof) as dst:
        dst.write(array, 1)


def write_geojson(path: Path, polygons: Iterable[Polygon], crs: Any = None) -> int:
    """Stream polygons into a lon/lat GeoJSON FeatureCollection; returns the feature count.

    ``crs`` is the grid the polygons were traced on. Projected coordinates are
    transformed to EPSG:4326.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    project = _is_projected(crs)
    n = 0
    with open(path, "w") as f:
        f.write('{"type": "FeatureCollection", "features": [')
        for poly in polygons:
            feature = poly.to_feature()
            if project:
                feature["geometry"] = dict(transform_geom(crs, GEOJSON_CRS, feature["geometry"]))
            if n:
                f.write(",")
            f.write("\n" + json.dumps(feature))
            n += 1
        f.write("\n]}\n")
    return n
