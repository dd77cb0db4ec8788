from __future__ import annotations
import logging
from typing import Optional, Tuple

import numpy as np

from .errors import DegenerateRangeError, EmptyInputError
from .types import BinaryMask, Direction, RasterIndex, Region, Statistics

logger = logging.getLogger(__name__)


def _values_in_region(raster: RasterIndex, region: Region, scale: Optional[float]) -> np.ndarray:
    region.grid.require_match(raster.grid, what=raster.name)
    raster.grid.resolve_scale(scale)
    sel = region.inside & raster.valid
    return raster.data[sel].astype("float64")


def region_statistics(raster: RasterIndex, region: Region, scale: Optional[float] = None) -> Statistics:
    """Min, max, mean and population std of the valid cells inside ``region``."""
    v = _values_in_region(raster, region, scale)
    if v.size == 0:
        raise EmptyInputError(f"No valid {raster.name} cells inside the region")
    vmin, vmax = float(v.min()), float(v.max())
    mean = min(max(float(v.mean()), vmin), vmax)
    return Statistics(min=vmin, max=vmax, mean=mean, std=float(v.std()), count=int(v.size))


def normalize(index: RasterIndex, region: Region, scale: Optional[float] = None) -> RasterIndex:
    """Min-max rescale to [0, 1] inside ``region``; cells outside become no-data."""
    stats = region_statistics(index, region, scale)
    rng = stats.max - stats.min
    if not rng > 0:
        raise DegenerateRangeError(f"{index.name} is constant ({stats.min}) over the region")
    out = np.full(index.data.shape, np.nan, dtype="float64")
    sel = region.inside & index.valid
    out[sel] = (index.data[sel].astype("float64") - stats.min) / rng
    logger.debug("%s range [%.6g, %.6g] over %d cells", index.name, stats.min, stats.max, stats.count)
    return RasterIndex(out.astype("float32"), index.grid, index.name)


def threshold_value(stats: Statistics, k: float, direction: Direction) -> float:
    if direction == "gt":
        return stats.mean + k * stats.std
    if direction == "lt":
        return stats.mean - k * stats.std
    raise ValueError(f"Unknown direction: {direction}")


def threshold(
    normalized: RasterIndex,
    region: Region,
    scale: Optional[float] = None,
    k: float = 0.25,
    direction: Direction = "gt",
) -> Tuple[float, BinaryMask]:
    """Binarize at mean +/- k*std. No-data and outside-region cells are invalid and never true."""
    stats = region_statistics(normalized, region, scale)
    thr = threshold_value(stats, k, direction)
    valid = region.inside & normalized.valid
    with np.errstate(invalid="ignore"):
        if direction == "gt":
            hit = normalized.data > thr
        else:
            hit = normalized.data < thr
    logger.debug("%s mean=%.6g std=%.6g k=%s %s threshold=%.6g",
                 normalized.name, stats.mean, stats.std, k, direction, thr)
    return thr, BinaryMask(hit & valid, normalized.grid, valid)
