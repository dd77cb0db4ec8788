from __future__ import annotations
import logging
from typing import Tuple

import numpy as np
from scipy import ndimage

from .types import BinaryMask, RasterIndex

logger = logging.getLogger(__name__)


def connectivity_structure(connectivity: int) -> np.ndarray:
    if connectivity == 4:
        return ndimage.generate_binary_structure(2, 1)
    if connectivity == 8:
        return ndimage.generate_binary_structure(2, 2)
    raise ValueError(f"connectivity must be 4 or 8, got {connectivity}")


def label_components(mask: BinaryMask, connectivity: int = 8) -> Tuple[np.ndarray, np.ndarray]:
    """Label connected true cells. Returns (labels, sizes) with sizes[0] the background count."""
    labels, _ = ndimage.label(mask.data, structure=connectivity_structure(connectivity))
    sizes = np.bincount(labels.ravel())
    return labels, sizes


def exclude_region(mask: BinaryMask, exclusion: BinaryMask) -> BinaryMask:
    """Force cells that are true in ``exclusion`` to false."""
    mask.grid.require_match(exclusion.grid, what="exclusion")
    return mask.with_data(mask.data & ~exclusion.data)


def filter_small_components(mask: BinaryMask, min_size: int, connectivity: int = 8) -> BinaryMask:
    """Clear every connected component with fewer than ``min_size`` cells."""
    labels, sizes = label_components(mask, connectivity)
    keep = sizes >= min_size
    keep[0] = False
    out = keep[labels]
    logger.debug("kept %d/%d components (min_size=%d, connectivity=%d)",
                 int(keep.sum()), len(sizes) - 1, min_size, connectivity)
    return mask.with_data(out)


def permanent_water_mask(seasonality: RasterIndex, months: int = 10) -> BinaryMask:
    """Cells observed as water for at least ``months`` months a year. No-data is not water."""
    with np.errstate(invalid="ignore"):
        water = np.isfinite(seasonality.data) & (seasonality.data >= months)
    return BinaryMask(water, seasonality.grid)


def terrain_slope(dem: RasterIndex, units: str = "degrees") -> RasterIndex:
    """Slope from elevation by central differences, in degrees or percent rise."""
    xres, yres = dem.grid.resolution
    dz_dy, dz_dx = np.gradient(dem.data.astype("float64"), yres, xres)
    rise = np.hypot(dz_dx, dz_dy)
    if units == "degrees":
        slope = np.degrees(np.arctan(rise))
    elif units == "percent":
        slope = 100.0 * rise
    else:
        raise ValueError(f"Unknown slope units: {units}")
    return RasterIndex(slope.astype("float32"), dem.grid, "slope")


def steep_terrain_mask(slope: RasterIndex, max_slope: float) -> BinaryMask:
    """Exclusion of cells at or above ``max_slope``; cells below it are kept."""
    with np.errstate(invalid="ignore"):
        steep = np.isfinite(slope.data) & (slope.data >= max_slope)
    return BinaryMask(steep, slope.grid)
