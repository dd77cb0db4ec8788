from __future__ import annotations
import logging
import math
from typing import Iterable, Iterator, Mapping, Optional

import numpy as np
from scipy import ndimage
from rasterio.features import rasterize, shapes

from .masking import connectivity_structure
from .types import AreaSummary, BinaryMask, Grid, Polygon, RasterIndex, Region

logger = logging.getLogger(__name__)

SQ_M_PER_HECTARE = 10_000.0


def _round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def _trace(data: np.ndarray, grid: Grid, label: Optional[str], value: int, connectivity: int) -> Iterator[Polygon]:
    labels, n = ndimage.label(data, structure=connectivity_structure(connectivity))
    if n == 0:
        return
    sizes = np.bincount(labels.ravel())
    for geom, comp in shapes(labels.astype("int32"), mask=data, connectivity=connectivity, transform=grid.transform):
        yield Polygon(geometry=geom, label=label, value=value, pixel_count=int(sizes[int(comp)]))


def vectorize(
    mask: BinaryMask,
    region: Region,
    scale: Optional[float] = None,
    label: Optional[str] = None,
    connectivity: int = 8,
) -> Iterator[Polygon]:
    """Lazily yield one polygon per connected region of true cells inside ``region``.

    Ordering is not guaranteed. Grid and scale are checked before the first polygon is
    produced, so mismatches raise here rather than during iteration.
    """
    region.grid.require_match(mask.grid, what="mask")
    mask.grid.resolve_scale(scale)
    connectivity_structure(connectivity)
    return _trace(mask.data & region.inside, mask.grid, label, 1, connectivity)


def vectorize_classes(
    classes: RasterIndex,
    region: Region,
    scale: Optional[float] = None,
    labels: Optional[Mapping[int, str]] = None,
    connectivity: int = 8,
) -> Iterator[Polygon]:
    """Independent vectorization pass per class value of an integer class raster."""
    region.grid.require_match(classes.grid, what="classes")
    classes.grid.resolve_scale(scale)
    connectivity_structure(connectivity)
    sel = region.inside & classes.valid
    values = np.unique(classes.data[sel]).astype(int)
    labels = labels or {}

    def _passes() -> Iterator[Polygon]:
        for v in values:
            data = sel & (classes.data == v)
            yield from _trace(data, classes.grid, labels.get(int(v), str(int(v))), int(v), connectivity)

    return _passes()


def rasterize_polygons(polygons: Iterable[Polygon], grid: Grid) -> BinaryMask:
    """Burn polygons back onto ``grid`` (pixel-centre rule)."""
    geoms = [(p.geometry, 1) for p in polygons]
    if not geoms:
        return BinaryMask(np.zeros(grid.shape, dtype=bool), grid)
    burned = rasterize(geoms, out_shape=grid.shape, transform=grid.transform, fill=0, dtype="uint8")
    return BinaryMask(burned.astype(bool), grid)


def compute_area_hectares(mask: BinaryMask, region: Region, scale: Optional[float] = None) -> int:
    """Exact area of the true cells inside ``region``, in whole hectares."""
    return area_summary(mask, region, scale).hectares


def area_summary(mask: BinaryMask, region: Region, scale: Optional[float] = None, label: str = "") -> AreaSummary:
    region.grid.require_match(mask.grid, what="mask")
    res = mask.grid.resolve_scale(scale)
    count = int(np.count_nonzero(mask.data & region.inside))
    pixel_area = res * res
    hectares = _round_half_up(count * pixel_area / SQ_M_PER_HECTARE)
    logger.debug("%s: %d cells x %.6g m2 -> %d ha", label or "mask", count, pixel_area, hectares)
    return AreaSummary(label=label, pixel_count=count, pixel_area_m2=pixel_area, hectares=hectares)
