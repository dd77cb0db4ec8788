from __future__ import annotations
import warnings
from typing import Sequence

import numpy as np
from numpy.lib.stride_tricks import sliding_window_view

from .errors import EmptyInputError
from .types import Grid, RasterIndex

REDUCERS = {
    "median": np.nanmedian,
    "mean": np.nanmean,
    "min": np.nanmin,
    "max": np.nanmax,
}


def composite(scenes: Sequence[RasterIndex], reducer: str = "median", name: str = "") -> RasterIndex:
    """Per-pixel reduction over a stack of scenes on the same grid, ignoring no-data."""
    if not scenes:
        raise EmptyInputError("No scenes to composite")
    if reducer not in REDUCERS:
        raise ValueError(f"Unknown reducer: {reducer}")
    grid: Grid = scenes[0].grid
    for s in scenes[1:]:
        grid.require_match(s.grid, what=s.name)
    stack = np.stack([s.data for s in scenes], axis=0).astype("float64")
    with warnings.catch_warnings():
        # all-NaN pixels stay NaN
        warnings.simplefilter("ignore", category=RuntimeWarning)
        out = REDUCERS[reducer](stack, axis=0)
    return RasterIndex(out.astype("float32"), grid, name or scenes[0].name)


# elements of the (rows, cols, window) stack materialized per block
_WINDOW_BUDGET = 1 << 24


def speckle_filter(raster: RasterIndex, radius: float) -> RasterIndex:
    """Focal median over a square window of half-width ``radius`` in map units.

    No-data inside a window is ignored. Rows are processed in blocks so the
    windowed copy stays bounded on large scenes.
    """
    res = raster.grid.resolve_scale()
    half = int(radius // res)
    if half < 1:
        return raster
    size = 2 * half + 1
    H, W = raster.data.shape
    padded = np.pad(raster.data.astype("float32"), half, mode="constant", constant_values=np.nan)
    windows = sliding_window_view(padded, (size, size))
    rows = max(1, _WINDOW_BUDGET // (W * size * size))
    out = np.empty((H, W), dtype="float32")
    with warnings.catch_warnings():
        # windows with no valid cell stay NaN
        warnings.simplefilter("ignore", category=RuntimeWarning)
        for r0 in range(0, H, rows):
            out[r0:r0 + rows] = np.nanmedian(windows[r0:r0 + rows], axis=(-2, -1))
    out[~raster.valid] = np.nan
    return RasterIndex(out, raster.grid, raster.name)
