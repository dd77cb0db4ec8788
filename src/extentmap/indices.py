from __future__ import annotations
from typing import Callable, Dict, Mapping, Tuple

import numpy as np

from .errors import UnknownIndexError


def _clean(idx: np.ndarray) -> np.ndarray:
    idx = np.asarray(idx, dtype="float64")
    idx[~np.isfinite(idx)] = np.nan
    return idx.astype("float32")


def normalized_difference(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    """(a - b) / (a + b), NaN where the sum is zero or inputs are missing."""
    with np.errstate(divide="ignore", invalid="ignore"):
        idx = (a - b) / (a + b)
    return _clean(idx)


def ndvi(nir: np.ndarray, red: np.ndarray) -> np.ndarray:
    return normalized_difference(nir, red)


def gndvi(nir: np.ndarray, green: np.ndarray) -> np.ndarray:
    return normalized_difference(nir, green)


def evi(nir: np.ndarray, red: np.ndarray, blue: np.ndarray, l: float = 1.0) -> np.ndarray:
    """Enhanced vegetation index. ``l`` is the canopy background term in the input's units."""
    with np.errstate(divide="ignore", invalid="ignore"):
        idx = 2.5 * (nir - red) / (nir + 6.0 * red - 7.5 * blue + l)
    return _clean(idx)


def savi(nir: np.ndarray, red: np.ndarray, l: float = 0.5) -> np.ndarray:
    with np.errstate(divide="ignore", invalid="ignore"):
        idx = (1.0 + l) * (nir - red) / (nir + red + l)
    return _clean(idx)


def simple_ratio(nir: np.ndarray, red: np.ndarray) -> np.ndarray:
    with np.errstate(divide="ignore", invalid="ignore"):
        idx = nir / red
    return _clean(idx)


def dvi(nir: np.ndarray, red: np.ndarray) -> np.ndarray:
    return _clean(nir - red)


def clay_mineral_ratio(swir1: np.ndarray, swir2: np.ndarray) -> np.ndarray:
    with np.errstate(divide="ignore", invalid="ignore"):
        idx = swir1 / swir2
    return _clean(idx)


def swi(blue: np.ndarray, swir1: np.ndarray) -> np.ndarray:
    """Soil water index: 1 / sqrt(blue - swir1) where blue > swir1, 0 elsewhere."""
    diff = blue - swir1
    with np.errstate(divide="ignore", invalid="ignore"):
        idx = np.where(diff > 0, 1.0 / np.sqrt(np.where(diff > 0, diff, 1.0)), 0.0)
    idx = np.where(np.isfinite(diff), idx, np.nan)
    return _clean(idx)


def ndmi(nir: np.ndarray, swir1: np.ndarray) -> np.ndarray:
    return normalized_difference(nir, swir1)


def mndwi(green: np.ndarray, swir1: np.ndarray) -> np.ndarray:
    return normalized_difference(green, swir1)


def ratio_index(before: np.ndarray, after: np.ndarray) -> np.ndarray:
    """RI = |after| / |before| on backscatter composites."""
    with np.errstate(divide="ignore", invalid="ignore"):
        idx = np.abs(after) / np.abs(before)
    return _clean(idx)


def ndfi(before: np.ndarray, after: np.ndarray) -> np.ndarray:
    """NDFI = (|before| - |after|) / (|before| + |after|)."""
    return normalized_difference(np.abs(before), np.abs(after))


def difference_image_index(before: np.ndarray, after: np.ndarray) -> np.ndarray:
    """DII = |after| - |before|."""
    return _clean(np.abs(after) - np.abs(before))


# name -> (function, band keys in call order)
INDEX_FUNCTIONS: Dict[str, Tuple[Callable[..., np.ndarray], Tuple[str, ...]]] = {
    "NDVI": (ndvi, ("nir", "red")),
    "GNDVI": (gndvi, ("nir", "green")),
    "EVI": (evi, ("nir", "red", "blue")),
    "SAVI": (savi, ("nir", "red")),
    "SR": (simple_ratio, ("nir", "red")),
    "DVI": (dvi, ("nir", "red")),
    "CMR": (clay_mineral_ratio, ("swir1", "swir2")),
    "SWI": (swi, ("blue", "swir1")),
    "NDMI": (ndmi, ("nir", "swir1")),
    "MNDWI": (mndwi, ("green", "swir1")),
    "RI": (ratio_index, ("before", "after")),
    "NDFI": (ndfi, ("before", "after")),
    "DII": (difference_image_index, ("before", "after")),
}


def required_bands(kind: str) -> Tuple[str, ...]:
    try:
        return INDEX_FUNCTIONS[kind.upper()][1]
    except KeyError:
        raise UnknownIndexError(f"Unknown index: {kind}") from None


def compute_index(kind: str, bands: Mapping[str, np.ndarray]) -> np.ndarray:
    key = kind.upper()
    if key not in INDEX_FUNCTIONS:
        raise UnknownIndexError(f"Unknown index: {kind}")
    fn, needed = INDEX_FUNCTIONS[key]
    missing = [b for b in needed if b not in bands]
    if missing:
        raise KeyError(f"{key} needs bands {', '.join(missing)}")
    return fn(*(bands[b] for b in needed))
