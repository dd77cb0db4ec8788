from __future__ import annotations
from dataclasses import dataclass, replace
from typing import Any, Dict, Literal, Mapping, Optional, Sequence, Tuple, Union

import numpy as np
from rasterio.crs import CRS
from rasterio.features import geometry_mask
from rasterio.transform import Affine

from .errors import GridMismatchError

Direction = Literal["gt", "lt"]


@dataclass(frozen=True)
class Grid:
    """Shape, affine transform and CRS shared by every layer of a run."""
    shape: Tuple[int, int]
    transform: Affine
    crs: Optional[CRS] = None

    @property
    def resolution(self) -> Tuple[float, float]:
        return abs(self.transform.a), abs(self.transform.e)

    @property
    def pixel_area(self) -> float:
        xres, yres = self.resolution
        return xres * yres

    def matches(self, other: "Grid") -> bool:
        if tuple(self.shape) != tuple(other.shape):
            return False
        if not self.transform.almost_equals(other.transform):
            return False
        if self.crs is None or other.crs is None:
            return self.crs is None and other.crs is None
        return CRS.from_user_input(self.crs) == CRS.from_user_input(other.crs)

    def require_match(self, other: "Grid", what: str = "layer") -> None:
        if not self.matches(other):
            raise GridMismatchError(
                f"{what} grid {other.shape}@{other.resolution} does not match {self.shape}@{self.resolution}"
            )

    def resolve_scale(self, scale: Optional[float] = None) -> float:
        """Return the pixel size in map units, checking it against ``scale`` if given."""
        xres, yres = self.resolution
        if not np.isclose(xres, yres, rtol=1e-6):
            raise GridMismatchError(f"Non-square pixels ({xres} x {yres}) are not supported")
        if scale is not None and not np.isclose(scale, xres, rtol=1e-6):
            raise GridMismatchError(f"Requested scale {scale} does not match grid resolution {xres}")
        return float(xres)


@dataclass(frozen=True)
class RasterIndex:
    """Scalar index field. NaN marks no-data."""
    data: np.ndarray
    grid: Grid
    name: str = "index"

    def __post_init__(self):
        if self.data.ndim != 2 or tuple(self.data.shape) != tuple(self.grid.shape):
            raise GridMismatchError(f"Array shape {self.data.shape} does not match grid {self.grid.shape}")

    @property
    def valid(self) -> np.ndarray:
        return np.isfinite(self.data)


@dataclass(frozen=True)
class Region:
    """Area of interest rasterized onto a grid."""
    grid: Grid
    inside: np.ndarray

    @staticmethod
    def full(grid: Grid) -> "Region":
        return Region(grid, np.ones(grid.shape, dtype=bool))

    @staticmethod
    def from_geometry(
        geometry: Union[Mapping[str, Any], Sequence[Mapping[str, Any]]],
        grid: Grid,
        all_touched: bool = False,
    ) -> "Region":
        geoms = [geometry] if isinstance(geometry, Mapping) else list(geometry)
        inside = geometry_mask(
            geoms, out_shape=grid.shape, transform=grid.transform,
            all_touched=all_touched, invert=True,
        )
        return Region(grid, inside)

    @property
    def cell_count(self) -> int:
        return int(self.inside.sum())


@dataclass(frozen=True)
class Statistics:
    min: float
    max: float
    mean: float
    std: float
    count: int

    def as_dict(self) -> Dict[str, float]:
        return {"min": self.min, "max": self.max, "mean": self.mean, "std": self.std, "count": self.count}


@dataclass(frozen=True)
class BinaryMask:
    """Boolean field with its own validity; ``data`` is always a subset of ``valid``."""
    data: np.ndarray
    grid: Grid
    valid: Optional[np.ndarray] = None

    def __post_init__(self):
        data = np.asarray(self.data, dtype=bool)
        if tuple(data.shape) != tuple(self.grid.shape):
            raise GridMismatchError(f"Mask shape {data.shape} does not match grid {self.grid.shape}")
        valid = np.ones_like(data) if self.valid is None else np.asarray(self.valid, dtype=bool)
        object.__setattr__(self, "valid", valid)
        object.__setattr__(self, "data", data & valid)

    @property
    def count(self) -> int:
        return int(self.data.sum())

    def with_data(self, data: np.ndarray) -> "BinaryMask":
        return BinaryMask(data, self.grid, self.valid)


@dataclass(frozen=True)
class Polygon:
    geometry: Dict[str, Any]
    label: Optional[str] = None
    value: int = 1
    pixel_count: int = 0

    def to_feature(self) -> Dict[str, Any]:
        props: Dict[str, Any] = {"value": self.value, "count": self.pixel_count}
        if self.label is not None:
            props["label"] = self.label
        return {"type": "Feature", "geometry": self.geometry, "properties": props}


@dataclass(frozen=True)
class AreaSummary:
    label: str
    pixel_count: int
    pixel_area_m2: float
    hectares: int

    def as_dict(self) -> Dict[str, Any]:
        return {
            "label": self.label,
            "pixel_count": self.pixel_count,
            "pixel_area_m2": self.pixel_area_m2,
            "hectares": self.hectares,
        }


@dataclass(frozen=True)
class Bands:
    """1-based band indices (rasterio convention). Defaults follow the Sentinel-2 layout."""
    blue: int = 2
    green: int = 3
    red: int = 4
    nir: int = 8
    swir1: int = 11
    swir2: int = 12

    def as_dict(self) -> Dict[str, int]:
        return {
            "blue": self.blue, "green": self.green, "red": self.red,
            "nir": self.nir, "swir1": self.swir1, "swir2": self.swir2,
        }


@dataclass(frozen=True)
class IndexConfig:
    name: str
    k: float
    direction: Direction = "gt"


@dataclass(frozen=True)
class ProductConfig:
    name: str
    indices: Tuple[IndexConfig, ...]
    min_size: int = 10
    connectivity: int = 8
    permanent_water: bool = False
    water_months: int = 10
    max_slope: Optional[float] = None  # degrees
    speckle_radius: Optional[float] = None  # metres
    composite: str = "median"
    description: str = ""

    def index(self, name: str) -> IndexConfig:
        for cfg in self.indices:
            if cfg.name == name.upper():
                return cfg
        raise KeyError(name)

    def with_overrides(
        self,
        k: Optional[float] = None,
        min_size: Optional[int] = None,
        connectivity: Optional[int] = None,
        composite: Optional[str] = None,
        speckle_radius: Optional[float] = None,
    ) -> "ProductConfig":
        indices = self.indices
        if k is not None:
            indices = tuple(replace(cfg, k=k) for cfg in indices)
        return replace(
            self,
            indices=indices,
            min_size=self.min_size if min_size is None else min_size,
            connectivity=self.connectivity if connectivity is None else connectivity,
            composite=self.composite if composite is None else composite,
            speckle_radius=self.speckle_radius if speckle_radius is None else speckle_radius,
        )


@dataclass(frozen=True)
class Options:
    aoi: Optional[str] = None            # GeoJSON polygon; whole grid when omitted
    water: Optional[str] = None          # surface-water seasonality raster (months/year)
    dem: Optional[str] = None            # elevation raster, flood product only
    reflectance_scale: float = 10000.0   # Sentinel-2 digital numbers; 1 for reflectance input
    slope_units: str = "degrees"
    max_workers: int = 1
    write_masks: bool = True
