from __future__ import annotations
from typing import Dict

from .errors import UnknownProductError
from .types import IndexConfig, ProductConfig

# k is tuned empirically per index.
FLOOD = ProductConfig(
    name="flood",
    indices=(
        IndexConfig("RI", 0.25, "gt"),
        IndexConfig("NDFI", 1.0, "lt"),
        IndexConfig("DII", 0.8, "gt"),
    ),
    min_size=5,
    connectivity=4,
    permanent_water=True,
    max_slope=5.0,
    speckle_radius=15.0,
    description="Flood extent from pre/post-event SAR backscatter (VH)",
)

VEGETATION = ProductConfig(
    name="vegetation",
    indices=(
        IndexConfig("NDVI", 0.25, "gt"),
        IndexConfig("GNDVI", 0.25, "gt"),
        IndexConfig("EVI", 0.25, "gt"),
        IndexConfig("SAVI", 0.25, "gt"),
    ),
    min_size=10,
    description="Dense vegetation extent",
)

SOIL = ProductConfig(
    name="soil",
    indices=(
        IndexConfig("SR", 0.1, "lt"),
        IndexConfig("DVI", 0.1, "gt"),
        IndexConfig("CMR", 0.1, "lt"),
    ),
    min_size=10,
    permanent_water=True,
    description="Hydric soil extent",
)

MOISTURE = ProductConfig(
    name="moisture",
    indices=(
        IndexConfig("SWI", 0.1, "lt"),
        IndexConfig("NDMI", 0.1, "gt"),
        IndexConfig("MNDWI", 0.1, "gt"),
    ),
    min_size=10,
    permanent_water=True,
    description="Surface moisture extent",
)

PRODUCTS: Dict[str, ProductConfig] = {p.name: p for p in (FLOOD, VEGETATION, SOIL, MOISTURE)}


def get_product(name: str) -> ProductConfig:
    try:
        return PRODUCTS[name.lower()]
    except KeyError:
        raise UnknownProductError(
            f"Unknown product: {name} (choose from {', '.join(sorted(PRODUCTS))})"
        ) from None
