from __future__ import annotations
import json
import logging
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .pipeline import ProductResult

logger = logging.getLogger(__name__)


def log_product_summary(result: "ProductResult") -> None:
    logger.info("%s extent (min_size=%d, connectivity=%d)",
                result.product.name, result.product.min_size, result.product.connectivity)
    for r in result:
        s = r.raw_stats
        logger.info("  %-6s min=%.4g max=%.4g threshold=%.4f (%s, k=%s) area=%d ha",
                    r.name, s.min, s.max, r.threshold, r.config.direction, r.config.k, r.area.hectares)


def write_summary(path: Path, result: "ProductResult") -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        json.dump(result.as_dict(), f, indent=2)
