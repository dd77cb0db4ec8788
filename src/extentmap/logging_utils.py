from __future__ import annotations
import logging
import os
from logging.handlers import RotatingFileHandler

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def setup_logger(logs_dir: str = "./logs", name: str = "extentmap", verbose: bool = False) -> logging.Logger:
    """Console plus rotating file logging for the ``extentmap`` namespace.

    Safe to call repeatedly: handlers are attached once, only the level changes.
    """
    logger = logging.getLogger(name)
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    if not logger.handlers:
        os.makedirs(logs_dir, exist_ok=True)
        fmt = logging.Formatter(LOG_FORMAT)
        fh = RotatingFileHandler(os.path.join(logs_dir, f"{name}.log"), maxBytes=2_000_000, backupCount=3)
        fh.setFormatter(fmt)
        ch = logging.StreamHandler()
        ch.setFormatter(fmt)
        logger.addHandler(fh)
        logger.addHandler(ch)
    # GDAL/rasterio chatter stays out of the run log unless debugging
    logging.getLogger("rasterio").setLevel(logging.DEBUG if verbose else logging.WARNING)
    return logger
