from __future__ import annotations


class ExtentMapError(RuntimeError):
    """Base class for errors raised by the extent pipeline."""


class DegenerateRangeError(ExtentMapError):
    """Index is constant over the region (max == min), nothing to normalize."""


class GridMismatchError(ExtentMapError):
    """Layers disagree in shape, transform, CRS or resolution."""


class EmptyInputError(ExtentMapError):
    """No imagery (or no valid cell) available for the requested inputs."""


class UnknownIndexError(ExtentMapError, ValueError):
    pass


class UnknownProductError(ExtentMapError, ValueError):
    pass


class BandIndexError(ExtentMapError, ValueError):
    """A configured band index is outside the dataset's band range."""
