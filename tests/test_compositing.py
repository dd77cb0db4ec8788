import numpy as np
import pytest
from rasterio.transform import from_origin

from extentmap.compositing import composite, speckle_filter
from extentmap.errors import EmptyInputError, GridMismatchError
from extentmap.types import Grid, RasterIndex


def _grid(h=1, w=3, res=10.0):
    return Grid((h, w), from_origin(0, h * res, res, res))


def test_median_composite_ignores_nodata():
    g = _grid()
    scenes = [
        RasterIndex(np.array([[1.0, np.nan, 5.0]]), g, "NDVI"),
        RasterIndex(np.array([[np.nan, np.nan, 1.0]]), g, "NDVI"),
        RasterIndex(np.array([[3.0, np.nan, 3.0]]), g, "NDVI"),
    ]
    out = composite(scenes, "median")
    assert out.name == "NDVI"
    assert out.data[0, 0] == 2.0
    assert np.isnan(out.data[0, 1])
    assert out.data[0, 2] == 3.0


def test_mean_and_min_composites():
    g = _grid()
    scenes = [RasterIndex(np.array([[1.0, 2.0, 3.0]]), g), RasterIndex(np.array([[3.0, 0.0, 3.0]]), g)]
    np.testing.assert_array_equal(composite(scenes, "mean").data, [[2.0, 1.0, 3.0]])
    np.testing.assert_array_equal(composite(scenes, "min").data, [[1.0, 0.0, 3.0]])


def test_composite_errors():
    with pytest.raises(EmptyInputError):
        composite([])
    g = _grid()
    with pytest.raises(ValueError):
        composite([RasterIndex(np.zeros((1, 3)), g)], "mode")
    with pytest.raises(GridMismatchError):
        composite([RasterIndex(np.zeros((1, 3)), g), RasterIndex(np.zeros((1, 3)), _grid(res=20.0))])


def test_speckle_filter_removes_spike():
    g = _grid(5, 5)
    data = np.ones((5, 5))
    data[2, 2] = 100.0
    data[0, 0] = np.nan
    out = speckle_filter(RasterIndex(data, g), radius=15.0)
    assert out.data[2, 2] == 1.0
    assert np.isnan(out.data[0, 0])
    assert out.data[4, 4] == 1.0


def test_speckle_filter_radius_below_pixel_is_noop():
    g = _grid(5, 5)
    r = RasterIndex(np.ones((5, 5)), g)
    assert speckle_filter(r, radius=5.0) is r


def test_speckle_filter_matches_windowed_median_across_row_blocks(monkeypatch):
    import extentmap.compositing as compositing

    rng = np.random.default_rng(3)
    data = rng.normal(size=(9, 7))
    data[rng.random(data.shape) < 0.2] = np.nan
    data[0:3, 0:3] = np.nan
    g = _grid(9, 7)
    # force several small row blocks
    monkeypatch.setattr(compositing, "_WINDOW_BUDGET", 7 * 25 * 2)
    out = compositing.speckle_filter(RasterIndex(data, g), radius=20.0)

    padded = np.pad(data, 2, constant_values=np.nan)
    for i in range(9):
        for j in range(7):
            window = padded[i:i + 5, j:j + 5]
            finite = window[np.isfinite(window)]
            if np.isnan(data[i, j]):
                assert np.isnan(out.data[i, j])
            else:
                assert out.data[i, j] == pytest.approx(np.median(finite), rel=1e-5)
