import numpy as np
import pytest
from rasterio.transform import from_origin

from extentmap.errors import GridMismatchError
from extentmap.masking import (
    exclude_region, filter_small_components, permanent_water_mask,
    steep_terrain_mask, terrain_slope,
)
from extentmap.types import BinaryMask, Grid, RasterIndex


def _grid(h=10, w=10, res=10.0):
    return Grid((h, w), from_origin(0, h * res, res, res))


def _blob_mask(g, cells=12):
    data = np.zeros(g.shape, dtype=bool)
    data[2:5, 2:6] = True  # 3 x 4 = 12 cells
    assert data.sum() == cells
    return BinaryMask(data, g)


def test_exclude_region_forces_false_only_where_excluded():
    g = _grid()
    rng = np.random.default_rng(42)
    mask = BinaryMask(rng.random(g.shape) > 0.5, g)
    excl = BinaryMask(rng.random(g.shape) > 0.7, g)
    out = exclude_region(mask, excl)
    assert not out.data[excl.data].any()
    np.testing.assert_array_equal(out.data[~excl.data], mask.data[~excl.data])


def test_exclude_region_grid_mismatch():
    mask = BinaryMask(np.ones((10, 10), bool), _grid())
    excl = BinaryMask(np.ones((5, 5), bool), _grid(5, 5))
    with pytest.raises(GridMismatchError):
        exclude_region(mask, excl)


def test_filter_small_components_keeps_large_blob():
    g = _grid()
    mask = _blob_mask(g)
    data = mask.data.copy()
    data[8, 8:10] = True  # 2-cell speck
    mask = BinaryMask(data, g)
    out = filter_small_components(mask, min_size=10)
    assert out.count == 12
    assert out.count <= mask.count
    assert not out.data[8].any()


def test_filter_small_components_connectivity():
    g = _grid(3, 3)
    data = np.zeros((3, 3), bool)
    data[0, 0] = data[1, 1] = True
    mask = BinaryMask(data, g)
    assert filter_small_components(mask, 2, connectivity=8).count == 2
    assert filter_small_components(mask, 2, connectivity=4).count == 0
    with pytest.raises(ValueError):
        filter_small_components(mask, 2, connectivity=6)


def test_filter_small_components_survivors_come_from_large_components():
    g = _grid(20, 20)
    rng = np.random.default_rng(7)
    mask = BinaryMask(rng.random(g.shape) > 0.6, g)
    out = filter_small_components(mask, 5, connectivity=4)
    again = filter_small_components(mask, 5, connectivity=4)
    np.testing.assert_array_equal(out.data, again.data)
    assert out.count <= mask.count
    # every survivor is still in a component of >= 5 cells
    assert filter_small_components(out, 5, connectivity=4).count == out.count


def test_exclusion_splits_blob_below_min_size():
    g = _grid()
    mask = _blob_mask(g)
    excl = np.zeros(g.shape, bool)
    excl[2, 2:5] = True  # 3 of the 12 cells
    refined = exclude_region(mask, BinaryMask(excl, g))
    assert refined.count == 9
    assert filter_small_components(refined, 10).count == 0


def test_valid_is_preserved():
    g = _grid(1, 3)
    mask = BinaryMask(np.array([[True, True, True]]), g, valid=np.array([[True, True, False]]))
    assert mask.count == 2
    out = exclude_region(mask, BinaryMask(np.array([[True, False, False]]), g))
    np.testing.assert_array_equal(out.valid, mask.valid)
    np.testing.assert_array_equal(out.data, [[False, True, False]])


def test_permanent_water_mask():
    g = _grid(2, 2)
    seasonality = RasterIndex(np.array([[12.0, 9.0], [10.0, np.nan]]), g)
    water = permanent_water_mask(seasonality, months=10)
    np.testing.assert_array_equal(water.data, [[True, False], [True, False]])


def test_terrain_slope_on_plane():
    g = _grid(5, 5)
    dem = RasterIndex(np.tile(np.arange(5, dtype=float), (5, 1)), g)  # 1 m rise per 10 m
    pct = terrain_slope(dem, units="percent")
    np.testing.assert_allclose(pct.data, 10.0, rtol=1e-5)
    deg = terrain_slope(dem)
    np.testing.assert_allclose(deg.data, np.degrees(np.arctan(0.1)), rtol=1e-5)
    with pytest.raises(ValueError):
        terrain_slope(dem, units="radians")


def test_steep_terrain_mask():
    g = _grid(1, 3)
    slope = RasterIndex(np.array([[1.0, 5.0, np.nan]]), g)
    np.testing.assert_array_equal(steep_terrain_mask(slope, 5.0).data, [[False, True, False]])
