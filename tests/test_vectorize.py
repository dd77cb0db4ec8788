import inspect

import numpy as np
import pytest
from rasterio.transform import from_origin

from extentmap.errors import GridMismatchError
from extentmap.types import BinaryMask, Grid, RasterIndex, Region
from extentmap.vectorize import (
    area_summary, compute_area_hectares, rasterize_polygons, vectorize, vectorize_classes,
)


def _grid(h=10, w=10, res=10.0):
    return Grid((h, w), from_origin(0, h * res, res, res))


def _two_blobs(g):
    data = np.zeros(g.shape, bool)
    data[1:4, 1:5] = True  # 12 cells
    data[7:9, 7:9] = True  # 4 cells
    return BinaryMask(data, g)


def test_vectorize_one_polygon_per_component():
    g = _grid()
    polys = list(vectorize(_two_blobs(g), Region.full(g), label="NDVI"))
    assert len(polys) == 2
    assert sorted(p.pixel_count for p in polys) == [4, 12]
    assert all(p.label == "NDVI" for p in polys)
    assert all(p.geometry["type"] == "Polygon" for p in polys)
    feat = polys[0].to_feature()
    assert feat["properties"]["label"] == "NDVI"


def test_vectorize_is_lazy_and_checks_grid_eagerly():
    g = _grid()
    out = vectorize(_two_blobs(g), Region.full(g))
    assert inspect.isgenerator(out)
    with pytest.raises(GridMismatchError):
        vectorize(_two_blobs(g), Region.full(_grid(5, 5)))


def test_vectorize_respects_region():
    g = _grid()
    inside = np.zeros(g.shape, bool)
    inside[:5, :] = True
    polys = list(vectorize(_two_blobs(g), Region(g, inside)))
    assert [p.pixel_count for p in polys] == [12]


def test_vectorize_empty_mask():
    g = _grid()
    assert list(vectorize(BinaryMask(np.zeros(g.shape, bool), g), Region.full(g))) == []


def test_vectorize_rasterize_round_trip():
    g = _grid()
    data = np.zeros(g.shape, bool)
    data[2:8, 2:8] = True
    data[4:6, 4:6] = False  # hole
    data[0, 9] = True
    mask = BinaryMask(data, g)
    back = rasterize_polygons(vectorize(mask, Region.full(g)), g)
    np.testing.assert_array_equal(back.data, data)


def test_rasterize_no_polygons():
    g = _grid()
    assert rasterize_polygons([], g).count == 0


def test_vectorize_classes_one_pass_per_value():
    g = _grid(4, 4)
    classes = np.zeros((4, 4))
    classes[:, 2:] = 1
    classes[3, 3] = np.nan
    polys = list(vectorize_classes(RasterIndex(classes, g), Region.full(g), labels={1: "developed"}))
    assert sorted(p.value for p in polys) == [0, 1]
    by_value = {p.value: p for p in polys}
    assert by_value[1].label == "developed" and by_value[1].pixel_count == 7
    assert by_value[0].label == "0" and by_value[0].pixel_count == 8


def test_area_scenarios():
    g = _grid()
    data = np.zeros(g.shape, bool)
    data[2:5, 2:6] = True
    assert compute_area_hectares(BinaryMask(data, g), Region.full(g), scale=10) == 0

    big = _grid(40, 40)
    data = np.zeros(big.shape, bool)
    data[:25, :] = True  # 1000 cells
    s = area_summary(BinaryMask(data, big), Region.full(big), scale=10, label="x")
    assert s.pixel_count == 1000
    assert s.pixel_area_m2 == 100.0
    assert s.hectares == 10


def test_area_rounds_half_up():
    g = _grid()
    data = np.zeros(g.shape, bool)
    data[:5, :] = True  # 50 cells = 0.5 ha
    assert compute_area_hectares(BinaryMask(data, g), Region.full(g)) == 1


def test_area_is_monotonic():
    g = _grid(50, 50)
    rng = np.random.default_rng(3)
    b = rng.random(g.shape) > 0.3
    a = b & (rng.random(g.shape) > 0.5)
    region = Region.full(g)
    assert compute_area_hectares(BinaryMask(a, g), region) <= compute_area_hectares(BinaryMask(b, g), region)


def test_area_outside_region_not_counted():
    g = _grid()
    inside = np.zeros(g.shape, bool)
    mask = BinaryMask(np.ones(g.shape, bool), g)
    assert area_summary(mask, Region(g, inside)).pixel_count == 0
