import numpy as np
import pytest

from extentmap.errors import UnknownIndexError
from extentmap.indices import (
    compute_index, difference_image_index, evi, ndfi, ndvi, ratio_index, required_bands, swi,
)


def test_ndvi_basic():
    nir = np.array([[0.6, 0.4]], dtype=float)
    red = np.array([[0.2, 0.4]], dtype=float)
    out = ndvi(nir, red)
    assert out.dtype == np.float32
    np.testing.assert_allclose(out, np.array([[0.5, 0.0]], dtype=np.float32), atol=1e-6)


def test_zero_denominator_is_nodata():
    nir = np.array([[0.0, 0.5]])
    red = np.array([[0.0, 0.5]])
    out = ndvi(nir, red)
    assert np.isnan(out[0, 0]) and out[0, 1] == 0.0


def test_evi_reflectance():
    nir, red, blue = np.array([[0.5]]), np.array([[0.1]]), np.array([[0.04]])
    expected = 2.5 * 0.4 / (0.5 + 0.6 - 0.3 + 1.0)
    np.testing.assert_allclose(evi(nir, red, blue), [[expected]], rtol=1e-6)


def test_swi_only_where_blue_exceeds_swir():
    blue = np.array([[0.29, 0.1, np.nan]])
    swir1 = np.array([[0.04, 0.2, 0.1]])
    out = swi(blue, swir1)
    np.testing.assert_allclose(out[0, 0], 2.0, rtol=1e-5)
    assert out[0, 1] == 0.0
    assert np.isnan(out[0, 2])


def test_sar_change_indices():
    before = np.array([[-15.0, -15.0]])
    after = np.array([[-15.0, -25.0]])
    np.testing.assert_allclose(ratio_index(before, after), [[1.0, 25 / 15]], rtol=1e-6)
    np.testing.assert_allclose(ndfi(before, after), [[0.0, -0.25]], atol=1e-6)
    np.testing.assert_allclose(difference_image_index(before, after), [[0.0, 10.0]], atol=1e-6)


def test_compute_index_switch():
    bands = {"nir": np.ones((2, 2)), "red": np.zeros((2, 2)), "swir1": np.ones((2, 2)), "swir2": np.ones((2, 2))}
    assert compute_index("ndvi", bands).dtype == np.float32
    np.testing.assert_allclose(compute_index("CMR", bands), np.ones((2, 2)))


def test_compute_index_unknown_and_missing_bands():
    with pytest.raises(UnknownIndexError):
        compute_index("XYZ", {})
    with pytest.raises(UnknownIndexError):
        required_bands("XYZ")
    with pytest.raises(KeyError):
        compute_index("NDVI", {"nir": np.ones((1, 1))})
    assert required_bands("mndwi") == ("green", "swir1")
