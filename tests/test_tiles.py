import numpy as np
import pytest
from dataclasses import replace
from hypothesis import given, strategies as st

from fusedtiles.tiles import (
    LayerParameters,
    LayerType,
    NetworkParameters,
    TileRegion,
    crop_feature_maps,
    make_region,
    relative_offsets,
    stitch_feature_maps,
)


def test_make_region_derives_size():
    region = make_region(2, 5, 1, 3)
    assert (region.w1, region.w2, region.h1, region.h2) == (2, 5, 1, 3)
    assert region.w == 5 - 2 + 1
    assert region.h == 3 - 1 + 1


def test_describe_format():
    text = make_region(0, 2, 0, 1).describe()
    lines = text.split("\n")
    assert lines[0] == "tile size is (  3,  2) "
    assert lines[1] == "(  0,  0)--------|"
    assert lines[2] == "|----------------|"
    assert lines[4] == "|--------(  2,  1)"


def test_is_empty():
    assert not make_region(0, 0, 0, 0).is_empty()
    assert make_region(3, 2, 0, 4).is_empty()
    assert TileRegion().is_empty()


def test_network_len():
    conv = LayerParameters(
        type=LayerType.CONVOLUTIONAL,
        stride=1,
        filter=3,
        input_map=replace(make_region(0, 7, 0, 7), c=3),
        output_map=replace(make_region(0, 7, 0, 7), c=16),
    )
    pool = LayerParameters(
        type=LayerType.MAXPOOL,
        stride=2,
        filter=2,
        input_map=replace(make_region(0, 7, 0, 7), c=16),
        output_map=replace(make_region(0, 3, 0, 3), c=16),
    )
    net = NetworkParameters([conv, pool])
    assert len(net) == 2
    assert net.layers[1].output_map.w == 4
    assert len(NetworkParameters()) == 0


def test_relative_offsets_origin_shift():
    large = make_region(4, 10, 2, 9)
    small = make_region(5, 7, 3, 8)
    rel = relative_offsets(large, small)
    assert (rel.w1, rel.h1) == (small.w1 - large.w1, small.h1 - large.h1)
    assert (rel.w, rel.h) == (small.w, small.h)


def test_relative_offsets_to_self_starts_at_zero():
    region = make_region(3, 8, 1, 6)
    rel = relative_offsets(region, region)
    assert (rel.w1, rel.h1) == (0, 0)
    assert (rel.w2, rel.h2) == (region.w - 1, region.h - 1)


def test_crop_full_window_is_identity():
    data = np.arange(2 * 3 * 4, dtype=np.float32)
    out = crop_feature_maps(data, 4, 3, 2, 0, 3, 0, 2)
    np.testing.assert_array_equal(out, data)


def test_crop_first_element_and_size():
    data = np.arange(4 * 3, dtype=np.float32)
    out = crop_feature_maps(data, 4, 3, 1, 1, 2, 0, 1)
    assert out.size == 4
    assert out[0] == data[1]
    np.testing.assert_array_equal(out, [1, 2, 5, 6])


def test_crop_accepts_longer_buffer():
    data = np.arange(100, dtype=np.float32)
    out = crop_feature_maps(data, 2, 2, 1, 0, 1, 0, 1)
    np.testing.assert_array_equal(out, data[:4])


def test_crop_rejects_bad_window():
    data = np.zeros(16, dtype=np.float32)
    with pytest.raises(ValueError):
        crop_feature_maps(data, 4, 4, 1, 0, 4, 0, 1)
    with pytest.raises(ValueError):
        crop_feature_maps(data, 4, 4, 1, 2, 1, 0, 1)


def test_crop_rejects_short_data():
    with pytest.raises(ValueError):
        crop_feature_maps(np.zeros(5), 4, 4, 1, 0, 1, 0, 1)


def test_stitch_writes_in_place():
    output = np.zeros(16, dtype=np.float32)
    tile = np.ones(4, dtype=np.float32)
    result = stitch_feature_maps(tile, output, 4, 4, 1, 1, 2, 1, 2)
    assert result is output
    assert output.sum() == tile.sum()
    assert output[0] == 0


def test_stitch_rejects_non_array_output():
    with pytest.raises(TypeError):
        stitch_feature_maps([1.0], [0.0] * 4, 2, 2, 1, 0, 0, 0, 0)


def test_stitch_rejects_small_output():
    with pytest.raises(ValueError):
        stitch_feature_maps(np.ones(1), np.zeros(3, dtype=np.float32), 2, 2, 1, 0, 0, 0, 0)


@st.composite
def _windows(draw):
    w = draw(st.integers(1, 6))
    h = draw(st.integers(1, 6))
    c = draw(st.integers(1, 3))
    dw1 = draw(st.integers(0, w - 1))
    dw2 = draw(st.integers(dw1, w - 1))
    dh1 = draw(st.integers(0, h - 1))
    dh2 = draw(st.integers(dh1, h - 1))
    return w, h, c, dw1, dw2, dh1, dh2


@given(_windows())
def test_crop_then_stitch_round_trip(window):
    w, h, c, dw1, dw2, dh1, dh2 = window
    data = np.arange(w * h * c, dtype=np.float32) + 1
    tile = crop_feature_maps(data, w, h, c, dw1, dw2, dh1, dh2)
    assert tile.size == (dw2 - dw1 + 1) * (dh2 - dh1 + 1) * c
    canvas = np.zeros(w * h * c, dtype=np.float32)
    stitch_feature_maps(tile, canvas, w, h, c, dw1, dw2, dh1, dh2)
    again = crop_feature_maps(canvas, w, h, c, dw1, dw2, dh1, dh2)
    np.testing.assert_array_equal(again, tile)
    assert np.count_nonzero(canvas) == tile.size


@given(_windows())
def test_stitch_into_copy_of_source_is_unchanged(window):
    w, h, c, dw1, dw2, dh1, dh2 = window
    data = np.arange(w * h * c, dtype=np.float32)
    tile = crop_feature_maps(data, w, h, c, dw1, dw2, dh1, dh2)
    canvas = data.copy()
    stitch_feature_maps(tile, canvas, w, h, c, dw1, dw2, dh1, dh2)
    np.testing.assert_array_equal(canvas, data)