import numpy as np
import pytest

from orbfeatures.imaging import fast_detect, gaussian_blur, pad_reflect101, resize_linear


def _dot_image(size=21, value=255):
    img = np.zeros((size, size), dtype=np.uint8)
    img[size // 2, size // 2] = value
    return img


def test_fast_uniform_image_has_no_corners():
    img = np.full((30, 30), 100, dtype=np.uint8)
    assert fast_detect(img, 20, True) == []


def test_fast_finds_isolated_bright_dot():
    kps = fast_detect(_dot_image(), 20, True)
    assert [kp.pt for kp in kps] == [(10.0, 10.0)]
    assert kps[0].response >= 20
    assert kps[0].size == 7.0


def test_fast_threshold_above_contrast_finds_nothing():
    assert fast_detect(_dot_image(value=100), 100, True) == []
    assert len(fast_detect(_dot_image(value=100), 99, True)) == 1


def test_fast_rejects_colour_and_non_uint8():
    with pytest.raises(ValueError):
        fast_detect(np.zeros((10, 10, 3), dtype=np.uint8), 20, True)
    with pytest.raises(ValueError):
        fast_detect(np.zeros((10, 10), dtype=np.float32), 20, True)


def _blocky_image():
    rng = np.random.default_rng(3)
    return rng.integers(0, 256, size=(40, 40), dtype=np.uint8)


def test_fast_nonmax_is_subset_without_adjacent_points():
    img = _blocky_image()
    raw = fast_detect(img, 20, False)
    suppressed = fast_detect(img, 20, True)
    raw_pts = {kp.pt for kp in raw}
    pts = [kp.pt for kp in suppressed]
    assert set(pts) <= raw_pts
    assert len(suppressed) <= len(raw)
    for i, (x1, y1) in enumerate(pts):
        for x2, y2 in pts[i + 1:]:
            assert max(abs(x1 - x2), abs(y1 - y2)) > 1


def test_fast_keeps_border_clear_and_row_major():
    kps = fast_detect(_blocky_image(), 10, False)
    assert kps
    assert all(3 <= kp.x <= 36 and 3 <= kp.y <= 36 for kp in kps)
    order = [(kp.y, kp.x) for kp in kps]
    assert order == sorted(order)
    assert all(kp.response >= 10 for kp in kps)


def test_pad_reflect101_row():
    padded = pad_reflect101(np.array([[1, 2, 3]]), 2)
    assert padded.shape == (5, 7)
    assert padded[2].tolist() == [3, 2, 1, 2, 3, 2, 1]


def test_pad_reflect101_interior_unchanged():
    img = _blocky_image()
    padded = pad_reflect101(img, 19)
    assert padded.shape == (78, 78)
    assert np.array_equal(padded[19:-19, 19:-19], img)


def test_pad_reflect101_negative_border():
    with pytest.raises(ValueError):
        pad_reflect101(np.zeros((4, 4)), -1)


def test_gaussian_blur_keeps_uniform_image():
    img = np.full((15, 20), 77, dtype=np.uint8)
    assert np.array_equal(gaussian_blur(img, 7, 2.0), img)


def test_gaussian_blur_is_symmetric_and_spreads():
    out = gaussian_blur(_dot_image(), 7, 2.0)
    assert out.shape == (21, 21)
    assert np.array_equal(out, out.T)
    assert np.array_equal(out, out[::-1, ::-1])
    assert out[10, 10] < 255
    assert out[10, 10] == out.max()
    assert out[0, 0] == 0


def test_gaussian_blur_rejects_even_kernel():
    with pytest.raises(ValueError):
        gaussian_blur(_dot_image(), 4, 2.0)


def test_resize_same_size_is_identity():
    img = _blocky_image()
    assert np.array_equal(resize_linear(img, 40, 40), img)


def test_resize_halving_averages_blocks():
    img = np.array([[10, 20], [30, 40]], dtype=np.uint8)
    tiled = np.kron(np.ones((2, 2), dtype=np.uint8), img)
    out = resize_linear(tiled, 2, 2)
    assert out.tolist() == [[25, 25], [25, 25]]


def test_resize_shape_and_uniform_value():
    img = np.full((30, 50), 200, dtype=np.uint8)
    out = resize_linear(img, 42, 25)
    assert out.shape == (25, 42)
    assert np.all(out == 200)


def test_resize_rejects_bad_size():
    with pytest.raises(ValueError):
        resize_linear(_dot_image(), 0, 10)