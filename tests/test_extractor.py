import numpy as np
import pytest

from orbfeatures.extractor import ORBExtractor


def _noise_image(seed=0, shape=(200, 240)):
    rng = np.random.default_rng(seed)
    return rng.integers(0, 256, size=shape, dtype=np.uint8)


def test_scale_tables_are_consistent():
    ex = ORBExtractor(500, 1.2, 8, 20, 7)
    assert len(ex.scale_factors) == 8
    assert ex.scale_factors[0] == 1.0
    for s, inv, s2, inv2 in zip(ex.scale_factors, ex.inv_scale_factors,
                                ex.level_sigma2, ex.inv_level_sigma2):
        assert s * inv == pytest.approx(1.0, rel=1e-6)
        assert s2 == pytest.approx(s * s, rel=1e-6)
        assert s2 * inv2 == pytest.approx(1.0, rel=1e-6)
    assert all(a < b for a, b in zip(ex.scale_factors, ex.scale_factors[1:]))


def test_features_per_level_sum_to_total():
    ex = ORBExtractor(500, 1.2, 8, 20, 7)
    assert len(ex.features_per_level) == 8
    assert sum(ex.features_per_level) == 500
    head = ex.features_per_level[:-1]
    assert all(a >= b for a, b in zip(head, head[1:]))


@pytest.mark.parametrize("kwargs", [{"scale_factor": 1.0}, {"nlevels": 0}, {"scale_factor": -2.0}])
def test_invalid_parameters(kwargs):
    with pytest.raises(ValueError):
        ORBExtractor(**kwargs)


def test_pyramid_levels():
    ex = ORBExtractor(300, 1.2, 4, 20, 7)
    img = _noise_image()
    pyramid = ex.compute_pyramid(img)
    assert len(pyramid) == 4
    assert np.array_equal(pyramid[0], img)
    shapes = [p.shape for p in pyramid]
    assert all(a[0] > b[0] and a[1] > b[1] for a, b in zip(shapes, shapes[1:]))


def test_keypoints_require_pyramid():
    ex = ORBExtractor(300, 1.2, 4, 20, 7)
    with pytest.raises(RuntimeError):
        ex.compute_keypoints_octree()
    with pytest.raises(RuntimeError):
        ex.compute_keypoints_old()


def test_call_produces_matching_descriptors():
    ex = ORBExtractor(300, 1.2, 4, 20, 7)
    img = _noise_image()
    keypoints, descriptors = ex(img, None)
    assert len(keypoints) > 0
    assert descriptors.shape == (len(keypoints), 32)
    assert descriptors.dtype == np.uint8
    rows, cols = img.shape
    for kp in keypoints:
        assert 0 <= kp.x < cols
        assert 0 <= kp.y < rows
        assert 0 <= kp.octave < 4
        assert 0.0 <= kp.angle < 360.0
        assert kp.size == float(int(np.float32(31) * np.float32(ex.scale_factors[kp.octave])))


def test_call_is_deterministic():
    ex = ORBExtractor(200, 1.2, 3, 20, 7)
    img = _noise_image(seed=3)
    k1, d1 = ex(img)
    k2, d2 = ex(img)
    assert k1 == k2
    assert np.array_equal(d1, d2)


def test_flat_image_has_no_features():
    ex = ORBExtractor(200, 1.2, 3, 20, 7)
    keypoints, descriptors = ex(np.full((120, 160), 128, dtype=np.uint8))
    assert keypoints == []
    assert descriptors.shape == (0, 32)


def test_empty_image_gives_nothing():
    ex = ORBExtractor(200, 1.2, 3, 20, 7)
    keypoints, descriptors = ex(np.zeros((0, 0), dtype=np.uint8))
    assert keypoints == []
    assert descriptors.shape[0] == 0


def test_wrong_image_type_rejected():
    ex = ORBExtractor(200, 1.2, 3, 20, 7)
    with pytest.raises(ValueError):
        ex(np.zeros((50, 50), dtype=np.float32))
    with pytest.raises(ValueError):
        ex(np.zeros((50, 50, 3), dtype=np.uint8))


def test_octree_keypoints_stay_inside_level():
    ex = ORBExtractor(300, 1.2, 3, 20, 7)
    ex.compute_pyramid(_noise_image(seed=1))
    levels = ex.compute_keypoints_octree()
    assert len(levels) == 3
    for level, kps in enumerate(levels):
        rows, cols = ex.image_pyramid[level].shape
        for kp in kps:
            assert kp.octave == level
            assert 16 <= kp.x < cols - 16
            assert 16 <= kp.y < rows - 16


def test_old_method_respects_budget():
    ex = ORBExtractor(300, 1.2, 3, 20, 7)
    ex.compute_pyramid(_noise_image(seed=2))
    levels = ex.compute_keypoints_old()
    assert len(levels) == 3
    assert sum(len(kps) for kps in levels) > 0
    for level, kps in enumerate(levels):
        assert len(kps) <= ex.features_per_level[level]
        rows, cols = ex.image_pyramid[level].shape
        for kp in kps:
            assert kp.octave == level
            assert 0 <= kp.x < cols and 0 <= kp.y < rows
            assert 0.0 <= kp.angle < 360.0