import numpy as np
import pytest

from orbfeatures.keypoint import KeyPoint
from orbfeatures.projection_search import (
    PinholeCamera,
    best_in_radius,
    mutual_matches,
    search_for_initialization,
)


def desc(nbits):
    bits = np.zeros(256, dtype=np.uint8)
    bits[:nbits] = 1
    return np.packbits(bits)


def area_finder(keys):
    def find(x, y, r, min_level, max_level):
        return [
            i
            for i, kp in enumerate(keys)
            if abs(kp.x - x) <= r and abs(kp.y - y) <= r and min_level <= kp.octave <= max_level
        ]

    return find


CAMERA = PinholeCamera(fx=100.0, fy=100.0, cx=50.0, cy=40.0, min_x=0.0, max_x=100.0, min_y=0.0, max_y=80.0)


def test_project_principal_point():
    assert CAMERA.project([0.0, 0.0, 2.0]) == (50.0, 40.0)


def test_project_behind_camera_is_none():
    assert CAMERA.project([1.0, 1.0, -1.0]) is None


def test_project_rejects_bad_shape():
    with pytest.raises(ValueError):
        CAMERA.project([1.0, 2.0])


def test_in_image_bounds_inclusive():
    assert CAMERA.in_image(0.0, 80.0)
    assert CAMERA.in_image(100.0, 0.0)
    assert not CAMERA.in_image(100.5, 10.0)
    assert not CAMERA.in_image(10.0, -0.1)


def test_best_in_radius_picks_closest():
    rows = np.vstack([desc(10), desc(3), desc(7)])
    assert best_in_radius(desc(0), [0, 1, 2], rows) == (1, 3)


def test_best_in_radius_level_filter():
    rows = np.vstack([desc(10), desc(3), desc(7)])
    idx, dist = best_in_radius(desc(0), [0, 1, 2], rows, [0, 5, 1], 0, 1)
    assert (idx, dist) == (2, 7)


def test_best_in_radius_tie_keeps_first():
    rows = np.vstack([desc(4), desc(4)])
    assert best_in_radius(desc(0), [1, 0], rows)[0] == 1


def test_best_in_radius_without_candidates():
    rows = np.vstack([desc(1)])
    assert best_in_radius(desc(0), [], rows) == (-1, 256)


def test_initialization_simple_match():
    keys1 = [KeyPoint(10, 10, angle=0.0)]
    keys2 = [KeyPoint(12, 10, angle=0.0), KeyPoint(15, 12, angle=0.0)]
    d1 = np.vstack([desc(0)])
    d2 = np.vstack([desc(5), desc(100)])
    matches, prev = search_for_initialization(
        keys1, d1, keys2, d2, [(10, 10)], area_finder(keys2), 20, 0.9, True
    )
    assert matches == [0]
    assert prev == [(12, 10)]


def test_initialization_ratio_rejects():
    keys1 = [KeyPoint(10, 10, angle=0.0)]
    keys2 = [KeyPoint(12, 10, angle=0.0), KeyPoint(15, 12, angle=0.0)]
    d2 = np.vstack([desc(10), desc(12)])
    matches, prev = search_for_initialization(
        keys1, np.vstack([desc(0)]), keys2, d2, [(10, 10)], area_finder(keys2), 20, 0.6, False
    )
    assert matches == [-1]
    assert prev == [(10, 10)]


def test_initialization_better_later_match_replaces():
    keys1 = [KeyPoint(10, 10), KeyPoint(11, 10)]
    keys2 = [KeyPoint(12, 10)]
    d1 = np.vstack([desc(20), desc(5)])
    matches, _ = search_for_initialization(
        keys1, d1, keys2, np.vstack([desc(0)]), [(10, 10), (11, 10)], area_finder(keys2), 20, 0.9, False
    )
    assert matches == [-1, 0]


def test_initialization_worse_later_match_ignored():
    keys1 = [KeyPoint(10, 10), KeyPoint(11, 10)]
    keys2 = [KeyPoint(12, 10)]
    d1 = np.vstack([desc(20), desc(30)])
    matches, _ = search_for_initialization(
        keys1, d1, keys2, np.vstack([desc(0)]), [(10, 10), (11, 10)], area_finder(keys2), 20, 0.9, False
    )
    assert matches == [0, -1]


def test_initialization_skips_coarse_levels():
    keys1 = [KeyPoint(10, 10, octave=1)]
    keys2 = [KeyPoint(12, 10, octave=1)]
    matches, _ = search_for_initialization(
        keys1, np.vstack([desc(0)]), keys2, np.vstack([desc(0)]), [(10, 10)], area_finder(keys2), 20, 0.9, False
    )
    assert matches == [-1]


def test_initialization_orientation_drops_outlier():
    n = 12
    keys1 = [KeyPoint(100.0 * i, 10, angle=0.0) for i in range(n)]
    keys2 = [KeyPoint(100.0 * i, 11, angle=0.0) for i in range(n)]
    keys2[n - 1] = KeyPoint(100.0 * (n - 1), 11, angle=180.0)
    d1 = np.vstack([desc(0)] * n)
    d2 = np.vstack([desc(1)] * n)
    prev = [(kp.x, kp.y) for kp in keys1]
    matches, _ = search_for_initialization(keys1, d1, keys2, d2, prev, area_finder(keys2), 20, 0.9, True)
    assert matches == list(range(n - 1)) + [-1]


def test_initialization_length_mismatch():
    keys1 = [KeyPoint(10, 10)]
    with pytest.raises(ValueError):
        search_for_initialization(
            keys1, np.vstack([desc(0)]), [], np.zeros((0, 32), dtype=np.uint8), [], lambda *a: [], 20, 0.9, False
        )


def test_mutual_matches_agreement():
    match12 = [2, -1, 0, 1]
    match21 = [2, 0, 0]
    assert mutual_matches(match12, match21) == [(0, 2), (2, 0)]


def test_mutual_matches_is_symmetric():
    match12 = [1, 0, -1]
    match21 = [1, 0]
    forward = mutual_matches(match12, match21)
    backward = mutual_matches(match21, match12)
    assert sorted((b, a) for a, b in backward) == forward