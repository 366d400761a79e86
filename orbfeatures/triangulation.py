"""Matching of untracked features between two views for new point triangulation."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping, Sequence

import numpy as np

from .bow_search import common_words
from .keypoint import KeyPoint
from .matching import TH_LOW, RotationHistogram, check_dist_epipolar_line, descriptor_distance

_MIN_EPIPOLE_DISTANCE2 = 100.0


@dataclass
class TriangulationView:
    """What the triangulation search needs to know about one keyframe.

    ``u_right`` holds the right-image coordinate of each feature, negative
    for features without a stereo measurement; ``None`` means none has one.
    ``has_map_point`` flags features already associated with a map point;
    ``None`` means none is.
    """

    keys: Sequence[KeyPoint]
    descriptors: np.ndarray
    featvec: Mapping[int, Sequence[int]]
    scale_factors: Sequence[float]
    level_sigma2: Sequence[float]
    u_right: Sequence[float] | None = None
    has_map_point: Sequence[bool] | None = field(default=None)

    def __post_init__(self) -> None:
        self.descriptors = np.asarray(self.descriptors, dtype=np.uint8)
        n = len(self.keys)
        if self.descriptors.ndim != 2 or len(self.descriptors) != n:
            raise ValueError("there must be one descriptor row per keypoint")
        if self.u_right is not None and len(self.u_right) != n:
            raise ValueError("there must be one right coordinate per keypoint")
        if self.has_map_point is not None and len(self.has_map_point) != n:
            raise ValueError("there must be one map point flag per keypoint")

    def _is_stereo(self, index: int) -> bool:
        return self.u_right is not None and self.u_right[index] >= 0

    def _is_tracked(self, index: int) -> bool:
        return self.has_map_point is not None and bool(self.has_map_point[index])


def epipole(center, rotation, translation, fx: float, fy: float, cx: float, cy: float) -> tuple[float, float]:
    """Project the first camera centre ``center`` into the second camera.

    ``rotation`` and ``translation`` take world points into the second
    camera's frame.
    """
    c = np.asarray(center, dtype=np.float64).ravel()
    r = np.asarray(rotation, dtype=np.float64)
    t = np.asarray(translation, dtype=np.float64).ravel()
    if c.shape != (3,) or t.shape != (3,) or r.shape != (3, 3):
        raise ValueError("expected a 3-vector centre, a 3x3 rotation and a 3-vector translation")
    c2 = r @ c + t
    if c2[2] == 0:
        raise ValueError("the first camera centre lies in the second camera's focal plane")
    invz = 1.0 / c2[2]
    return float(fx * c2[0] * invz + cx), float(fy * c2[1] * invz + cy)


def search_for_triangulation(
    view1: TriangulationView,
    view2: TriangulationView,
    f12,
    epipole_point: tuple[float, float],
    only_stereo: bool = False,
    check_orientation: bool = True,
) -> list[tuple[int, int]]:
    """Pair features without map points that share a vocabulary word.

    A candidate must be within ``TH_LOW`` of the feature's descriptor, lie
    close to its epipolar line under ``f12``, and, when neither feature is
    stereo, stay away from ``epipole_point``. The closest candidate wins;
    on equal distance the later one does. Returns ``(index1, index2)`` pairs
    ordered by ``index1``.
    """
    ex, ey = epipole_point
    matches: dict[int, int] = {}
    histogram = RotationHistogram()

    for _word, indices1, indices2 in common_words(view1.featvec, view2.featvec):
        for idx1 in indices1:
            if view1._is_tracked(idx1):
                continue
            stereo1 = view1._is_stereo(idx1)
            if only_stereo and not stereo1:
                continue
            kp1 = view1.keys[idx1]
            d1 = view1.descriptors[idx1]

            best_dist = TH_LOW
            best_idx2 = -1
            for idx2 in indices2:
                if view2._is_tracked(idx2):
                    continue
                stereo2 = view2._is_stereo(idx2)
                if only_stereo and not stereo2:
                    continue
                dist = descriptor_distance(d1, view2.descriptors[idx2])
                if dist > TH_LOW or dist > best_dist:
                    continue
                kp2 = view2.keys[idx2]
                if not stereo1 and not stereo2:
                    dx = ex - kp2.x
                    dy = ey - kp2.y
                    if dx * dx + dy * dy < _MIN_EPIPOLE_DISTANCE2 * view2.scale_factors[kp2.octave]:
                        continue
                if check_dist_epipolar_line(kp1, kp2, f12, view2.level_sigma2):
                    best_idx2 = idx2
                    best_dist = dist

            if best_idx2 >= 0:
                matches[idx1] = best_idx2
                if check_orientation:
                    histogram.add(kp1.angle, view2.keys[best_idx2].angle, idx1)

    if check_orientation:
        for idx1 in histogram.inconsistent():
            matches.pop(idx1, None)

    return sorted(matches.items())