"""Guided matching of features found near a predicted image position."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Iterable, Sequence

import numpy as np

from .keypoint import KeyPoint
from .matching import TH_LOW, RotationHistogram, descriptor_distance

_NO_DISTANCE = 256
_INT_MAX = 2**31 - 1

FeaturesInArea = Callable[[float, float, float, int, int], Iterable[int]]


@dataclass(frozen=True)
class PinholeCamera:
    """Intrinsics of a pinhole camera and the bounds of its undistorted image."""

    fx: float
    fy: float
    cx: float
    cy: float
    min_x: float
    max_x: float
    min_y: float
    max_y: float

    def project(self, point) -> tuple[float, float] | None:
        """Project a point given in camera coordinates; ``None`` if it is not in front."""
        p = np.asarray(point, dtype=np.float64).ravel()
        if p.shape != (3,):
            raise ValueError("expected a 3-vector")
        if p[2] <= 0:
            return None
        invz = 1.0 / p[2]
        return float(self.fx * p[0] * invz + self.cx), float(self.fy * p[1] * invz + self.cy)

    def in_image(self, u: float, v: float) -> bool:
        """Whether ``(u, v)`` lies within the image bounds, edges included."""
        return self.min_x <= u <= self.max_x and self.min_y <= v <= self.max_y


def best_in_radius(
    descriptor,
    candidates: Iterable[int],
    descriptors,
    levels: Sequence[int] | None = None,
    min_level: int | None = None,
    max_level: int | None = None,
) -> tuple[int, int]:
    """Return ``(index, distance)`` of the candidate closest to ``descriptor``.

    Candidates whose scale level falls outside ``[min_level, max_level]`` are
    skipped; a bound of ``None`` is open. On equal distance the first
    candidate wins. Without any candidate the result is ``(-1, 256)``.
    """
    rows = np.asarray(descriptors, dtype=np.uint8)
    best_idx = -1
    best_dist = _NO_DISTANCE
    for idx in candidates:
        if levels is not None:
            level = levels[idx]
            if min_level is not None and level < min_level:
                continue
            if max_level is not None and level > max_level:
                continue
        dist = descriptor_distance(descriptor, rows[idx])
        if dist < best_dist:
            best_dist = dist
            best_idx = idx
    return best_idx, best_dist


def search_for_initialization(
    keys1: Sequence[KeyPoint],
    descriptors1,
    keys2: Sequence[KeyPoint],
    descriptors2,
    prev_matched: Sequence[tuple[float, float]],
    features_in_area: FeaturesInArea,
    window_size: float = 100,
    nn_ratio: float = 0.9,
    check_orientation: bool = True,
) -> tuple[list[int], list[tuple[float, float]]]:
    """Match finest-level features of a first frame to a second frame.

    Each feature of the first frame is searched for in a window around its
    previous match ``prev_matched``; ``features_in_area(x, y, r, min_level,
    max_level)`` yields the second-frame indices in such a window. A feature
    of the second frame keeps only the closest of the features matched to
    it. Returns, for each first-frame feature, the matched second-frame index
    or ``-1``, and the updated previous positions.
    """
    d1 = np.asarray(descriptors1, dtype=np.uint8)
    d2 = np.asarray(descriptors2, dtype=np.uint8)
    if len(d1) != len(keys1) or len(d2) != len(keys2):
        raise ValueError("there must be one descriptor row per keypoint")
    if len(prev_matched) != len(keys1):
        raise ValueError("there must be one previous position per keypoint of the first frame")

    ratio = np.float32(nn_ratio)
    matches12 = [-1] * len(keys1)
    matches21 = [-1] * len(keys2)
    matched_distance = [_INT_MAX] * len(keys2)
    histogram = RotationHistogram()

    for i1, kp1 in enumerate(keys1):
        level1 = kp1.octave
        if level1 > 0:
            continue
        x, y = prev_matched[i1]
        candidates = list(features_in_area(x, y, window_size, level1, level1))
        if not candidates:
            continue

        best_dist = best_dist2 = _INT_MAX
        best_idx2 = -1
        for i2 in candidates:
            dist = descriptor_distance(d1[i1], d2[i2])
            if matched_distance[i2] <= dist:
                continue
            if dist < best_dist:
                best_dist2 = best_dist
                best_dist = dist
                best_idx2 = i2
            elif dist < best_dist2:
                best_dist2 = dist

        if best_dist > TH_LOW:
            continue
        if not np.float32(best_dist) < np.float32(best_dist2) * ratio:
            continue
        previous = matches21[best_idx2]
        if previous >= 0:
            matches12[previous] = -1
        matches12[i1] = best_idx2
        matches21[best_idx2] = i1
        matched_distance[best_idx2] = best_dist
        if check_orientation:
            histogram.add(kp1.angle, keys2[best_idx2].angle, i1)

    if check_orientation:
        for i1 in histogram.inconsistent():
            matches12[i1] = -1

    updated = [
        (keys2[m].x, keys2[m].y) if m >= 0 else tuple(prev_matched[i1])
        for i1, m in enumerate(matches12)
    ]
    return matches12, updated


def mutual_matches(match12: Sequence[int], match21: Sequence[int]) -> list[tuple[int, int]]:
    """Pairs ``(i1, i2)`` on which both matching directions agree, ordered by ``i1``."""
    pairs = []
    for i1, i2 in enumerate(match12):
        if 0 <= i2 < len(match21) and match21[i2] == i1:
            pairs.append((i1, i2))
    return pairs