"""Descriptor matching restricted to features that share a vocabulary word."""

from __future__ import annotations

from typing import Iterator, Mapping, Sequence

import numpy as np

from .matching import TH_LOW, RotationHistogram, descriptor_distance

FeatureVector = Mapping[int, Sequence[int]]

_NO_DISTANCE = 256


def common_words(
    featvec1: FeatureVector, featvec2: FeatureVector
) -> Iterator[tuple[int, Sequence[int], Sequence[int]]]:
    """Yield ``(word, indices1, indices2)`` for each word in both vectors, in ascending order."""
    for word in sorted(featvec1):
        if word in featvec2:
            yield word, featvec1[word], featvec2[word]


def _usable(flags: Sequence[bool] | None, index: int) -> bool:
    return True if flags is None else bool(flags[index])


def search_by_bow(
    featvec1: FeatureVector,
    featvec2: FeatureVector,
    descriptors1,
    descriptors2,
    angles1: Sequence[float],
    angles2: Sequence[float],
    usable1: Sequence[bool] | None = None,
    usable2: Sequence[bool] | None = None,
    nn_ratio: float = 0.6,
    check_orientation: bool = True,
    strict: bool = False,
) -> dict[int, int]:
    """Match features of the first set to features of the second sharing a word.

    Only features flagged in ``usable1`` and ``usable2`` take part (``None``
    means all of them), and each feature of the second set is matched at most
    once. A match needs a best distance within ``TH_LOW`` (below it when
    ``strict``) and clearly better than the second best by ``nn_ratio``. With
    ``check_orientation``, matches whose rotation disagrees with the dominant
    rotations are dropped. Returns a mapping from first-set index to
    second-set index.
    """
    d1 = np.asarray(descriptors1, dtype=np.uint8)
    d2 = np.asarray(descriptors2, dtype=np.uint8)
    ratio = np.float32(nn_ratio)

    matches: dict[int, int] = {}
    matched2: set[int] = set()
    histogram = RotationHistogram()

    for _word, indices1, indices2 in common_words(featvec1, featvec2):
        for idx1 in indices1:
            if not _usable(usable1, idx1):
                continue
            best1 = best2 = _NO_DISTANCE
            best_idx2 = -1
            for idx2 in indices2:
                if idx2 in matched2 or not _usable(usable2, idx2):
                    continue
                dist = descriptor_distance(d1[idx1], d2[idx2])
                if dist < best1:
                    best2 = best1
                    best1 = dist
                    best_idx2 = idx2
                elif dist < best2:
                    best2 = dist

            within = best1 < TH_LOW if strict else best1 <= TH_LOW
            if not within:
                continue
            if not np.float32(best1) < ratio * np.float32(best2):
                continue
            matches[idx1] = best_idx2
            matched2.add(best_idx2)
            if check_orientation:
                histogram.add(angles1[idx1], angles2[best_idx2], idx1)

    if check_orientation:
        for idx1 in histogram.inconsistent():
            matches.pop(idx1, None)

    return matches