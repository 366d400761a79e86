"""Descriptor distances and consistency checks shared by the matchers."""

from __future__ import annotations

import math
from typing import Sequence, Sized

import numpy as np

from .keypoint import KeyPoint

TH_HIGH = 100
TH_LOW = 50
HISTO_LENGTH = 30

_BIN_FACTOR = np.float32(1.0) / np.float32(HISTO_LENGTH)


def descriptor_distance(a, b) -> int:
    """Hamming distance between two binary descriptors."""
    first = np.asarray(a, dtype=np.uint8).ravel()
    second = np.asarray(b, dtype=np.uint8).ravel()
    if first.shape != second.shape:
        raise ValueError("descriptors must have the same length")
    return int(np.unpackbits(np.bitwise_xor(first, second)).sum())


def compute_three_maxima(histogram: Sequence[Sized]) -> tuple[int, int, int]:
    """Indices of the three fullest bins, ``-1`` for any under a tenth of the fullest."""
    max1 = max2 = max3 = 0
    ind1 = ind2 = ind3 = -1
    for i, entries in enumerate(histogram):
        s = len(entries)
        if s > max1:
            max3, max2, max1 = max2, max1, s
            ind3, ind2, ind1 = ind2, ind1, i
        elif s > max2:
            max3, max2 = max2, s
            ind3, ind2 = ind2, i
        elif s > max3:
            max3 = s
            ind3 = i
    if max2 < 0.1 * max1:
        ind2 = ind3 = -1
    elif max3 < 0.1 * max1:
        ind3 = -1
    return ind1, ind2, ind3


class RotationHistogram:
    """Histogram of keypoint rotation differences used to reject inconsistent matches."""

    def __init__(self, length: int = HISTO_LENGTH) -> None:
        self.bins: list[list[int]] = [[] for _ in range(length)]

    def add(self, angle1: float, angle2: float, index: int) -> None:
        """Record ``index`` under the rotation from ``angle2`` to ``angle1``."""
        rot = np.float32(angle1) - np.float32(angle2)
        if rot < 0.0:
            rot = np.float32(rot + np.float32(360.0))
        value = float(np.float32(rot * _BIN_FACTOR))
        bin_index = int(math.floor(value + 0.5))
        if bin_index == len(self.bins):
            bin_index = 0
        if not 0 <= bin_index < len(self.bins):
            raise ValueError("rotation falls outside the histogram")
        self.bins[bin_index].append(index)

    def inconsistent(self) -> list[int]:
        """Indices recorded outside the three dominant bins, in bin order."""
        dominant = set(compute_three_maxima(self.bins))
        return [
            index
            for i, entries in enumerate(self.bins)
            if i not in dominant
            for index in entries
        ]


def radius_by_viewing_cos(view_cos: float) -> float:
    """Search radius factor: narrow when viewed almost head-on."""
    return 2.5 if view_cos > 0.998 else 4.0


def check_dist_epipolar_line(kp1: KeyPoint, kp2: KeyPoint, f12, sigma2: Sequence[float]) -> bool:
    """Whether ``kp2`` lies close enough to the epipolar line of ``kp1``.

    ``sigma2`` holds the variance of each scale level of the second image.
    """
    f = np.asarray(f12, dtype=np.float64)
    if f.shape != (3, 3):
        raise ValueError("fundamental matrix must be 3x3")
    a = kp1.x * f[0, 0] + kp1.y * f[1, 0] + f[2, 0]
    b = kp1.x * f[0, 1] + kp1.y * f[1, 1] + f[2, 1]
    c = kp1.x * f[0, 2] + kp1.y * f[1, 2] + f[2, 2]
    num = a * kp2.x + b * kp2.y + c
    den = a * a + b * b
    if den == 0:
        return False
    return num * num / den < 3.84 * sigma2[kp2.octave]