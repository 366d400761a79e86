"""Grayscale image operations used by the feature extractor."""

from __future__ import annotations

import math

import numpy as np

from .keypoint import KeyPoint

# Bresenham circle of radius 3 as (dx, dy), 16 pixels in order around the ring.
_CIRCLE = (
    (0, 3), (1, 3), (2, 2), (3, 1), (3, 0), (3, -1), (2, -2), (1, -3),
    (0, -3), (-1, -3), (-2, -2), (-3, -1), (-3, 0), (-3, 1), (-2, 2), (-1, 3),
)
_ARC = 9
_FAST_KEYPOINT_SIZE = 7.0


def _as_gray(image) -> np.ndarray:
    array = np.asarray(image)
    if array.ndim != 2:
        raise ValueError("expected a single-channel two-dimensional image")
    if array.dtype != np.uint8:
        raise ValueError("expected an 8-bit image")
    return array


def _to_uint8(values: np.ndarray) -> np.ndarray:
    return np.clip(np.rint(values), 0, 255).astype(np.uint8)


def fast_detect(image, threshold: int, nonmax_suppression: bool = True) -> list[KeyPoint]:
    """Detect FAST-9 corners on a 16-pixel circle.

    A pixel is a corner when nine contiguous circle pixels are all brighter
    than it by more than ``threshold`` or all darker by more than it. The
    response is the largest threshold for which the pixel stays a corner.
    Keypoints come out in row-major order.
    """
    img = _as_gray(image).astype(np.int16)
    t = min(max(int(threshold), 0), 255)
    h, w = img.shape
    if h < 7 or w < 7:
        return []

    center = img[3:h - 3, 3:w - 3]
    ring = np.stack(
        [img[3 + dy:h - 3 + dy, 3 + dx:w - 3 + dx] for dx, dy in _CIRCLE]
    ) - center
    wrapped = np.concatenate([ring, ring[:_ARC - 1]])
    bright = np.stack(
        [wrapped[k:k + _ARC].min(axis=0) for k in range(len(_CIRCLE))]
    ).max(axis=0)
    dark = np.stack(
        [(-wrapped[k:k + _ARC]).min(axis=0) for k in range(len(_CIRCLE))]
    ).max(axis=0)
    best = np.maximum(bright, dark).astype(np.int32)
    inner_corner = best > t

    corner = np.zeros((h, w), dtype=bool)
    corner[3:h - 3, 3:w - 3] = inner_corner
    scores = np.zeros((h, w), dtype=np.int32)
    scores[3:h - 3, 3:w - 3] = np.where(inner_corner, best - 1, 0)

    keep = corner
    if nonmax_suppression:
        padded = np.pad(scores, 1)
        for dy in (-1, 0, 1):
            for dx in (-1, 0, 1):
                if dx == 0 and dy == 0:
                    continue
                neighbour = padded[1 + dy:1 + dy + h, 1 + dx:1 + dx + w]
                keep = keep & (scores > neighbour)

    ys, xs = np.nonzero(keep)
    return [
        KeyPoint(float(x), float(y), size=_FAST_KEYPOINT_SIZE, response=float(scores[y, x]))
        for y, x in zip(ys.tolist(), xs.tolist())
    ]


def pad_reflect101(image, border: int) -> np.ndarray:
    """Pad on every side by mirroring without repeating the edge pixel."""
    array = np.asarray(image)
    if array.ndim != 2:
        raise ValueError("expected a two-dimensional image")
    if border < 0:
        raise ValueError("border must not be negative")
    if border == 0:
        return array.copy()
    return np.pad(array, border, mode="reflect")


def _gaussian_kernel(ksize: int, sigma: float) -> np.ndarray:
    if sigma <= 0:
        sigma = 0.3 * ((ksize - 1) * 0.5 - 1) + 0.8
    half = (ksize - 1) / 2
    kernel = np.array(
        [math.exp(-((i - half) ** 2) / (2 * sigma * sigma)) for i in range(ksize)]
    )
    return kernel / kernel.sum()


def gaussian_blur(image, ksize: int = 7, sigma: float = 2.0) -> np.ndarray:
    """Blur with a separable Gaussian kernel and mirrored (101) borders."""
    img = _as_gray(image)
    if ksize <= 0 or ksize % 2 == 0:
        raise ValueError("kernel size must be a positive odd number")
    kernel = _gaussian_kernel(ksize, sigma)
    radius = ksize // 2
    h, w = img.shape
    padded = pad_reflect101(img, radius).astype(np.float64)
    rows = sum(k * padded[:, i:i + w] for i, k in enumerate(kernel))
    out = sum(k * rows[i:i + h, :] for i, k in enumerate(kernel))
    return _to_uint8(out)


def _linear_axis(src_size: int, dst_size: int) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    scale = src_size / dst_size
    pos = (np.arange(dst_size) + 0.5) * scale - 0.5
    lower = np.floor(pos).astype(np.int64)
    frac = pos - lower
    below = lower < 0
    frac[below] = 0.0
    lower[below] = 0
    above = lower >= src_size - 1
    frac[above] = 0.0
    lower[above] = src_size - 1
    upper = np.minimum(lower + 1, src_size - 1)
    return lower, upper, frac


def resize_linear(image, width: int, height: int) -> np.ndarray:
    """Resize with bilinear interpolation on pixel centres."""
    img = _as_gray(image)
    if width <= 0 or height <= 0:
        raise ValueError("target size must be positive")
    h, w = img.shape
    if h == 0 or w == 0:
        raise ValueError("cannot resize an empty image")
    x0, x1, fx = _linear_axis(w, width)
    y0, y1, fy = _linear_axis(h, height)
    src = img.astype(np.float64)
    top = src[y0][:, x0] * (1 - fx) + src[y0][:, x1] * fx
    bottom = src[y1][:, x0] * (1 - fx) + src[y1][:, x1] * fx
    out = top * (1 - fy)[:, None] + bottom * fy[:, None]
    return _to_uint8(out)