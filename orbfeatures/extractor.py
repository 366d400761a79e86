"""Multi-scale ORB keypoint detection and description."""

from __future__ import annotations

import itertools
import math
from dataclasses import replace

import numpy as np

from .descriptor import HALF_PATCH_SIZE, PATCH_SIZE, bit_pattern, compute_descriptors, compute_umax, ic_angle
from .imaging import fast_detect, gaussian_blur, pad_reflect101, resize_linear
from .keypoint import KeyPoint, retain_best
from .octree import distribute_octree

EDGE_THRESHOLD = 19
_CELL_SIZE = 30.0


def _check_gray(image) -> np.ndarray:
    array = np.asarray(image)
    if array.ndim != 2 or array.dtype != np.uint8:
        raise ValueError("expected a single-channel 8-bit image")
    return array


class ORBExtractor:
    """Detect FAST corners over a scale pyramid and describe them with ORB."""

    def __init__(
        self,
        nfeatures: int = 1000,
        scale_factor: float = 1.2,
        nlevels: int = 8,
        ini_th_fast: int = 20,
        min_th_fast: int = 7,
    ) -> None:
        if nlevels < 1:
            raise ValueError("there must be at least one pyramid level")
        if scale_factor <= 0 or scale_factor == 1:
            raise ValueError("scale factor must be positive and different from 1")
        self.nfeatures = nfeatures
        self.scale_factor = scale_factor
        self.nlevels = nlevels
        self.ini_th_fast = ini_th_fast
        self.min_th_fast = min_th_fast

        sf = np.float32(scale_factor)
        scales = [np.float32(1.0)]
        for _ in range(1, nlevels):
            scales.append(np.float32(scales[-1] * sf))
        self.scale_factors = [float(s) for s in scales]
        self.level_sigma2 = [float(np.float32(s * s)) for s in scales]
        self.inv_scale_factors = [float(np.float32(1.0) / s) for s in scales]
        self.inv_level_sigma2 = [float(np.float32(1.0) / np.float32(s * s)) for s in scales]

        self.features_per_level = self._distribute_features(sf)
        self.umax = compute_umax(HALF_PATCH_SIZE)
        self.pattern = bit_pattern()
        self.image_pyramid: list[np.ndarray] = []
        self._padded: list[np.ndarray] = []

    def _distribute_features(self, sf: np.float32) -> list[int]:
        factor = np.float32(1.0) / sf
        desired = np.float32(
            self.nfeatures * (1 - factor) / (1 - np.float32(float(factor) ** self.nlevels))
        )
        counts = []
        for _ in range(self.nlevels - 1):
            counts.append(int(np.rint(desired)))
            desired = np.float32(desired * factor)
        counts.append(max(self.nfeatures - sum(counts), 0))
        return counts

    def _patch_size(self, level: int) -> float:
        return float(int(np.float32(PATCH_SIZE) * np.float32(self.scale_factors[level])))

    def compute_pyramid(self, image) -> list[np.ndarray]:
        """Build the scale pyramid for ``image`` and return its levels."""
        img = _check_gray(image)
        rows, cols = img.shape
        self.image_pyramid = []
        self._padded = []
        for level, inv in enumerate(self.inv_scale_factors):
            if level == 0:
                current = img.copy()
            else:
                width = int(np.rint(np.float32(cols) * np.float32(inv)))
                height = int(np.rint(np.float32(rows) * np.float32(inv)))
                current = resize_linear(self.image_pyramid[-1], width, height)
            self.image_pyramid.append(current)
            self._padded.append(pad_reflect101(current, EDGE_THRESHOLD))
        return self.image_pyramid

    def _require_pyramid(self) -> None:
        if not self.image_pyramid:
            raise RuntimeError("compute the image pyramid first")

    def _orient(self, level: int, keypoints: list[KeyPoint]) -> list[KeyPoint]:
        padded = self._padded[level]
        return [
            replace(kp, angle=ic_angle(padded, kp.x + EDGE_THRESHOLD, kp.y + EDGE_THRESHOLD, self.umax))
            for kp in keypoints
        ]

    def _detect(self, cell: np.ndarray, retry_at: int) -> list[KeyPoint]:
        keys = fast_detect(cell, self.ini_th_fast, True)
        if len(keys) <= retry_at:
            keys = fast_detect(cell, self.min_th_fast, True)
        return keys

    def compute_keypoints_octree(self) -> list[list[KeyPoint]]:
        """Detect keypoints per level and spread them with a quadtree."""
        self._require_pyramid()
        all_keypoints = []
        for level, img in enumerate(self.image_pyramid):
            rows, cols = img.shape
            min_border = EDGE_THRESHOLD - 3
            max_border_x = cols - EDGE_THRESHOLD + 3
            max_border_y = rows - EDGE_THRESHOLD + 3
            width = float(max_border_x - min_border)
            height = float(max_border_y - min_border)
            n_cols = int(width / _CELL_SIZE) if width > 0 else 0
            n_rows = int(height / _CELL_SIZE) if height > 0 else 0
            if n_cols <= 0 or n_rows <= 0:
                all_keypoints.append([])
                continue
            w_cell = math.ceil(width / n_cols)
            h_cell = math.ceil(height / n_rows)

            to_distribute: list[KeyPoint] = []
            for i, j in itertools.product(range(n_rows), range(n_cols)):
                ini_y = min_border + i * h_cell
                if ini_y >= max_border_y - 3:
                    continue
                max_y = min(ini_y + h_cell + 6, max_border_y)
                ini_x = min_border + j * w_cell
                if ini_x >= max_border_x - 6:
                    continue
                max_x = min(ini_x + w_cell + 6, max_border_x)
                cell = img[ini_y:max_y, ini_x:max_x]
                keys = self._detect(cell, 0)
                to_distribute.extend(kp.shifted(j * w_cell, i * h_cell) for kp in keys)

            kept = distribute_octree(
                to_distribute, min_border, max_border_x, min_border, max_border_y,
                self.features_per_level[level],
            )
            size = self._patch_size(level)
            kept = [
                replace(kp, x=kp.x + min_border, y=kp.y + min_border, octave=level, size=size)
                for kp in kept
            ]
            all_keypoints.append(kept)

        return [self._orient(level, kps) for level, kps in enumerate(all_keypoints)]

    def compute_keypoints_old(self) -> list[list[KeyPoint]]:
        """Detect keypoints per level on a fixed grid, retaining the best per cell."""
        self._require_pyramid()
        base = self.image_pyramid[0]
        ratio = float(np.float32(base.shape[1]) / np.float32(base.shape[0]))
        all_keypoints = []
        for level, img in enumerate(self.image_pyramid):
            desired = self.features_per_level[level]
            level_cols = int(math.sqrt(desired / (5 * ratio)))
            level_rows = int(ratio * level_cols)
            rows, cols = img.shape
            min_border = EDGE_THRESHOLD
            max_border_x = cols - EDGE_THRESHOLD
            max_border_y = rows - EDGE_THRESHOLD
            if (level_cols <= 0 or level_rows <= 0
                    or max_border_x <= min_border or max_border_y <= min_border):
                all_keypoints.append([])
                continue

            cell_w = math.ceil((max_border_x - min_border) / level_cols)
            cell_h = math.ceil((max_border_y - min_border) / level_rows)
            n_cells = level_rows * level_cols
            per_cell = math.ceil(desired / n_cells)
            grid = list(itertools.product(range(level_rows), range(level_cols)))

            cells: dict[tuple[int, int], list[KeyPoint]] = {ij: [] for ij in grid}
            to_retain = dict.fromkeys(grid, 0)
            total = dict.fromkeys(grid, 0)
            no_more = dict.fromkeys(grid, False)
            ini_x_col = [0] * level_cols
            ini_y_row = [0] * level_rows
            n_no_more = 0
            to_spread = 0

            h_y = cell_h + 6
            for i in range(level_rows):
                ini_y = min_border + i * cell_h - 3
                ini_y_row[i] = ini_y
                if i == level_rows - 1:
                    h_y = max_border_y + 3 - ini_y
                    if h_y <= 0:
                        continue
                h_x = cell_w + 6
                for j in range(level_cols):
                    if i == 0:
                        ini_x = min_border + j * cell_w - 3
                        ini_x_col[j] = ini_x
                    else:
                        ini_x = ini_x_col[j]
                    if j == level_cols - 1:
                        h_x = max_border_x + 3 - ini_x
                        if h_x <= 0:
                            continue
                    keys = self._detect(img[ini_y:ini_y + h_y, ini_x:ini_x + h_x], 3)
                    cells[i, j] = keys
                    total[i, j] = len(keys)
                    if len(keys) > per_cell:
                        to_retain[i, j] = per_cell
                    else:
                        to_retain[i, j] = len(keys)
                        to_spread += per_cell - len(keys)
                        no_more[i, j] = True
                        n_no_more += 1

            while to_spread > 0 and n_no_more < n_cells:
                new_per_cell = per_cell + math.ceil(to_spread / (n_cells - n_no_more))
                to_spread = 0
                for ij in grid:
                    if no_more[ij]:
                        continue
                    if total[ij] > new_per_cell:
                        to_retain[ij] = new_per_cell
                    else:
                        to_retain[ij] = total[ij]
                        to_spread += new_per_cell - total[ij]
                        no_more[ij] = True
                        n_no_more += 1

            size = self._patch_size(level)
            keypoints: list[KeyPoint] = []
            for i, j in grid:
                best = retain_best(cells[i, j], to_retain[i, j])[:to_retain[i, j]]
                keypoints.extend(
                    replace(kp, x=kp.x + ini_x_col[j], y=kp.y + ini_y_row[i], octave=level, size=size)
                    for kp in best
                )
            if len(keypoints) > desired:
                keypoints = retain_best(keypoints, desired)[:desired]
            all_keypoints.append(keypoints)

        return [self._orient(level, kps) for level, kps in enumerate(all_keypoints)]

    def __call__(self, image, mask=None) -> tuple[list[KeyPoint], np.ndarray]:
        """Return the keypoints of ``image`` in its own coordinates and their descriptors.

        The mask is accepted for interface compatibility and not used.
        """
        width = len(self.pattern) // 16
        img = np.asarray(image)
        if img.size == 0:
            return [], np.zeros((0, width), dtype=np.uint8)
        img = _check_gray(img)

        self.compute_pyramid(img)
        levels = self.compute_keypoints_octree()

        keypoints: list[KeyPoint] = []
        blocks: list[np.ndarray] = []
        for level, level_keys in enumerate(levels):
            if not level_keys:
                continue
            blurred = gaussian_blur(self.image_pyramid[level], 7, 2.0)
            padded = pad_reflect101(blurred, EDGE_THRESHOLD)
            shifted = [kp.shifted(EDGE_THRESHOLD, EDGE_THRESHOLD) for kp in level_keys]
            blocks.append(compute_descriptors(padded, shifted, self.pattern))
            if level != 0:
                scale = self.scale_factors[level]
                level_keys = [kp.scaled(scale) for kp in level_keys]
            keypoints.extend(level_keys)

        if not blocks:
            return [], np.zeros((0, width), dtype=np.uint8)
        return keypoints, np.vstack(blocks)