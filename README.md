# orbfeatures

Multi-scale ORB feature extraction and binary descriptor matching for
8-bit grayscale images, built on NumPy.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Extracting features

```python
import numpy as np
from orbfeatures.extractor import ORBExtractor

image = np.asarray(..., dtype=np.uint8)   # 2-D grayscale image

extractor = ORBExtractor(nfeatures=1000, scale_factor=1.2, nlevels=8,
                         ini_th_fast=20, min_th_fast=7)
keypoints, descriptors = extractor(image)
```

`ORBExtractor` builds a scale pyramid (`compute_pyramid`), detects FAST
corners cell by cell on each level, retrying with `min_th_fast` where a
cell yields nothing, and spreads them evenly with a quadtree
(`compute_keypoints_octree`, built on `orbfeatures.octree.distribute_octree`).
Each keypoint gets an intensity-centroid orientation and a 32-byte
steered BRIEF descriptor computed on a Gaussian-blurred level.

Calling the extractor returns a list of `KeyPoint` objects in the
coordinates of the input image and a `(N, 32)` `uint8` descriptor array,
one row per keypoint. The `mask` argument is accepted but not used.
The extractor also keeps per-level `scale_factors`, `level_sigma2`,
`inv_scale_factors`, `inv_level_sigma2` and `features_per_level`.

`compute_keypoints_old` offers the alternative fixed-grid detection that
retains the strongest corners per cell.

## Building blocks

- `orbfeatures.keypoint`: the `KeyPoint` dataclass (`x`, `y`, `size`,
  `angle`, `response`, `octave`, with `scaled` and `shifted` copies) and
  `retain_best`.
- `orbfeatures.imaging`: `fast_detect`, `gaussian_blur`, `resize_linear`
  and `pad_reflect101`.
- `orbfeatures.descriptor`: `bit_pattern`, `compute_umax`, `ic_angle`,
  `compute_orb_descriptor` and `compute_descriptors`.
- `orbfeatures.octree`: `ExtractorNode` and `distribute_octree`.

## Matching descriptors

```python
from orbfeatures.matching import descriptor_distance, RotationHistogram

d = descriptor_distance(descriptors[0], descriptors[1])   # Hamming distance, 0..256

hist = RotationHistogram()
hist.add(keypoints[0].angle, keypoints[1].angle, 0)
rejected = hist.inconsistent()
```

`RotationHistogram.inconsistent` lists the indices whose rotation falls
outside the three dominant bins (see `compute_three_maxima`).
`orbfeatures.matching` also has `radius_by_viewing_cos` and
`check_dist_epipolar_line`.

Higher-level searches:

- `orbfeatures.bow_search.search_by_bow` matches features that share a
  vocabulary word, given as mappings from word id to feature indices;
  `common_words` walks the shared words. It returns a dict from first-set
  index to second-set index.
- `orbfeatures.triangulation.search_for_triangulation` pairs features of
  two `TriangulationView`s that have no map point yet, using a
  fundamental matrix and the `epipole` of the first camera in the second.
- `orbfeatures.projection_search.search_for_initialization` matches
  finest-level features of two frames inside a window around previous
  positions, through a caller-supplied `features_in_area` function.
  The module also has `PinholeCamera` (`project`, `in_image`),
  `best_in_radius` and `mutual_matches`.

## What the package does not do

It does not read or decode image files, build a visual vocabulary or
compute word vectors (callers supply them), keep a map of 3-D points or
keyframes, track camera poses, or run bundle adjustment or any other
optimisation. There is no command-line program.