"""Multi-scale ORB feature extraction and binary descriptor matching."""

__version__ = "0.1.0"
__all__ = [
    "keypoint",
    "imaging",
    "descriptor",
    "octree",
    "extractor",
    "matching",
    "bow_search",
    "triangulation",
    "projection_search",
]