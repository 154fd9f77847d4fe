"""Utility functions package."""

from .geometry import (
    to_render_space, to_normalized, normalized_to_image, image_to_normalized,
    surface_for_container, reproject, euclidean_distance, centroid, scale_about, ensure_dirs
)

__all__ = [
    "to_render_space", "to_normalized", "normalized_to_image", "image_to_normalized",
    "surface_for_container", "reproject", "euclidean_distance", "centroid", "scale_about",
    "ensure_dirs"
]
