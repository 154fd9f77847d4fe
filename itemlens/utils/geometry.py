"""Coordinate transforms and polygon helpers.

Three coordinate spaces meet on the canvas: the detector's normalized grid
(0..1000 per axis), source image pixels, and rendering surface pixels. These
functions are the only sanctioned way to move a point between them. No
clamping is applied; out-of-range points stay valid.
"""
from __future__ import annotations
from typing import Iterable, Optional, Sequence, TypeVar, Union
import math
import os

from ..core.constants import NORMALIZED_EXTENT
from ..core.entities import ImagePoint, NormalizedPoint, RenderPoint, Surface
from ..core.exceptions import ValidationError

P = TypeVar('P', NormalizedPoint, RenderPoint, ImagePoint)


def to_render_space(point: NormalizedPoint, surface: Surface) -> RenderPoint:
    """Map a normalized point onto the drawing surface."""
    return RenderPoint(
        (point.x / NORMALIZED_EXTENT) * surface.width,
        (point.y / NORMALIZED_EXTENT) * surface.height,
    )


def to_normalized(point: RenderPoint, surface: Surface) -> NormalizedPoint:
    """Inverse of :func:`to_render_space`."""
    return NormalizedPoint(
        (point.x / surface.width) * NORMALIZED_EXTENT,
        (point.y / surface.height) * NORMALIZED_EXTENT,
    )


def normalized_to_image(point: NormalizedPoint, image_width: int, image_height: int) -> ImagePoint:
    return ImagePoint(
        (point.x / NORMALIZED_EXTENT) * image_width,
        (point.y / NORMALIZED_EXTENT) * image_height,
    )


def image_to_normalized(point: ImagePoint, image_width: int, image_height: int) -> NormalizedPoint:
    return NormalizedPoint(
        (point.x / image_width) * NORMALIZED_EXTENT,
        (point.y / image_height) * NORMALIZED_EXTENT,
    )


def surface_for_container(container_width: Union[int, float], image_width: int, image_height: int) -> Surface:
    """Size the surface to the container width, preserving the image aspect ratio.

    Raises:
        ValidationError: if any dimension is not positive
    """
    if container_width <= 0 or image_width <= 0 or image_height <= 0:
        raise ValidationError(
            f"Cannot size surface for container {container_width} and image {image_width}x{image_height}"
        )
    scale = container_width / image_width
    return Surface(float(container_width), image_height * scale)


def reproject(point: RenderPoint, from_surface: Surface, to_surface: Surface) -> RenderPoint:
    """Carry a render-space point captured on one surface onto another."""
    return to_render_space(to_normalized(point, from_surface), to_surface)


def euclidean_distance(a: P, b: P) -> float:
    """Distance between two points of the same space."""
    if type(a) is not type(b):
        raise TypeError(f"Cannot measure between {type(a).__name__} and {type(b).__name__}")
    return math.hypot(b.x - a.x, b.y - a.y)


def centroid(points: Sequence[P]) -> Optional[P]:
    """Arithmetic mean of the vertices, None for an empty polygon."""
    if not points:
        return None
    cls = type(points[0])
    n = len(points)
    return cls(sum(p.x for p in points) / n, sum(p.y for p in points) / n)


def scale_about(points: Iterable[RenderPoint], origin: RenderPoint, factor: float) -> list:
    """Uniformly scale render-space points about ``origin``."""
    return [
        RenderPoint(origin.x + (p.x - origin.x) * factor, origin.y + (p.y - origin.y) * factor)
        for p in points
    ]


def ensure_dirs(*dirs):
    """Create directories if they don't exist."""
    for d in dirs:
        os.makedirs(d, exist_ok=True)
