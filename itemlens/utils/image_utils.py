"""Image processing utilities."""

import os
import cv2
import numpy as np
from PIL import Image
from typing import Tuple

from ..core.constants import SUPPORTED_IMAGE_FORMATS
from ..core.entities import Surface
from ..core.exceptions import ImageLoadError

def load_image(path: str) -> np.ndarray:
    """Read an image from disk as a BGR array.

    Raises:
        ImageLoadError: if the file is missing, unsupported or cannot be decoded
    """
    if not path or not os.path.isfile(path):
        raise ImageLoadError(f"Image file not found: {path}")
    if os.path.splitext(path)[1].lower() not in SUPPORTED_IMAGE_FORMATS:
        raise ImageLoadError(f"Unsupported image format: {path}")
    image = cv2.imread(path, cv2.IMREAD_COLOR)
    if image is None or image.size == 0:
        raise ImageLoadError(f"Failed to decode image: {path}")
    return image

def is_valid_image(image) -> bool:
    """True for a non-empty 3-channel array."""
    return (isinstance(image, np.ndarray) and image.ndim == 3
            and image.shape[2] == 3 and image.size > 0)

def fit_to_surface(image: np.ndarray, surface: Surface) -> np.ndarray:
    """Scale the image to fill the surface exactly."""
    width, height = surface.pixel_size
    h, w = image.shape[:2]
    if (w, h) == (width, height):
        return image.copy()
    interpolation = cv2.INTER_AREA if width < w else cv2.INTER_LINEAR
    return cv2.resize(image, (width, height), interpolation=interpolation)

def hex_to_bgr(color: str) -> Tuple[int, int, int]:
    """Convert ``#rrggbb`` to an OpenCV BGR tuple."""
    value = color.lstrip('#')
    r, g, b = (int(value[i:i + 2], 16) for i in (0, 2, 4))
    return (b, g, r)

def bgr_to_pil(image: np.ndarray) -> Image.Image:
    """Convert a BGR array to an RGB PIL image."""
    return Image.fromarray(image[..., ::-1].copy())
