"""Core domain entities and constants."""

from .entities import (
    NormalizedPoint, RenderPoint, ImagePoint, Surface, BoundingBox, ItemInstance,
    CalibrationData, DisplayFlags, AnalysisResult, ItemMetadata, ModelMode, AppState
)
from .exceptions import ApplicationError, ValidationError, CalibrationError, ImageLoadError
from .constants import APP_NAME, VERSION, SUPPORTED_IMAGE_FORMATS

__all__ = [
    "NormalizedPoint", "RenderPoint", "ImagePoint", "Surface", "BoundingBox", "ItemInstance",
    "CalibrationData", "DisplayFlags", "AnalysisResult", "ItemMetadata", "ModelMode", "AppState",
    "ApplicationError", "ValidationError", "CalibrationError", "ImageLoadError",
    "APP_NAME", "VERSION", "SUPPORTED_IMAGE_FORMATS"
]
