"""Application services."""

from .detection_parser import parse_detection_payload, parse_items
from .export_service import export_csv
from .render_pipeline import RenderPipeline, render_scene
from .segmentation_service import SegmentationService

__all__ = [
    "parse_detection_payload", "parse_items", "export_csv",
    "RenderPipeline", "render_scene", "SegmentationService"
]
