"""UI components package."""

from .annotation_controller import AnnotationController

__all__ = [
    'AnnotationController'
]
