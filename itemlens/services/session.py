"""Application workflow state for one batch.

``AnnotationSession`` sits between the window and the canvas controller. It
tracks where the user is in the workflow (setup, idle, analysing, reviewing,
calibrating), the batch item metadata and the latest analysis result. Item
geometry and calibration live in the controller's scene; the session reads
them back rather than keeping its own copy.
"""
from __future__ import annotations
from dataclasses import replace
from typing import Callable, Optional, Tuple
import logging

import numpy as np

from ..core.entities import (
    AnalysisResult, AppState, ItemInstance, ItemMetadata, Mask, ModelMode, RenderPoint, summarize,
)
from ..core.exceptions import CalibrationError, ValidationError
from ..utils.image_utils import load_image
from ..ui.components.annotation_controller import AnnotationController

logger = logging.getLogger(__name__)


class AnnotationSession:
    """Single owner of the batch result, wired to an ``AnnotationController``."""

    def __init__(self, controller: Optional[AnnotationController] = None,
                 reference_length_mm: float = 10.0,
                 model_mode: ModelMode = ModelMode.PRECISION):
        self.controller = controller or AnnotationController()
        self.metadata = ItemMetadata()
        self.model_mode = model_mode
        self.state = AppState.SETUP
        self.last_error: Optional[str] = None
        self._result: Optional[AnalysisResult] = None

        # Notified whenever anything the detail panel shows has changed
        self.on_change: Optional[Callable[[], None]] = None

        self.controller.on_item_click = self._handle_item_click
        self.controller.on_calibration_update = self._handle_calibration_update
        self.controller.on_mask_update = self._handle_mask_update
        self.controller.set_reference_length(reference_length_mm)

    # --------------------------------------------------------------- setup

    @property
    def reference_length_mm(self) -> float:
        return self.controller.scene.calibration.reference_length_mm

    @property
    def pixels_per_mm(self) -> Optional[float]:
        return self.controller.scene.calibration.pixels_per_mm

    def set_item_name(self, name: str) -> None:
        self.metadata.name = name.strip()

    def set_reference_length(self, length_mm: float) -> None:
        self.controller.set_reference_length(length_mm)

    def load_sample_image(self, path: str) -> None:
        """Load the single-item reference image sent ahead of the batch image."""
        self.metadata.sample_image = load_image(path)
        logger.info(f"Sample image loaded from {path}")

    def start_workspace(self) -> None:
        """Leave the setup screen.

        Raises:
            ValidationError: if no batch item name has been entered
        """
        if not self.metadata.name:
            raise ValidationError("Enter the name of the items in the batch first")
        self.state = AppState.IDLE
        self._notify()

    def load_batch_image(self, path: str) -> bool:
        """Load a new batch image; any previous result is discarded."""
        if not self.controller.load_image(path):
            return False
        self._result = None
        self.controller.set_items(())
        self.controller.set_selection(None)
        if self.state is not AppState.SETUP:
            self.state = AppState.IDLE
        self._notify()
        return True

    # ------------------------------------------------------------ analysis

    @property
    def has_image(self) -> bool:
        return self.controller.image is not None

    @property
    def batch_image(self) -> Optional[np.ndarray]:
        return self.controller.image

    def begin_analysis(self) -> None:
        if not self.has_image:
            raise ValidationError("Load a batch image before analysing")
        if self.state is AppState.PROCESSING:
            raise ValidationError("An analysis is already running")
        self.controller.cancel_calibration()
        self.last_error = None
        self.state = AppState.PROCESSING
        self._notify()

    def complete_analysis(self, result: AnalysisResult) -> None:
        self._result = result
        self.controller.set_selection(None)
        self.controller.set_items(result.items)
        self.state = AppState.REVIEW
        logger.info(f"Analysis complete: {len(result.items)} items")
        self._notify()

    def fail_analysis(self, message: str) -> None:
        self.last_error = message
        self.state = AppState.IDLE
        logger.error(f"Analysis failed: {message}")
        self._notify()

    @property
    def result(self) -> Optional[AnalysisResult]:
        """Latest result with the canvas' current item geometry and measurements."""
        if self._result is None:
            return None
        items = self.controller.items
        return replace(self._result, items=items, summary=summarize(items))

    # --------------------------------------------------------- calibration

    def start_calibration(self) -> None:
        """Raises CalibrationError if the reference length is invalid."""
        if not self.has_image:
            raise CalibrationError("Load a batch image before calibrating")
        self.controller.start_calibration()
        self.state = AppState.CALIBRATING
        self._notify()

    def cancel_calibration(self) -> None:
        self.controller.cancel_calibration()
        self._leave_calibration()

    def _leave_calibration(self) -> None:
        if self.state is AppState.CALIBRATING:
            self.state = AppState.REVIEW if self._result is not None else AppState.IDLE
        self._notify()

    # ----------------------------------------------------------- selection

    def select(self, item_id: Optional[str]) -> None:
        self.controller.set_selection(item_id)
        self._notify()

    def selected_item(self) -> Optional[ItemInstance]:
        return self.controller.selected_item()

    def selected_item_index(self) -> int:
        """Zero-based position of the selected item, -1 when nothing is selected."""
        selected_id = self.controller.scene.selected_item_id
        for index, item in enumerate(self.controller.items):
            if item.id == selected_id:
                return index
        return -1

    def set_edit_mode(self, enabled: bool) -> None:
        self.controller.set_edit_mode(enabled)
        self._notify()

    @property
    def edit_mode(self) -> bool:
        return self.controller.scene.edit_mode

    def clear_selected_mask(self) -> bool:
        return self.controller.clear_selected_mask()

    # ------------------------------------------------------ canvas events

    def _handle_item_click(self, item: ItemInstance) -> None:
        self.select(item.id)

    def _handle_calibration_update(self, points: Tuple[RenderPoint, RenderPoint]) -> None:
        start, end = points
        logger.info(
            f"Calibrated at {self.pixels_per_mm} px/mm from "
            f"({start.x:.1f}, {start.y:.1f}) to ({end.x:.1f}, {end.y:.1f})"
        )
        self._leave_calibration()

    def _handle_mask_update(self, item_id: str, mask: Mask) -> None:
        logger.debug(f"Mask of {item_id} now has {len(mask)} points")
        self._notify()

    def _notify(self) -> None:
        if self.on_change:
            self.on_change()
