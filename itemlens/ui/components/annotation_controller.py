"""Interaction logic of the annotation canvas.

``AnnotationController`` is the composition root behind the Tk widget: it
owns the scene state (detection items, calibration record, hover, the
calibration machine), routes pointer events to the hit tester, calibration
machine or mask editor, and re-renders after every change. It has no Tk
dependency so it can be driven directly from tests.

Selection, display toggles and edit mode are inputs: the surrounding UI sets
them, usually in response to the callbacks fired here.
"""
from __future__ import annotations
from dataclasses import replace
from typing import Callable, Optional, Sequence, Tuple
import logging

import numpy as np

from ...core.calibration import apply_physical_metrics, calibration_from_outcome
from ...core.constants import DEFAULT_CONTAINER_WIDTH
from ...core.entities import DisplayFlags, ItemInstance, RenderPoint, Surface, Mask
from ...core.exceptions import CalibrationError, ImageLoadError
from ...core.hit_testing import hit_test
from ...core.mask_editor import append_vertex, clear_mask, replace_item
from ...core.scene import SceneState
from ...services.render_pipeline import RenderPipeline
from ...utils.geometry import surface_for_container
from ...utils.image_utils import is_valid_image, load_image

logger = logging.getLogger(__name__)

ItemClickCallback = Callable[[ItemInstance], None]
CalibrationCallback = Callable[[Tuple[RenderPoint, RenderPoint]], None]
MaskCallback = Callable[[str, Mask], None]
ErrorCallback = Callable[[str], None]
FrameCallback = Callable[[np.ndarray], None]


class AnnotationController:
    """Stateful event router and renderer for one batch image."""

    def __init__(self,
                 on_item_click: Optional[ItemClickCallback] = None,
                 on_calibration_update: Optional[CalibrationCallback] = None,
                 on_mask_update: Optional[MaskCallback] = None,
                 on_error: Optional[ErrorCallback] = None,
                 on_frame: Optional[FrameCallback] = None,
                 pipeline: Optional[RenderPipeline] = None,
                 container_width: float = DEFAULT_CONTAINER_WIDTH):
        self.on_item_click = on_item_click
        self.on_calibration_update = on_calibration_update
        self.on_mask_update = on_mask_update
        self.on_error = on_error
        self.on_frame = on_frame
        self._pipeline = pipeline or RenderPipeline()

        self._scene = SceneState()
        self._image: Optional[np.ndarray] = None
        self._container_width = container_width
        self._surface: Optional[Surface] = None
        self._frame: Optional[np.ndarray] = None

    # ----------------------------------------------------------- read access

    @property
    def scene(self) -> SceneState:
        return self._scene

    @property
    def items(self) -> Tuple[ItemInstance, ...]:
        return self._scene.items

    @property
    def surface(self) -> Optional[Surface]:
        return self._surface

    @property
    def frame(self) -> Optional[np.ndarray]:
        """Last successfully rendered frame."""
        return self._frame

    @property
    def image(self) -> Optional[np.ndarray]:
        return self._image

    @property
    def is_calibrating(self) -> bool:
        return self._scene.is_calibrating

    def selected_item(self) -> Optional[ItemInstance]:
        return self._scene.item(self._scene.selected_item_id)

    # ------------------------------------------------------ external inputs

    def load_image(self, path: str) -> bool:
        """Load the batch image from disk.

        On failure the previous image and frame stay in place and the error
        is passed to ``on_error``.
        """
        try:
            image = load_image(path)
        except ImageLoadError as e:
            logger.error(f"Batch image load failed: {e}")
            self._report(str(e))
            return False
        self.set_image(image)
        return True

    def set_image(self, image: np.ndarray) -> bool:
        if not is_valid_image(image):
            self._report("Batch image is empty or not a colour image")
            return False
        self._image = image
        self._update_surface()
        self.render()
        return True

    def set_container_width(self, width: float) -> None:
        if width <= 0 or width == self._container_width:
            return
        self._container_width = width
        self._update_surface()
        self.render()

    def set_items(self, items: Sequence[ItemInstance]) -> None:
        """Replace the whole detection result.

        When a calibration factor is already known the physical measurements
        are projected onto the new items straight away.
        """
        items = tuple(items)
        ppm = self._scene.calibration.pixels_per_mm
        if ppm is not None:
            items = apply_physical_metrics(items, ppm)
        self._scene = self._scene.with_items(items)
        logger.info(f"Scene loaded with {len(items)} items")
        self.render()

    def set_display(self, show_masks: Optional[bool] = None, show_boxes: Optional[bool] = None) -> None:
        display = self._scene.display
        self._scene = replace(self._scene, display=DisplayFlags(
            show_masks=display.show_masks if show_masks is None else show_masks,
            show_boxes=display.show_boxes if show_boxes is None else show_boxes,
        ))
        self.render()

    def set_selection(self, item_id: Optional[str]) -> None:
        if item_id is not None and self._scene.item(item_id) is None:
            logger.warning(f"Ignoring selection of unknown item {item_id}")
            item_id = None
        self._scene = replace(self._scene, selected_item_id=item_id)
        self.render()

    def set_edit_mode(self, enabled: bool) -> None:
        self._scene = replace(self._scene, edit_mode=bool(enabled))
        self.render()

    def set_reference_length(self, length_mm: float) -> None:
        """Change the reference length; an existing factor is kept until recalibration."""
        self._scene = replace(
            self._scene,
            calibration=replace(self._scene.calibration, reference_length_mm=length_mm),
        )

    # ---------------------------------------------------------- calibration

    def start_calibration(self) -> None:
        """Arm the two-click calibration pass.

        Raises:
            CalibrationError: if the reference length is not a positive finite number
        """
        machine = self._scene.calibration_machine.arm(self._scene.calibration.reference_length_mm)
        self._scene = replace(self._scene, calibration_machine=machine,
                              hovered_item_id=None, calibration_cursor=None)
        self.render()

    def cancel_calibration(self) -> None:
        self._scene = replace(self._scene, calibration_machine=self._scene.calibration_machine.cancel(),
                              calibration_cursor=None)
        self.render()

    # ------------------------------------------------------- pointer events

    def pointer_move(self, point: RenderPoint) -> None:
        if self._surface is None:
            return
        if self._scene.is_calibrating:
            if self._scene.calibration_machine.buffer:
                self._scene = replace(self._scene, calibration_cursor=point)
                self.render()
            return

        found = hit_test(point, self._scene.items, self._surface)
        hovered = found.id if found else None
        if hovered != self._scene.hovered_item_id:
            self._scene = replace(self._scene, hovered_item_id=hovered)
            self.render()

    def pointer_leave(self) -> None:
        if self._scene.hovered_item_id is not None or self._scene.calibration_cursor is not None:
            self._scene = replace(self._scene, hovered_item_id=None, calibration_cursor=None)
            self.render()

    def click(self, point: RenderPoint) -> None:
        if self._surface is None:
            return

        if self._scene.is_calibrating:
            self._calibration_click(point)
            return

        selected = self.selected_item()
        if self._scene.edit_mode and selected is not None:
            self._apply_mask_edit(append_vertex(selected, point, self._surface))
            return

        found = hit_test(point, self._scene.items, self._surface)
        if found is not None and self.on_item_click:
            self.on_item_click(found)

    def clear_selected_mask(self) -> bool:
        selected = self.selected_item()
        if selected is None:
            return False
        self._apply_mask_edit(clear_mask(selected))
        return True

    # ------------------------------------------------------------- internals

    def _calibration_click(self, point: RenderPoint) -> None:
        try:
            machine, outcome = self._scene.calibration_machine.click(point)
        except CalibrationError as e:
            logger.warning(f"Calibration click rejected: {e}")
            self._report(str(e))
            return

        if outcome is None:
            self._scene = replace(self._scene, calibration_machine=machine)
            self.render()
            return

        calibration = calibration_from_outcome(self._scene.calibration, outcome, self._surface)
        self._scene = replace(
            self._scene,
            calibration_machine=machine,
            calibration=calibration,
            calibration_cursor=None,
            items=apply_physical_metrics(self._scene.items, outcome.pixels_per_mm),
        )
        self.render()
        if self.on_calibration_update:
            self.on_calibration_update(outcome.points)

    def _apply_mask_edit(self, updated: ItemInstance) -> None:
        items = replace_item(self._scene.items, updated)
        ppm = self._scene.calibration.pixels_per_mm
        if ppm is not None:
            # Drawing a mask measures the item; clearing it drops the measurements.
            items = replace_item(items, apply_physical_metrics((updated,), ppm)[0])
        self._scene = replace(self._scene, items=items)
        self.render()
        if self.on_mask_update:
            self.on_mask_update(updated.id, updated.mask)

    def _update_surface(self) -> None:
        if self._image is None:
            self._surface = None
            return
        height, width = self._image.shape[:2]
        self._surface = surface_for_container(self._container_width, width, height)

    def _report(self, message: str) -> None:
        if self.on_error:
            self.on_error(message)

    def render(self) -> Optional[np.ndarray]:
        """Redraw the scene; keeps the previous frame when nothing can be drawn."""
        if self._surface is None:
            return None
        frame = self._pipeline.render(self._image, self._scene, self._surface)
        if frame is None:
            return None
        self._frame = frame
        if self.on_frame:
            self.on_frame(frame)
        return frame
