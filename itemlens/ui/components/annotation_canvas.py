"""Annotation canvas widget.

Thin Tk shell around ``AnnotationController``: converts widget events to
render-space points and shows the frames the controller renders. The
drawing surface is anchored at the top-left corner and is as wide as the
widget, so canvas coordinates are render-space coordinates.
"""

import tkinter as tk
from PIL import Image, ImageTk
import numpy as np
import cv2
from typing import Optional
import logging

from ...core.entities import RenderPoint
from .annotation_controller import AnnotationController

logger = logging.getLogger(__name__)


class AnnotationCanvas(tk.Canvas):
    """Interactive canvas for reviewing and correcting segmented items."""

    def __init__(self, master, controller: Optional[AnnotationController] = None, **kwargs):
        """Initialize annotation canvas.

        Args:
            master: Parent widget
            controller: Controller holding the scene; one is created if omitted
            **kwargs: Additional canvas configuration
        """
        kwargs.setdefault('highlightthickness', 0)
        kwargs.setdefault('background', '#0f172a')
        super().__init__(master, **kwargs)

        self.controller = controller or AnnotationController()
        self.controller.on_frame = self.display_frame

        self._current_image: Optional[ImageTk.PhotoImage] = None
        self._image_id: Optional[int] = None

        self.bind('<Motion>', self._on_motion)
        self.bind('<Leave>', self._on_leave)
        self.bind('<Button-1>', self._on_click)
        self.bind('<Configure>', self._on_resize)

    def display_frame(self, frame: np.ndarray):
        """Show a rendered BGR frame at the top-left corner of the canvas."""
        if frame is None or frame.size == 0:
            return

        image_rgb = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
        photo = ImageTk.PhotoImage(image=Image.fromarray(image_rgb))

        if self._image_id is None:
            self._image_id = self.create_image(0, 0, anchor=tk.NW, image=photo)
        else:
            self.itemconfig(self._image_id, image=photo)

        # Keep reference to prevent garbage collection
        self._current_image = photo

        height, width = frame.shape[:2]
        self.configure(scrollregion=(0, 0, width, height))
        self.configure(cursor='crosshair' if self._wants_crosshair() else '')

    def _wants_crosshair(self) -> bool:
        scene = self.controller.scene
        return scene.is_calibrating or (scene.edit_mode and scene.selected_item_id is not None)

    def _event_point(self, event) -> RenderPoint:
        return RenderPoint(float(self.canvasx(event.x)), float(self.canvasy(event.y)))

    def _on_motion(self, event):
        self.controller.pointer_move(self._event_point(event))

    def _on_leave(self, event):
        self.controller.pointer_leave()

    def _on_click(self, event):
        self.controller.click(self._event_point(event))

    def _on_resize(self, event):
        if event.width > 1:
            self.controller.set_container_width(event.width)
