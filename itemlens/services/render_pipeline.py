"""Scene rendering for the annotation canvas.

The pipeline is a pure function of (image, scene state, surface): every call
starts from the source image and redraws masks, boxes, badges and the
calibration overlay from scratch. Frames are BGR numpy arrays drawn with
OpenCV primitives; translucent layers are composited with
``cv2.addWeighted`` on a copy of the frame.

Draw order (later layers occlude earlier ones):
    1. source image scaled to fill the surface
    2. per item, unless calibrating: masks, vertex handles, boxes, badge
    3. stored calibration line, unless calibrating
    4. calibration dim overlay with buffered points, while calibrating
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple
import logging
import math

import cv2
import numpy as np

from ..core.constants import HOVER_LIFT_SCALE, MIN_FILLED_POLYGON_VERTICES
from ..core.entities import ItemInstance, NormalizedPoint, RenderPoint, Surface
from ..core.scene import SceneState
from ..utils.geometry import centroid, reproject, scale_about, to_render_space
from ..utils.image_utils import fit_to_surface, hex_to_bgr, is_valid_image

logger = logging.getLogger(__name__)

Color = Tuple[int, int, int]


@dataclass(frozen=True)
class ScenePalette:
    """Colours (BGR) and opacities used by the pipeline."""
    selected_fill: Color = hex_to_bgr('#3b82f6')
    selected_fill_alpha: float = 0.7
    selected_outer_stroke: Color = hex_to_bgr('#ffffff')
    selected_stroke: Color = hex_to_bgr('#2563eb')
    hovered_fill: Color = hex_to_bgr('#10b981')
    hovered_fill_alpha: float = 0.5
    hovered_stroke: Color = hex_to_bgr('#059669')
    default_fill: Color = hex_to_bgr('#10b981')
    default_fill_alpha: float = 0.3
    default_stroke: Color = hex_to_bgr('#10b981')
    handle_fill: Color = hex_to_bgr('#ffffff')
    handle_stroke: Color = hex_to_bgr('#2563eb')
    box_stroke: Color = hex_to_bgr('#ffffff')
    box_stroke_alpha: float = 0.6
    selected_box_stroke: Color = hex_to_bgr('#3b82f6')
    selected_badge: Color = hex_to_bgr('#2563eb')
    hovered_badge: Color = hex_to_bgr('#059669')
    badge_text: Color = hex_to_bgr('#ffffff')
    calibration_line: Color = hex_to_bgr('#f59e0b')
    calibration_cap_fill: Color = hex_to_bgr('#ffffff')
    dim: Color = (0, 0, 0)
    dim_alpha: float = 0.5


DEFAULT_PALETTE = ScenePalette()


def _pt(point: RenderPoint) -> Tuple[int, int]:
    return int(round(point.x)), int(round(point.y))


def _poly(points: Sequence[RenderPoint]) -> np.ndarray:
    return np.array([_pt(p) for p in points], dtype=np.int32).reshape((-1, 1, 2))


def _blend(frame: np.ndarray, alpha: float, draw: Callable[[np.ndarray], None]) -> None:
    """Run ``draw`` on a copy of the frame and composite it back at ``alpha``."""
    overlay = frame.copy()
    draw(overlay)
    cv2.addWeighted(overlay, alpha, frame, 1.0 - alpha, 0, dst=frame)


def draw_dashed_line(frame: np.ndarray, start: RenderPoint, end: RenderPoint, color: Color,
                     thickness: int, dash: int, gap: int) -> None:
    """OpenCV has no dash pattern, so walk the segment in dash+gap steps."""
    length = math.hypot(end.x - start.x, end.y - start.y)
    if length == 0:
        return
    ux, uy = (end.x - start.x) / length, (end.y - start.y) / length
    position = 0.0
    while position < length:
        seg_end = min(position + dash, length)
        a = RenderPoint(start.x + ux * position, start.y + uy * position)
        b = RenderPoint(start.x + ux * seg_end, start.y + uy * seg_end)
        cv2.line(frame, _pt(a), _pt(b), color, thickness, cv2.LINE_AA)
        position += dash + gap


def draw_dashed_polygon(frame: np.ndarray, corners: Sequence[RenderPoint], color: Color,
                        thickness: int, dash: int, gap: int) -> None:
    for i, corner in enumerate(corners):
        draw_dashed_line(frame, corner, corners[(i + 1) % len(corners)], color, thickness, dash, gap)


def draw_ringed_circle(frame: np.ndarray, center: RenderPoint, radius: int, fill: Color,
                       stroke: Color, thickness: int = 2) -> None:
    cv2.circle(frame, _pt(center), radius, fill, -1, cv2.LINE_AA)
    cv2.circle(frame, _pt(center), radius, stroke, thickness, cv2.LINE_AA)


class RenderPipeline:
    """Stateless scene renderer."""

    def __init__(self, palette: ScenePalette = DEFAULT_PALETTE):
        self.palette = palette
        self.font = cv2.FONT_HERSHEY_SIMPLEX

    def render(self, image: Optional[np.ndarray], scene: SceneState, surface: Surface) -> Optional[np.ndarray]:
        """Draw a full frame.

        Args:
            image: Source image (BGR). ``None`` or an empty array means the
                image failed to load.
            scene: Current scene state
            surface: Rendering surface dimensions

        Returns:
            The rendered BGR frame, or None when there is no valid image to
            draw on. Callers keep their previous frame in that case.
        """
        if not is_valid_image(image):
            logger.warning("Render skipped: no valid source image")
            return None

        frame = fit_to_surface(image, surface)

        if not scene.is_calibrating:
            for index, item in enumerate(scene.items):
                self._draw_item(frame, item, index, scene, surface)
            if scene.calibration.has_line:
                self._draw_calibration_line(frame, scene, surface)
        else:
            self._draw_calibration_overlay(frame, scene)

        return frame

    # ------------------------------------------------------------------ items

    def _draw_item(self, frame: np.ndarray, item: ItemInstance, index: int,
                   scene: SceneState, surface: Surface) -> None:
        is_hovered = scene.hovered_item_id == item.id
        is_selected = scene.selected_item_id == item.id

        mask = [to_render_space(p, surface) for p in item.mask]
        anchor = centroid(mask) if mask else to_render_space(item.bounding_box.center(), surface)
        box = item.bounding_box
        corners = [
            to_render_space(NormalizedPoint(box.x_min, box.y_min), surface),
            to_render_space(NormalizedPoint(box.x_max, box.y_min), surface),
            to_render_space(NormalizedPoint(box.x_max, box.y_max), surface),
            to_render_space(NormalizedPoint(box.x_min, box.y_max), surface),
        ]

        if is_hovered:
            mask = scale_about(mask, anchor, HOVER_LIFT_SCALE)
            corners = scale_about(corners, anchor, HOVER_LIFT_SCALE)

        if scene.display.show_masks and mask:
            self._draw_mask(frame, mask, is_selected, is_hovered)

        if scene.edit_mode and is_selected:
            for vertex in mask:
                draw_ringed_circle(frame, vertex, 5, self.palette.handle_fill, self.palette.handle_stroke, 1)

        if scene.display.show_boxes:
            self._draw_box(frame, corners, is_selected)

        if is_hovered or is_selected:
            self._draw_badge(frame, f"#{index + 1}", anchor, is_selected)

    def _draw_mask(self, frame: np.ndarray, mask: List[RenderPoint], is_selected: bool,
                   is_hovered: bool) -> None:
        p = self.palette
        poly = _poly(mask)
        closed = len(mask) >= MIN_FILLED_POLYGON_VERTICES

        if is_selected:
            fill, alpha, stroke = p.selected_fill, p.selected_fill_alpha, p.selected_stroke
            cv2.polylines(frame, [poly], closed, p.selected_outer_stroke, 4, cv2.LINE_AA)
        elif is_hovered:
            fill, alpha, stroke = p.hovered_fill, p.hovered_fill_alpha, p.hovered_stroke
        else:
            fill, alpha, stroke = p.default_fill, p.default_fill_alpha, p.default_stroke

        # Fewer than three vertices cannot enclose an area; stroke only.
        if closed:
            _blend(frame, alpha, lambda layer: cv2.fillPoly(layer, [poly], fill, cv2.LINE_AA))
        if len(mask) >= 2:
            cv2.polylines(frame, [poly], closed, stroke, 2, cv2.LINE_AA)

    def _draw_box(self, frame: np.ndarray, corners: List[RenderPoint], is_selected: bool) -> None:
        p = self.palette
        if is_selected:
            cv2.polylines(frame, [_poly(corners)], True, p.selected_box_stroke, 3, cv2.LINE_AA)
        else:
            _blend(frame, p.box_stroke_alpha,
                   lambda layer: draw_dashed_polygon(layer, corners, p.box_stroke, 2, 5, 5))

    def _draw_badge(self, frame: np.ndarray, text: str, center: RenderPoint, is_selected: bool) -> None:
        p = self.palette
        font_scale = 0.6 if is_selected else 0.5
        thickness = 2
        (text_w, text_h), baseline = cv2.getTextSize(text, self.font, font_scale, thickness)
        padding = 6
        half_h = 10 + padding
        top_left = (int(center.x - text_w / 2 - padding), int(center.y - half_h))
        bottom_right = (int(center.x + text_w / 2 + padding), int(center.y + half_h))
        cv2.rectangle(frame, top_left, bottom_right,
                      p.selected_badge if is_selected else p.hovered_badge, -1)
        origin = (int(center.x - text_w / 2), int(center.y + text_h / 2))
        cv2.putText(frame, text, origin, self.font, font_scale, p.badge_text, thickness, cv2.LINE_AA)

    # ------------------------------------------------------------ calibration

    def _draw_calibration_line(self, frame: np.ndarray, scene: SceneState, surface: Surface) -> None:
        calibration = scene.calibration
        start, end = calibration.start_point, calibration.end_point
        if calibration.capture_surface is not None:
            start = reproject(start, calibration.capture_surface, surface)
            end = reproject(end, calibration.capture_surface, surface)

        p = self.palette
        draw_dashed_line(frame, start, end, p.calibration_line, 3, 8, 4)
        for cap in (start, end):
            draw_ringed_circle(frame, cap, 6, p.calibration_cap_fill, p.calibration_line)

    def _draw_calibration_overlay(self, frame: np.ndarray, scene: SceneState) -> None:
        p = self.palette
        _blend(frame, p.dim_alpha,
               lambda layer: cv2.rectangle(layer, (0, 0), (layer.shape[1], layer.shape[0]), p.dim, -1))

        points = list(scene.calibration_machine.buffer)
        if not points:
            return
        if scene.calibration_cursor is not None:
            points.append(scene.calibration_cursor)
        if len(points) >= 2:
            cv2.line(frame, _pt(points[0]), _pt(points[1]), p.calibration_line, 4, cv2.LINE_AA)
        for point in scene.calibration_machine.buffer:
            draw_ringed_circle(frame, point, 8, p.calibration_cap_fill, p.calibration_line)


_default_pipeline = RenderPipeline()


def render_scene(image: Optional[np.ndarray], scene: SceneState, surface: Surface) -> Optional[np.ndarray]:
    """Render with the default palette."""
    return _default_pipeline.render(image, scene, surface)
