"""Validation of raw segmentation output at the service boundary.

The segmentation model returns loosely-typed JSON. Everything that reaches
the canvas passes through :func:`parse_detection_payload`, which drops
entries that would otherwise poison rendering (missing or invalid bounding
boxes, non-finite coordinates) and normalizes the rest into
``ItemInstance`` values.
"""
from __future__ import annotations
from dataclasses import replace
from typing import Any, Dict, List, Optional, Tuple
import json
import logging

from ..core.entities import (
    AnalysisResult, BoundingBox, ItemInstance, NormalizedPoint, PerformanceInfo, is_finite_number, summarize,
)
from ..core.exceptions import AIServiceError, ValidationError

logger = logging.getLogger(__name__)


def _parse_mask(raw_mask: Any, item_ref: str) -> Tuple[NormalizedPoint, ...]:
    if raw_mask is None:
        return ()
    if not isinstance(raw_mask, list):
        logger.warning(f"Item {item_ref}: mask is not a list, ignoring it")
        return ()
    points = []
    dropped = 0
    for raw_point in raw_mask:
        if isinstance(raw_point, dict):
            x, y = raw_point.get('x'), raw_point.get('y')
        elif isinstance(raw_point, (list, tuple)) and len(raw_point) == 2:
            x, y = raw_point
        else:
            x = y = None
        if is_finite_number(x) and is_finite_number(y):
            points.append(NormalizedPoint(float(x), float(y)))
        else:
            dropped += 1
    if dropped:
        logger.warning(f"Item {item_ref}: dropped {dropped} malformed mask point(s)")
    return tuple(points)


def parse_item(raw: Dict[str, Any], index: int, default_label: str) -> ItemInstance:
    """Convert one raw entry.

    Raises:
        ValidationError: if the entry has no usable bounding box
    """
    if not isinstance(raw, dict):
        raise ValidationError(f"Entry {index} is not an object")

    item_id = raw.get('id')
    item_ref = str(item_id) if item_id not in (None, "") else f"item-{index + 1}"

    if 'boundingBox' not in raw or raw['boundingBox'] is None:
        raise ValidationError(f"Item {item_ref}: missing bounding box")
    bounding_box = BoundingBox.from_sequence(raw['boundingBox'])

    confidence = raw.get('confidence', 0.0)
    if not is_finite_number(confidence):
        logger.warning(f"Item {item_ref}: non-finite confidence {confidence!r}, using 0")
        confidence = 0.0
    confidence = min(1.0, max(0.0, float(confidence)))

    area_px = raw.get('areaPx', 0.0)
    if not is_finite_number(area_px) or area_px < 0:
        logger.warning(f"Item {item_ref}: invalid areaPx {area_px!r}, using 0")
        area_px = 0.0

    label = raw.get('label')
    if not isinstance(label, str) or not label.strip():
        label = default_label

    return ItemInstance(
        id=item_ref,
        bounding_box=bounding_box,
        mask=_parse_mask(raw.get('mask'), item_ref),
        confidence=confidence,
        area_px=float(area_px),
        label=label,
    )


def parse_items(raw_items: Any, default_label: str = "") -> Tuple[ItemInstance, ...]:
    """Parse a list of raw entries, skipping malformed ones."""
    if not isinstance(raw_items, list):
        raise ValidationError("Detection payload 'items' must be a list")

    items: List[ItemInstance] = []
    seen_ids = set()
    for index, raw in enumerate(raw_items):
        try:
            item = parse_item(raw, index, default_label)
        except ValidationError as e:
            logger.warning(f"Skipping malformed detection entry {index}: {e}")
            continue
        if item.id in seen_ids:
            # ids must be unique for hover/selection to be unambiguous
            item = replace(item, id=f"{item.id}-{index + 1}")
        seen_ids.add(item.id)
        items.append(item)

    skipped = len(raw_items) - len(items)
    if skipped:
        logger.info(f"Accepted {len(items)} of {len(raw_items)} detection entries ({skipped} skipped)")
    return tuple(items)


def parse_detection_payload(payload: Any, default_label: str = "",
                            image_width: int = 0, image_height: int = 0,
                            performance: Optional[PerformanceInfo] = None) -> AnalysisResult:
    """Build an ``AnalysisResult`` from raw model output.

    Args:
        payload: JSON text or already-decoded object with an ``items`` list
        default_label: Label for entries that omit one (the batch item name)
        image_width: Source image width in pixels
        image_height: Source image height in pixels
        performance: Request timing/model info

    Raises:
        AIServiceError: if the payload is not JSON or lacks an items list
    """
    if isinstance(payload, (str, bytes)):
        try:
            payload = json.loads(payload)
        except json.JSONDecodeError as e:
            raise AIServiceError(f"Segmentation response is not valid JSON: {e}")

    if not isinstance(payload, dict) or 'items' not in payload:
        raise AIServiceError("Segmentation response has no 'items' list")

    try:
        items = parse_items(payload['items'], default_label)
    except ValidationError as e:
        raise AIServiceError(str(e))

    return AnalysisResult(
        items=items,
        image_width=image_width,
        image_height=image_height,
        performance=performance,
        summary=summarize(items),
    )
