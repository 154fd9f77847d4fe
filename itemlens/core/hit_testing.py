"""Pointer hit testing against item bounding boxes."""
from __future__ import annotations
from typing import Iterable, Optional

from .entities import ItemInstance, RenderPoint, Surface
from ..utils.geometry import to_normalized


def hit_test(point: RenderPoint, items: Iterable[ItemInstance], surface: Surface) -> Optional[ItemInstance]:
    """Return the first item whose bounding box contains ``point``.

    Items are scanned in stored order and the earliest match wins, so
    overlapping boxes always resolve to the item listed first. Containment
    is inclusive on every edge.
    """
    normalized = to_normalized(point, surface)
    for item in items:
        if item.bounding_box.contains(normalized):
            return item
    return None
