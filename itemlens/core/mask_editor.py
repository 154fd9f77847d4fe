"""Append-only polygon editing for a selected item's mask."""
from __future__ import annotations
from dataclasses import replace

from .entities import ItemInstance, RenderPoint, Surface
from ..utils.geometry import to_normalized


def append_vertex(item: ItemInstance, click_point: RenderPoint, surface: Surface) -> ItemInstance:
    """Return a copy of ``item`` with ``click_point`` added as the last mask vertex.

    Existing vertices keep their order; there is no insertion at an
    arbitrary index.
    """
    if not isinstance(click_point, RenderPoint):
        raise TypeError(f"Mask clicks must be RenderPoint, got {type(click_point).__name__}")
    vertex = to_normalized(click_point, surface)
    return replace(item, mask=tuple(item.mask) + (vertex,))


def clear_mask(item: ItemInstance) -> ItemInstance:
    """Return a copy of ``item`` with an empty mask."""
    return replace(item, mask=())


def replace_item(items, updated: ItemInstance) -> tuple:
    """Swap the item with ``updated.id`` in place of the old one, keeping order."""
    return tuple(updated if item.id == updated.id else item for item in items)
