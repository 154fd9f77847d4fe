"""Immutable per-frame scene state handed to the render pipeline."""
from __future__ import annotations
from dataclasses import dataclass, field, replace
from typing import Optional, Tuple

from .calibration import CalibrationMachine
from .entities import CalibrationData, DisplayFlags, ItemInstance, RenderPoint


@dataclass(frozen=True, slots=True)
class SceneState:
    items: Tuple[ItemInstance, ...] = ()
    calibration: CalibrationData = field(default_factory=CalibrationData)
    display: DisplayFlags = field(default_factory=DisplayFlags)
    hovered_item_id: Optional[str] = None
    selected_item_id: Optional[str] = None
    edit_mode: bool = False
    calibration_machine: CalibrationMachine = field(default_factory=CalibrationMachine)
    # Live pointer position while a calibration pass awaits its second point.
    calibration_cursor: Optional[RenderPoint] = None

    @property
    def is_calibrating(self) -> bool:
        return self.calibration_machine.is_active

    def item(self, item_id: Optional[str]) -> Optional[ItemInstance]:
        for candidate in self.items:
            if candidate.id == item_id:
                return candidate
        return None

    def with_items(self, items) -> 'SceneState':
        """Replace the item set; hover/selection pointing at missing ids are dropped."""
        items = tuple(items)
        ids = {i.id for i in items}
        return replace(
            self,
            items=items,
            hovered_item_id=self.hovered_item_id if self.hovered_item_id in ids else None,
            selected_item_id=self.selected_item_id if self.selected_item_id in ids else None,
        )
