"""Two-click reference-length calibration.

The protocol is modelled as an immutable value machine::

    INACTIVE --arm--> ARMED --click--> AWAITING_SECOND_POINT --click--> RESOLVED
        ^                |                        |                        |
        +-----cancel-----+----------cancel--------+        (one-shot) -----+

Every transition returns a new ``CalibrationMachine``; ``RESOLVED`` is only
ever observed on the outcome, the machine handed back after the second click
is already ``INACTIVE`` again.
"""
from __future__ import annotations
from dataclasses import dataclass, replace
from enum import Enum
from typing import Iterable, Optional, Tuple
import logging

from .constants import MEASUREMENT_DECIMALS, PIXELS_PER_NORMALIZED_UNIT
from .entities import CalibrationData, ItemInstance, RenderPoint, Surface, is_finite_number
from .exceptions import CalibrationError
from ..utils.geometry import euclidean_distance

logger = logging.getLogger(__name__)


class CalibrationPhase(Enum):
    INACTIVE = "inactive"
    ARMED = "armed"
    AWAITING_SECOND_POINT = "awaiting_second_point"
    RESOLVED = "resolved"


@dataclass(frozen=True, slots=True)
class CalibrationOutcome:
    """Result of a completed calibration pass."""
    pixels_per_mm: float
    start_point: RenderPoint
    end_point: RenderPoint
    distance_px: float
    phase: CalibrationPhase = CalibrationPhase.RESOLVED

    @property
    def points(self) -> Tuple[RenderPoint, RenderPoint]:
        return (self.start_point, self.end_point)


def is_valid_reference_length(value) -> bool:
    """True for a positive, finite number."""
    return is_finite_number(value) and value > 0


@dataclass(frozen=True, slots=True)
class CalibrationMachine:
    phase: CalibrationPhase = CalibrationPhase.INACTIVE
    reference_length_mm: Optional[float] = None
    buffer: Tuple[RenderPoint, ...] = ()

    @property
    def is_active(self) -> bool:
        return self.phase in (CalibrationPhase.ARMED, CalibrationPhase.AWAITING_SECOND_POINT)

    def arm(self, reference_length_mm: float) -> 'CalibrationMachine':
        """Enter calibration with an empty click buffer.

        Raises:
            CalibrationError: if the reference length is not a positive finite number
        """
        if not is_valid_reference_length(reference_length_mm):
            raise CalibrationError(
                f"Reference length must be a positive finite number, got {reference_length_mm!r}"
            )
        logger.info(f"Calibration armed for reference length {reference_length_mm} mm")
        return CalibrationMachine(CalibrationPhase.ARMED, float(reference_length_mm), ())

    def click(self, point: RenderPoint) -> Tuple['CalibrationMachine', Optional[CalibrationOutcome]]:
        """Feed a render-space click into the protocol.

        Returns:
            Tuple of (next machine, outcome). The outcome is set only when
            the second point completes the pass.
        """
        if not isinstance(point, RenderPoint):
            raise TypeError(f"Calibration clicks must be RenderPoint, got {type(point).__name__}")

        if self.phase is CalibrationPhase.ARMED:
            return replace(self, phase=CalibrationPhase.AWAITING_SECOND_POINT, buffer=(point,)), None

        if self.phase is CalibrationPhase.AWAITING_SECOND_POINT:
            start = self.buffer[0]
            distance = euclidean_distance(start, point)
            if distance <= 0:
                # Machine stays AWAITING_SECOND_POINT; the caller keeps the old value.
                raise CalibrationError("Calibration points coincide; pick a second, distinct point")
            outcome = CalibrationOutcome(
                pixels_per_mm=distance / self.reference_length_mm,
                start_point=start,
                end_point=point,
                distance_px=distance,
            )
            logger.info(
                f"Calibration resolved: {distance:.2f}px over {self.reference_length_mm} mm "
                f"= {outcome.pixels_per_mm:.4f} px/mm"
            )
            return CalibrationMachine(), outcome

        raise CalibrationError(f"Calibration click received while {self.phase.value}")

    def cancel(self) -> 'CalibrationMachine':
        """Abandon the pass, discarding any buffered point."""
        if self.is_active:
            logger.info(f"Calibration cancelled from {self.phase.value}")
        return CalibrationMachine()


def calibration_from_outcome(current: CalibrationData, outcome: CalibrationOutcome,
                             surface: Optional[Surface] = None) -> CalibrationData:
    """Publish a finished pass into the session calibration record."""
    return replace(
        current,
        pixels_per_mm=outcome.pixels_per_mm,
        start_point=outcome.start_point,
        end_point=outcome.end_point,
        capture_surface=surface,
    )


def measure_item(item: ItemInstance, pixels_per_mm: float) -> ItemInstance:
    """Project bounding-box size into millimetres."""
    box = item.bounding_box
    width_px = box.width * PIXELS_PER_NORMALIZED_UNIT
    height_px = box.height * PIXELS_PER_NORMALIZED_UNIT
    return replace(
        item,
        width_mm=round(width_px / pixels_per_mm, MEASUREMENT_DECIMALS),
        height_mm=round(height_px / pixels_per_mm, MEASUREMENT_DECIMALS),
    )


def apply_physical_metrics(items: Iterable[ItemInstance], pixels_per_mm: float) -> Tuple[ItemInstance, ...]:
    """Recompute width/height in mm for every item that has a mask.

    The projection only reads the bounding box, so applying the same factor
    twice gives the same measurements. Items without a mask carry no
    measurements: any left over from an earlier factor are dropped.
    """
    if not is_valid_reference_length(pixels_per_mm):
        raise CalibrationError(f"pixels_per_mm must be positive and finite, got {pixels_per_mm!r}")
    return tuple(measure_item(item, pixels_per_mm) if item.has_mask else _unmeasured(item) for item in items)


def _unmeasured(item: ItemInstance) -> ItemInstance:
    if item.width_mm is None and item.height_mm is None:
        return item
    return replace(item, width_mm=None, height_mm=None)
