"""Domain entities (data-only structures) used across services.

Points are tagged by coordinate space through their type: detector output
lives in ``NormalizedPoint`` (0..1000 grid), pointer input and overlay
geometry in ``RenderPoint`` (drawing surface pixels), and source-image
coordinates in ``ImagePoint``. Conversions go through
``itemlens.utils.geometry`` only.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple, Any
import math

from .constants import NORMALIZED_EXTENT
from .exceptions import ValidationError


def is_finite_number(value: Any) -> bool:
    """True for an int or float (not bool) that converts to a finite float.

    JSON integers beyond the float range count as not finite.
    """
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    try:
        return math.isfinite(float(value))
    except OverflowError:
        return False


@dataclass(frozen=True, slots=True)
class NormalizedPoint:
    x: float
    y: float


@dataclass(frozen=True, slots=True)
class RenderPoint:
    x: float
    y: float


@dataclass(frozen=True, slots=True)
class ImagePoint:
    x: float
    y: float


Mask = Tuple[NormalizedPoint, ...]


@dataclass(frozen=True, slots=True)
class Surface:
    """Pixel dimensions of the rendering surface."""
    width: float
    height: float

    def __post_init__(self):
        if not (math.isfinite(self.width) and math.isfinite(self.height)):
            raise ValidationError(f"Surface dimensions must be finite: {self.width}x{self.height}")
        if self.width <= 0 or self.height <= 0:
            raise ValidationError(f"Surface dimensions must be positive: {self.width}x{self.height}")

    @property
    def pixel_size(self) -> Tuple[int, int]:
        """Integer (width, height) used when allocating frames."""
        return max(1, int(round(self.width))), max(1, int(round(self.height)))


@dataclass(frozen=True, slots=True)
class BoundingBox:
    """Axis-aligned box in normalized space, stored as (y_min, x_min, y_max, x_max)."""
    y_min: float
    x_min: float
    y_max: float
    x_max: float

    def __post_init__(self):
        values = (self.y_min, self.x_min, self.y_max, self.x_max)
        if not all(is_finite_number(v) for v in values):
            raise ValidationError(f"Bounding box has non-finite coordinates: {values}")
        if not (0 <= self.y_min <= self.y_max <= NORMALIZED_EXTENT):
            raise ValidationError(f"Bounding box y-range out of bounds: {values}")
        if not (0 <= self.x_min <= self.x_max <= NORMALIZED_EXTENT):
            raise ValidationError(f"Bounding box x-range out of bounds: {values}")

    @classmethod
    def from_sequence(cls, values) -> 'BoundingBox':
        """Build from the detector's ``[ymin, xmin, ymax, xmax]`` list."""
        try:
            y_min, x_min, y_max, x_max = values
        except (TypeError, ValueError):
            raise ValidationError(f"Bounding box must have four coordinates: {values!r}")
        return cls(y_min, x_min, y_max, x_max)

    @property
    def width(self) -> float:
        return self.x_max - self.x_min

    @property
    def height(self) -> float:
        return self.y_max - self.y_min

    def contains(self, point: NormalizedPoint) -> bool:
        """Inclusive containment test."""
        return (self.x_min <= point.x <= self.x_max
                and self.y_min <= point.y <= self.y_max)

    def center(self) -> NormalizedPoint:
        return NormalizedPoint((self.x_min + self.x_max) / 2.0, (self.y_min + self.y_max) / 2.0)

    def as_list(self) -> list:
        return [self.y_min, self.x_min, self.y_max, self.x_max]


@dataclass(frozen=True, slots=True)
class ItemInstance:
    """One detected object."""
    id: str
    bounding_box: BoundingBox
    mask: Mask = ()
    confidence: float = 0.0
    area_px: float = 0.0
    label: str = ""
    width_mm: Optional[float] = None
    height_mm: Optional[float] = None

    @property
    def has_mask(self) -> bool:
        return len(self.mask) > 0


@dataclass(frozen=True, slots=True)
class CalibrationData:
    """Session-wide calibration record.

    ``pixels_per_mm`` is the render-space distance between the captured
    points divided by ``reference_length_mm`` at capture time. Editing the
    reference length afterwards leaves it stale until calibration re-runs.
    ``capture_surface`` remembers the surface the points were clicked on so
    the overlay line can be re-projected when the viewport changes.
    """
    reference_length_mm: float = 10.0
    pixels_per_mm: Optional[float] = None
    start_point: Optional[RenderPoint] = None
    end_point: Optional[RenderPoint] = None
    capture_surface: Optional[Surface] = None

    @property
    def is_calibrated(self) -> bool:
        return self.pixels_per_mm is not None

    @property
    def has_line(self) -> bool:
        return self.start_point is not None and self.end_point is not None


@dataclass(frozen=True, slots=True)
class DisplayFlags:
    show_masks: bool = True
    show_boxes: bool = False


class ModelMode(Enum):
    """Segmentation model presets."""
    PRECISION = "precision"
    FAST = "fast"


class AppState(Enum):
    """Workflow stage of the operator session."""
    SETUP = "SETUP"
    IDLE = "IDLE"
    PROCESSING = "PROCESSING"
    REVIEW = "REVIEW"
    CALIBRATING = "CALIBRATING"


@dataclass(slots=True)
class ItemMetadata:
    """Batch description supplied by the operator."""
    name: str = ""
    sample_image: Any = None  # numpy ndarray (BGR) or None


@dataclass(frozen=True, slots=True)
class PerformanceInfo:
    latency_ms: int
    model_name: str
    estimated_model_size_mb: float


@dataclass(frozen=True, slots=True)
class AnalysisSummary:
    total_count: int
    average_confidence: float
    total_area_px: float


@dataclass(frozen=True, slots=True)
class AnalysisResult:
    items: Tuple[ItemInstance, ...]
    image_width: int = 0
    image_height: int = 0
    performance: Optional[PerformanceInfo] = None
    summary: AnalysisSummary = field(default_factory=lambda: AnalysisSummary(0, 0.0, 0.0))

    def find(self, item_id: Optional[str]) -> Optional[ItemInstance]:
        if item_id is None:
            return None
        for item in self.items:
            if item.id == item_id:
                return item
        return None

    def index_of(self, item_id: Optional[str]) -> int:
        """Position of the item in result order, -1 if absent."""
        for index, item in enumerate(self.items):
            if item.id == item_id:
                return index
        return -1


def summarize(items) -> AnalysisSummary:
    """Aggregate count, mean confidence and total area."""
    items = tuple(items)
    total = len(items)
    return AnalysisSummary(
        total_count=total,
        average_confidence=sum(i.confidence for i in items) / (total or 1),
        total_area_px=sum(i.area_px for i in items),
    )
