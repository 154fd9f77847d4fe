"""Unit tests for core entities."""
import math
from dataclasses import FrozenInstanceError

import pytest

from itemlens.core.entities import (
    AnalysisResult, BoundingBox, CalibrationData, NormalizedPoint, RenderPoint, summarize,
)
from itemlens.core.exceptions import ValidationError


class TestBoundingBox:
    """Test suite for BoundingBox."""

    def test_valid_box(self):
        box = BoundingBox(10, 20, 30, 60)
        assert box.width == 40
        assert box.height == 20
        assert box.as_list() == [10, 20, 30, 60]

    def test_from_sequence(self):
        assert BoundingBox.from_sequence([0, 0, 500, 1000]) == BoundingBox(0, 0, 500, 1000)

    @pytest.mark.parametrize("values", [
        [0, 0, 500],
        [500, 0, 100, 100],
        [0, 600, 100, 500],
        [0, 0, 100, 1001],
        [-1, 0, 100, 100],
        [0, 0, math.nan, 100],
        [0, 0, "x", 100],
        None,
    ])
    def test_invalid_boxes(self, values):
        with pytest.raises(ValidationError):
            BoundingBox.from_sequence(values)

    def test_zero_area_box_is_allowed(self):
        box = BoundingBox(100, 100, 100, 100)
        assert box.contains(NormalizedPoint(100, 100))

    def test_center(self):
        assert BoundingBox(0, 0, 500, 1000).center() == NormalizedPoint(500.0, 250.0)

    def test_immutability(self):
        box = BoundingBox(0, 0, 1, 1)
        with pytest.raises(FrozenInstanceError):
            box.x_min = 5


class TestPoints:
    def test_point_types_are_distinct(self):
        assert NormalizedPoint(1, 2) != RenderPoint(1, 2)


class TestCalibrationData:
    def test_defaults(self):
        data = CalibrationData()
        assert data.reference_length_mm == 10.0
        assert not data.is_calibrated
        assert not data.has_line

    def test_has_line(self):
        data = CalibrationData(pixels_per_mm=2.0, start_point=RenderPoint(0, 0), end_point=RenderPoint(1, 1))
        assert data.is_calibrated
        assert data.has_line


class TestAnalysisResult:
    def test_find_and_index(self, overlapping_items):
        result = AnalysisResult(items=overlapping_items)
        assert result.find("B") is overlapping_items[1]
        assert result.index_of("B") == 1
        assert result.find("zzz") is None
        assert result.index_of("zzz") == -1

    def test_summarize(self, item_factory):
        items = [item_factory("a", (0, 0, 1, 1), confidence=0.8, area_px=10),
                 item_factory("b", (0, 0, 1, 1), confidence=0.6, area_px=30)]
        summary = summarize(items)
        assert summary.total_count == 2
        assert summary.average_confidence == pytest.approx(0.7)
        assert summary.total_area_px == 40

    def test_summarize_empty(self):
        summary = summarize([])
        assert summary.total_count == 0
        assert summary.average_confidence == 0
