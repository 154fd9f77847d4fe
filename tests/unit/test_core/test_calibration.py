"""Unit tests for the two-click calibration machine and physical metrics."""
import math
from dataclasses import FrozenInstanceError, replace

import pytest

from itemlens.core.calibration import (
    CalibrationMachine, CalibrationPhase, apply_physical_metrics, calibration_from_outcome,
    is_valid_reference_length, measure_item,
)
from itemlens.core.entities import CalibrationData, RenderPoint, Surface
from itemlens.core.exceptions import CalibrationError


class TestCalibrationMachine:
    """Test suite for CalibrationMachine transitions."""

    def test_starts_inactive(self):
        machine = CalibrationMachine()
        assert machine.phase is CalibrationPhase.INACTIVE
        assert not machine.is_active

    def test_full_pass_computes_pixels_per_mm(self):
        """10 mm reference across a 3-4-5 triangle gives 5 px/mm."""
        machine = CalibrationMachine().arm(10.0)
        assert machine.phase is CalibrationPhase.ARMED

        machine, outcome = machine.click(RenderPoint(0, 0))
        assert outcome is None
        assert machine.phase is CalibrationPhase.AWAITING_SECOND_POINT
        assert machine.buffer == (RenderPoint(0, 0),)

        machine, outcome = machine.click(RenderPoint(30, 40))
        assert outcome.pixels_per_mm == pytest.approx(5.0)
        assert outcome.distance_px == pytest.approx(50.0)
        assert outcome.phase is CalibrationPhase.RESOLVED
        assert outcome.points == (RenderPoint(0, 0), RenderPoint(30, 40))

    def test_resolution_is_one_shot(self):
        """After the second click the machine is inactive again."""
        machine = CalibrationMachine().arm(10.0)
        machine, _ = machine.click(RenderPoint(0, 0))
        machine, _ = machine.click(RenderPoint(30, 40))
        assert machine.phase is CalibrationPhase.INACTIVE
        assert machine.buffer == ()
        with pytest.raises(CalibrationError):
            machine.click(RenderPoint(1, 1))

    @pytest.mark.parametrize("length", [0, -5, math.nan, math.inf, None, "10", True])
    def test_arm_rejects_invalid_reference_length(self, length):
        machine = CalibrationMachine()
        with pytest.raises(CalibrationError):
            machine.arm(length)
        assert machine.phase is CalibrationPhase.INACTIVE

    def test_cancel_from_armed(self):
        assert CalibrationMachine().arm(5).cancel().phase is CalibrationPhase.INACTIVE

    def test_cancel_discards_buffered_point(self):
        machine, _ = CalibrationMachine().arm(5).click(RenderPoint(3, 3))
        cancelled = machine.cancel()
        assert cancelled.phase is CalibrationPhase.INACTIVE
        assert cancelled.buffer == ()

    def test_click_while_inactive_is_rejected(self):
        with pytest.raises(CalibrationError):
            CalibrationMachine().click(RenderPoint(0, 0))

    def test_coincident_points_keep_waiting(self):
        machine, _ = CalibrationMachine().arm(10).click(RenderPoint(7, 7))
        with pytest.raises(CalibrationError):
            machine.click(RenderPoint(7, 7))
        assert machine.phase is CalibrationPhase.AWAITING_SECOND_POINT

    def test_click_requires_render_point(self):
        from itemlens.core.entities import NormalizedPoint
        with pytest.raises(TypeError):
            CalibrationMachine().arm(10).click(NormalizedPoint(0, 0))

    def test_machine_is_immutable(self):
        machine = CalibrationMachine()
        with pytest.raises(FrozenInstanceError):
            machine.phase = CalibrationPhase.ARMED


class TestReferenceLengthValidation:
    @pytest.mark.parametrize("value,expected", [
        (10, True), (0.5, True), (0, False), (-1, False), (math.nan, False), (False, False),
        (10 ** 400, False),
    ])
    def test_is_valid_reference_length(self, value, expected):
        assert is_valid_reference_length(value) is expected


class TestCalibrationRecord:
    def test_outcome_is_published_with_capture_surface(self):
        _, outcome = CalibrationMachine().arm(10).click(RenderPoint(0, 0))[0].click(RenderPoint(30, 40))
        surface = Surface(800.0, 600.0)
        data = calibration_from_outcome(CalibrationData(reference_length_mm=10.0), outcome, surface)
        assert data.pixels_per_mm == pytest.approx(5.0)
        assert data.start_point == RenderPoint(0, 0)
        assert data.end_point == RenderPoint(30, 40)
        assert data.capture_surface == surface
        assert data.reference_length_mm == 10.0
        assert data.is_calibrated


class TestPhysicalMetrics:
    """Bounding-box size projected into millimetres."""

    def test_measure_item(self, item_factory):
        item = item_factory("a", (0, 0, 100, 200), mask=[(0, 0), (200, 0), (200, 100)])
        measured = measure_item(item, 5.0)
        # 200 units * 5 px / 5 px/mm = 200 mm wide, 100 mm tall
        assert measured.width_mm == 200.0
        assert measured.height_mm == 100.0

    def test_rounds_to_two_decimals(self, item_factory):
        item = item_factory("a", (0, 0, 10, 10), mask=[(0, 0), (10, 0), (10, 10)])
        measured = measure_item(item, 3.0)
        assert measured.width_mm == 16.67

    def test_application_is_idempotent(self, overlapping_items):
        once = apply_physical_metrics(overlapping_items, 2.5)
        twice = apply_physical_metrics(once, 2.5)
        assert once == twice

    def test_items_without_mask_stay_unmeasured(self, item_factory):
        bare = item_factory("bare", (0, 0, 500, 1000))
        result = apply_physical_metrics([bare], 5.0)
        assert result[0] is bare
        assert result[0].width_mm is None

    def test_stale_measurements_dropped_when_mask_is_gone(self, item_factory):
        stale = replace(item_factory("a", (0, 0, 100, 100)), width_mm=100.0, height_mm=100.0)
        result = apply_physical_metrics([stale], 10.0)
        assert result[0].width_mm is None
        assert result[0].height_mm is None
        assert result[0].bounding_box == stale.bounding_box

    def test_preserves_order(self, overlapping_items):
        result = apply_physical_metrics(overlapping_items, 1.0)
        assert [i.id for i in result] == ["A", "B"]

    @pytest.mark.parametrize("ppm", [0, -1, math.nan])
    def test_rejects_invalid_factor(self, overlapping_items, ppm):
        with pytest.raises(CalibrationError):
            apply_physical_metrics(overlapping_items, ppm)
