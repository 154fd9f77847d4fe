"""Unit tests for boundary validation of raw segmentation output."""
import json
import math

import pytest

from itemlens.core.entities import NormalizedPoint, PerformanceInfo
from itemlens.core.exceptions import AIServiceError, ValidationError
from itemlens.services.detection_parser import parse_detection_payload, parse_item, parse_items


def raw_item(**overrides):
    item = {
        "id": "w1",
        "boundingBox": [100, 200, 300, 400],
        "mask": [{"x": 200, "y": 100}, {"x": 400, "y": 100}, {"x": 400, "y": 300}],
        "confidence": 0.92,
        "areaPx": 1500.0,
        "label": "washer",
    }
    item.update(overrides)
    return item


class TestParseItem:
    """Test suite for single-entry parsing."""

    def test_valid_entry(self):
        item = parse_item(raw_item(), 0, "bolt")
        assert item.id == "w1"
        assert item.bounding_box.as_list() == [100, 200, 300, 400]
        assert item.mask[0] == NormalizedPoint(200.0, 100.0)
        assert item.confidence == pytest.approx(0.92)
        assert item.label == "washer"
        assert item.width_mm is None

    def test_missing_label_defaults_to_item_name(self):
        entry = raw_item()
        del entry["label"]
        assert parse_item(entry, 0, "bolt").label == "bolt"

    def test_missing_id_is_generated(self):
        entry = raw_item()
        del entry["id"]
        assert parse_item(entry, 4, "bolt").id == "item-5"

    def test_list_style_mask_points(self):
        item = parse_item(raw_item(mask=[[1, 2], [3, 4]]), 0, "")
        assert item.mask == (NormalizedPoint(1, 2), NormalizedPoint(3, 4))

    def test_non_finite_mask_points_dropped(self):
        item = parse_item(raw_item(mask=[{"x": 1, "y": 2}, {"x": math.nan, "y": 2}, {"x": 5}]), 0, "")
        assert item.mask == (NormalizedPoint(1, 2),)

    def test_confidence_clamped(self):
        assert parse_item(raw_item(confidence=1.7), 0, "").confidence == 1.0
        assert parse_item(raw_item(confidence=math.inf), 0, "").confidence == 0.0

    def test_invalid_area_zeroed(self):
        assert parse_item(raw_item(areaPx=-3), 0, "").area_px == 0.0
        assert parse_item(raw_item(areaPx=10 ** 400), 0, "").area_px == 0.0

    def test_oversized_integers_are_not_finite(self):
        item = parse_item(raw_item(mask=[{"x": 10 ** 400, "y": 2}, {"x": 1, "y": 2}], confidence=10 ** 400), 0, "")
        assert item.mask == (NormalizedPoint(1, 2),)
        assert item.confidence == 0.0

    @pytest.mark.parametrize("box", [
        None, [1, 2, 3], [0, 0, math.nan, 10], [500, 0, 100, 100], [0, 0, 10 ** 400, 10],
    ])
    def test_bad_bounding_box_rejected(self, box):
        with pytest.raises(ValidationError):
            parse_item(raw_item(boundingBox=box), 0, "")

    def test_non_object_rejected(self):
        with pytest.raises(ValidationError):
            parse_item(["not", "a", "dict"], 0, "")


class TestParseItems:
    def test_malformed_entries_are_skipped(self):
        items = parse_items([raw_item(id="a"), raw_item(id="b", boundingBox=None), raw_item(id="c")], "")
        assert [i.id for i in items] == ["a", "c"]

    def test_oversized_coordinate_skips_only_that_entry(self):
        huge = int("9" * 400)
        payload = json.dumps({"items": [raw_item(id="x", boundingBox=[0, 0, huge, 10]), raw_item(id="ok")]})
        result = parse_detection_payload(payload, "washer")
        assert [i.id for i in result.items] == ["ok"]

    def test_duplicate_ids_are_made_unique(self):
        items = parse_items([raw_item(id="x"), raw_item(id="x")], "")
        assert items[0].id == "x"
        assert items[1].id == "x-2"

    def test_requires_list(self):
        with pytest.raises(ValidationError):
            parse_items({"id": "x"}, "")


class TestParseDetectionPayload:
    def test_json_text(self):
        payload = json.dumps({"items": [raw_item(id="a"), raw_item(id="b", confidence=0.5)]})
        perf = PerformanceInfo(120, "Standard (FP32)", 450.0)
        result = parse_detection_payload(payload, "washer", 640, 480, perf)
        assert result.summary.total_count == 2
        assert result.summary.average_confidence == pytest.approx(0.71)
        assert result.image_width == 640
        assert result.performance is perf

    def test_decoded_dict(self):
        result = parse_detection_payload({"items": []})
        assert result.items == ()

    @pytest.mark.parametrize("payload", ["not json", "[1, 2]", '{"objects": []}', '{"items": 5}'])
    def test_unusable_payload(self, payload):
        with pytest.raises(AIServiceError):
            parse_detection_payload(payload)
