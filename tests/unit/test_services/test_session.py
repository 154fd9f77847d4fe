"""Unit tests for AnnotationSession workflow state."""
from unittest.mock import Mock

import pytest

from itemlens.core.entities import AnalysisResult, AppState, ModelMode, RenderPoint, summarize
from itemlens.core.exceptions import CalibrationError, ImageLoadError, ValidationError
from itemlens.services.session import AnnotationSession
from itemlens.ui.components.annotation_controller import AnnotationController


@pytest.fixture
def session():
    s = AnnotationSession(AnnotationController(container_width=1000), reference_length_mm=10.0)
    s.on_change = Mock()
    return s


@pytest.fixture
def ready_session(session, image_file):
    session.set_item_name("  Washer ")
    session.start_workspace()
    assert session.load_batch_image(str(image_file))
    return session


@pytest.fixture
def analysis(overlapping_items):
    return AnalysisResult(items=overlapping_items, image_width=1000, image_height=500,
                          summary=summarize(overlapping_items))


class TestWorkflow:
    """Test suite for AppState transitions."""

    def test_initial_state(self, session):
        assert session.state is AppState.SETUP
        assert session.model_mode is ModelMode.PRECISION
        assert session.reference_length_mm == 10.0
        assert session.result is None

    def test_workspace_requires_item_name(self, session):
        with pytest.raises(ValidationError):
            session.start_workspace()
        assert session.state is AppState.SETUP

    def test_start_workspace(self, ready_session):
        assert ready_session.metadata.name == "Washer"
        assert ready_session.state is AppState.IDLE
        assert ready_session.has_image

    def test_analysis_requires_image(self, session):
        session.set_item_name("Washer")
        session.start_workspace()
        with pytest.raises(ValidationError):
            session.begin_analysis()

    def test_analysis_round(self, ready_session, analysis):
        ready_session.begin_analysis()
        assert ready_session.state is AppState.PROCESSING
        with pytest.raises(ValidationError):
            ready_session.begin_analysis()

        ready_session.complete_analysis(analysis)
        assert ready_session.state is AppState.REVIEW
        assert [i.id for i in ready_session.controller.items] == ["A", "B"]
        assert ready_session.result.summary.total_count == 2

    def test_failed_analysis(self, ready_session):
        ready_session.begin_analysis()
        ready_session.fail_analysis("quota exceeded")
        assert ready_session.state is AppState.IDLE
        assert ready_session.last_error == "quota exceeded"

    def test_new_batch_discards_result(self, ready_session, analysis, image_file):
        ready_session.complete_analysis(analysis)
        ready_session.load_batch_image(str(image_file))
        assert ready_session.result is None
        assert ready_session.controller.items == ()
        assert ready_session.state is AppState.IDLE

    def test_sample_image(self, session, image_file, tmp_path):
        session.load_sample_image(str(image_file))
        assert session.metadata.sample_image.shape == (500, 1000, 3)
        with pytest.raises(ImageLoadError):
            session.load_sample_image(str(tmp_path / "missing.jpg"))

    def test_listener_notified(self, ready_session, analysis):
        ready_session.on_change.reset_mock()
        ready_session.complete_analysis(analysis)
        ready_session.on_change.assert_called()


class TestSelection:
    def test_canvas_click_selects_item(self, ready_session, analysis):
        ready_session.complete_analysis(analysis)
        ready_session.controller.click(RenderPoint(550, 275))
        assert ready_session.selected_item().id == "B"
        assert ready_session.selected_item_index() == 1

    def test_no_selection(self, ready_session):
        assert ready_session.selected_item() is None
        assert ready_session.selected_item_index() == -1

    def test_result_reflects_mask_edits(self, ready_session, analysis):
        ready_session.complete_analysis(analysis)
        ready_session.select("A")
        ready_session.clear_selected_mask()
        assert ready_session.result.find("A").mask == ()


class TestCalibrationWorkflow:
    def test_calibration_returns_to_review(self, ready_session, analysis):
        ready_session.complete_analysis(analysis)
        ready_session.start_calibration()
        assert ready_session.state is AppState.CALIBRATING

        ready_session.controller.click(RenderPoint(0, 0))
        ready_session.controller.click(RenderPoint(30, 40))
        assert ready_session.state is AppState.REVIEW
        assert ready_session.pixels_per_mm == pytest.approx(5.0)
        assert ready_session.result.find("A").width_mm == 500.0

    def test_cancel_without_result_returns_to_idle(self, ready_session):
        ready_session.start_calibration()
        ready_session.cancel_calibration()
        assert ready_session.state is AppState.IDLE

    def test_calibration_requires_image(self, session):
        with pytest.raises(CalibrationError):
            session.start_calibration()

    def test_invalid_reference_length(self, ready_session):
        ready_session.set_reference_length(0)
        with pytest.raises(CalibrationError):
            ready_session.start_calibration()
        assert ready_session.state is AppState.IDLE
