"""Unit tests for coordinate transforms and polygon helpers."""
import math

import pytest

from itemlens.core.entities import ImagePoint, NormalizedPoint, RenderPoint, Surface
from itemlens.core.exceptions import ValidationError
from itemlens.utils.geometry import (
    centroid, euclidean_distance, image_to_normalized, normalized_to_image, reproject,
    scale_about, surface_for_container, to_normalized, to_render_space,
)


class TestRenderSpaceTransform:
    """Normalized <-> render space."""

    @pytest.mark.parametrize("point", [
        NormalizedPoint(0, 0),
        NormalizedPoint(1000, 1000),
        NormalizedPoint(123.4, 876.5),
        NormalizedPoint(-50, 1200),
    ])
    def test_round_trip(self, point):
        """Converting there and back returns the original point."""
        surface = Surface(733.0, 411.0)
        back = to_normalized(to_render_space(point, surface), surface)
        assert back.x == pytest.approx(point.x, abs=1e-9)
        assert back.y == pytest.approx(point.y, abs=1e-9)

    def test_scales_each_axis_independently(self):
        surface = Surface(800.0, 400.0)
        assert to_render_space(NormalizedPoint(500, 500), surface) == RenderPoint(400.0, 200.0)

    def test_out_of_range_points_are_not_clamped(self):
        surface = Surface(100.0, 100.0)
        assert to_render_space(NormalizedPoint(1500, -100), surface) == RenderPoint(150.0, -10.0)


class TestImageSpaceTransform:
    def test_normalized_to_image(self):
        assert normalized_to_image(NormalizedPoint(250, 500), 2000, 1000) == ImagePoint(500.0, 500.0)

    def test_image_round_trip(self):
        point = ImagePoint(321.0, 77.0)
        back = normalized_to_image(image_to_normalized(point, 640, 480), 640, 480)
        assert back.x == pytest.approx(point.x)
        assert back.y == pytest.approx(point.y)


class TestSurfaceSizing:
    def test_width_follows_container_height_keeps_aspect(self):
        surface = surface_for_container(800, 1600, 1200)
        assert surface.width == 800
        assert surface.height == pytest.approx(600)

    def test_upscales_small_images(self):
        surface = surface_for_container(1000, 100, 50)
        assert surface.height == pytest.approx(500)

    @pytest.mark.parametrize("args", [(0, 100, 100), (800, 0, 100), (800, 100, -1)])
    def test_rejects_non_positive_dimensions(self, args):
        with pytest.raises(ValidationError):
            surface_for_container(*args)

    def test_surface_validation(self):
        with pytest.raises(ValidationError):
            Surface(0, 100)
        with pytest.raises(ValidationError):
            Surface(100, math.nan)


class TestReproject:
    def test_point_tracks_resized_surface(self):
        old = Surface(400.0, 300.0)
        new = Surface(800.0, 600.0)
        assert reproject(RenderPoint(100, 150), old, new) == RenderPoint(200.0, 300.0)


class TestPolygonHelpers:
    def test_distance(self):
        assert euclidean_distance(RenderPoint(0, 0), RenderPoint(30, 40)) == 50

    def test_distance_refuses_mixed_spaces(self):
        with pytest.raises(TypeError):
            euclidean_distance(RenderPoint(0, 0), NormalizedPoint(3, 4))

    def test_centroid(self):
        points = [RenderPoint(0, 0), RenderPoint(10, 0), RenderPoint(10, 10), RenderPoint(0, 10)]
        assert centroid(points) == RenderPoint(5.0, 5.0)

    def test_centroid_of_empty_polygon(self):
        assert centroid([]) is None

    def test_scale_about_origin(self):
        scaled = scale_about([RenderPoint(20, 10)], RenderPoint(10, 10), 1.05)
        assert scaled[0].x == pytest.approx(20.5)
        assert scaled[0].y == pytest.approx(10)
