"""Pytest configuration and shared fixtures for ItemLens.

Synthetic images are generated with numpy/OpenCV so no fixture files are
needed on disk.
"""
import sys
import logging
from pathlib import Path
from unittest.mock import Mock

import cv2
import numpy as np
import pytest

# Add the project root to Python path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from itemlens.config.settings import Config
from itemlens.core.entities import BoundingBox, ItemInstance, NormalizedPoint, Surface


# Configure logging for tests
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[logging.StreamHandler()]
)
logging.getLogger('PIL').setLevel(logging.WARNING)


@pytest.fixture(scope="session")
def project_root():
    """Provide project root directory path."""
    return PROJECT_ROOT


@pytest.fixture
def mock_config():
    """Provide a mock configuration object for testing."""
    config = Mock(spec=Config)
    config.gemini_api_key = "test_api_key"
    config.gemini_precision_model = "gemini-test-pro"
    config.gemini_fast_model = "gemini-test-flash"
    config.gemini_timeout = 30
    config.gemini_temperature = 0.2
    config.container_width = 800
    config.reference_length_mm = 10.0
    config.results_export_dir = "test_results"
    return config


@pytest.fixture
def sample_image():
    """A 1000x500 dark-grey BGR image with a bright patch in the left half."""
    image = np.full((500, 1000, 3), 40, dtype=np.uint8)
    cv2.rectangle(image, (100, 100), (300, 300), (200, 200, 200), -1)
    return image


@pytest.fixture
def surface():
    """Drawing surface matching ``sample_image`` at container width 1000."""
    return Surface(1000.0, 500.0)


def make_item(item_id, box, mask=(), confidence=0.9, area_px=100.0, label="washer"):
    """Build an ItemInstance from plain tuples."""
    return ItemInstance(
        id=item_id,
        bounding_box=BoundingBox(*box),
        mask=tuple(NormalizedPoint(x, y) for x, y in mask),
        confidence=confidence,
        area_px=area_px,
        label=label,
    )


@pytest.fixture
def item_factory():
    return make_item


@pytest.fixture
def overlapping_items():
    """Two overlapping items; A comes first in stored order."""
    return (
        make_item("A", (0, 0, 500, 500), mask=[(0, 0), (500, 0), (500, 500), (0, 500)]),
        make_item("B", (100, 100, 600, 600), mask=[(100, 100), (600, 100), (600, 600)]),
    )


@pytest.fixture
def image_file(tmp_path, sample_image):
    """The sample image written to a PNG file."""
    path = tmp_path / "batch.png"
    cv2.imwrite(str(path), sample_image)
    return path


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: mark test as unit test")
    config.addinivalue_line("markers", "service: mark test as service test")
    config.addinivalue_line("markers", "ui: mark test as UI test")
