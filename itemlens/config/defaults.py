"""Default configuration values."""

from typing import Any, Dict

DEFAULT_CONFIG: Dict[str, Any] = {
    # Batch settings
    "item_name": "",
    "reference_length_mm": 10.0,
    "model_mode": "precision",  # precision | fast

    # Canvas settings
    "container_width": 800,
    "show_masks": True,
    "show_boxes": False,

    # Segmentation model settings
    "gemini_api_key": "",
    "gemini_precision_model": "gemini-3-pro-preview",
    "gemini_fast_model": "gemini-3-flash-preview",
    "gemini_timeout": 60,
    "gemini_temperature": 0.2,

    # Paths
    "results_export_dir": "data/results",

    # Debug and Logging Settings
    "debug": False,
    "log_level": "INFO",
    "log_dir": "logs",
    "structured_logging": False,
}

# Inclusive (min, max) ranges; out-of-range values fall back to the default.
NUMERIC_RANGES: Dict[str, tuple] = {
    "container_width": (100, 8192),
    "gemini_timeout": (5, 300),
    "gemini_temperature": (0.0, 2.0),
}
