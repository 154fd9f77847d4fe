"""
ItemLens: count, segment and measure items in a batch image.
"""

__version__ = "1.0.0"

from .config.settings import Config, load_config, save_config
from .core.entities import ItemInstance, BoundingBox, AnalysisResult, CalibrationData

__all__ = [
    "Config", "load_config", "save_config",
    "ItemInstance", "BoundingBox", "AnalysisResult", "CalibrationData"
]
