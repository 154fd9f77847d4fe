"""Application-wide constants."""

APP_NAME = "ItemLens"
VERSION = "1.0.0"

# Detector output is normalized to a fixed 0..1000 grid on both axes.
NORMALIZED_EXTENT = 1000.0

# Image-pixel estimate per normalized unit used for physical measurements.
PIXELS_PER_NORMALIZED_UNIT = 5.0

# Decimal places kept on derived millimetre measurements.
MEASUREMENT_DECIMALS = 2

HOVER_LIFT_SCALE = 1.05
MIN_FILLED_POLYGON_VERTICES = 3

DEFAULT_CONTAINER_WIDTH = 800

SUPPORTED_IMAGE_FORMATS = (".jpg", ".jpeg", ".png", ".bmp", ".tif", ".tiff", ".webp")
