"""Gemini-backed instance segmentation.

The model is asked for structured JSON (bounding boxes and polygon masks on
a 0-1000 grid). Everything it returns goes through
``detection_parser.parse_detection_payload`` before the canvas sees it.
"""

import logging
import time
from typing import Optional, Dict, Any
import numpy as np
from google import genai
from google.genai import types

from ..core.entities import AnalysisResult, ItemMetadata, ModelMode, PerformanceInfo
from ..core.exceptions import AIServiceError
from ..core.logging_config import CorrelationContext
from ..utils.image_utils import bgr_to_pil, is_valid_image
from .detection_parser import parse_detection_payload

logger = logging.getLogger(__name__)

# Display name and nominal footprint reported for each preset
MODE_PROFILES: Dict[ModelMode, Dict[str, Any]] = {
    ModelMode.PRECISION: {"display_name": "Standard (FP32)", "size_mb": 450.0},
    ModelMode.FAST: {"display_name": "Quantized (INT8)", "size_mb": 28.4},
}


def _response_schema() -> types.Schema:
    point = types.Schema(
        type=types.Type.OBJECT,
        properties={
            "x": types.Schema(type=types.Type.NUMBER),
            "y": types.Schema(type=types.Type.NUMBER),
        },
    )
    item = types.Schema(
        type=types.Type.OBJECT,
        properties={
            "id": types.Schema(type=types.Type.STRING),
            "boundingBox": types.Schema(type=types.Type.ARRAY, items=types.Schema(type=types.Type.NUMBER)),
            "mask": types.Schema(type=types.Type.ARRAY, items=point),
            "confidence": types.Schema(type=types.Type.NUMBER),
            "areaPx": types.Schema(type=types.Type.NUMBER),
            "label": types.Schema(type=types.Type.STRING),
        },
        required=["id", "boundingBox", "mask", "confidence", "areaPx"],
    )
    return types.Schema(
        type=types.Type.OBJECT,
        properties={"items": types.Schema(type=types.Type.ARRAY, items=item)},
        required=["items"],
    )


class SegmentationService:
    """Client for the external segmentation model.

    Usage::

        service = SegmentationService(api_key, models={...})
        result = service.analyze_items(batch_image, ItemMetadata(name="Washers"))
    """

    def __init__(self, api_key: str, models: Optional[Dict[ModelMode, str]] = None,
                 temperature: float = 0.2, timeout: int = 60):
        """Initialize segmentation service.

        Args:
            api_key: Google AI API key
            models: Gemini model id per ``ModelMode``
            temperature: Sampling temperature
            timeout: Request timeout in seconds
        """
        self.api_key = api_key
        self.models = models or {
            ModelMode.PRECISION: "gemini-3-pro-preview",
            ModelMode.FAST: "gemini-3-flash-preview",
        }
        self.temperature = temperature
        self.timeout = timeout
        self._client = None
        self._initialized = False
        self._last_error: Optional[str] = None
        self._connection_status: str = "not_configured"  # not_configured, ready, error

    def initialize(self) -> bool:
        """Create the google-genai client.

        Returns:
            True if initialized successfully, False otherwise
        """
        self._last_error = None
        if not self.api_key or not self.api_key.strip():
            self._last_error = "API key is empty"
            self._connection_status = "not_configured"
            logger.error(self._last_error)
            return False

        try:
            self._client = genai.Client(
                api_key=self.api_key,
                http_options=types.HttpOptions(timeout=self.timeout * 1000),
            )
        except Exception as e:
            self._last_error = str(e)
            self._connection_status = "error"
            logger.error(f"Error initializing segmentation client: {e}")
            return False

        self._initialized = True
        self._connection_status = "ready"
        logger.info("Segmentation service initialized")
        return True

    def is_initialized(self) -> bool:
        return self._initialized

    def get_connection_status(self) -> Dict[str, Any]:
        return {
            'status': self._connection_status,
            'initialized': self.is_initialized(),
            'last_error': self._last_error,
            'has_api_key': bool(self.api_key and self.api_key.strip()),
        }

    def _system_instruction(self, item_name: str, mode: ModelMode) -> str:
        detail = ("Simplify masks to 8-10 points." if mode is ModelMode.FAST
                  else "Use detailed masks of 15 or more points.")
        return (
            f'Segment every individual "{item_name}" in the batch image. {detail}\n'
            "For each item give a bounding box [ymin, xmin, ymax, xmax] and a polygon "
            "mask, both normalized to 0-1000, a confidence between 0 and 1, and an "
            "estimated pixel area. Return JSON only."
        )

    def _build_contents(self, image: np.ndarray, metadata: ItemMetadata, item_name: str) -> list:
        contents = []
        if is_valid_image(metadata.sample_image):
            contents.append(f'For reference, here is what a single "{item_name}" looks like:')
            contents.append(bgr_to_pil(metadata.sample_image))
        contents.append(bgr_to_pil(image))
        contents.append(f"Detect and segment all {item_name} in this batch image.")
        return contents

    def analyze_items(self, image: np.ndarray, metadata: ItemMetadata,
                      mode: ModelMode = ModelMode.PRECISION) -> AnalysisResult:
        """Segment every item instance in a batch image.

        Args:
            image: Batch image (BGR)
            metadata: Item name and optional single-item sample image
            mode: Precision or fast preset

        Returns:
            Validated analysis result

        Raises:
            AIServiceError: if the service is not configured, the request
                fails or the response cannot be parsed
        """
        if not is_valid_image(image):
            raise AIServiceError("No batch image to analyze")
        if not self.is_initialized() and not self.initialize():
            raise AIServiceError(f"Segmentation service unavailable: {self._last_error}")

        item_name = metadata.name.strip() or "items"
        model = self.models[mode]
        height, width = image.shape[:2]

        with CorrelationContext() as run_id:
            logger.info(f"Segmentation run {run_id}: model={model}, item='{item_name}', image={width}x{height}")
            start = time.monotonic()
            try:
                response = self._client.models.generate_content(
                    model=model,
                    contents=self._build_contents(image, metadata, item_name),
                    config=types.GenerateContentConfig(
                        system_instruction=self._system_instruction(item_name, mode),
                        temperature=self.temperature,
                        response_mime_type="application/json",
                        response_schema=_response_schema(),
                    ),
                )
            except Exception as e:
                self._last_error = str(e)
                self._connection_status = "error"
                logger.error(f"Segmentation request failed: {e}", exc_info=True)
                raise AIServiceError(f"Segmentation request failed: {e}") from e

            latency_ms = int((time.monotonic() - start) * 1000)

            if response is None or not response.text:
                raise AIServiceError("Segmentation model returned an empty response")

            profile = MODE_PROFILES[mode]
            result = parse_detection_payload(
                response.text,
                default_label=item_name,
                image_width=width,
                image_height=height,
                performance=PerformanceInfo(latency_ms, profile["display_name"], profile["size_mb"]),
            )
            logger.info(
                f"Segmentation run {run_id}: {result.summary.total_count} items in {latency_ms} ms "
                f"(mean confidence {result.summary.average_confidence:.2f})"
            )
            return result
