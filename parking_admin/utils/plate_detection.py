import logging
from typing import Optional
import httpx
from parking_admin.config import Config
from parking_admin.schemas.parking_schemas import PlateDetectionResult, PlateReading

logger = logging.getLogger(__name__)


class PlateDetectionError(Exception):
    pass


def _first(data: dict, *keys, default=None):
    for key in keys:
        value = data.get(key)
        if value:
            return value
    return default


def _reading(data: dict, default_confidence: float = 0) -> PlateReading:
    return PlateReading(
        number=str(_first(data, "number", "text", "plate_number", default="N/A")),
        confidence=_first(data, "confidence", "score", default=default_confidence),
        bbox=_first(data, "bbox", "bounding_box"),
        region=data.get("region"),
    )


def process_plate_detection_result(raw: dict) -> PlateDetectionResult:
    """Normalize the response shapes the plate detection API produces.

    Handles a ``plates`` list, a single top-level plate, a ``detections``
    list and the ``detected`` flag form. The primary plate is the reading
    with the highest confidence.
    """
    plates = []

    if isinstance(raw.get("plates"), list):
        plates = [_reading(plate) for plate in raw["plates"]]
    elif _first(raw, "plate_number", "text", "number"):
        plates = [_reading(raw)]
    elif isinstance(raw.get("detections"), list):
        plates = [_reading(detection) for detection in raw["detections"]]
    elif raw.get("detected") is not None:
        if raw["detected"]:
            plates = [_reading(raw, default_confidence=0.8)]

    primary_plate = None
    for plate in plates:
        if primary_plate is None or plate.confidence > primary_plate.confidence:
            primary_plate = plate

    return PlateDetectionResult(
        success=raw.get("success", True),
        detected=len(plates) > 0,
        plates=plates,
        primary_plate=primary_plate,
        annotated_image_url=_first(raw, "annotated_image_url", "result_image"),
    )


class PlateDetectionClient:
    def __init__(self, url: str = None, timeout: float = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.url = url or Config.PLATE_DETECTION_API_URL
        self.timeout = timeout or Config.PLATE_DETECTION_TIMEOUT
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self.transport)

    async def detect_plate(self, image: bytes) -> PlateDetectionResult:
        if not image:
            raise PlateDetectionError("No image data supplied")

        try:
            async with self._client() as client:
                response = await client.post(
                    self.url,
                    files={"image": ("plate_image.jpg", image, "image/jpeg")},
                )
            response.raise_for_status()
            raw = response.json()
        except httpx.HTTPError as e:
            logger.error(f"License plate detection request failed: {e}")
            raise PlateDetectionError(f"License plate detection failed: {e}") from e
        except ValueError as e:
            logger.error(f"License plate detection returned invalid JSON: {e}")
            raise PlateDetectionError(f"License plate detection failed: {e}") from e

        if not isinstance(raw, dict):
            raise PlateDetectionError(f"Unexpected plate detection response: {raw!r}")

        result = process_plate_detection_result(raw)
        logger.info(f"Plate detection: detected={result.detected} plates={len(result.plates)}")
        return result

    async def get_api_status(self) -> dict:
        try:
            async with self._client() as client:
                response = await client.get(self.url)
            return {"accessible": True, "status": response.status_code, "url": self.url}
        except httpx.HTTPError as e:
            logger.error(f"Plate detection API connection test failed: {e}")
            return {"accessible": False, "error": str(e), "url": self.url}
