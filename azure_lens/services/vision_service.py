import base64
import binascii
import io
import logging
from typing import Any, Dict, List, Optional

import requests
from PIL import Image, UnidentifiedImageError

from azure_lens.core import config

logger = logging.getLogger(__name__)


class VisionApiError(Exception):
    """Azure AI Vision answered with a non-2xx status"""

    def __init__(self, status_code: int, message: str, data: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.data = data


class AzureVisionClient:
    """Azure AI Vision Image Analysis 4.0 client using direct REST calls"""

    def __init__(
        self,
        endpoint: str,
        api_key: str,
        api_version: str = config.VISION_API_VERSION,
        timeout: int = config.VISION_TIMEOUT,
        session: Optional[requests.Session] = None,
    ):
        self.endpoint = endpoint.rstrip("/")
        self.api_key = api_key
        self.api_version = api_version
        self.timeout = timeout
        self.session = session or requests.Session()

    @property
    def analyze_url(self) -> str:
        return f"{self.endpoint}/computervision/imageanalysis:analyze"

    def analyze(
        self, image_bytes: bytes, features: List[str], language: str = "en"
    ) -> Dict[str, Any]:
        """Run image analysis on raw image bytes and return the service's JSON"""
        params = {
            "api-version": self.api_version,
            "features": ",".join(features),
            "language": language,
        }
        headers = {
            "Ocp-Apim-Subscription-Key": self.api_key,
            "Content-Type": "application/octet-stream",
        }

        logger.info(
            "Making v4.0 API request: features=%s, bufferSize=%d",
            params["features"],
            len(image_bytes),
        )

        response = self.session.post(
            self.analyze_url,
            params=params,
            headers=headers,
            data=image_bytes,
            timeout=self.timeout,
        )

        if response.status_code != 200:
            try:
                data = response.json()
            except ValueError:
                data = response.text
            message = None
            if isinstance(data, dict):
                message = (data.get("error") or {}).get("message")
            logger.error(
                "Azure API error response: status=%s data=%s",
                response.status_code,
                data,
            )
            raise VisionApiError(
                response.status_code,
                message or f"Vision API call failed: {response.status_code}",
                data,
            )

        result = response.json()
        logger.info("Vision API v4.0 result keys: %s", list(result.keys()))
        return result


def decode_base64_image(data: str) -> bytes:
    """Decode a base64 image, accepting an optional data: URL prefix"""
    if data.startswith("data:") and "," in data:
        data = data.split(",", 1)[1]
    try:
        return base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValueError(f"Failed to decode base64 image data: {e}") from e


def sniff_mime_type(image_bytes: bytes) -> Optional[str]:
    """Detect the MIME type of image bytes, None when Pillow cannot read them"""
    try:
        with Image.open(io.BytesIO(image_bytes)) as image:
            return Image.MIME.get(image.format)
    except (UnidentifiedImageError, OSError):
        return None


def _read_lines(result: Dict[str, Any]) -> List[Dict[str, Any]]:
    blocks = (result.get("readResult") or {}).get("blocks") or []
    return [line for block in blocks for line in block.get("lines") or []]


def extract_read_text(result: Dict[str, Any]) -> str:
    """Join every OCR line of a v4.0 result with newlines"""
    return "\n".join(line.get("text", "") for line in _read_lines(result))


def format_analysis(result: Dict[str, Any]) -> Dict[str, Any]:
    """Reshape a v4.0 analysis result into the client-facing analysis schema"""
    caption = result.get("captionResult") or {}

    def values(key: str) -> List[Dict[str, Any]]:
        return (result.get(key) or {}).get("values") or []

    objects = []
    for obj in values("objectsResult"):
        tags = obj.get("tags") or []
        first_tag = tags[0] if tags else {}
        objects.append(
            {
                "name": first_tag.get("name") or obj.get("name"),
                "confidence": first_tag.get("confidence") or obj.get("confidence"),
                "boundingBox": obj.get("boundingBox"),
            }
        )

    return {
        "caption": caption.get("text") or None,
        "confidence": caption.get("confidence") or None,
        "denseCaptions": [
            {
                "text": cap.get("text"),
                "confidence": cap.get("confidence"),
                "boundingBox": cap.get("boundingBox"),
            }
            for cap in values("denseCaptionsResult")
        ],
        "objects": objects,
        "people": [
            {
                "confidence": person.get("confidence"),
                "boundingBox": person.get("boundingBox"),
            }
            for person in values("peopleResult")
        ],
        "tags": [
            {"name": tag.get("name"), "confidence": tag.get("confidence")}
            for tag in values("tagsResult")
        ],
        "smartCrops": [
            {
                "aspectRatio": crop.get("aspectRatio"),
                "boundingBox": crop.get("boundingBox"),
            }
            for crop in values("smartCropsResult")
        ],
        "text": extract_read_text(result) or None,
    }


def format_ocr(result: Dict[str, Any]) -> Dict[str, Any]:
    """Reshape a v4.0 Read result into plain and detailed text"""
    lines = _read_lines(result)
    text = "\n".join(line.get("text", "") for line in lines)

    detailed_text = [
        {
            "text": line.get("text"),
            "boundingBox": line.get("boundingPolygon") or line.get("boundingBox"),
            "words": [
                {
                    "text": word.get("text"),
                    "boundingBox": word.get("boundingPolygon")
                    or word.get("boundingBox"),
                    "confidence": word.get("confidence"),
                }
                for word in line.get("words") or []
            ],
        }
        for line in lines
    ]

    return {
        "text": text,
        "detailedText": detailed_text,
        "wordCount": len(text.split()),
    }
