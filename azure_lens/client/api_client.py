"""Python client for the Azure Lens API.

Mirrors the mobile app's service layer: local image checks before upload,
base64 JSON uploads for analysis, and fallbacks when the richer endpoints fail.
"""

import base64
import logging
import mimetypes
import os
from typing import Any, Dict, List, Optional

import requests

logger = logging.getLogger(__name__)

DEFAULT_FEATURES = ["Caption", "Objects", "Tags", "People"]
MAX_FILE_SIZE = 20 * 1024 * 1024

FALLBACK_SUGGESTIONS = [
    "What do you see in this image?",
    "Can you describe the main subject?",
    "What are the dominant colors?",
    "What's happening in this scene?",
]


class ApiError(Exception):
    """Error response from the API, or a local failure before the request"""

    def __init__(self, error: str, message: str, details: Any = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.error = error
        self.message = message
        self.details = details
        self.status_code = status_code


class LensApiClient:
    def __init__(self, base_url: str, timeout: int = 30, session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def _request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        logger.debug("API Request: %s %s", method, url)

        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise ApiError("Network Error", "Something went wrong", str(e))

        logger.debug("API Response: %s %s", response.status_code, url)

        try:
            data = response.json()
        except ValueError:
            data = {}

        if not response.ok:
            raise ApiError(
                data.get("error") or "Network Error",
                data.get("message") or "Something went wrong",
                data.get("details"),
                response.status_code,
            )
        return data

    @staticmethod
    def _read_image(image_path: str) -> bytes:
        """Validate a local image file and return its bytes"""
        if not image_path or not os.path.isfile(image_path):
            raise ApiError("Invalid image", "Invalid image path provided")

        mime_type, _ = mimetypes.guess_type(image_path)
        if mime_type and not mime_type.startswith("image/"):
            raise ApiError(
                "Invalid image",
                "The selected file is not a valid image. Please choose an image file.",
            )

        with open(image_path, "rb") as image_file:
            data = image_file.read()

        if not data:
            raise ApiError(
                "Invalid image",
                "Image file is empty or corrupted. Please try taking a new photo.",
            )
        if len(data) > MAX_FILE_SIZE:
            logger.warning("Image is large (%dKB). May cause upload issues.", len(data) // 1024)
        return data

    def check_health(self) -> Dict[str, Any]:
        return self._request("GET", "/health")

    def get_api_info(self) -> Dict[str, Any]:
        return self._request("GET", "/")

    def get_vision_features(self) -> Dict[str, Any]:
        return self._request("GET", "/api/vision/features")

    def analyze_image(
        self,
        image_path: str,
        features: Optional[List[str]] = None,
        language: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Analyze a local image, sent as base64 JSON"""
        data = self._read_image(image_path)
        body = {
            "image": base64.b64encode(data).decode("utf-8"),
            "features": ",".join(features or DEFAULT_FEATURES),
            "language": language or "en",
        }
        return self._request("POST", "/api/vision/analyze", json=body)

    def extract_text(self, image_path: str, language: Optional[str] = None) -> Dict[str, Any]:
        """OCR a local image, sent as a multipart upload"""
        data = self._read_image(image_path)
        mime_type = mimetypes.guess_type(image_path)[0] or "image/jpeg"
        files = {"image": (os.path.basename(image_path), data, mime_type)}
        form = {"language": language} if language else {}
        return self._request("POST", "/api/vision/ocr", files=files, data=form)

    def analyze_image_enhanced(self, image_path: str) -> Dict[str, Any]:
        """Enhanced analysis, falling back to standard analysis unless the quota is exhausted"""
        try:
            data = self._read_image(image_path)
            mime_type = mimetypes.guess_type(image_path)[0] or "image/jpeg"
            result = self._request(
                "POST",
                "/api/vision/analyze-enhanced",
                json={"image": base64.b64encode(data).decode("utf-8"), "mimeType": mime_type},
            )
        except ApiError as e:
            if e.status_code == 429 or "quota exceeded" in e.message.lower():
                raise ApiError(
                    e.error,
                    "AI service quota exceeded. Please try again later.",
                    e.details,
                    e.status_code,
                )
            logger.warning("Enhanced analysis failed (%s), falling back to standard analysis", e.message)
            return self.analyze_image(image_path)

        analysis = result.get("analysis") or {}
        return {
            "success": True,
            "enhanced": True,
            "data": result,
            "analysis": {
                "caption": analysis.get("mainDescription"),
                "confidence": analysis.get("confidence") or 0.9,
                "objects": analysis.get("objects") or [],
                "tags": result.get("tags") or [],
            },
            "timestamp": result.get("timestamp"),
        }

    def get_translation_languages(self) -> Dict[str, Any]:
        return self._request("GET", "/api/translation/languages")

    def translate_text(
        self, text: str, target_language: str, source_language: Optional[str] = None
    ) -> Dict[str, Any]:
        body = {"text": text, "targetLanguage": target_language}
        if source_language:
            body["sourceLanguage"] = source_language
        return self._request("POST", "/api/translation/translate", json=body)

    def detect_language(self, text: str) -> Dict[str, Any]:
        return self._request("POST", "/api/translation/detect", json={"text": text})

    def ask_question(
        self,
        question: str,
        analysis_results: Dict[str, Any],
        conversation_history: Optional[List[Dict[str, Any]]] = None,
    ) -> Dict[str, Any]:
        if not question.strip():
            raise ApiError("Bad Request", "Question cannot be empty")

        body = {
            "question": question,
            "analysisResults": analysis_results,
            "conversationHistory": conversation_history or [],
        }
        try:
            return self._request("POST", "/api/chat/analyze", json=body)
        except ApiError as e:
            if e.status_code == 429:
                raise ApiError(
                    e.error, "AI service quota exceeded. Please try again later.", e.details, 429
                )
            if e.status_code == 400 and e.error == "Content Filtered":
                raise ApiError(
                    e.error,
                    "Your question was filtered by content policy. Please rephrase.",
                    e.details,
                    400,
                )
            raise

    def get_suggestions(self, analysis_results: Dict[str, Any]) -> List[str]:
        try:
            data = self._request(
                "POST", "/api/chat/suggestions", json={"analysisResults": analysis_results}
            )
            return data.get("suggestions") or []
        except ApiError as e:
            logger.error("Chat suggestions error: %s", e.message)
            return list(FALLBACK_SUGGESTIONS)
