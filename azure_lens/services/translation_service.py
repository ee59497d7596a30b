"""Azure Translator (Text Translation v3) client.

Calls the REST API directly and reshapes its answers into the response
schema served by the translation routes.
"""

import logging
from typing import Any, Dict, List, Optional

import requests

from azure_lens.core import config

logger = logging.getLogger(__name__)


class TranslatorApiError(Exception):
    def __init__(self, status_code: int, message: str):
        super().__init__(message)
        self.status_code = status_code


class TranslatorClient:
    """Thin wrapper over the Translator REST endpoints"""

    def __init__(
        self,
        endpoint: str,
        api_key: str,
        region: str = "global",
        timeout: int = 30,
        session: Optional[requests.Session] = None,
    ):
        self.endpoint = endpoint.rstrip("/")
        self.api_key = api_key
        self.region = region
        self.timeout = timeout
        self.session = session or requests.Session()

    def _headers(self) -> Dict[str, str]:
        headers = {
            "Ocp-Apim-Subscription-Key": self.api_key,
            "Content-Type": "application/json",
        }
        if self.region and self.region != "global":
            headers["Ocp-Apim-Subscription-Region"] = self.region
        return headers

    def _request(self, method: str, path: str, params: Dict[str, Any], body=None):
        params = {"api-version": config.TRANSLATOR_API_VERSION, **params}
        response = self.session.request(
            method,
            f"{self.endpoint}{path}",
            params=params,
            headers=self._headers(),
            json=body,
            timeout=self.timeout,
        )
        if response.status_code != 200:
            try:
                message = response.json().get("error", {}).get("message")
            except ValueError:
                message = None
            raise TranslatorApiError(
                response.status_code,
                message or f"Translator API call failed: {response.status_code}",
            )
        return response.json()

    def translate(
        self,
        texts: List[str],
        target_language: str,
        source_language: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """Translate texts into one target language, auto-detecting the source unless given"""
        params = {"to": target_language, "textType": "plain"}
        if source_language and source_language != "auto":
            params["from"] = source_language
        return self._request(
            "POST", "/translate", params, [{"text": text} for text in texts]
        )

    def detect(self, text: str) -> List[Dict[str, Any]]:
        return self._request("POST", "/detect", {}, [{"text": text}])

    def languages(self) -> Dict[str, Any]:
        return self._request("GET", "/languages", {"scope": "translation"})


def get_language_name(language_code: str) -> str:
    return config.SUPPORTED_LANGUAGES.get(language_code, language_code)


def format_translation(
    original_text: str,
    translation: Dict[str, Any],
    source_language: Optional[str] = None,
) -> Dict[str, Any]:
    """Reshape one Translator result item"""
    translations = translation.get("translations") or []
    detected = translation.get("detectedLanguage") or {}

    translated_text = (
        (translations[0].get("text") if translations else None)
        or translation.get("text")
        or "Translation not available"
    )

    return {
        "originalText": original_text,
        "translatedText": translated_text,
        "sourceLanguage": detected.get("language") or source_language or "unknown",
        "confidence": detected.get("score") or None,
        "alternatives": [t.get("text") for t in translations[1:]],
    }
