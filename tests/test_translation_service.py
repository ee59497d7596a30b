from unittest.mock import MagicMock

import pytest

from azure_lens.services.translation_service import (
    TranslatorApiError,
    TranslatorClient,
    format_translation,
    get_language_name,
)


def _client(payload, status_code=200, region="global"):
    session = MagicMock()
    response = session.request.return_value
    response.status_code = status_code
    response.json.return_value = payload
    return TranslatorClient("https://api.example.com/", "key", region, session=session), session


def test_translate_request():
    client, session = _client([{"translations": [{"text": "Hallo"}]}])

    result = client.translate(["Hello"], "de", "en")

    assert result == [{"translations": [{"text": "Hallo"}]}]
    args, kwargs = session.request.call_args
    assert args == ("POST", "https://api.example.com/translate")
    assert kwargs["params"] == {
        "api-version": "3.0",
        "to": "de",
        "textType": "plain",
        "from": "en",
    }
    assert kwargs["json"] == [{"text": "Hello"}]
    assert "Ocp-Apim-Subscription-Region" not in kwargs["headers"]


def test_translate_auto_detects_source():
    client, session = _client([])
    client.translate(["Hello"], "de", "auto")
    assert "from" not in session.request.call_args.kwargs["params"]


def test_regional_resource_sends_region_header():
    client, session = _client([], region="westeurope")
    client.detect("Hello")
    headers = session.request.call_args.kwargs["headers"]
    assert headers["Ocp-Apim-Subscription-Region"] == "westeurope"


def test_languages_request():
    client, session = _client({"translation": {}})
    client.languages()
    args, kwargs = session.request.call_args
    assert args == ("GET", "https://api.example.com/languages")
    assert kwargs["params"]["scope"] == "translation"


def test_error_response():
    client, _ = _client({"error": {"code": 401000, "message": "Invalid key"}}, status_code=401)
    with pytest.raises(TranslatorApiError) as exc_info:
        client.translate(["Hello"], "de")
    assert exc_info.value.status_code == 401
    assert str(exc_info.value) == "Invalid key"


def test_format_translation():
    item = {
        "detectedLanguage": {"language": "es", "score": 0.9},
        "translations": [{"text": "Hello"}, {"text": "Hi"}],
    }
    assert format_translation("Hola", item) == {
        "originalText": "Hola",
        "translatedText": "Hello",
        "sourceLanguage": "es",
        "confidence": 0.9,
        "alternatives": ["Hi"],
    }


def test_format_translation_fallbacks():
    translation = format_translation("Hola", {}, "es")
    assert translation["translatedText"] == "Translation not available"
    assert translation["sourceLanguage"] == "es"
    assert translation["confidence"] is None

    assert format_translation("Hola", {})["sourceLanguage"] == "unknown"


def test_get_language_name():
    assert get_language_name("de") == "German"
    assert get_language_name("tlh") == "tlh"
