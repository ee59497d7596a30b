import base64
import json
from unittest.mock import MagicMock

import pytest
import requests

from azure_lens.client.api_client import FALLBACK_SUGGESTIONS, ApiError, LensApiClient
from azure_lens.client.history import DEFAULT_SETTINGS, HistoryStore

from conftest import create_test_image


def _response(status_code, payload):
    response = MagicMock()
    response.status_code = status_code
    response.ok = status_code < 400
    response.json.return_value = payload
    return response


@pytest.fixture
def session():
    return MagicMock()


@pytest.fixture
def api(session):
    return LensApiClient("http://localhost:3000/", session=session)


@pytest.fixture
def image_path(tmp_path):
    path = tmp_path / "photo.png"
    path.write_bytes(create_test_image())
    return str(path)


def test_check_health(api, session):
    session.request.return_value = _response(200, {"status": "healthy"})

    assert api.check_health() == {"status": "healthy"}
    session.request.assert_called_once_with("GET", "http://localhost:3000/health", timeout=30)


def test_error_response(api, session):
    session.request.return_value = _response(
        400, {"error": "Validation failed", "message": "bad language"}
    )

    with pytest.raises(ApiError) as exc_info:
        api.get_vision_features()

    assert exc_info.value.error == "Validation failed"
    assert exc_info.value.message == "bad language"
    assert exc_info.value.status_code == 400


def test_network_error(api, session):
    session.request.side_effect = requests.ConnectionError("refused")

    with pytest.raises(ApiError) as exc_info:
        api.get_api_info()

    assert exc_info.value.error == "Network Error"
    assert exc_info.value.message == "Something went wrong"


def test_analyze_image_sends_base64(api, session, image_path):
    session.request.return_value = _response(200, {"success": True})

    api.analyze_image(image_path, features=["Caption", "Read"])

    args, kwargs = session.request.call_args
    assert args == ("POST", "http://localhost:3000/api/vision/analyze")
    body = kwargs["json"]
    assert base64.b64decode(body["image"])[:4] == b"\x89PNG"
    assert body["features"] == "Caption,Read"
    assert body["language"] == "en"


def test_analyze_image_rejects_bad_paths(api, tmp_path):
    with pytest.raises(ApiError, match="Invalid image path"):
        api.analyze_image(str(tmp_path / "missing.jpg"))

    text_file = tmp_path / "notes.txt"
    text_file.write_text("hello")
    with pytest.raises(ApiError, match="not a valid image"):
        api.analyze_image(str(text_file))

    empty = tmp_path / "empty.jpg"
    empty.write_bytes(b"")
    with pytest.raises(ApiError, match="empty or corrupted"):
        api.analyze_image(str(empty))


def test_extract_text_is_multipart(api, session, image_path):
    session.request.return_value = _response(200, {"text": "hi"})

    api.extract_text(image_path, language="de")

    kwargs = session.request.call_args.kwargs
    name, data, mime_type = kwargs["files"]["image"]
    assert name == "photo.png"
    assert mime_type == "image/png"
    assert kwargs["data"] == {"language": "de"}


def test_enhanced_falls_back_to_standard(api, session, image_path):
    session.request.side_effect = [
        _response(500, {"error": "Enhanced analysis failed", "message": "boom"}),
        _response(200, {"success": True, "analysis": {"caption": "a cat"}}),
    ]

    result = api.analyze_image_enhanced(image_path)

    assert result["analysis"]["caption"] == "a cat"
    assert session.request.call_args.args[1].endswith("/api/vision/analyze")


def test_enhanced_quota_is_not_retried(api, session, image_path):
    session.request.return_value = _response(
        429, {"error": "Service quota exceeded", "message": "AI service quota exceeded."}
    )

    with pytest.raises(ApiError) as exc_info:
        api.analyze_image_enhanced(image_path)

    assert exc_info.value.message == "AI service quota exceeded. Please try again later."
    assert session.request.call_count == 1


def test_enhanced_result_shape(api, session, image_path):
    session.request.return_value = _response(
        200,
        {
            "analysis": {"mainDescription": "A cat", "objects": ["cat"]},
            "tags": [{"name": "cat", "confidence": 0.85}],
            "timestamp": "2024-01-01T00:00:00Z",
        },
    )

    result = api.analyze_image_enhanced(image_path)

    assert result["enhanced"] is True
    assert result["analysis"] == {
        "caption": "A cat",
        "confidence": 0.9,
        "objects": ["cat"],
        "tags": [{"name": "cat", "confidence": 0.85}],
    }


def test_translate_text(api, session):
    session.request.return_value = _response(200, {"translatedText": "Hallo"})

    api.translate_text("Hello", "de", "en")

    assert session.request.call_args.kwargs["json"] == {
        "text": "Hello",
        "targetLanguage": "de",
        "sourceLanguage": "en",
    }


def test_ask_question(api, session):
    with pytest.raises(ApiError, match="cannot be empty"):
        api.ask_question("   ", {})

    session.request.return_value = _response(
        400, {"error": "Content Filtered", "message": "filtered"}
    )
    with pytest.raises(ApiError, match="rephrase"):
        api.ask_question("Why?", {"caption": "x"})

    session.request.return_value = _response(429, {"error": "Quota Exceeded", "message": "x"})
    with pytest.raises(ApiError, match="quota exceeded"):
        api.ask_question("Why?", {"caption": "x"})


def test_suggestions_fallback(api, session):
    session.request.return_value = _response(503, {"error": "Service Unavailable"})
    assert api.get_suggestions({"caption": "x"}) == FALLBACK_SUGGESTIONS


# History


def test_history_store(tmp_path):
    store = HistoryStore(str(tmp_path / "data" / "history.json"), max_items=2)

    first = store.add_history_item({"type": "analysis", "caption": "one"})
    store.add_history_item({"type": "ocr", "text": "two"})
    third = store.add_history_item({"type": "translation", "text": "three"})

    history = store.get_history()
    assert [item["id"] for item in history][0] == third["id"]
    assert len(history) == 2
    assert first["id"] not in [item["id"] for item in history]

    store.remove_history_item(third["id"])
    assert len(store.get_history()) == 1

    store.clear_history()
    assert store.get_history() == []


def test_history_settings(tmp_path):
    store = HistoryStore(str(tmp_path / "history.json"))

    assert store.get_settings() == DEFAULT_SETTINGS

    updated = store.update_settings({"theme": "dark"})
    assert updated["theme"] == "dark"
    assert updated["defaultLanguage"] == "en"

    with open(store.path, encoding="utf-8") as f:
        assert json.load(f)["settings"]["theme"] == "dark"


def test_history_unreadable_file(tmp_path):
    path = tmp_path / "history.json"
    path.write_text("{not json")

    assert HistoryStore(str(path)).get_history() == []
