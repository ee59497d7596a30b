from unittest.mock import MagicMock

import pytest

from azure_lens.services.vision_service import (
    AzureVisionClient,
    VisionApiError,
    decode_base64_image,
    extract_read_text,
    format_analysis,
    format_ocr,
    sniff_mime_type,
)

from conftest import VISION_RESULT, create_test_image


def _response(status_code, payload):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = payload
    return response


def test_analyze_request():
    session = MagicMock()
    session.post.return_value = _response(200, VISION_RESULT)
    client = AzureVisionClient("https://vision.example.com/", "key", session=session)

    result = client.analyze(b"img", ["Caption", "Tags"], "fr")

    assert result == VISION_RESULT
    args, kwargs = session.post.call_args
    assert args[0] == "https://vision.example.com/computervision/imageanalysis:analyze"
    assert kwargs["params"]["features"] == "Caption,Tags"
    assert kwargs["params"]["language"] == "fr"
    assert kwargs["params"]["api-version"] == "2024-02-01"
    assert kwargs["headers"]["Ocp-Apim-Subscription-Key"] == "key"
    assert kwargs["headers"]["Content-Type"] == "application/octet-stream"
    assert kwargs["data"] == b"img"


def test_analyze_error_message_from_body():
    session = MagicMock()
    session.post.return_value = _response(
        400, {"error": {"code": "InvalidRequest", "message": "Image format is not valid"}}
    )
    client = AzureVisionClient("https://vision.example.com", "key", session=session)

    with pytest.raises(VisionApiError) as exc_info:
        client.analyze(b"img", ["Caption"])

    assert exc_info.value.status_code == 400
    assert exc_info.value.message == "Image format is not valid"


def test_analyze_error_without_body():
    session = MagicMock()
    response = _response(500, None)
    response.json.side_effect = ValueError("no json")
    response.text = "oops"
    session.post.return_value = response
    client = AzureVisionClient("https://vision.example.com", "key", session=session)

    with pytest.raises(VisionApiError) as exc_info:
        client.analyze(b"img", ["Caption"])

    assert exc_info.value.message == "Vision API call failed: 500"
    assert exc_info.value.data == "oops"


def test_decode_base64_image():
    assert decode_base64_image("aGVsbG8=") == b"hello"
    assert decode_base64_image("data:image/png;base64,aGVsbG8=") == b"hello"
    with pytest.raises(ValueError):
        decode_base64_image("@@@")


def test_sniff_mime_type():
    assert sniff_mime_type(create_test_image("PNG")) == "image/png"
    assert sniff_mime_type(create_test_image("JPEG")) == "image/jpeg"
    assert sniff_mime_type(b"not an image") is None


def test_format_analysis():
    analysis = format_analysis(VISION_RESULT)

    assert analysis["caption"] == "a red square with white text"
    assert analysis["confidence"] == 0.91
    assert analysis["objects"] == [
        {
            "name": "sign",
            "confidence": 0.77,
            "boundingBox": {"x": 50, "y": 100, "w": 200, "h": 50},
        }
    ]
    assert [t["name"] for t in analysis["tags"]] == ["red", "text"]
    assert analysis["people"] == []
    assert analysis["denseCaptions"] == []
    assert analysis["text"] == "TEST IMAGE"


def test_format_analysis_empty_result():
    analysis = format_analysis({})
    assert analysis["caption"] is None
    assert analysis["objects"] == []
    assert analysis["text"] is None


def test_format_ocr():
    result = {
        "readResult": {
            "blocks": [
                {"lines": [{"text": "Hello there", "words": []}]},
                {"lines": [{"text": "second line", "boundingBox": {"x": 1}}]},
            ]
        }
    }

    ocr = format_ocr(result)

    assert ocr["text"] == "Hello there\nsecond line"
    assert ocr["wordCount"] == 4
    assert ocr["detailedText"][1]["boundingBox"] == {"x": 1}
    assert extract_read_text(result) == ocr["text"]


def test_format_ocr_no_text():
    ocr = format_ocr({"readResult": {"blocks": []}})
    assert ocr == {"text": "", "detailedText": [], "wordCount": 0}
