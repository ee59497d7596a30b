import base64
import io
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient
from PIL import Image, ImageDraw

from azure_lens.api.main import create_app
from azure_lens.api.middleware import FixedWindowRateLimiter
from azure_lens.core.clients import AzureClients, get_azure_clients, set_azure_clients


def create_test_image(fmt="PNG"):
    """Create a simple test image and return its bytes"""
    img = Image.new("RGB", (300, 200), color="red")
    draw = ImageDraw.Draw(img)
    draw.text((50, 50), "TEST IMAGE", fill="white")
    draw.rectangle([50, 100, 250, 150], outline="white", width=3)

    buffer = io.BytesIO()
    img.save(buffer, format=fmt)
    return buffer.getvalue()


def chat_completion(content, usage=None):
    """Shape of an openai ChatCompletion as far as the services read it"""
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=content))],
        usage=usage,
    )


VISION_RESULT = {
    "captionResult": {"text": "a red square with white text", "confidence": 0.91},
    "objectsResult": {
        "values": [
            {
                "boundingBox": {"x": 50, "y": 100, "w": 200, "h": 50},
                "tags": [{"name": "sign", "confidence": 0.77}],
            }
        ]
    },
    "tagsResult": {
        "values": [
            {"name": "red", "confidence": 0.99},
            {"name": "text", "confidence": 0.95},
        ]
    },
    "peopleResult": {"values": []},
    "readResult": {
        "blocks": [
            {
                "lines": [
                    {
                        "text": "TEST IMAGE",
                        "boundingPolygon": [{"x": 50, "y": 50}, {"x": 120, "y": 50}],
                        "words": [
                            {"text": "TEST", "confidence": 0.99},
                            {"text": "IMAGE", "confidence": 0.98},
                        ],
                    }
                ]
            }
        ]
    },
}


@pytest.fixture
def png_bytes():
    return create_test_image()


@pytest.fixture
def png_base64(png_bytes):
    return base64.b64encode(png_bytes).decode("utf-8")


@pytest.fixture
def azure_clients():
    """Install a registry of mock Azure clients for the duration of a test"""
    previous = get_azure_clients()

    vision = MagicMock()
    vision.analyze.return_value = VISION_RESULT

    translator = MagicMock()
    openai_client = MagicMock()

    clients = AzureClients(
        vision=vision,
        translator=translator,
        openai=openai_client,
        blob_service=None,
        key_vault=None,
    )
    set_azure_clients(clients)
    yield clients
    set_azure_clients(previous)


@pytest.fixture
def empty_clients():
    previous = get_azure_clients()
    clients = AzureClients()
    set_azure_clients(clients)
    yield clients
    set_azure_clients(previous)


@pytest.fixture
def app():
    return create_app(
        rate_limiter=FixedWindowRateLimiter(1000, 900), use_lifespan=False
    )


@pytest.fixture
def client(app):
    return TestClient(app)
