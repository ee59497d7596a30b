import re
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from azure_lens.core.errors import StorageError
from azure_lens.services import storage_service
from azure_lens.services.storage_service import (
    delete_image_from_blob,
    download_image_from_blob,
    extension_for,
    generate_blob_name,
    get_content_type,
    get_storage_stats,
    list_images_in_blob,
    parse_blob_url,
    upload_image_to_blob,
)


@pytest.fixture
def blob_service(azure_clients):
    azure_clients.blob_service = MagicMock()
    return azure_clients.blob_service


def _blob(name, size, content_type, last_modified=None):
    blob = MagicMock()
    blob.name = name
    blob.size = size
    blob.last_modified = last_modified
    blob.content_settings.content_type = content_type
    blob.metadata = {}
    return blob


def test_extension_and_content_type():
    assert extension_for("photo.PNG") == ".PNG"
    assert get_content_type(".PNG") == "image/png"
    assert extension_for("image/webp") == ".webp"
    assert extension_for(None) == ".jpg"
    assert extension_for("no-extension") == ".jpg"
    assert get_content_type(".exe") == "application/octet-stream"


def test_generate_blob_name():
    name = generate_blob_name("cat.gif")
    assert re.fullmatch(r"\d+-[0-9a-f]{16}\.gif", name)
    assert generate_blob_name("cat.gif") != name


def test_parse_blob_url():
    assert parse_blob_url(
        "https://acct.blob.core.windows.net/images/2024/a%20b.jpg"
    ) == ("images", "2024/a b.jpg")

    with pytest.raises(StorageError):
        parse_blob_url("https://acct.blob.core.windows.net/")


def test_upload_creates_container(blob_service):
    container = blob_service.get_container_client.return_value
    container.exists.return_value = False
    blob_client = container.get_blob_client.return_value
    blob_client.url = "https://acct.blob.core.windows.net/images/x.png"

    url = upload_image_to_blob(b"data", "x.png")

    assert url == "https://acct.blob.core.windows.net/images/x.png"
    blob_service.get_container_client.assert_called_once_with("images")
    container.create_container.assert_called_once_with(public_access="blob")
    kwargs = blob_client.upload_blob.call_args.kwargs
    assert kwargs["overwrite"] is True
    assert kwargs["content_settings"].content_type == "image/png"
    assert kwargs["metadata"]["originalName"] == "x.png"
    assert kwargs["metadata"]["source"] == "azure-lens-api"


def test_upload_without_storage(empty_clients):
    with pytest.raises(StorageError, match="not available"):
        upload_image_to_blob(b"data")


def test_upload_failure_is_wrapped(blob_service):
    container = blob_service.get_container_client.return_value
    container.get_blob_client.return_value.upload_blob.side_effect = RuntimeError("403")

    with pytest.raises(StorageError, match="Failed to upload image"):
        upload_image_to_blob(b"data", "x.jpg")


def test_download(blob_service):
    blob_client = blob_service.get_blob_client.return_value
    blob_client.download_blob.return_value.readall.return_value = b"bytes"

    content = download_image_from_blob("https://acct.blob.core.windows.net/images/x.jpg")

    assert content == b"bytes"
    blob_service.get_blob_client.assert_called_once_with("images", "x.jpg")


def test_delete(blob_service):
    assert delete_image_from_blob("https://acct.blob.core.windows.net/images/x.jpg")

    blob_service.get_blob_client.return_value.delete_blob.side_effect = RuntimeError("gone")
    assert delete_image_from_blob("https://acct.blob.core.windows.net/images/x.jpg") is False


def test_list_images(blob_service):
    modified = datetime(2024, 5, 1, tzinfo=timezone.utc)
    container = blob_service.get_container_client.return_value
    container.url = "https://acct.blob.core.windows.net/photos"
    container.list_blobs.return_value = [_blob("a.jpg", 3, "image/jpeg", modified)]

    images = list_images_in_blob("photos")

    assert images == [
        {
            "name": "a.jpg",
            "url": "https://acct.blob.core.windows.net/photos/a.jpg",
            "size": 3,
            "lastModified": "2024-05-01T00:00:00+00:00",
            "contentType": "image/jpeg",
            "metadata": {},
        }
    ]
    container.list_blobs.assert_called_once_with(name_starts_with=None, include=["metadata"])


def test_storage_stats(blob_service, monkeypatch):
    monkeypatch.setattr(storage_service.config, "STORAGE_CONTAINER_NAME", "uploads")
    container = blob_service.get_container_client.return_value
    container.list_blobs.return_value = [
        _blob("a.jpg", 1024 * 1024, "image/jpeg"),
        _blob("b.jpg", 1024 * 1024, "image/jpeg"),
        _blob("c.png", 0, None),
    ]

    stats = get_storage_stats()

    assert stats["containerName"] == "uploads"
    assert stats["totalBlobs"] == 3
    assert stats["totalSizeMB"] == 2.0
    assert stats["contentTypes"] == {"image/jpeg": 2, "unknown": 1}
