import logging
import os
import secrets
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import unquote, urlparse

from azure.storage.blob import ContentSettings

from azure_lens.core import config
from azure_lens.core.clients import get_azure_clients
from azure_lens.core.errors import StorageError

logger = logging.getLogger(__name__)

CONTENT_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".bmp": "image/bmp",
    ".webp": "image/webp",
    ".tiff": "image/tiff",
    ".svg": "image/svg+xml",
}

EXTENSIONS = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/gif": ".gif",
    "image/bmp": ".bmp",
    "image/webp": ".webp",
}


def get_content_type(extension: str) -> str:
    return CONTENT_TYPES.get(extension.lower(), "application/octet-stream")


def extension_for(original_name: Optional[str]) -> str:
    """File extension for a filename or a bare MIME type, .jpg by default"""
    if not original_name:
        return ".jpg"
    if original_name in EXTENSIONS:
        return EXTENSIONS[original_name]
    return os.path.splitext(original_name)[1] or ".jpg"


def generate_blob_name(original_name: Optional[str]) -> str:
    timestamp = int(time.time() * 1000)
    return f"{timestamp}-{secrets.token_hex(8)}{extension_for(original_name)}"


def parse_blob_url(blob_url: str) -> Tuple[str, str]:
    """Split a blob URL into container and blob name"""
    path_parts = urlparse(blob_url).path.split("/")
    if len(path_parts) < 3 or not path_parts[1]:
        raise StorageError(f"Not a blob URL: {blob_url}")
    return path_parts[1], unquote("/".join(path_parts[2:]))


def _blob_service():
    blob_service = get_azure_clients().blob_service
    if not blob_service:
        raise StorageError("Blob storage service not available")
    return blob_service


def upload_image_to_blob(image_bytes: bytes, original_name: Optional[str] = None) -> str:
    """Upload image bytes and return the blob URL"""
    try:
        blob_service = _blob_service()
        container_client = blob_service.get_container_client(
            config.STORAGE_CONTAINER_NAME
        )
        if not container_client.exists():
            container_client.create_container(public_access="blob")

        blob_name = generate_blob_name(original_name)
        extension = extension_for(original_name)
        content_type = get_content_type(extension)

        blob_client = container_client.get_blob_client(blob_name)
        blob_client.upload_blob(
            image_bytes,
            overwrite=True,
            content_settings=ContentSettings(content_type=content_type),
            metadata={
                "originalName": original_name or "",
                "uploadedAt": datetime.now(timezone.utc).isoformat(),
                "source": "azure-lens-api",
            },
        )

        logger.info(
            "Image uploaded to blob storage: blobName=%s size=%d contentType=%s",
            blob_name,
            len(image_bytes),
            content_type,
        )
        return blob_client.url

    except StorageError:
        raise
    except Exception as e:
        logger.error("Failed to upload image to blob storage: %s", e)
        raise StorageError(f"Failed to upload image: {e}") from e


def download_image_from_blob(blob_url: str) -> bytes:
    try:
        container_name, blob_name = parse_blob_url(blob_url)
        blob_client = _blob_service().get_blob_client(container_name, blob_name)
        content = blob_client.download_blob().readall()

        logger.info(
            "Image downloaded from blob storage: blobName=%s size=%d",
            blob_name,
            len(content),
        )
        return content

    except StorageError:
        raise
    except Exception as e:
        logger.error("Failed to download image from blob storage: %s", e)
        raise StorageError(f"Failed to download image: {e}") from e


def delete_image_from_blob(blob_url: str) -> bool:
    try:
        container_name, blob_name = parse_blob_url(blob_url)
        _blob_service().get_blob_client(container_name, blob_name).delete_blob()
        logger.info("Image deleted from blob storage: blobName=%s", blob_name)
        return True
    except Exception as e:
        logger.error("Failed to delete image from blob storage: %s", e)
        return False


def list_images_in_blob(
    container_name: Optional[str] = None, prefix: str = ""
) -> List[Dict[str, Any]]:
    try:
        actual_container = container_name or config.STORAGE_CONTAINER_NAME
        container_client = _blob_service().get_container_client(actual_container)

        blobs = []
        for blob in container_client.list_blobs(
            name_starts_with=prefix or None, include=["metadata"]
        ):
            last_modified = blob.last_modified
            blobs.append(
                {
                    "name": blob.name,
                    "url": f"{container_client.url}/{blob.name}",
                    "size": blob.size,
                    "lastModified": last_modified.isoformat() if last_modified else None,
                    "contentType": blob.content_settings.content_type
                    if blob.content_settings
                    else None,
                    "metadata": blob.metadata,
                }
            )

        logger.info(
            "Listed images from blob storage: container=%s count=%d prefix=%s",
            actual_container,
            len(blobs),
            prefix,
        )
        return blobs

    except StorageError:
        raise
    except Exception as e:
        logger.error("Failed to list images from blob storage: %s", e)
        raise StorageError(f"Failed to list images: {e}") from e


def get_storage_stats() -> Dict[str, Any]:
    try:
        container_name = config.STORAGE_CONTAINER_NAME
        container_client = _blob_service().get_container_client(container_name)

        total_size = 0
        blob_count = 0
        content_types: Dict[str, int] = {}

        for blob in container_client.list_blobs():
            total_size += blob.size or 0
            blob_count += 1
            content_type = (
                blob.content_settings.content_type if blob.content_settings else None
            ) or "unknown"
            content_types[content_type] = content_types.get(content_type, 0) + 1

        stats = {
            "containerName": container_name,
            "totalBlobs": blob_count,
            "totalSizeBytes": total_size,
            "totalSizeMB": round(total_size / 1024 / 1024, 2),
            "contentTypes": content_types,
            "lastChecked": datetime.now(timezone.utc).isoformat(),
        }

        logger.info("Retrieved storage statistics: %s", stats)
        return stats

    except StorageError:
        raise
    except Exception as e:
        logger.error("Failed to get storage statistics: %s", e)
        raise StorageError(f"Failed to get storage stats: {e}") from e
