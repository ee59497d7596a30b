from typing import Optional

from fastapi import APIRouter
from starlette.concurrency import run_in_threadpool

from azure_lens.api.errors import now_iso
from azure_lens.core.clients import get_azure_clients
from azure_lens.core.errors import LensError, ServiceUnavailableError, StorageError
from azure_lens.services.storage_service import get_storage_stats, list_images_in_blob

router = APIRouter()


def _require_storage():
    if not get_azure_clients().blob_service:
        raise ServiceUnavailableError(
            "Storage service unavailable", "Azure Blob Storage is not configured"
        )


@router.get("/stats")
async def storage_stats():
    _require_storage()
    try:
        stats = await run_in_threadpool(get_storage_stats)
    except StorageError as e:
        raise LensError("Storage stats failed", str(e))
    return {"success": True, "timestamp": now_iso(), "stats": stats}


@router.get("/images")
async def list_images(prefix: str = "", container: Optional[str] = None):
    _require_storage()
    try:
        images = await run_in_threadpool(list_images_in_blob, container, prefix)
    except StorageError as e:
        raise LensError("Storage listing failed", str(e))
    return {
        "success": True,
        "timestamp": now_iso(),
        "images": images,
        "count": len(images),
    }
