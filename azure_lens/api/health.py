import logging
import resource
import time
from typing import Any, Dict

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from azure_lens.api.errors import now_iso
from azure_lens.core import config
from azure_lens.core.clients import get_azure_clients

logger = logging.getLogger(__name__)

router = APIRouter()

START_TIME = time.monotonic()


def uptime() -> float:
    return round(time.monotonic() - START_TIME, 3)


def _base_status() -> Dict[str, Any]:
    return {
        "status": "healthy",
        "timestamp": now_iso(),
        "version": config.APP_VERSION,
        "environment": config.ENVIRONMENT,
        "uptime": uptime(),
        "services": {},
    }


def _status(client) -> str:
    return "available" if client else "unavailable"


@router.get("")
async def health():
    health_status = _base_status()

    try:
        clients = get_azure_clients()
        services = health_status["services"]

        services["vision"] = {
            "status": _status(clients.vision),
            "endpoint": config.VISION_ENDPOINT or "not configured",
        }
        services["translator"] = {
            "status": _status(clients.translator),
            "endpoint": config.TRANSLATOR_ENDPOINT or "not configured",
        }
        services["openai"] = {
            "status": _status(clients.openai),
            "endpoint": config.OPENAI_ENDPOINT or "not configured",
        }
        services["storage"] = {
            "status": _status(clients.blob_service),
            "configured": bool(config.STORAGE_CONNECTION_STRING),
        }
        services["keyVault"] = {
            "status": _status(clients.key_vault),
            "url": config.KEY_VAULT_URL or "not configured",
        }

        unavailable = [
            s for s in services.values() if s["status"] == "unavailable"
        ]
        if unavailable:
            health_status["status"] = "degraded"
            logger.warning(
                "Health check shows %d unavailable services", len(unavailable)
            )

    except Exception as e:
        logger.exception("Health check failed")
        health_status["status"] = "unhealthy"
        health_status["error"] = str(e)

    status_code = 200 if health_status["status"] == "healthy" else 503
    return JSONResponse(status_code=status_code, content=health_status)


def _check(detailed: Dict[str, Any], name: str, service: str, probe) -> None:
    """Run one probe and record it under services and checks"""
    checked_at = now_iso()
    try:
        info = probe()
        detailed["services"][service] = {
            "status": "available",
            **info,
            "lastChecked": checked_at,
        }
        detailed["checks"].append({"name": name, "status": "pass", "time": checked_at})
    except Exception as e:
        detailed["services"][service] = {
            "status": "unavailable",
            "error": str(e),
            "lastChecked": checked_at,
        }
        detailed["checks"].append(
            {"name": name, "status": "fail", "time": checked_at, "output": str(e)}
        )


def _probe_vision():
    if not (get_azure_clients().vision and config.VISION_ENDPOINT):
        raise RuntimeError("Vision service not configured")
    return {"endpoint": config.VISION_ENDPOINT}


def _probe_translator():
    if not (get_azure_clients().translator and config.TRANSLATOR_ENDPOINT):
        raise RuntimeError("Translator service not configured")
    return {"endpoint": config.TRANSLATOR_ENDPOINT}


def _probe_storage():
    blob_service = get_azure_clients().blob_service
    if not blob_service:
        raise RuntimeError("Blob storage not configured")
    blob_service.get_service_properties()
    return {}


def run_detailed_checks() -> Dict[str, Any]:
    detailed = _base_status()
    usage = resource.getrusage(resource.RUSAGE_SELF)
    detailed["memory"] = {"maxRss": usage.ru_maxrss}
    detailed["cpu"] = {"user": usage.ru_utime, "system": usage.ru_stime}
    detailed["checks"] = []

    _check(detailed, "vision-service", "vision", _probe_vision)
    _check(detailed, "translator-service", "translator", _probe_translator)
    _check(detailed, "blob-storage", "storage", _probe_storage)

    failed = [c for c in detailed["checks"] if c["status"] == "fail"]
    if failed:
        detailed["status"] = (
            "unhealthy" if len(failed) == len(detailed["checks"]) else "degraded"
        )
    return detailed


@router.get("/detailed")
async def health_detailed():
    detailed = await run_in_threadpool(run_detailed_checks)
    status_code = 200 if detailed["status"] == "healthy" else 503
    return JSONResponse(status_code=status_code, content=detailed)


@router.get("/ready")
async def ready():
    return {"status": "ready", "timestamp": now_iso()}


@router.get("/live")
async def live():
    return {"status": "alive", "timestamp": now_iso(), "uptime": uptime()}
