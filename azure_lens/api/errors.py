import logging
import traceback
from datetime import datetime, timezone
from typing import Tuple

import requests
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from azure_lens.core import config
from azure_lens.core.errors import LensError

logger = logging.getLogger(__name__)

AZURE_ERROR_CODES = {
    "Unauthorized": (401, "Azure service authentication failed"),
    "Forbidden": (403, "Azure service access denied"),
    "NotFound": (404, "Azure resource not found"),
    "TooManyRequests": (429, "Azure service rate limit exceeded"),
    "ServiceUnavailable": (503, "Azure service temporarily unavailable"),
}


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def map_exception(exc: Exception) -> Tuple[int, str]:
    """Status code and public message for an unexpected exception"""
    if isinstance(exc, (requests.ConnectionError, requests.Timeout, ConnectionError, TimeoutError)):
        return 503, "Service temporarily unavailable"

    # azure-core HttpResponseError exposes error_code, most SDKs expose code
    code = getattr(exc, "error_code", None) or getattr(exc, "code", None)
    if code in AZURE_ERROR_CODES:
        return AZURE_ERROR_CODES[code]

    return 500, "Internal server error"


def _first_validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid value")
    return f"{location}: {message}" if location else message


async def lens_error_handler(request: Request, exc: LensError) -> JSONResponse:
    if exc.status >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    else:
        logger.warning("%s %s rejected: %s", request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status,
        content=exc.to_dict(include_details=config.is_development()),
    )


async def validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    logger.warning("Validation failed for %s: %s", request.url.path, exc.errors())
    content = {"error": "Validation failed", "message": _first_validation_message(exc)}

    path = request.url.path
    if path.startswith("/api/translation/batch"):
        content["limits"] = {
            "maxTexts": config.MAX_BATCH_TEXTS,
            "maxTextLength": config.MAX_TRANSLATION_TEXT_LENGTH,
        }
    elif path.startswith("/api/translation"):
        content["supportedLanguages"] = list(config.SUPPORTED_LANGUAGES)

    return JSONResponse(status_code=400, content=content)


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code == 404:
        logger.warning("404 error: %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=404,
            content={
                "error": "Not Found",
                "message": f"Route {request.url.path} not found",
            },
        )
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail, "message": exc.detail},
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "Error occurred: %s (url=%s method=%s ip=%s userAgent=%s)",
        exc,
        request.url.path,
        request.method,
        request.client.host if request.client else None,
        request.headers.get("user-agent"),
        exc_info=exc,
    )

    status, message = map_exception(exc)
    content = {
        "error": message,
        "status": status,
        "timestamp": now_iso(),
        "path": request.url.path,
    }

    if config.is_development():
        content["stack"] = "".join(
            traceback.format_exception(type(exc), exc, exc.__traceback__)
        )
        content["details"] = str(exc)

    return JSONResponse(status_code=status, content=content)


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(LensError, lens_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
