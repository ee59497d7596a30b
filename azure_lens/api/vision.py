import logging
import time
from dataclasses import dataclass
from typing import List, Optional

from fastapi import APIRouter, Request
from starlette.concurrency import run_in_threadpool
from starlette.datastructures import UploadFile

from azure_lens.api.errors import now_iso
from azure_lens.core import config
from azure_lens.core.clients import get_azure_clients
from azure_lens.core.errors import (
    ContentFilteredError,
    EnhancedAnalysisError,
    LensError,
    QuotaExceededError,
    ServiceUnavailableError,
    StorageError,
    UpstreamError,
    ValidationError,
)
from azure_lens.services.enhanced_vision_service import EnhancedVisionService
from azure_lens.services.storage_service import upload_image_to_blob
from azure_lens.services.vision_service import (
    VisionApiError,
    decode_base64_image,
    format_analysis,
    format_ocr,
    sniff_mime_type,
)

logger = logging.getLogger(__name__)

router = APIRouter()


@dataclass
class ImageInput:
    data: bytes
    encoding: str
    mime_type: str
    filename: Optional[str]
    features: List[str]
    language: str


def _parse_features(raw: Optional[str]) -> List[str]:
    if not raw:
        return list(config.DEFAULT_ANALYSIS_FEATURES)

    if not isinstance(raw, str):
        raise ValidationError(
            "Validation failed",
            "features must be a comma-separated string",
            extra={"validFeatures": config.VISUAL_FEATURES},
        )

    features = [f.strip() for f in raw.split(",") if f.strip()]
    invalid = [f for f in features if f not in config.VISUAL_FEATURES]
    if invalid:
        raise ValidationError(
            "Validation failed",
            f"Invalid features: {', '.join(invalid)}",
            extra={"validFeatures": config.VISUAL_FEATURES},
        )
    return features


def _parse_language(raw: Optional[str]) -> str:
    language = raw or "en"
    if not isinstance(language, str) or language not in config.VISION_LANGUAGES:
        raise ValidationError(
            "Validation failed",
            f"language must be one of {', '.join(config.VISION_LANGUAGES)}",
            extra={"supportedLanguages": config.VISION_LANGUAGES},
        )
    return language


def _is_multipart(request: Request) -> bool:
    return "multipart/form-data" in request.headers.get("content-type", "")


async def _read_upload(upload: UploadFile) -> bytes:
    data = await upload.read()
    if len(data) > config.MAX_UPLOAD_SIZE:
        raise ValidationError(
            "File too large", "Image file must be smaller than 10MB"
        )
    if upload.content_type not in config.ALLOWED_MIME_TYPES:
        raise ValidationError(
            "Invalid file type",
            "Only JPEG, PNG, GIF, BMP, and WebP images are allowed",
        )
    return data


def _check_image_size(data: bytes) -> None:
    if not data:
        raise ValidationError("Invalid image data", "Image buffer is empty or corrupted")

    if len(data) > config.MAX_IMAGE_SIZE:
        raise ValidationError(
            "Image too large",
            f"Image size ({round(len(data) / 1024)}KB) exceeds the 20MB limit",
        )


async def read_image_input(request: Request) -> ImageInput:
    """Read an image from either a multipart upload or a base64 JSON body"""
    if _is_multipart(request):
        form = await request.form()
        upload = form.get("image")
        if not isinstance(upload, UploadFile):
            raise ValidationError(
                "No image data provided",
                "Please provide image data either as multipart file or base64 string",
            )
        data = await _read_upload(upload)
        image = ImageInput(
            data=data,
            encoding="multipart",
            mime_type=upload.content_type or "image/jpeg",
            filename=upload.filename,
            features=_parse_features(form.get("features")),
            language=_parse_language(form.get("language")),
        )
    else:
        try:
            body = await request.json()
        except ValueError:
            body = None
        if not isinstance(body, dict) or not body.get("image"):
            raise ValidationError(
                "No image data provided",
                "Please provide image data either as multipart file or base64 string",
            )
        if not isinstance(body["image"], str):
            raise ValidationError(
                "Invalid image data", "Failed to decode base64 image data"
            )
        try:
            data = decode_base64_image(body["image"])
        except ValueError:
            raise ValidationError(
                "Invalid image data", "Failed to decode base64 image data"
            )
        image = ImageInput(
            data=data,
            encoding="base64",
            mime_type=body.get("mimeType") or sniff_mime_type(data) or "image/jpeg",
            filename=None,
            features=_parse_features(body.get("features")),
            language=_parse_language(body.get("language")),
        )

    _check_image_size(image.data)
    return image


def _upstream_error(title: str, fallback: str, exc: VisionApiError) -> UpstreamError:
    return UpstreamError(
        title,
        exc.message or fallback,
        status=exc.status_code,
        details=exc.data,
    )


def _vision_client():
    vision = get_azure_clients().vision
    if not vision:
        raise ServiceUnavailableError(
            "Vision service unavailable", "Azure Vision service is not configured"
        )
    return vision


def _try_upload(image: ImageInput) -> Optional[str]:
    """Best-effort blob upload, None when storage is missing or fails"""
    try:
        return upload_image_to_blob(image.data, image.filename or image.mime_type)
    except StorageError as e:
        logger.warning("Failed to upload image to blob storage: %s", e)
        return None


@router.post("/analyze")
async def analyze_image(request: Request):
    """Analyze an image with Azure AI Vision v4.0"""
    image = await read_image_input(request)

    logger.info(
        "Starting image analysis: fileSize=%d encoding=%s mimetype=%s features=%s",
        len(image.data),
        image.encoding,
        image.mime_type,
        image.features,
    )

    vision = _vision_client()

    try:
        result = await run_in_threadpool(
            vision.analyze, image.data, image.features, image.language
        )
    except VisionApiError as e:
        raise _upstream_error(
            "Analysis failed", "Failed to analyze the image. Please try again.", e
        )
    except Exception as e:
        logger.exception("Image analysis failed")
        raise LensError(
            "Analysis failed",
            "Failed to analyze the image. Please try again.",
            details=str(e),
        )

    image_url = await run_in_threadpool(_try_upload, image)

    logger.info("Image analysis completed successfully")
    return {
        "success": True,
        "timestamp": now_iso(),
        "imageUrl": image_url,
        "analysis": format_analysis(result),
    }


@router.post("/ocr")
async def extract_text(request: Request):
    """Extract text from an uploaded image with the Read feature"""
    upload = None
    language = "en"
    if _is_multipart(request):
        form = await request.form()
        upload = form.get("image")
        language = form.get("language") or "en"

    if not isinstance(upload, UploadFile):
        raise ValidationError("No image file provided", "Please upload an image file")

    data = await _read_upload(upload)
    _check_image_size(data)
    language = _parse_language(language)

    logger.info("Starting OCR analysis: fileSize=%d", len(data))

    vision = _vision_client()

    try:
        result = await run_in_threadpool(vision.analyze, data, ["Read"], language)
    except VisionApiError as e:
        raise _upstream_error(
            "OCR failed",
            "Failed to extract text from the image. Please try again.",
            e,
        )
    except Exception as e:
        logger.exception("OCR analysis failed")
        raise LensError(
            "OCR failed",
            "Failed to extract text from the image. Please try again.",
            details=str(e),
        )

    ocr = format_ocr(result)

    logger.info(
        "OCR analysis completed successfully: textLength=%d wordCount=%d",
        len(ocr["text"]),
        ocr["wordCount"],
    )

    return {
        "success": True,
        "timestamp": now_iso(),
        "text": ocr["text"],
        "detailedText": ocr["detailedText"],
        "language": language,
        "wordCount": ocr["wordCount"],
    }


@router.post("/analyze-enhanced")
async def analyze_image_enhanced(request: Request):
    """Analyze an image with the multimodal chat deployment"""
    start_time = getattr(request.state, "start_time", time.monotonic())
    image = await read_image_input(request)

    logger.info(
        "Starting enhanced image analysis: fileSize=%d mimeType=%s",
        len(image.data),
        image.mime_type,
    )

    service = EnhancedVisionService()
    try:
        analysis_result = await run_in_threadpool(
            service.analyze_image_with_gpt4o, image.data, image.mime_type
        )
    except EnhancedAnalysisError as e:
        if e.quota_exceeded:
            raise QuotaExceededError(
                "Service quota exceeded",
                "AI service quota exceeded. Please try again later.",
                extra={"retryAfter": 60},
            )
        if e.content_filtered:
            raise ContentFilteredError(
                "Content filtered",
                "The image was filtered by content policy. Please try a different image.",
            )
        raise LensError("Enhanced analysis failed", str(e))

    blob_url = None
    if get_azure_clients().blob_service:
        blob_url = await run_in_threadpool(_try_upload, image)

    result = {
        **analysis_result,
        "blobUrl": blob_url,
        "timestamp": now_iso(),
        "processing": {
            "model": analysis_result.get("model", config.OPENAI_DEPLOYMENT_NAME),
            "enhanced": True,
            "processingTimeMs": int((time.monotonic() - start_time) * 1000),
        },
    }

    logger.info(
        "Enhanced image analysis completed: model=%s tokensUsed=%s processingTime=%s",
        result["processing"]["model"],
        (result.get("usage") or {}).get("total_tokens"),
        result["processing"]["processingTimeMs"],
    )
    return result


@router.get("/features")
async def get_features():
    return {
        "supportedFeatures": config.VISUAL_FEATURES,
        "supportedLanguages": config.VISION_LANGUAGES,
    }
