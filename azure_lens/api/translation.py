import logging

from fastapi import APIRouter
from starlette.concurrency import run_in_threadpool

from azure_lens.api.errors import now_iso
from azure_lens.api.schemas import BatchTranslateRequest, DetectRequest, TranslateRequest
from azure_lens.core import config
from azure_lens.core.clients import get_azure_clients
from azure_lens.core.errors import LensError, ServiceUnavailableError, ValidationError
from azure_lens.services.translation_service import format_translation, get_language_name

logger = logging.getLogger(__name__)

router = APIRouter()


def _translator():
    translator = get_azure_clients().translator
    if not translator:
        raise ServiceUnavailableError(
            "Translation service unavailable",
            "Azure Translator service is not configured",
        )
    return translator


def _source(language):
    return None if language in (None, "auto") else language


@router.post("/translate")
async def translate(body: TranslateRequest):
    translator = _translator()

    logger.info(
        "Starting translation: textLength=%d targetLanguage=%s sourceLanguage=%s",
        len(body.text),
        body.targetLanguage,
        body.sourceLanguage or "auto-detect",
    )

    try:
        result = await run_in_threadpool(
            translator.translate,
            [body.text],
            body.targetLanguage,
            _source(body.sourceLanguage),
        )
        if not result:
            raise RuntimeError("No translation result received")
    except Exception as e:
        logger.exception("Translation failed")
        raise LensError(
            "Translation failed",
            "Failed to translate the text. Please try again.",
            details=str(e),
        )

    translation = format_translation(body.text, result[0], _source(body.sourceLanguage))

    logger.info(
        "Translation completed successfully: %s -> %s",
        translation["sourceLanguage"],
        body.targetLanguage,
    )

    return {
        "success": True,
        "timestamp": now_iso(),
        "originalText": translation["originalText"],
        "translatedText": translation["translatedText"],
        "sourceLanguage": translation["sourceLanguage"],
        "targetLanguage": body.targetLanguage,
        "confidence": translation["confidence"],
        "alternatives": translation["alternatives"],
    }


@router.post("/detect")
async def detect_language(body: DetectRequest):
    if not body.text:
        raise ValidationError(
            "Missing text parameter", "Text is required for language detection"
        )

    translator = _translator()

    logger.info("Starting language detection: textLength=%d", len(body.text))

    try:
        result = await run_in_threadpool(translator.detect, body.text)
        if not result:
            raise RuntimeError("No detection result received")
    except Exception as e:
        logger.exception("Language detection failed")
        raise LensError(
            "Detection failed",
            "Failed to detect the language. Please try again.",
            details=str(e),
        )

    detection = result[0]
    language = detection.get("language")

    logger.info(
        "Language detection completed successfully: %s (%s)",
        language,
        detection.get("score"),
    )

    return {
        "success": True,
        "timestamp": now_iso(),
        "text": body.text,
        "detectedLanguage": language,
        "confidence": detection.get("score"),
        "languageName": get_language_name(language),
    }


@router.get("/languages")
async def get_languages():
    return {
        "supportedLanguages": config.SUPPORTED_LANGUAGES,
        "defaultTargetLanguage": config.DEFAULT_TARGET_LANGUAGE,
        "autoDetectionSupported": True,
    }


@router.get("/languages/remote")
async def get_remote_languages():
    """Language list as reported by the Translator service itself"""
    translator = _translator()

    try:
        languages = await run_in_threadpool(translator.languages)
    except Exception as e:
        logger.exception("Failed to get supported languages")
        raise LensError(
            "Failed to get languages",
            "Failed to retrieve supported languages. Please try again.",
            details=str(e),
        )

    return {"success": True, "timestamp": now_iso(), "languages": languages}


@router.post("/batch")
async def batch_translate(body: BatchTranslateRequest):
    if not body.texts:
        raise ValidationError(
            "Invalid texts parameter", "An array of texts is required"
        )
    if not body.targetLanguage:
        raise ValidationError(
            "Missing targetLanguage parameter", "Target language is required"
        )
    if len(body.texts) > config.MAX_BATCH_TEXTS:
        raise ValidationError(
            "Too many texts",
            f"Maximum {config.MAX_BATCH_TEXTS} texts allowed per batch request",
        )

    translator = _translator()
    source = _source(body.sourceLanguage)

    logger.info(
        "Starting batch translation: textCount=%d targetLanguage=%s",
        len(body.texts),
        body.targetLanguage,
    )

    try:
        results = await run_in_threadpool(
            translator.translate, body.texts, body.targetLanguage, source
        )
    except Exception as e:
        logger.exception("Batch translation failed")
        raise LensError(
            "Batch translation failed",
            "Failed to translate the texts. Please try again.",
            details=str(e),
        )

    translations = []
    for text, result in zip(body.texts, results):
        translation = format_translation(text, result, source)
        translation.pop("alternatives")
        translations.append(translation)

    logger.info(
        "Batch translation completed successfully: translationCount=%d",
        len(translations),
    )

    return {
        "success": True,
        "timestamp": now_iso(),
        "targetLanguage": body.targetLanguage,
        "translations": translations,
        "totalCount": len(translations),
    }
