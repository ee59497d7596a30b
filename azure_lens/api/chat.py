import logging

from fastapi import APIRouter
from starlette.concurrency import run_in_threadpool

from azure_lens.api.errors import now_iso
from azure_lens.api.schemas import ChatAnalyzeRequest, ChatSuggestionsRequest
from azure_lens.core.clients import get_azure_clients
from azure_lens.core.errors import (
    ContentFilteredError,
    LensError,
    QuotaExceededError,
    ServiceUnavailableError,
    ValidationError,
    is_content_filter_error,
    is_quota_error,
)
from azure_lens.services.chat_service import ChatService, generate_question_suggestions
from azure_lens.services.enhanced_vision_service import EnhancedVisionService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/analyze")
async def chat_analyze(body: ChatAnalyzeRequest):
    """Interactive Q&A about image analysis results"""
    if not body.question or not body.analysisResults:
        raise ValidationError(
            "Bad Request", "Missing required fields: question and analysisResults"
        )

    if not get_azure_clients().openai:
        raise ServiceUnavailableError(
            "Service Unavailable", "OpenAI service not configured"
        )

    history = [msg.model_dump() for msg in body.conversationHistory]

    try:
        reply = await run_in_threadpool(
            ChatService().ask, body.question, body.analysisResults, history
        )
    except Exception as e:
        logger.error("Chat analysis error: %s", e)
        if is_quota_error(e):
            raise QuotaExceededError(
                "Quota Exceeded", "OpenAI quota exceeded. Please try again later."
            )
        if is_content_filter_error(e):
            raise ContentFilteredError(
                "Content Filtered",
                "Your question was filtered by content policy. Please rephrase.",
            )
        raise LensError(
            "Internal Server Error", "Failed to process chat request", details=str(e)
        )

    return {
        "question": body.question,
        "answer": reply["answer"],
        "timestamp": now_iso(),
        "usage": reply["usage"],
    }


@router.post("/suggestions")
async def chat_suggestions(body: ChatSuggestionsRequest):
    """Suggested questions based on analysis results"""
    if not body.analysisResults:
        raise ValidationError("Bad Request", "Missing required field: analysisResults")

    return {
        "suggestions": generate_question_suggestions(body.analysisResults),
        "timestamp": now_iso(),
    }


@router.post("/suggestions/enhanced")
async def chat_suggestions_enhanced(body: ChatSuggestionsRequest):
    """Model-generated conversation starters for an enhanced analysis"""
    if not body.analysisResults:
        raise ValidationError("Bad Request", "Missing required field: analysisResults")

    suggestions = await run_in_threadpool(
        EnhancedVisionService().generate_enhanced_suggestions, body.analysisResults
    )
    return {"suggestions": suggestions, "timestamp": now_iso()}
