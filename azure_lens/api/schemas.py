from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from azure_lens.core import config


def _check_language(value: Optional[str], allow_auto: bool = False) -> Optional[str]:
    if value is None:
        return value
    if allow_auto and value == "auto":
        return value
    if value not in config.SUPPORTED_LANGUAGES:
        raise ValueError(f"unsupported language '{value}'")
    return value


class TranslateRequest(BaseModel):
    text: str = Field(..., min_length=1, max_length=config.MAX_TRANSLATION_TEXT_LENGTH)
    targetLanguage: str
    sourceLanguage: Optional[str] = None

    @field_validator("targetLanguage")
    @classmethod
    def check_target(cls, value):
        return _check_language(value)

    @field_validator("sourceLanguage")
    @classmethod
    def check_source(cls, value):
        return _check_language(value, allow_auto=True)


class DetectRequest(BaseModel):
    text: Optional[str] = Field(None, max_length=config.MAX_TRANSLATION_TEXT_LENGTH)


class BatchTranslateRequest(BaseModel):
    texts: Optional[List[str]] = None
    targetLanguage: Optional[str] = None
    sourceLanguage: Optional[str] = None

    @field_validator("texts")
    @classmethod
    def check_texts(cls, value):
        for text in value or []:
            if not text or len(text) > config.MAX_TRANSLATION_TEXT_LENGTH:
                raise ValueError(
                    f"each text must be 1-{config.MAX_TRANSLATION_TEXT_LENGTH} characters"
                )
        return value

    @field_validator("targetLanguage")
    @classmethod
    def check_target(cls, value):
        return _check_language(value)

    @field_validator("sourceLanguage")
    @classmethod
    def check_source(cls, value):
        return _check_language(value, allow_auto=True)


class ChatMessage(BaseModel):
    role: str
    content: str = ""
    timestamp: Optional[str] = None


class ChatAnalyzeRequest(BaseModel):
    question: Optional[str] = None
    analysisResults: Optional[Dict[str, Any]] = None
    conversationHistory: List[ChatMessage] = Field(default_factory=list)


class ChatSuggestionsRequest(BaseModel):
    analysisResults: Optional[Dict[str, Any]] = None
