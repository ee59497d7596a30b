from typing import Any, Dict, Optional

import openai


class LensError(Exception):
    """Expected failure that maps onto an HTTP error response"""

    status = 500

    def __init__(
        self,
        error: str,
        message: str,
        status: Optional[int] = None,
        details: Any = None,
        extra: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.error = error
        self.message = message
        if status is not None:
            self.status = status
        self.details = details
        self.extra = extra or {}

    def to_dict(self, include_details: bool = False) -> Dict[str, Any]:
        body = {"error": self.error, "message": self.message}
        body.update(self.extra)
        if include_details and self.details is not None:
            body["details"] = self.details
        return body


class ValidationError(LensError):
    status = 400


class ServiceUnavailableError(LensError):
    status = 503


class UpstreamError(LensError):
    """An Azure service answered with an HTTP error"""


class QuotaExceededError(LensError):
    status = 429


class ContentFilteredError(LensError):
    status = 400


class StorageError(Exception):
    pass


class EnhancedAnalysisError(Exception):
    def __init__(self, message: str, quota_exceeded: bool = False, content_filtered: bool = False):
        super().__init__(message)
        self.quota_exceeded = quota_exceeded
        self.content_filtered = content_filtered


def is_quota_error(exc: Exception) -> bool:
    """True when an OpenAI failure means the quota or rate limit is exhausted"""
    if isinstance(exc, openai.RateLimitError):
        return True
    return getattr(exc, "code", None) == "insufficient_quota" or (
        "quota exceeded" in str(exc).lower()
    )


def is_content_filter_error(exc: Exception) -> bool:
    """True when an OpenAI failure was caused by the content policy"""
    if getattr(exc, "code", None) == "content_filter":
        return True
    return "content filter" in str(exc).lower()
