import logging
import threading
import time
from collections import defaultdict
from typing import Dict, Optional, Tuple

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from azure_lens.api.errors import unhandled_error_handler
from azure_lens.core import config

logger = logging.getLogger(__name__)

SECURITY_HEADERS = {
    "Content-Security-Policy": (
        "default-src 'self'; "
        "style-src 'self' 'unsafe-inline'; "
        "img-src 'self' data: https:; "
        "connect-src 'self' https://api.cognitive.microsofttranslator.com "
        "https://*.cognitiveservices.azure.com"
    ),
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "SAMEORIGIN",
    "Referrer-Policy": "no-referrer",
}


class FixedWindowRateLimiter:
    """Thread-safe in-memory fixed-window counter per client key"""

    def __init__(self, max_requests: int, window_seconds: int):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._store: Dict[str, Tuple[int, int]] = defaultdict(lambda: (0, 0))
        self._lock = threading.Lock()
        self._cleaned_window = -1

    def _window(self, now: float) -> int:
        return int(now) // self.window_seconds

    def check_and_increment(self, key: str, now: Optional[float] = None) -> dict:
        now = time.time() if now is None else now
        window = self._window(now)
        reset_at = (window + 1) * self.window_seconds

        with self._lock:
            if window != self._cleaned_window:
                self._cleanup_locked(window)

            stored_window, count = self._store[key]
            if stored_window != window:
                count = 0

            if count >= self.max_requests:
                return {"allowed": False, "remaining": 0, "reset_at": reset_at}

            self._store[key] = (window, count + 1)

        return {
            "allowed": True,
            "remaining": self.max_requests - count - 1,
            "reset_at": reset_at,
        }

    def _cleanup_locked(self, window: int) -> int:
        stale = [key for key, (stored, _) in self._store.items() if stored != window]
        for key in stale:
            del self._store[key]
        self._cleaned_window = window
        return len(stale)

    def cleanup(self, now: Optional[float] = None) -> int:
        """Drop counters from expired windows, returning how many were removed"""
        now = time.time() if now is None else now
        with self._lock:
            return self._cleanup_locked(self._window(now))

    def reset(self):
        with self._lock:
            self._store.clear()
            self._cleaned_window = -1


def register_middleware(app: FastAPI, limiter: FixedWindowRateLimiter) -> None:
    """Request logging, /api/ rate limiting and security headers"""

    @app.middleware("http")
    async def rate_limit(request: Request, call_next):
        if not request.url.path.startswith("/api/"):
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"
        result = limiter.check_and_increment(client_ip)
        headers = {
            "RateLimit-Limit": str(limiter.max_requests),
            "RateLimit-Remaining": str(result["remaining"]),
            "RateLimit-Reset": str(max(0, int(result["reset_at"] - time.time()))),
        }

        if not result["allowed"]:
            logger.warning("Rate limit exceeded for %s", client_ip)
            return JSONResponse(
                status_code=429,
                content={
                    "error": "Too Many Requests",
                    "message": "Too many requests from this IP, please try again later.",
                },
                headers=headers,
            )

        response = await call_next(request)
        response.headers.update(headers)
        return response

    # Registered last so it runs outermost
    @app.middleware("http")
    async def log_and_secure(request: Request, call_next):
        request.state.start_time = time.monotonic()
        client_ip = request.client.host if request.client else "unknown"
        logger.info("%s %s - %s", request.method, request.url.path, client_ip)

        try:
            response = await call_next(request)
        except Exception as exc:
            # Rendered here so the error envelope also gets the headers below
            response = await unhandled_error_handler(request, exc)
        for name, value in SECURITY_HEADERS.items():
            response.headers.setdefault(name, value)
        return response


def default_rate_limiter() -> FixedWindowRateLimiter:
    return FixedWindowRateLimiter(
        config.RATE_LIMIT_MAX_REQUESTS, config.RATE_LIMIT_WINDOW_SECONDS
    )
