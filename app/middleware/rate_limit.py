# =============================================================================
# app/middleware/rate_limit.py - Fixed-Window Rate Limiter
# =============================================================================
# Throttles the endpoints that are expensive or abusable: asset uploads,
# playback token minting and the webhook receivers.
#
# Counters live in process memory, so each API instance limits on its own.
# =============================================================================

import json
import logging
import time
from dataclasses import dataclass

from starlette.types import ASGIApp, Message, Receive, Scope, Send

logger = logging.getLogger(__name__)

GUARDED_PREFIXES = (
    "/api/v1/admin/assets/upload",
    "/api/v1/mux/token",
    "/api/v1/webhooks/",
)


@dataclass
class Window:
    """One client's counter for the current window."""
    count: int
    reset_at: float


class FixedWindowLimiter:
    """
    Fixed-window request counter keyed by client and path.

    Args:
        limit: Requests allowed per window
        window_seconds: Window length
    """

    def __init__(self, limit: int, window_seconds: int):
        self.limit = limit
        self.window_seconds = window_seconds
        self._windows: dict[str, Window] = {}

    def hit(self, key: str, now: float | None = None) -> tuple[bool, int, float]:
        """
        Count one request.

        Returns:
            Tuple of (allowed, remaining, reset_at epoch seconds)
        """
        now = time.time() if now is None else now
        window = self._windows.get(key)
        if window is None or now >= window.reset_at:
            window = Window(count=0, reset_at=now + self.window_seconds)
            self._windows[key] = window

        window.count += 1
        remaining = max(0, self.limit - window.count)
        return window.count <= self.limit, remaining, window.reset_at

    def prune(self, now: float | None = None) -> None:
        """Drop expired windows."""
        now = time.time() if now is None else now
        for key in [k for k, w in self._windows.items() if now >= w.reset_at]:
            del self._windows[key]


def client_key(scope: Scope) -> str:
    """
    Identify the caller: first X-Forwarded-For hop, else the socket peer.
    """
    for name, value in scope.get("headers", []):
        if name == b"x-forwarded-for":
            first = value.decode("latin-1").split(",")[0].strip()
            if first:
                return first
    client = scope.get("client")
    return client[0] if client else "unknown"


class RateLimitMiddleware:
    """ASGI middleware applying FixedWindowLimiter to guarded paths."""

    def __init__(self, app: ASGIApp, limit: int = 60, window_seconds: int = 60) -> None:
        self.app = app
        self.limiter = FixedWindowLimiter(limit, window_seconds)
        self._requests_since_prune = 0

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope.get("type") != "http":
            await self.app(scope, receive, send)
            return

        path = scope.get("path", "")
        if not path.startswith(GUARDED_PREFIXES):
            await self.app(scope, receive, send)
            return

        self._requests_since_prune += 1
        if self._requests_since_prune >= 1000:
            self.limiter.prune()
            self._requests_since_prune = 0

        allowed, remaining, reset_at = self.limiter.hit(f"{client_key(scope)}:{path}")
        rate_headers = [
            (b"x-ratelimit-limit", str(self.limiter.limit).encode()),
            (b"x-ratelimit-remaining", str(remaining).encode()),
            (b"x-ratelimit-reset", str(int(reset_at)).encode()),
        ]

        if not allowed:
            logger.warning(f"Rate limit exceeded for {path}")
            body = json.dumps({"detail": "Too Many Requests", "code": "RATE_LIMITED"}).encode()
            await send({
                "type": "http.response.start",
                "status": 429,
                "headers": [
                    (b"content-type", b"application/json"),
                    (b"content-length", str(len(body)).encode()),
                    *rate_headers,
                ],
            })
            await send({"type": "http.response.body", "body": body})
            return

        async def send_with_headers(message: Message) -> None:
            if message["type"] == "http.response.start":
                message = {**message, "headers": [*message.get("headers", []), *rate_headers]}
            await send(message)

        await self.app(scope, receive, send_with_headers)
