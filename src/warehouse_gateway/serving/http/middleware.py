"""HTTP middleware: rate limiting, security headers and docs protection."""

from __future__ import annotations

import hmac
import logging
import math
import threading
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from fastapi import FastAPI, Request
from starlette.responses import Response

from warehouse_gateway.serving import errors
from warehouse_gateway.serving.http.responses import error_response

LOG = logging.getLogger("warehouse_gateway.serving.http.middleware")

SECURITY_HEADERS: dict[str, str] = {
    "Cross-Origin-Opener-Policy": "same-origin",
    "Cross-Origin-Resource-Policy": "same-origin",
    "Referrer-Policy": "no-referrer",
    "Strict-Transport-Security": "max-age=15552000; includeSubDomains",
    "X-Content-Type-Options": "nosniff",
    "X-DNS-Prefetch-Control": "off",
    "X-Frame-Options": "SAMEORIGIN",
    "X-Permitted-Cross-Domain-Policies": "none",
}

RATE_LIMIT_MESSAGE = "Too many requests, please try again later."
DOCS_UNAUTHORIZED_MESSAGE = "Invalid or missing token"

Clock = Callable[[], float]


@dataclass(frozen=True)
class RateLimitDecision:
    """Outcome of a rate limit check for one request."""

    allowed: bool
    limit: int
    remaining: int
    reset_seconds: int


@dataclass
class _Window:
    started: float
    count: int = 0


@dataclass
class RateLimiter:
    """
    Fixed-window request limiter keyed by client address.

    Each key gets ``max_requests`` hits per window; the window starts on the
    first hit and the count resets once it has elapsed.
    """

    max_requests: int
    window_seconds: float
    clock: Clock = time.monotonic
    _windows: dict[str, _Window] = field(default_factory=dict, init=False, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    @property
    def enabled(self) -> bool:
        """Whether requests are limited at all."""
        return self.max_requests > 0

    def _prune(self, now: float) -> None:
        expired = [
            key
            for key, window in self._windows.items()
            if now - window.started >= self.window_seconds
        ]
        for key in expired:
            del self._windows[key]

    def hit(self, key: str) -> RateLimitDecision:
        """
        Record a request for ``key`` and decide whether it may proceed.

        Parameters
        ----------
        key:
            Client identifier, usually the remote address.

        Returns
        -------
        RateLimitDecision
            Whether the request is allowed plus header values.
        """
        now = self.clock()
        with self._lock:
            window = self._windows.get(key)
            if window is None or now - window.started >= self.window_seconds:
                self._prune(now)
                window = _Window(started=now)
                self._windows[key] = window
            window.count += 1
            reset = max(math.ceil(window.started + self.window_seconds - now), 1)
            return RateLimitDecision(
                allowed=window.count <= self.max_requests,
                limit=self.max_requests,
                remaining=max(self.max_requests - window.count, 0),
                reset_seconds=reset,
            )

    def reset(self) -> None:
        """Forget all recorded requests."""
        with self._lock:
            self._windows.clear()


def _client_key(request: Request) -> str:
    client = request.client
    return client.host if client is not None else "unknown"


def _rate_limit_headers(decision: RateLimitDecision) -> dict[str, str]:
    return {
        "X-RateLimit-Limit": str(decision.limit),
        "X-RateLimit-Remaining": str(decision.remaining),
        "X-RateLimit-Reset": str(decision.reset_seconds),
    }


def install_rate_limit_middleware(app: FastAPI, limiter: RateLimiter) -> None:
    """Reject callers that exceed the configured request budget with 429."""

    @app.middleware("http")
    async def _rate_limit(
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        if not limiter.enabled:
            return await call_next(request)
        key = _client_key(request)
        decision = limiter.hit(key)
        headers = _rate_limit_headers(decision)
        if not decision.allowed:
            exc = errors.RateLimitError(RATE_LIMIT_MESSAGE, retry_after=decision.reset_seconds)
            headers["Retry-After"] = str(exc.retry_after)
            LOG.warning(
                "%s %s throttled for %s: %s", request.method, request.url.path, key, exc
            )
            return error_response(exc.envelope, headers=headers)
        response = await call_next(request)
        response.headers.update(headers)
        return response


def install_security_headers(app: FastAPI) -> None:
    """Attach conservative security headers to every response."""

    @app.middleware("http")
    async def _security_headers(
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        response = await call_next(request)
        for name, value in SECURITY_HEADERS.items():
            response.headers.setdefault(name, value)
        return response


def _docs_token(request: Request) -> str | None:
    """
    Read the docs token from the Authorization header or ``?token=``.

    Returns
    -------
    str | None
        Presented token, if any.
    """
    authorization = request.headers.get("authorization")
    if authorization is not None:
        return authorization.removeprefix("Bearer ")
    return request.query_params.get("token")


def install_docs_guard(app: FastAPI, *, docs_path: str, token: str | None) -> None:
    """
    Require ``token`` to fetch the OpenAPI description, when configured.

    Parameters
    ----------
    app:
        Application to protect.
    docs_path:
        Path serving the OpenAPI JSON document.
    token:
        Expected token; the guard is not installed when ``None``.
    """
    if not token:
        return
    expected = token.encode("utf-8")

    @app.middleware("http")
    async def _docs_guard(
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        if request.url.path != docs_path:
            return await call_next(request)
        presented = _docs_token(request)
        if presented is None or not hmac.compare_digest(presented.encode("utf-8"), expected):
            exc = errors.unauthorized(DOCS_UNAUTHORIZED_MESSAGE, error="Unauthorized")
            LOG.warning("%s %s failed: %s", request.method, request.url.path, exc)
            return error_response(exc.envelope)
        return await call_next(request)


__all__ = [
    "SECURITY_HEADERS",
    "RateLimitDecision",
    "RateLimiter",
    "install_docs_guard",
    "install_rate_limit_middleware",
    "install_security_headers",
]
