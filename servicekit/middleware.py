"""HTTP middleware: rate limiting, error recovery and request metrics."""
from __future__ import annotations

import logging
import time
from typing import Awaitable, Callable

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from servicekit.metrics import RequestMetrics
from servicekit.rate_limit import RateLimiter
from servicekit.realip import client_ip
from servicekit.responses import rate_limit_exceeded_response, server_error_response

LOGGER = logging.getLogger(__name__)

Resolver = Callable[[Request], str]
Responder = Callable[[Request], Awaitable[Response]]


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Reject requests from clients that have used up their token bucket.

    When ``active`` is false every request passes straight through and the
    limiter is never consulted.
    """

    def __init__(
        self,
        app: ASGIApp,
        *,
        limiter: RateLimiter,
        active: bool = True,
        resolver: Resolver = client_ip,
        responder: Responder = rate_limit_exceeded_response,
    ) -> None:
        super().__init__(app)
        self.limiter = limiter
        self.active = active
        self.resolver = resolver
        self.responder = responder

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if self.active:
            ip = self.resolver(request)
            if not self.limiter.allow(ip):
                LOGGER.info("rate limit exceeded", extra={"client_ip": ip})
                return await self.responder(request)
        return await call_next(request)


class RecoverMiddleware(BaseHTTPMiddleware):
    """Turn unhandled exceptions into a generic 500 and close the connection."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        try:
            return await call_next(request)
        except Exception as exc:  # noqa: BLE001
            response = server_error_response(request, exc)
            response.headers["Connection"] = "close"
            return response


class MetricsMiddleware(BaseHTTPMiddleware):
    def __init__(self, app: ASGIApp, *, metrics: RequestMetrics) -> None:
        super().__init__(app)
        self.metrics = metrics

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        start = time.perf_counter()
        self.metrics.request_received()
        response = await call_next(request)
        duration_us = int((time.perf_counter() - start) * 1_000_000)
        self.metrics.response_sent(response.status_code, duration_us)
        return response
