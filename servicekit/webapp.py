"""Base web application shared by every service built on the toolkit."""
from __future__ import annotations

import asyncio
import logging
import threading
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Callable, Optional, Set

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from servicekit import jsend
from servicekit.config import Settings
from servicekit.metrics import RequestMetrics
from servicekit.middleware import MetricsMiddleware, RateLimitMiddleware, RecoverMiddleware
from servicekit.rate_limit import RateLimiter
from servicekit.responses import install_exception_handlers
from servicekit.utils import format_uptime, utc_now
from servicekit.version import version

IDLE_TIMEOUT_SECONDS = 60
SHUTDOWN_TIMEOUT_SECONDS = 20


class WebApp:
    """FastAPI application with the toolkit's middleware, error handling and base routes.

    ``/health`` reports availability and build information, ``/debug`` exposes
    the request counters. The rate limiter's sweep runs for the lifetime of
    the application, and work handed to :meth:`background` is waited for on
    shutdown.
    """

    def __init__(self, settings: Settings, logger: Optional[logging.Logger] = None,
                 title: str = "Service") -> None:
        self.settings = settings
        self.logger = logger or logging.getLogger(__name__)
        self.started = utc_now()
        self._started_at = time.monotonic()
        self.metrics = RequestMetrics()
        self.limiter = RateLimiter(settings.limiter.rps, settings.limiter.burst)
        self._threads: Set[threading.Thread] = set()
        self._threads_lock = threading.Lock()

        self.app = FastAPI(title=title, lifespan=self._lifespan)
        install_exception_handlers(self.app)
        self._setup_middleware()
        self._setup_routes()

    @asynccontextmanager
    async def _lifespan(self, app: FastAPI) -> AsyncIterator[None]:
        if self.settings.limiter.active:
            self.limiter.start()
        try:
            yield
        finally:
            await self.limiter.stop()
            self.logger.info("completing background tasks", extra={"addr": self.settings.server.addr})
            await asyncio.to_thread(self.wait)

    def _setup_middleware(self) -> None:
        # Added innermost first: metrics -> recover -> cors -> rate limit -> routes.
        self.app.add_middleware(
            RateLimitMiddleware,
            limiter=self.limiter,
            active=self.settings.limiter.active,
        )
        self.app.add_middleware(
            CORSMiddleware,
            allow_origins=list(self.settings.cors.trusted_origins),
            allow_methods=list(self.settings.cors.allow_methods),
            allow_headers=["Authorization", "Content-Type"],
        )
        self.app.add_middleware(RecoverMiddleware)
        self.app.add_middleware(MetricsMiddleware, metrics=self.metrics)

    def _setup_routes(self) -> None:
        @self.app.get("/health")
        async def health_check() -> JSONResponse:
            """Report that the service is available along with build details."""

            return jsend.success_response(200, {
                "status": "available",
                "system_info": {
                    "environment": self.settings.server.env,
                    "started": self.started.isoformat(),
                    "uptime": format_uptime(self.uptime()),
                    "version": version(),
                },
            })

        @self.app.get("/debug")
        async def debug_vars() -> JSONResponse:
            return JSONResponse({"metrics": self.metrics.snapshot(), "rate_limited_clients": len(self.limiter)})

    def uptime(self) -> float:
        return time.monotonic() - self._started_at

    def background(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> threading.Thread:
        """Run ``fn`` in a tracked thread; exceptions are logged, never raised."""

        def run() -> None:
            try:
                fn(*args, **kwargs)
            except Exception:  # noqa: BLE001
                self.logger.exception("background task failed")
            finally:
                with self._threads_lock:
                    self._threads.discard(thread)

        thread = threading.Thread(target=run, daemon=True)
        with self._threads_lock:
            self._threads.add(thread)
        thread.start()
        return thread

    def wait(self, timeout: Optional[float] = None) -> None:
        """Block until every background task has finished."""

        with self._threads_lock:
            pending = list(self._threads)
        for thread in pending:
            thread.join(timeout)

    def serve(self) -> None:
        """Run the application with uvicorn until SIGINT or SIGTERM."""

        server_cfg = self.settings.server
        config = uvicorn.Config(
            self.app,
            host=server_cfg.host,
            port=server_cfg.port,
            timeout_keep_alive=IDLE_TIMEOUT_SECONDS,
            timeout_graceful_shutdown=SHUTDOWN_TIMEOUT_SECONDS,
            log_config=None,
        )
        self.logger.info("starting server", extra={"env": server_cfg.env, "addr": server_cfg.addr})
        uvicorn.Server(config).run()
        self.logger.info("stopped server", extra={"addr": server_cfg.addr})
