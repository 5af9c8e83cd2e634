from __future__ import annotations

import logging
import time
from typing import Callable
from uuid import uuid4

from fastapi import FastAPI, Request, Response

logger = logging.getLogger(__name__)

CORRELATION_HEADER = "X-Correlation-Id"

# Inline <style> is the only thing the diagram needs; no scripts, no fetches.
SVG_CONTENT_SECURITY_POLICY = "default-src 'none'; style-src 'unsafe-inline'; frame-ancestors 'none'"


def install_correlation_middleware(app: FastAPI) -> None:
    @app.middleware("http")
    async def ensure_correlation_id(request: Request, call_next: Callable[[Request], Response]):
        correlation_id = request.headers.get(CORRELATION_HEADER) or str(uuid4())
        request.state.correlation_id = correlation_id
        started = time.perf_counter()

        response = await call_next(request)
        response.headers.setdefault(CORRELATION_HEADER, correlation_id)
        logger.debug(
            "%s %s -> %s in %.1fms [%s]",
            request.method,
            request.url.path,
            response.status_code,
            (time.perf_counter() - started) * 1000,
            correlation_id,
        )
        return response


def install_svg_headers(app: FastAPI) -> None:
    """Lock down SVG responses so a rendered diagram can never run script."""

    @app.middleware("http")
    async def add_svg_headers(request: Request, call_next: Callable[[Request], Response]):
        response = await call_next(request)
        if response.headers.get("content-type", "").startswith("image/svg+xml"):
            response.headers.setdefault("Content-Security-Policy", SVG_CONTENT_SECURITY_POLICY)
            response.headers.setdefault("X-Content-Type-Options", "nosniff")
        return response
