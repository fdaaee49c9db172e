# src/epochstake/api/structured_logging.py
from __future__ import annotations

import logging
import os
import time
import uuid
from typing import Optional

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from epochstake.runtime.runtime_logging import log_event

_HANDLER_MARK = "_epochstake_jsonl"


def configure_structured_logging(level_name: Optional[str] = None) -> None:
    """Send JSONL log lines to stderr at EPOCHSTAKE_LOG_LEVEL (default INFO).

    Idempotent; handlers installed by the host (uvicorn, pytest) are kept.
    """
    raw = level_name or os.environ.get("EPOCHSTAKE_LOG_LEVEL") or "INFO"
    level = getattr(logging, raw.strip().upper(), logging.INFO)

    root = logging.getLogger()
    root.setLevel(level)
    if any(getattr(h, _HANDLER_MARK, False) for h in root.handlers):
        return

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(message)s"))
    setattr(handler, _HANDLER_MARK, True)
    root.addHandler(handler)


def tag_error_code(request: Request, code: str) -> None:
    """Record the error code returned to the client on the request state."""
    request.state.error_code = code


class RequestLogMiddleware(BaseHTTPMiddleware):
    """One `http_request` event per request, tagged with the serving engine.

    EPOCHSTAKE_LOG_REQUESTS=0 turns it off.
    """

    def __init__(self, app) -> None:
        super().__init__(app)
        raw = (os.environ.get("EPOCHSTAKE_LOG_REQUESTS") or "1").strip().lower()
        self._enabled = raw not in {"0", "false", "no", "off"}
        self._logger = logging.getLogger("epochstake.http")

    async def dispatch(self, request: Request, call_next):
        if not self._enabled:
            return await call_next(request)

        started = time.monotonic()
        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex
        request.state.request_id = request_id
        status = 500

        try:
            response = await call_next(request)
            status = int(response.status_code)
            response.headers.setdefault("x-request-id", request_id)
            return response
        finally:
            engine = getattr(request.app.state, "engine", None)
            endpoint = request.scope.get("endpoint")
            log_event(
                self._logger,
                "http_request",
                request_id=request_id,
                method=request.method,
                path=request.url.path,
                endpoint=getattr(endpoint, "__name__", None),
                status=status,
                duration_ms=int((time.monotonic() - started) * 1000),
                instance_id=getattr(engine, "instance_id", None),
                error_code=getattr(request.state, "error_code", None),
            )
