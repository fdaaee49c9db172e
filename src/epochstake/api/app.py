from __future__ import annotations

import logging
import os
from typing import List

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from epochstake.api.errors import ApiError
from epochstake.api.routes_public import public_router
from epochstake.api.security import RequestSizeLimitMiddleware
from epochstake.api.structured_logging import RequestLogMiddleware, configure_structured_logging, tag_error_code
from epochstake.runtime.engine_boot import build_engine as _build_engine
from epochstake.runtime.errors import StakingError
from epochstake.runtime.runtime_logging import log_event

_log = logging.getLogger("epochstake.api")


def build_engine():
    """Build a StakingEngine for API runtime.

    This wrapper exists so tests can monkeypatch `epochstake.api.app.build_engine`
    without reaching into runtime modules.
    """
    return _build_engine()


def _parse_cors_origins() -> List[str]:
    """Parse CORS origins with production-safe defaults.

    Policy:
      - If EPOCHSTAKE_CORS_ORIGINS is unset/empty -> CORS disabled (fail-closed)
      - Wildcard "*" is rejected in EPOCHSTAKE_MODE=prod
      - In non-prod modes, "*" is allowed for convenience
    """
    raw = os.environ.get("EPOCHSTAKE_CORS_ORIGINS", "").strip()
    mode = os.environ.get("EPOCHSTAKE_MODE", "prod").strip().lower()

    if not raw:
        return []

    origins = [o.strip() for o in raw.split(",") if o.strip()]

    if "*" in origins:
        if mode == "prod":
            raise RuntimeError(
                "Unsafe CORS configuration: wildcard '*' not allowed in production. "
                "Set explicit origins in EPOCHSTAKE_CORS_ORIGINS."
            )
        return ["*"]

    return origins


async def _api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    tag_error_code(request, exc.code)
    return JSONResponse(status_code=exc.status_code, content=exc.to_json())


async def _staking_error_handler(request: Request, exc: StakingError) -> JSONResponse:
    err = ApiError.from_staking(exc)
    tag_error_code(request, err.code)
    return JSONResponse(status_code=err.status_code, content=err.to_json())


def create_app(*, boot_runtime: bool = True) -> FastAPI:
    """Create the FastAPI application.

    boot_runtime:
      - True (default): load node config + attach engine (instantiating from genesis if configured)
      - False: keep lightweight for unit tests / import-time validation
    """
    configure_structured_logging()
    mode = os.environ.get("EPOCHSTAKE_MODE", "prod").strip().lower()

    # Disable docs in production.
    if mode == "prod":
        app = FastAPI(title="EpochStake API", docs_url=None, redoc_url=None, openapi_url=None)
    else:
        app = FastAPI(title="EpochStake API")

    if boot_runtime:
        app.state.engine = build_engine()
    else:
        app.state.engine = None

    app.add_exception_handler(ApiError, _api_error_handler)
    app.add_exception_handler(StakingError, _staking_error_handler)

    # --- Middleware ---
    # Request size limiter should be early to fail fast.
    app.add_middleware(RequestSizeLimitMiddleware)
    app.add_middleware(RequestLogMiddleware)

    cors_origins = _parse_cors_origins()
    if cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=cors_origins,
            allow_credentials=True,
            allow_methods=["GET", "POST", "OPTIONS"],
            allow_headers=["Authorization", "Content-Type"],
        )

    app.include_router(public_router)

    log_event(_log, "api_created", mode=mode, boot_runtime=bool(boot_runtime))
    return app
