from __future__ import annotations

import time
from typing import Any, Dict

from fastapi import APIRouter, Request

router = APIRouter()


@router.get("/health")
def health(request: Request) -> Dict[str, Any]:
    """Liveness plus whether the staking store has been instantiated.

    Never raises: a missing engine is reported, not surfaced as a 500.
    """
    eng = getattr(request.app.state, "engine", None)
    initialized = False
    if eng is not None:
        initialized = bool(eng.is_initialized())
    return {
        "ok": True,
        "instance_id": getattr(eng, "instance_id", None),
        "engine_attached": eng is not None,
        "initialized": initialized,
        "ts_ms": int(time.time() * 1000),
    }
