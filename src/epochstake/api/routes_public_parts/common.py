from __future__ import annotations

import time
from typing import Any, Dict, Optional

from fastapi import Request

from epochstake.api.errors import ApiError
from epochstake.runtime.engine import StakingEngine

Json = Dict[str, Any]


def _engine(request: Request) -> StakingEngine:
    eng = getattr(request.app.state, "engine", None)
    if eng is None:
        raise ApiError.internal("not_ready", "engine not attached to app.state", {})
    return eng


def _now(v: Optional[int]) -> int:
    """Client-supplied unix seconds, else the server clock."""
    if v is None:
        return int(time.time())
    return int(v)
