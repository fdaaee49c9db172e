# src/epochstake/api/routes_public.py
from __future__ import annotations

from fastapi import APIRouter

from epochstake.api.routes_public_parts.health import router as health_router
from epochstake.api.routes_public_parts.members import router as members_router
from epochstake.api.routes_public_parts.metrics import router as metrics_router
from epochstake.api.routes_public_parts.staking import router as staking_router

public_router = APIRouter()

# Versioned API surface
public_router.include_router(health_router, prefix="/v1", tags=["health"])
public_router.include_router(staking_router, prefix="/v1", tags=["staking"])
public_router.include_router(members_router, prefix="/v1", tags=["members"])

# Ops
public_router.include_router(metrics_router, prefix="/v1", tags=["metrics"])
