# src/voicechat/api/routes_public.py
from __future__ import annotations

from fastapi import APIRouter

from voicechat.api.routes_public_parts.growth import router as growth_router
from voicechat.api.routes_public_parts.health import router as health_router
from voicechat.api.routes_public_parts.messages import router as messages_router
from voicechat.api.routes_public_parts.metrics import router as metrics_router
from voicechat.api.routes_public_parts.rooms import router as rooms_router
from voicechat.api.routes_public_parts.slots import router as slots_router

public_router = APIRouter()

# health routes carry their own /v1 and unversioned paths
public_router.include_router(health_router, prefix="", tags=["health"])

# Versioned API surface
public_router.include_router(rooms_router, prefix="/v1", tags=["rooms"])
public_router.include_router(messages_router, prefix="/v1", tags=["messages"])
public_router.include_router(slots_router, prefix="/v1", tags=["storage"])
public_router.include_router(growth_router, prefix="/v1", tags=["growth"])

# Ops
public_router.include_router(metrics_router, prefix="/v1", tags=["metrics"])
