from __future__ import annotations

import time

from fastapi import APIRouter, Request

router = APIRouter()


def _now_ms() -> int:
    return int(time.time() * 1000)


def _health_payload(request: Request) -> dict[str, object]:
    """Liveness. Must never crash; reports whether a service is attached."""
    svc = getattr(request.app.state, "service", None)
    cfg = getattr(request.app.state, "cfg", None)
    rooms = None
    slots = None
    if svc is not None:
        rooms = len(svc.list_rooms())
        slots = len(svc.storage_info().slots)
    return {
        "ok": svc is not None,
        "service": "voicechat",
        "version": "v1",
        "ts_ms": _now_ms(),
        "mode": getattr(cfg, "mode", None),
        "growth_profile": getattr(cfg, "growth_profile", None),
        "rooms": rooms,
        "slots": slots,
    }


@router.get("/v1/health")
def v1_health(request: Request) -> dict[str, object]:
    return _health_payload(request)


@router.get("/health")
def health(request: Request) -> dict[str, object]:
    # unversioned alias for ops tooling
    return _health_payload(request)
