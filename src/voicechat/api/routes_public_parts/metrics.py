from __future__ import annotations

from fastapi import APIRouter, Request, Response

from voicechat.api.errors import ApiError
from voicechat.api.routes_public_parts.common import Json
from voicechat.runtime.metrics import format_prometheus, metrics_enabled, set_gauge, snapshot

router = APIRouter()


def _refresh_storage_gauges(request: Request) -> None:
    """Point-in-time gauges read from the attached service, if any."""
    svc = getattr(request.app.state, "service", None)
    if svc is None:
        return
    summary = svc.storage_info()
    rooms = svc.list_rooms()
    set_gauge("slots", len(summary.slots))
    set_gauge("slot_bytes_used", summary.total_used)
    set_gauge("slot_bytes_capacity", summary.total_capacity)
    set_gauge("slot_bytes_pending", sum(s.pending for s in summary.slots))
    set_gauge("rooms", len(rooms))
    set_gauge("rooms_active", sum(1 for r in rooms if r.active))


@router.get("/metrics")
def metrics(request: Request) -> Response:
    """Prometheus text (voicechat_* counters and storage gauges).

    Disabled unless VOICECHAT_METRICS_ENABLED=1.
    """
    if not metrics_enabled():
        return Response(status_code=404, content="not_found\n", media_type="text/plain")
    _refresh_storage_gauges(request)
    return Response(content=format_prometheus(), media_type="text/plain")


@router.get("/metrics/snapshot")
def metrics_snapshot(request: Request) -> Json:
    if not metrics_enabled():
        raise ApiError.not_found("metrics_disabled", "set VOICECHAT_METRICS_ENABLED=1", {})
    _refresh_storage_gauges(request)
    return {"ok": True, "metrics": snapshot()}
