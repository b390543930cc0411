from __future__ import annotations

from fastapi import APIRouter, Request

from voicechat.api.routes_public_parts.common import Json, _service

router = APIRouter()


@router.get("/slots")
def storage_info(request: Request) -> Json:
    """Usage of every slot created so far, with totals."""
    out = _service(request).storage_info().to_json()
    out["ok"] = True
    return out


@router.post("/slots/provision")
def provision_slots(request: Request) -> Json:
    outcomes = _service(request).provision_slots()
    return {
        "ok": True,
        "results": [
            {"slot_index": o.slot_index, "ok": o.ok, "usage": o.usage.to_json() if o.usage else None}
            if o.ok
            else {"slot_index": o.slot_index, "ok": False, "error": {"code": o.error.code, "message": o.error.reason}}
            for o in outcomes
        ],
    }


@router.get("/slots/{index}")
def slot_usage(index: int, request: Request) -> Json:
    svc = _service(request)
    usage = svc.slot_usage(index)
    return {"ok": True, "slot": usage.to_json(), "unit_id": svc.unit_address(index)}


@router.post("/slots/{index}/clear")
def clear_slot(index: int, request: Request) -> Json:
    """Drop the slot's stored messages. In-flight sends keep their reservation."""
    cleared = _service(request).clear_slot(index)
    return {
        "ok": True,
        "slot": cleared.usage.to_json(),
        "dropped_message_ids": list(cleared.message_ids),
        "freed": cleared.freed,
    }
