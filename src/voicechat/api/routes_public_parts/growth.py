from __future__ import annotations

from fastapi import APIRouter, Request

from voicechat.api.routes_public_parts.common import Json, _service
from voicechat.api.schemas import GrowthRequest
from voicechat.runtime.slots import check_slot_index

router = APIRouter()


@router.post("/growth")
def grow_unit(body: GrowthRequest, request: Request) -> Json:
    """Run the bounded growth loop for one unit to completion."""
    svc = _service(request)
    unit_id = body.unit_id.strip() or svc.unit_address(check_slot_index(body.slot_index))
    result = svc.grow_unit(unit_id, body.target_size)
    return {"ok": True, "growth": result.to_json(), "profile": svc.profile.name}
