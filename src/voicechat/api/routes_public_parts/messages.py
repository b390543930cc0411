from __future__ import annotations

from fastapi import APIRouter, Request

from voicechat.api.routes_public_parts.common import Json, _decode_payload, _encode_payload, _service
from voicechat.api.schemas import BroadcastRequest, SendMessageRequest
from voicechat.runtime.broadcast import tally

router = APIRouter()


@router.post("/rooms/{room_id}/messages")
def send_message(room_id: str, body: SendMessageRequest, request: Request) -> Json:
    svc = _service(request)
    data = _decode_payload(body.payload_b64)
    message_id = svc.send_message(body.user_id, room_id, data, body.slot_index)
    return {"ok": True, "message": svc.get_message(message_id).to_json()}


@router.post("/rooms/{room_id}/broadcast")
def broadcast(room_id: str, body: BroadcastRequest, request: Request) -> Json:
    """Per-target results in request order. A failed target does not fail the call."""
    svc = _service(request)
    data = _decode_payload(body.payload_b64)
    outcomes = svc.broadcast(body.user_id, room_id, data, body.slot_indexes)

    results = []
    for o in outcomes:
        if o.ok:
            results.append({"slot_index": o.slot_index, "ok": True, "message_id": o.message_id})
        else:
            results.append({"slot_index": o.slot_index, "ok": False, "error": {"code": o.code, "message": str(o.error)}})

    succeeded, attempted = tally(outcomes)
    return {"ok": True, "succeeded": succeeded, "attempted": attempted, "results": results}


@router.get("/messages/{message_id}")
def get_message(message_id: str, request: Request) -> Json:
    m = _service(request).get_message(message_id)
    out = m.to_json()
    out["payload_b64"] = _encode_payload(m.payload)
    return {"ok": True, "message": out}
