from __future__ import annotations

from fastapi import APIRouter, Request

from voicechat.api.routes_public_parts.common import Json, _service
from voicechat.api.schemas import CreateRoomRequest, CreateUserRequest, MembershipRequest

router = APIRouter()


@router.post("/users")
def create_user(body: CreateUserRequest, request: Request) -> Json:
    svc = _service(request)
    user_id = svc.create_user(body.name)
    return {"ok": True, "user_id": user_id}


@router.get("/users/{user_id}")
def get_user(user_id: str, request: Request) -> Json:
    u = _service(request).get_user(user_id)
    return {
        "ok": True,
        "user": {"user_id": u.user_id, "name": u.name, "rooms": list(u.rooms), "messages_sent": u.messages_sent},
    }


@router.post("/rooms")
def create_room(body: CreateRoomRequest, request: Request) -> Json:
    svc = _service(request)
    room_id = svc.create_room(body.host_id, body.name)
    return {"ok": True, "room_id": room_id}


@router.get("/rooms")
def list_rooms(request: Request) -> Json:
    rooms = _service(request).list_rooms()
    return {"ok": True, "rooms": [r.to_json() for r in rooms]}


@router.get("/rooms/{room_id}")
def get_room(room_id: str, request: Request) -> Json:
    return {"ok": True, "room": _service(request).get_room_info(room_id).to_json()}


@router.post("/rooms/{room_id}/join")
def join_room(room_id: str, body: MembershipRequest, request: Request) -> Json:
    svc = _service(request)
    svc.join_room(body.user_id, room_id)
    return {"ok": True, "room": svc.get_room_info(room_id).to_json()}


@router.post("/rooms/{room_id}/leave")
def leave_room(room_id: str, body: MembershipRequest, request: Request) -> Json:
    svc = _service(request)
    svc.leave_room(body.user_id, room_id)
    return {"ok": True, "room": svc.get_room_info(room_id).to_json()}
