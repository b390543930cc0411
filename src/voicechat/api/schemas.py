from __future__ import annotations

"""Pydantic request schemas for the public API.

Voice payloads travel as standard base64 strings; decoding and the size check
happen in the route helpers so oversized payloads surface as the runtime's
payload_too_large error rather than a schema failure.
"""

from typing import List

from pydantic import BaseModel, Field


class CreateUserRequest(BaseModel):
    name: str = Field(..., description="Display name")


class CreateRoomRequest(BaseModel):
    host_id: str = Field(..., description="User id of the host, e.g. user_<hex>")
    name: str = Field(..., description="Room name (1..32 characters)")


class MembershipRequest(BaseModel):
    user_id: str


class SendMessageRequest(BaseModel):
    user_id: str
    slot_index: int = Field(..., description="Target storage slot (0..65535)")
    payload_b64: str = Field(..., description="Base64 voice payload")


class BroadcastRequest(BaseModel):
    user_id: str
    slot_indexes: List[int] = Field(..., description="Target storage slots, at most 10")
    payload_b64: str = Field(..., description="Base64 voice payload")


class GrowthRequest(BaseModel):
    target_size: int = Field(..., description="Desired unit size in bytes")
    unit_id: str = Field(default="", description="Unit to grow; empty means the unit of slot_index")
    slot_index: int = Field(default=0, description="Slot whose derived unit is grown when unit_id is empty")

    model_config = {"extra": "ignore"}
