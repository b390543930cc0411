from __future__ import annotations

import base64
import binascii
from typing import Any, Dict

from fastapi import Request

from voicechat.api.errors import ApiError
from voicechat.runtime.service import VoiceChatService

Json = Dict[str, Any]


def _service(request: Request) -> VoiceChatService:
    svc = getattr(request.app.state, "service", None)
    if svc is None:
        raise ApiError.internal("not_ready", "service not attached to app.state", {})
    return svc


def _decode_payload(payload_b64: str) -> bytes:
    """Strict standard base64. Size limits are left to the router."""
    try:
        return base64.b64decode(str(payload_b64 or "").encode("ascii"), validate=True)
    except (binascii.Error, UnicodeEncodeError, ValueError) as e:
        raise ApiError.bad_request("invalid_payload", "payload_b64 is not valid base64", {"reason": str(e)})


def _encode_payload(data: bytes) -> str:
    return base64.b64encode(bytes(data)).decode("ascii")
