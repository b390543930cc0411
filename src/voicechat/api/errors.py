from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from voicechat.runtime.errors import VoiceChatError

# Runtime error code -> HTTP status.
_STATUS_BY_CODE: Dict[str, int] = {
    "not_found": 404,
    "inactive_room": 409,
    "already_member": 409,
    "not_member": 409,
    "room_full": 409,
    "slot_full": 409,
    "no_growth_needed": 409,
    "growth_incomplete": 409,
    "payload_too_large": 413,
    "too_many_targets": 400,
    "invalid_request": 400,
    "target_too_large": 422,
}


@dataclass(eq=False)
class ApiError(Exception):
    status_code: int
    code: str
    message: str
    details: Dict[str, Any]

    @staticmethod
    def bad_request(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> "ApiError":
        return ApiError(400, code, message, details or {})

    @staticmethod
    def not_found(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> "ApiError":
        return ApiError(404, code, message, details or {})

    @staticmethod
    def internal(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> "ApiError":
        return ApiError(500, code, message, details or {})

    @staticmethod
    def from_runtime(err: VoiceChatError) -> "ApiError":
        return ApiError(_STATUS_BY_CODE.get(err.code, 500), err.code, err.reason, dict(err.details or {}))

    def to_json(self) -> Dict[str, Any]:
        return {"ok": False, "error": {"code": self.code, "message": self.message, "details": dict(self.details)}}
