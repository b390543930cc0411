from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

Json = Dict[str, Any]


@dataclass(eq=False)
class VoiceChatError(Exception):
    """Canonical error type for session, slot, routing and growth failures.

    `code` is stable and machine-readable; `details` carries the offending
    identifiers so callers can decide whether to retry, retarget or abort.
    """

    code: str
    reason: str
    details: Optional[Json] = None

    def __str__(self) -> str:
        if not self.details:
            return f"{self.code}:{self.reason}"
        return f"{self.code}:{self.reason}:{self.details}"


class _Kind(VoiceChatError):
    CODE = "error"

    def __init__(self, reason: str, details: Optional[Json] = None) -> None:
        super().__init__(self.CODE, reason, dict(details or {}))


class NotFound(_Kind):
    CODE = "not_found"


class InactiveRoom(_Kind):
    CODE = "inactive_room"


class AlreadyMember(_Kind):
    CODE = "already_member"


class NotMember(_Kind):
    CODE = "not_member"


class RoomFull(_Kind):
    CODE = "room_full"


class SlotFull(_Kind):
    CODE = "slot_full"


class PayloadTooLarge(_Kind):
    CODE = "payload_too_large"


class TooManyTargets(_Kind):
    CODE = "too_many_targets"


class TargetTooLarge(_Kind):
    CODE = "target_too_large"


class GrowthIncomplete(_Kind):
    CODE = "growth_incomplete"


class NoGrowthNeeded(_Kind):
    # Raised by growth collaborators; the growth controller treats it as done.
    CODE = "no_growth_needed"


class InvalidRequest(_Kind):
    CODE = "invalid_request"
