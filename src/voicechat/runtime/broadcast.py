from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Iterator, List, Optional, Sequence, Tuple

from voicechat.ledger.constants import MAX_BROADCAST_TARGETS
from voicechat.runtime.errors import TooManyTargets, VoiceChatError
from voicechat.runtime.event_log import log_event
from voicechat.runtime.metrics import inc_counter
from voicechat.runtime.router import MessageRouter

log = logging.getLogger("voicechat.broadcast")


@dataclass(frozen=True)
class SendOutcome:
    slot_index: int
    ok: bool
    message_id: Optional[str] = None
    error: Optional[Exception] = None

    def __iter__(self) -> Iterator[object]:
        """Allow `slot_index, result = outcome` where result is a message id or the error."""
        yield self.slot_index
        yield self.message_id if self.ok else self.error

    @property
    def code(self) -> str:
        if self.ok:
            return "ok"
        if isinstance(self.error, VoiceChatError):
            return self.error.code
        return "error"

    @staticmethod
    def success(slot_index: int, message_id: str) -> "SendOutcome":
        return SendOutcome(slot_index, True, message_id, None)

    @staticmethod
    def failure(slot_index: int, error: Exception) -> "SendOutcome":
        return SendOutcome(slot_index, False, None, error)


def tally(outcomes: Sequence[SendOutcome]) -> Tuple[int, int]:
    """(succeeded, attempted)"""
    return (sum(1 for o in outcomes if o.ok), len(outcomes))


class BroadcastCoordinator:
    """Fan one payload out to many slots with per-target isolation.

    The whole call fails only before any send is attempted (TooManyTargets).
    After that, every target gets exactly one send_message() call and its own
    outcome; results come back in the caller's input order regardless of
    completion order.
    """

    def __init__(self, router: MessageRouter, *, max_workers: int = MAX_BROADCAST_TARGETS) -> None:
        self._router = router
        self.max_workers = max(1, int(max_workers))

    def broadcast(
        self,
        user_id: str,
        room_id: str,
        payload: bytes,
        slot_indexes: Sequence[int],
        max_targets: int = MAX_BROADCAST_TARGETS,
    ) -> List[SendOutcome]:
        targets = list(slot_indexes)
        if len(targets) > int(max_targets):
            raise TooManyTargets(
                "too_many_targets",
                {"room_id": room_id, "user_id": user_id, "targets": len(targets), "max_targets": int(max_targets)},
            )
        if not targets:
            return []

        def _send(idx: int) -> SendOutcome:
            try:
                return SendOutcome.success(idx, self._router.send_message(user_id, room_id, payload, idx))
            except VoiceChatError as e:
                return SendOutcome.failure(idx, e)
            except Exception as e:
                log.warning("broadcast target %s failed: %s", idx, e, exc_info=True)
                return SendOutcome.failure(idx, e)

        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(targets))) as pool:
            outcomes = list(pool.map(_send, targets))

        succeeded, attempted = tally(outcomes)
        inc_counter("broadcasts_total")
        inc_counter("broadcast_target_failures_total", attempted - succeeded)
        log_event(
            log,
            "broadcast_done",
            room_id=room_id,
            user_id=user_id,
            length=len(payload),
            succeeded=succeeded,
            attempted=attempted,
            failures={str(o.slot_index): o.code for o in outcomes if not o.ok},
        )
        return outcomes
