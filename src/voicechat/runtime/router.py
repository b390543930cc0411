# src/voicechat/runtime/router.py
from __future__ import annotations

"""
Message router.

send_message() is the only path that creates messages:

  1. room exists / sender exists / room active / sender is a participant
  2. len(payload) <= max_payload (29 KiB: slot capacity minus 1 KiB header)
  3. ensure_slot + reserve on the target slot (SlotFull propagates unchanged)
  4. optional external write of the payload into the slot's unit
  5. under the room lock: re-check 1, assign the sequence, record the message,
     bump room/user counters, attach the message to the slot

Steps 1-4 run without the room lock, so sends to different slots of one room
(a broadcast) reserve and write in parallel. Only step 5 is serialized per
room, which keeps sequence numbers gap-free in commit order. Any failure
before the commit releases the reservation and leaves room, user and slot
counters exactly as they were.

clear_slot() drops the slot's attached messages from the router as well:
get_message() on them answers NotFound afterwards. Room sequence numbers and
message counts are history and are not rewound.
"""

import logging
import threading
import time
import uuid
from typing import Dict, List, Optional

from voicechat.ledger.addresses import Sha256AddressDeriver
from voicechat.ledger.constants import MAX_PAYLOAD_BYTES
from voicechat.ledger.interfaces import AddressDeriver, UnitWriter
from voicechat.ledger.types import Message
from voicechat.runtime.errors import InvalidRequest, NotFound, PayloadTooLarge
from voicechat.runtime.event_log import log_event
from voicechat.runtime.metrics import inc_counter
from voicechat.runtime.sessions import SendTicket, SessionRegistry
from voicechat.runtime.slots import ClearedSlot, SlotPool

log = logging.getLogger("voicechat.router")


def _now_ms() -> int:
    return int(time.time() * 1000)


def _as_payload(payload: object) -> bytes:
    if isinstance(payload, (bytes, bytearray, memoryview)):
        return bytes(payload)
    raise InvalidRequest("payload_not_bytes", {"type": type(payload).__name__})


class MessageRouter:
    def __init__(
        self,
        sessions: SessionRegistry,
        slots: SlotPool,
        *,
        max_payload: int = MAX_PAYLOAD_BYTES,
        owner: str = "voicechat-authority",
        writer: Optional[UnitWriter] = None,
        deriver: Optional[AddressDeriver] = None,
    ) -> None:
        self._sessions = sessions
        self._slots = slots
        self.max_payload = int(max_payload)
        self.owner = owner
        self._writer = writer
        self._deriver = deriver or Sha256AddressDeriver()
        self._messages: Dict[str, Message] = {}
        self._by_room: Dict[str, List[str]] = {}
        self._lock = threading.Lock()

    def unit_address(self, slot_index: int) -> str:
        return self._deriver.derive_address(self.owner, slot_index)

    def send_message(self, user_id: str, room_id: str, payload: bytes, slot_index: int) -> str:
        data = _as_payload(payload)

        self._sessions.check_sender(user_id, room_id)
        if len(data) > self.max_payload:
            raise PayloadTooLarge(
                "payload_exceeds_limit",
                {"room_id": room_id, "user_id": user_id, "length": len(data), "max_payload": self.max_payload},
            )

        self._slots.ensure_slot(slot_index)
        reservation = self._slots.reserve(slot_index, len(data))

        ticket: Optional[SendTicket] = None
        try:
            if self._writer is not None:
                self._writer.submit_write(self.unit_address(slot_index), data)

            with self._sessions.send_guard(user_id, room_id) as ticket:
                sequence = ticket.commit()
                message = Message(
                    message_id=f"msg_{uuid.uuid4().hex}",
                    sender_id=user_id,
                    room_id=room_id,
                    data_length=len(data),
                    payload=data,
                    slot_index=reservation.slot_index,
                    sequence=sequence,
                    created_at_ms=_now_ms(),
                )
                # recorded before attach so a concurrent clear_slot() always
                # finds the message it drops
                with self._lock:
                    self._messages[message.message_id] = message
                    self._by_room.setdefault(room_id, []).append(message.message_id)
                self._slots.attach(reservation, message.message_id)
        except Exception:
            if ticket is None or not ticket.sequence:
                self._slots.release(reservation)
            raise

        inc_counter("messages_sent_total")
        inc_counter("message_bytes_total", len(data))
        log_event(
            log,
            "message_sent",
            message_id=message.message_id,
            room_id=room_id,
            user_id=user_id,
            slot_index=reservation.slot_index,
            length=len(data),
            sequence=sequence,
            slot_used=reservation.used_after,
        )
        return message.message_id

    def get_message(self, message_id: str) -> Message:
        with self._lock:
            message = self._messages.get(message_id)
        if message is None:
            raise NotFound("message_not_found", {"message_id": message_id})
        return message

    def messages_for_room(self, room_id: str) -> List[Message]:
        with self._lock:
            ids = list(self._by_room.get(room_id, []))
            out = [self._messages[i] for i in ids]
        return sorted(out, key=lambda m: m.sequence)

    def clear_slot(self, slot_index: int) -> ClearedSlot:
        cleared = self._slots.clear(slot_index)
        dropped = set(cleared.message_ids)
        if dropped:
            with self._lock:
                rooms = {self._messages.pop(mid).room_id for mid in dropped if mid in self._messages}
                for rid in rooms:
                    self._by_room[rid] = [mid for mid in self._by_room.get(rid, []) if mid not in dropped]
        log_event(log, "slot_messages_dropped", slot_index=cleared.usage.index, dropped=len(dropped))
        return cleared
