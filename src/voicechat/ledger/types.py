# src/voicechat/ledger/types.py
from __future__ import annotations

"""Entity records for the session/storage model.

All cross-references are ids. Mutable records are owned by exactly one
component (registry, slot pool, router); everything handed to callers is a
copy or a frozen snapshot.
"""

from dataclasses import dataclass, field, replace
from typing import List, Optional, Tuple


@dataclass
class User:
    user_id: str
    name: str
    rooms: List[str] = field(default_factory=list)
    messages_sent: int = 0

    def copy(self) -> "User":
        return replace(self, rooms=list(self.rooms))


@dataclass
class Room:
    room_id: str
    name: str
    host_id: str
    participants: List[str] = field(default_factory=list)
    active: bool = True
    created_at_ms: int = 0
    last_activity_ms: int = 0
    message_count: int = 0


@dataclass(frozen=True)
class RoomSnapshot:
    room_id: str
    name: str
    host_id: str
    host_name: str
    active: bool
    participant_ids: Tuple[str, ...]
    participant_names: Tuple[str, ...]
    created_at_ms: int
    last_activity_ms: int
    message_count: int

    @property
    def participant_count(self) -> int:
        return len(self.participant_ids)

    def to_json(self) -> dict:
        return {
            "room_id": self.room_id,
            "name": self.name,
            "host_id": self.host_id,
            "host_name": self.host_name,
            "active": self.active,
            "participant_ids": list(self.participant_ids),
            "participant_names": list(self.participant_names),
            "participant_count": self.participant_count,
            "created_at_ms": self.created_at_ms,
            "last_activity_ms": self.last_activity_ms,
            "message_count": self.message_count,
        }


@dataclass
class StorageSlot:
    index: int
    capacity: int
    used: int = 0
    # bytes reserved by sends that have not attached a message yet; part of used
    pending: int = 0
    message_ids: List[str] = field(default_factory=list)
    created_at_ms: int = 0

    @property
    def available(self) -> int:
        return self.capacity - self.used


@dataclass(frozen=True)
class SlotUsage:
    index: int
    used: int
    capacity: int
    message_count: int
    pending: int = 0

    @property
    def percent(self) -> int:
        if self.capacity <= 0:
            return 0
        return round(self.used * 100 / self.capacity)

    def to_json(self) -> dict:
        return {
            "index": self.index,
            "used": self.used,
            "capacity": self.capacity,
            "available": self.capacity - self.used,
            "message_count": self.message_count,
            "percent": self.percent,
            "pending": self.pending,
        }


@dataclass(frozen=True)
class StorageSummary:
    slots: Tuple[SlotUsage, ...]

    @property
    def total_used(self) -> int:
        return sum(s.used for s in self.slots)

    @property
    def total_capacity(self) -> int:
        return sum(s.capacity for s in self.slots)

    def to_json(self) -> dict:
        return {
            "slots": [s.to_json() for s in self.slots],
            "total_used": self.total_used,
            "total_capacity": self.total_capacity,
        }


@dataclass(frozen=True)
class Reservation:
    """Proof that `length` bytes were logically reserved in a slot."""

    slot_index: int
    length: int
    used_after: int


@dataclass(frozen=True)
class Message:
    message_id: str
    sender_id: str
    room_id: str
    data_length: int
    payload: bytes
    slot_index: int
    sequence: int
    created_at_ms: int

    def to_json(self) -> dict:
        # payload bytes are left to the caller's encoding
        return {
            "message_id": self.message_id,
            "sender_id": self.sender_id,
            "room_id": self.room_id,
            "data_length": self.data_length,
            "slot_index": self.slot_index,
            "sequence": self.sequence,
            "created_at_ms": self.created_at_ms,
        }


@dataclass
class GrowthTarget:
    unit_id: str
    observed_size: int
    target_size: int
    step_size: int
    initial_size: int
    steps_taken: int = 0
    steps_needed: int = 0
    last_error: Optional[str] = None

    @property
    def reached(self) -> bool:
        return self.observed_size >= self.target_size

    def to_json(self) -> dict:
        return {
            "unit_id": self.unit_id,
            "observed_size": self.observed_size,
            "target_size": self.target_size,
            "step_size": self.step_size,
            "initial_size": self.initial_size,
            "steps_taken": self.steps_taken,
            "steps_needed": self.steps_needed,
            "reached": self.reached,
        }
