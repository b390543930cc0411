# src/voicechat/runtime/sessions.py
from __future__ import annotations

"""
Session registry: users, rooms and membership.

Invariants:
  - 0 <= len(room.participants) <= max_participants
  - a room whose last participant leaves becomes inactive and accepts no
    further joins or sends
  - room.participants and user.rooms are two independent id lists kept
    consistent only by this module
  - per-room sequence numbers are 1, 2, 3, ... with no gaps; assignment is
    serialized by the room's own lock, never by a registry-wide lock

Locking:
  room lock -> registry lock. The registry lock guards table inserts and user
  records and is never held while acquiring a room lock.
"""

import logging
import threading
import time
import uuid
from contextlib import contextmanager
from typing import Dict, Iterator, List, Tuple

from voicechat.ledger.constants import MAX_PARTICIPANTS, MAX_ROOM_NAME_LENGTH
from voicechat.ledger.types import Room, RoomSnapshot, User
from voicechat.runtime.errors import AlreadyMember, InactiveRoom, InvalidRequest, NotFound, NotMember, RoomFull
from voicechat.runtime.event_log import log_event
from voicechat.runtime.metrics import inc_counter

log = logging.getLogger("voicechat.sessions")


def _now_ms() -> int:
    return int(time.time() * 1000)


def _new_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex}"


class SendTicket:
    """Handed out by SessionRegistry.send_guard() while the room lock is held."""

    def __init__(self, registry: "SessionRegistry", room: Room, user_id: str) -> None:
        self._registry = registry
        self._room = room
        self.room_id = room.room_id
        self.user_id = user_id
        self.sequence = 0

    def commit(self) -> int:
        if self.sequence:
            raise RuntimeError(f"send ticket already committed (sequence {self.sequence})")
        room = self._room
        room.message_count += 1
        room.last_activity_ms = _now_ms()
        self._registry._count_sent(self.user_id)
        self.sequence = room.message_count
        return self.sequence


class SessionRegistry:
    def __init__(self, *, max_participants: int = MAX_PARTICIPANTS) -> None:
        self.max_participants = int(max_participants)
        self._users: Dict[str, User] = {}
        self._rooms: Dict[str, Room] = {}
        self._room_locks: Dict[str, threading.Lock] = {}
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Internal lookups
    # ------------------------------------------------------------------

    def _room(self, room_id: str) -> Tuple[Room, threading.Lock]:
        with self._lock:
            room = self._rooms.get(room_id)
            if room is None:
                raise NotFound("room_not_found", {"room_id": room_id})
            return room, self._room_locks[room_id]

    def _require_user(self, user_id: str) -> User:
        with self._lock:
            user = self._users.get(user_id)
        if user is None:
            raise NotFound("user_not_found", {"user_id": user_id})
        return user

    def _count_sent(self, user_id: str) -> None:
        with self._lock:
            user = self._users.get(user_id)
            if user is not None:
                user.messages_sent += 1

    def _snapshot(self, room: Room) -> RoomSnapshot:
        with self._lock:
            names = tuple(self._users[p].name if p in self._users else "Unknown" for p in room.participants)
            host = self._users.get(room.host_id)
        return RoomSnapshot(
            room_id=room.room_id,
            name=room.name,
            host_id=room.host_id,
            host_name=host.name if host is not None else "Unknown",
            active=room.active,
            participant_ids=tuple(room.participants),
            participant_names=names,
            created_at_ms=room.created_at_ms,
            last_activity_ms=room.last_activity_ms,
            message_count=room.message_count,
        )

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def create_user(self, name: str) -> str:
        user_id = _new_id("user")
        with self._lock:
            self._users[user_id] = User(user_id=user_id, name=str(name))
        inc_counter("users_created_total")
        log_event(log, "user_created", user_id=user_id, name=str(name))
        return user_id

    def get_user(self, user_id: str) -> User:
        with self._lock:
            user = self._users.get(user_id)
            if user is None:
                raise NotFound("user_not_found", {"user_id": user_id})
            return user.copy()

    # ------------------------------------------------------------------
    # Rooms
    # ------------------------------------------------------------------

    def create_room(self, host_id: str, name: str) -> str:
        host = self._require_user(host_id)

        room_name = str(name or "").strip()
        if not room_name:
            raise InvalidRequest("missing_room_name", {"host_id": host_id})
        if len(room_name) > MAX_ROOM_NAME_LENGTH:
            raise InvalidRequest(
                "room_name_too_long",
                {"host_id": host_id, "length": len(room_name), "max_length": MAX_ROOM_NAME_LENGTH},
            )

        room_id = _new_id("room")
        now = _now_ms()
        room = Room(
            room_id=room_id,
            name=room_name,
            host_id=host_id,
            participants=[host_id],
            active=True,
            created_at_ms=now,
            last_activity_ms=now,
        )
        with self._lock:
            self._rooms[room_id] = room
            self._room_locks[room_id] = threading.Lock()
            host.rooms.append(room_id)

        inc_counter("rooms_created_total")
        log_event(log, "room_created", room_id=room_id, name=room_name, host_id=host_id)
        return room_id

    def join_room(self, user_id: str, room_id: str) -> None:
        room, lock = self._room(room_id)
        with lock:
            user = self._require_user(user_id)
            if not room.active:
                raise InactiveRoom("room_not_active", {"room_id": room_id, "user_id": user_id})
            if user_id in room.participants:
                raise AlreadyMember("already_in_room", {"room_id": room_id, "user_id": user_id})
            if len(room.participants) >= self.max_participants:
                raise RoomFull(
                    "room_at_capacity",
                    {"room_id": room_id, "user_id": user_id, "max_participants": self.max_participants},
                )

            room.participants.append(user_id)
            room.last_activity_ms = _now_ms()
            with self._lock:
                user.rooms.append(room_id)
            count = len(room.participants)

        inc_counter("room_joins_total")
        log_event(log, "room_joined", room_id=room_id, user_id=user_id, participants=count)

    def leave_room(self, user_id: str, room_id: str) -> None:
        room, lock = self._room(room_id)
        with lock:
            user = self._require_user(user_id)
            if user_id not in room.participants:
                raise NotMember("not_in_room", {"room_id": room_id, "user_id": user_id})

            room.participants.remove(user_id)
            room.last_activity_ms = _now_ms()
            with self._lock:
                if room_id in user.rooms:
                    user.rooms.remove(room_id)

            if not room.participants:
                room.active = False
            count = len(room.participants)
            deactivated = not room.active

        inc_counter("room_leaves_total")
        log_event(log, "room_left", room_id=room_id, user_id=user_id, participants=count, deactivated=deactivated)

    def get_room_info(self, room_id: str) -> RoomSnapshot:
        room, lock = self._room(room_id)
        with lock:
            return self._snapshot(room)

    def list_rooms(self) -> List[RoomSnapshot]:
        with self._lock:
            ids = list(self._rooms.keys())
        return [self.get_room_info(rid) for rid in ids]

    # ------------------------------------------------------------------
    # Router seam
    # ------------------------------------------------------------------

    def _check_sender(self, room: Room, user_id: str) -> None:
        # caller holds the room lock
        self._require_user(user_id)
        if not room.active:
            raise InactiveRoom("room_not_active", {"room_id": room.room_id, "user_id": user_id})
        if user_id not in room.participants:
            raise NotMember("not_in_room", {"room_id": room.room_id, "user_id": user_id})

    def check_sender(self, user_id: str, room_id: str) -> None:
        """Validate room, sender, active flag and membership without holding on.

        The answer can go stale as soon as the room lock drops; send_guard()
        repeats the check at commit time.
        """
        room, lock = self._room(room_id)
        with lock:
            self._check_sender(room, user_id)

    @contextmanager
    def send_guard(self, user_id: str, room_id: str) -> Iterator[SendTicket]:
        """Hold the room lock for the commit step of one send.

        Re-validates room, sender, active flag and membership. Counters only
        move if the caller invokes ticket.commit() before leaving the block.
        """
        room, lock = self._room(room_id)
        with lock:
            self._check_sender(room, user_id)
            yield SendTicket(self, room, user_id)
