# src/voicechat/runtime/service.py
from __future__ import annotations

import logging
from typing import Dict, List, Mapping, Optional, Sequence

from voicechat.ledger.constants import MAX_BROADCAST_TARGETS, MAX_PARTICIPANTS, SLOT_CAPACITY
from voicechat.ledger.interfaces import AddressDeriver, GrowthLedger, UnitWriter
from voicechat.ledger.memory import InMemoryLedger
from voicechat.ledger.types import GrowthTarget, Message, RoomSnapshot, SlotUsage, StorageSummary, User
from voicechat.runtime.broadcast import BroadcastCoordinator, SendOutcome
from voicechat.runtime.config import VoiceChatConfig, load_config
from voicechat.runtime.event_log import log_event
from voicechat.runtime.growth import GrowthController, GrowthOutcome, grow_units
from voicechat.runtime.router import MessageRouter
from voicechat.runtime.sessions import SessionRegistry
from voicechat.runtime.slots import ClearedSlot, ProvisionOutcome, SlotPool

log = logging.getLogger("voicechat.service")


class VoiceChatService:
    """One process-wide bundle of registry, slot pool, router and broadcaster.

    The growth ledger is a collaborator. Without one, an InMemoryLedger that
    auto-creates units at the profile's initial size stands in, which is what
    local runs and the HTTP tests use.
    """

    def __init__(
        self,
        cfg: VoiceChatConfig,
        *,
        ledger: Optional[GrowthLedger] = None,
        writer: Optional[UnitWriter] = None,
        deriver: Optional[AddressDeriver] = None,
    ) -> None:
        self.cfg = cfg
        self.profile = cfg.profile()
        self.ledger: GrowthLedger = ledger or InMemoryLedger(
            max_size=self.profile.max_size,
            auto_create_size=self.profile.initial_size,
        )

        self.sessions = SessionRegistry(max_participants=MAX_PARTICIPANTS)
        self.slots = SlotPool(capacity=SLOT_CAPACITY)
        self.router = MessageRouter(self.sessions, self.slots, owner=cfg.owner, writer=writer, deriver=deriver)
        self.broadcaster = BroadcastCoordinator(self.router, max_workers=cfg.broadcast_workers)

    # ---- sessions ----

    def create_user(self, name: str) -> str:
        return self.sessions.create_user(name)

    def get_user(self, user_id: str) -> User:
        return self.sessions.get_user(user_id)

    def create_room(self, host_id: str, name: str) -> str:
        return self.sessions.create_room(host_id, name)

    def join_room(self, user_id: str, room_id: str) -> None:
        self.sessions.join_room(user_id, room_id)

    def leave_room(self, user_id: str, room_id: str) -> None:
        self.sessions.leave_room(user_id, room_id)

    def get_room_info(self, room_id: str) -> RoomSnapshot:
        return self.sessions.get_room_info(room_id)

    def list_rooms(self) -> List[RoomSnapshot]:
        return self.sessions.list_rooms()

    # ---- messaging ----

    def send_message(self, user_id: str, room_id: str, payload: bytes, slot_index: int) -> str:
        return self.router.send_message(user_id, room_id, payload, slot_index)

    def broadcast(
        self,
        user_id: str,
        room_id: str,
        payload: bytes,
        slot_indexes: Sequence[int],
        max_targets: int = MAX_BROADCAST_TARGETS,
    ) -> List[SendOutcome]:
        return self.broadcaster.broadcast(user_id, room_id, payload, slot_indexes, max_targets=max_targets)

    def get_message(self, message_id: str) -> Message:
        return self.router.get_message(message_id)

    # ---- storage ----

    def slot_usage(self, index: int) -> SlotUsage:
        return self.slots.slot_usage(index)

    def storage_info(self) -> StorageSummary:
        return self.slots.summary()

    def clear_slot(self, index: int) -> ClearedSlot:
        return self.router.clear_slot(index)

    def provision_slots(self, indexes: Optional[Sequence[int]] = None) -> List[ProvisionOutcome]:
        return self.slots.provision(indexes)

    def unit_address(self, slot_index: int) -> str:
        return self.router.unit_address(slot_index)

    # ---- growth ----

    def growth_controller(self) -> GrowthController:
        return GrowthController(self.ledger, profile=self.profile)

    def grow_unit(self, unit_id: str, target_size: int) -> GrowthTarget:
        return self.growth_controller().run(unit_id, target_size)

    def grow_units(self, targets: Mapping[str, int]) -> Dict[str, GrowthOutcome]:
        return grow_units(self.ledger, targets, profile=self.profile, max_workers=self.cfg.broadcast_workers)


def build_service(cfg: Optional[VoiceChatConfig] = None, **collaborators) -> VoiceChatService:
    """
    Build a VoiceChatService from an explicit config or, if omitted, from
    VOICECHAT_CONFIG_PATH / VOICECHAT_* environment variables.
    """
    c = cfg or load_config()
    svc = VoiceChatService(c, **collaborators)
    log_event(log, "service_built", mode=c.mode, owner=c.owner, growth_profile=c.growth_profile)
    return svc
