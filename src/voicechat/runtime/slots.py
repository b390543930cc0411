# src/voicechat/runtime/slots.py
from __future__ import annotations

"""voicechat.runtime.slots

Storage slot pool: the logical capacity ledger.

Key invariants:
  - used <= capacity for every slot, after every call, under any interleaving
  - reserve() is a single check-and-increment under the slot's own lock
  - used = attached message bytes + pending reservation bytes
  - slots are created lazily on first use at a fixed capacity and the
    capacity never changes afterwards
  - indices are caller-chosen (sparse is fine) and must fit 2 bytes
"""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple

from voicechat.ledger.constants import DEFAULT_SLOT_COUNT, MAX_SLOT_INDEX, SLOT_CAPACITY
from voicechat.ledger.types import Reservation, SlotUsage, StorageSlot, StorageSummary
from voicechat.runtime.errors import InvalidRequest, NotFound, SlotFull, VoiceChatError
from voicechat.runtime.event_log import log_event
from voicechat.runtime.metrics import inc_counter, set_gauge

log = logging.getLogger("voicechat.slots")


def _now_ms() -> int:
    return int(time.time() * 1000)


def check_slot_index(index: object) -> int:
    if isinstance(index, bool) or not isinstance(index, int):
        raise InvalidRequest("slot_index_not_int", {"slot_index": repr(index)})
    if index < 0 or index > MAX_SLOT_INDEX:
        raise InvalidRequest("slot_index_out_of_range", {"slot_index": index, "max_slot_index": MAX_SLOT_INDEX})
    return index


@dataclass(frozen=True)
class ProvisionOutcome:
    slot_index: int
    ok: bool
    usage: Optional[SlotUsage] = None
    error: Optional[VoiceChatError] = None


@dataclass(frozen=True)
class ClearedSlot:
    usage: SlotUsage
    message_ids: Tuple[str, ...]
    freed: int


class SlotPool:
    def __init__(self, *, capacity: int = SLOT_CAPACITY) -> None:
        if int(capacity) <= 0:
            raise ValueError(f"capacity must be > 0; got: {capacity}")
        self.capacity = int(capacity)
        self._slots: Dict[int, StorageSlot] = {}
        self._locks: Dict[int, threading.Lock] = {}
        self._table_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def _get(self, index: int) -> Tuple[StorageSlot, threading.Lock]:
        with self._table_lock:
            slot = self._slots.get(index)
            if slot is None:
                raise NotFound("slot_not_found", {"slot_index": index})
            return slot, self._locks[index]

    @staticmethod
    def _usage(slot: StorageSlot) -> SlotUsage:
        return SlotUsage(
            index=slot.index,
            used=slot.used,
            capacity=slot.capacity,
            message_count=len(slot.message_ids),
            pending=slot.pending,
        )

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def ensure_slot(self, index: int) -> SlotUsage:
        """Create the slot if absent; otherwise return it unchanged."""
        idx = check_slot_index(index)
        created = False
        with self._table_lock:
            slot = self._slots.get(idx)
            if slot is None:
                slot = StorageSlot(index=idx, capacity=self.capacity, created_at_ms=_now_ms())
                self._slots[idx] = slot
                self._locks[idx] = threading.Lock()
                created = True
                set_gauge("slots", len(self._slots))
            lock = self._locks[idx]

        if created:
            inc_counter("slots_created_total")
            log_event(log, "slot_created", slot_index=idx, capacity=self.capacity)

        with lock:
            return self._usage(slot)

    def reserve(self, index: int, length: int) -> Reservation:
        idx = check_slot_index(index)
        n = int(length)
        if n < 0:
            raise InvalidRequest("negative_length", {"slot_index": idx, "length": n})

        slot, lock = self._get(idx)
        with lock:
            if slot.used + n > slot.capacity:
                details = {"slot_index": idx, "used": slot.used, "capacity": slot.capacity, "length": n}
                inc_counter("slot_full_total")
                log_event(log, "slot_full", **details)
                raise SlotFull("slot_capacity_exceeded", details)
            slot.used += n
            slot.pending += n
            return Reservation(slot_index=idx, length=n, used_after=slot.used)

    @staticmethod
    def _settle(slot: StorageSlot, reservation: Reservation) -> None:
        n = int(reservation.length)
        if n > slot.pending:
            raise InvalidRequest(
                "reservation_not_pending",
                {"slot_index": slot.index, "length": n, "pending": slot.pending},
            )
        slot.pending -= n

    def attach(self, reservation: Reservation, message_id: str) -> None:
        """Turn a pending reservation into stored message bytes."""
        slot, lock = self._get(reservation.slot_index)
        with lock:
            self._settle(slot, reservation)
            slot.message_ids.append(str(message_id))

    def release(self, reservation: Reservation) -> None:
        """Return reserved bytes that never got attached to a message."""
        slot, lock = self._get(reservation.slot_index)
        with lock:
            self._settle(slot, reservation)
            slot.used -= int(reservation.length)
        log_event(log, "slot_released", slot_index=reservation.slot_index, length=reservation.length)

    def clear(self, index: int) -> ClearedSlot:
        """Drop every attached message from the slot.

        Bytes of sends still in flight stay reserved: they attach or release
        against the cleared slot exactly as they would have before.
        """
        slot, lock = self._get(check_slot_index(index))
        with lock:
            dropped = tuple(slot.message_ids)
            freed = slot.used - slot.pending
            slot.used = slot.pending
            slot.message_ids = []
            out = ClearedSlot(usage=self._usage(slot), message_ids=dropped, freed=freed)
        inc_counter("slots_cleared_total")
        log_event(log, "slot_cleared", slot_index=out.usage.index, dropped=len(dropped), freed=freed, pending=out.usage.used)
        return out

    def usage(self, index: int) -> Tuple[int, int]:
        u = self.slot_usage(index)
        return (u.used, u.capacity)

    def slot_usage(self, index: int) -> SlotUsage:
        slot, lock = self._get(check_slot_index(index))
        with lock:
            return self._usage(slot)

    def message_ids(self, index: int) -> List[str]:
        slot, lock = self._get(check_slot_index(index))
        with lock:
            return list(slot.message_ids)

    def indexes(self) -> List[int]:
        with self._table_lock:
            return sorted(self._slots.keys())

    def summary(self) -> StorageSummary:
        return StorageSummary(slots=tuple(self.slot_usage(i) for i in self.indexes()))

    def provision(self, indexes: Optional[Iterable[int]] = None, *, max_workers: int = DEFAULT_SLOT_COUNT) -> List[ProvisionOutcome]:
        """Create many slots at once and collect settled per-index outcomes.

        Defaults to the standard slot set 0..9. Already existing slots count
        as successes (ensure_slot is idempotent).
        """
        targets = list(range(DEFAULT_SLOT_COUNT)) if indexes is None else list(indexes)

        def _one(idx: int) -> ProvisionOutcome:
            try:
                return ProvisionOutcome(slot_index=idx, ok=True, usage=self.ensure_slot(idx))
            except VoiceChatError as e:
                return ProvisionOutcome(slot_index=idx, ok=False, error=e)

        if not targets:
            return []
        with ThreadPoolExecutor(max_workers=max(1, min(int(max_workers), len(targets)))) as pool:
            out = list(pool.map(_one, targets))

        log_event(log, "slots_provisioned", attempted=len(out), succeeded=sum(1 for o in out if o.ok))
        return out
