from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from voicechat.ledger.addresses import derive_address
from voicechat.ledger.constants import GROWTH_INITIAL_BYTES, GROWTH_MAX_MIB, GROWTH_STEP_BYTES
from voicechat.runtime.errors import InvalidRequest, NoGrowthNeeded, NotFound


@dataclass
class _Unit:
    unit_id: str
    size: int
    data: bytearray = field(default_factory=bytearray)
    writes: int = 0


class InMemoryLedger:
    """
    Minimal in-process ledger used for unit tests and local runs.

    - Does not open sockets
    - Does not sign anything
    - Provides the same surface the runtime expects:
        derive_address(), submit_growth_step(), read_unit_size(), submit_write()

    Growth mirrors the remote program: each call grows a unit by at most
    max_step bytes and never past target_size or max_size.
    """

    def __init__(
        self,
        *,
        max_step: int = GROWTH_STEP_BYTES,
        max_size: int = GROWTH_MAX_MIB,
        auto_create_size: Optional[int] = None,
    ) -> None:
        self.max_step = int(max_step)
        self.max_size = int(max_size)
        self._auto_create_size = auto_create_size
        self._units: Dict[str, _Unit] = {}
        self._lock = threading.Lock()
        self.growth_calls: List[str] = []

    # ---- AddressDeriver ----

    def derive_address(self, owner: str, index: int) -> str:
        return derive_address(owner, index)

    # ---- unit lifecycle ----

    def create_unit(self, unit_id: str, initial_size: int = GROWTH_INITIAL_BYTES) -> str:
        """Create a unit, or return the existing one unchanged."""
        with self._lock:
            if unit_id not in self._units:
                self._units[unit_id] = _Unit(unit_id=unit_id, size=int(initial_size))
        return unit_id

    def _unit(self, unit_id: str) -> _Unit:
        u = self._units.get(unit_id)
        if u is None and self._auto_create_size is not None:
            u = _Unit(unit_id=unit_id, size=int(self._auto_create_size))
            self._units[unit_id] = u
        if u is None:
            raise NotFound("unit_not_found", {"unit_id": unit_id})
        return u

    # ---- GrowthLedger ----

    def submit_growth_step(self, unit_id: str, requested_increment: int, *, target_size: int) -> None:
        with self._lock:
            self.growth_calls.append(unit_id)
            u = self._unit(unit_id)
            if u.size >= int(target_size):
                raise NoGrowthNeeded("already_at_target", {"unit_id": unit_id, "size": u.size, "target_size": int(target_size)})
            if u.size >= self.max_size:
                raise NoGrowthNeeded("at_max_size", {"unit_id": unit_id, "size": u.size, "max_size": self.max_size})
            inc = min(int(requested_increment), self.max_step, int(target_size) - u.size, self.max_size - u.size)
            if inc <= 0:
                raise InvalidRequest("non_positive_increment", {"unit_id": unit_id, "requested_increment": int(requested_increment)})
            u.size += inc

    def read_unit_size(self, unit_id: str) -> int:
        with self._lock:
            return int(self._unit(unit_id).size)

    # ---- UnitWriter ----

    def submit_write(self, unit_id: str, payload: bytes) -> None:
        with self._lock:
            u = self._unit(unit_id)
            data = bytes(payload)
            if len(u.data) + len(data) > u.size:
                raise InvalidRequest(
                    "write_exceeds_unit",
                    {"unit_id": unit_id, "size": u.size, "stored": len(u.data), "length": len(data)},
                )
            u.data.extend(data)
            u.writes += 1

    # ---- helpers for tests / harness ----

    def stored_bytes(self, unit_id: str) -> int:
        with self._lock:
            return len(self._unit(unit_id).data)

    def unit_ids(self) -> List[str]:
        with self._lock:
            return sorted(self._units.keys())
