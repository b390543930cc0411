"""
Ledger collaborator interfaces (abstract I/O layer).

The runtime keeps the logical capacity ledger in memory; anything that touches
a real ledger goes through these protocols:

  - AddressDeriver: deterministic unit address from (owner, index)
  - GrowthLedger:   one bounded growth step per call, plus a size read
  - UnitWriter:     persistence of bytes once capacity is confirmed

Implementations own their own latency/timeout handling. Calls are expected to
be safe to repeat: re-reading a size or re-requesting a step after a timeout
never corrupts state.

This module is pure structure: no I/O here.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

UnitId = str


@runtime_checkable
class AddressDeriver(Protocol):
    def derive_address(self, owner: str, index: int) -> UnitId: ...


@runtime_checkable
class GrowthLedger(Protocol):
    """
    Grows a single storage unit.

    submit_growth_step() raises voicechat.runtime.errors.NoGrowthNeeded when
    the unit is already at/above target_size.
    """

    def submit_growth_step(self, unit_id: UnitId, requested_increment: int, *, target_size: int) -> None: ...

    def read_unit_size(self, unit_id: UnitId) -> int: ...


@runtime_checkable
class UnitWriter(Protocol):
    def submit_write(self, unit_id: UnitId, payload: bytes) -> None: ...
