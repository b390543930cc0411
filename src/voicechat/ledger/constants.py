# src/voicechat/ledger/constants.py
from __future__ import annotations

"""Storage and session constants.

Anchors:
- Slot capacity: 30 KiB per storage slot
- Per-message payload: 29 KiB (1 KiB kept for header overhead)
- Room participant cap: 10
- Broadcast fan-out cap: 10 targets
- Growth: 10 KiB initial size, 10 KiB per step
"""

from dataclasses import dataclass

KIB: int = 1024

# Storage slots
SLOT_CAPACITY: int = 30 * KIB
MAX_PAYLOAD_BYTES: int = 29 * KIB

# Slot indices are encoded as 2 bytes (little endian) when deriving addresses.
SLOT_INDEX_BYTES: int = 2
MAX_SLOT_INDEX: int = (1 << (8 * SLOT_INDEX_BYTES)) - 1

# Default slot set provisioned for an owner
DEFAULT_SLOT_COUNT: int = 10

# Sessions
MAX_PARTICIPANTS: int = 10
MAX_ROOM_NAME_LENGTH: int = 32

# Broadcast
MAX_BROADCAST_TARGETS: int = 10

# Growth
GROWTH_STEP_BYTES: int = 10 * KIB
GROWTH_INITIAL_BYTES: int = 10 * KIB
GROWTH_SLACK_STEPS: int = 2

# The two absolute maximum profiles. A deployment picks exactly one.
GROWTH_MAX_MIB: int = 1_048_576
GROWTH_MAX_KIB: int = 1_024_000


@dataclass(frozen=True)
class GrowthProfile:
    name: str
    initial_size: int
    step_size: int
    max_size: int


GROWTH_PROFILES = {
    "mib": GrowthProfile("mib", GROWTH_INITIAL_BYTES, GROWTH_STEP_BYTES, GROWTH_MAX_MIB),
    "kib": GrowthProfile("kib", GROWTH_INITIAL_BYTES, GROWTH_STEP_BYTES, GROWTH_MAX_KIB),
}


def growth_profile(name: str) -> GrowthProfile:
    key = str(name or "").strip().lower()
    prof = GROWTH_PROFILES.get(key)
    if prof is None:
        raise ValueError(f"unknown growth profile {name!r}; expected one of {sorted(GROWTH_PROFILES)}")
    return prof
