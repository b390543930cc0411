from __future__ import annotations

from hashlib import sha256

from voicechat.ledger.constants import MAX_SLOT_INDEX, SLOT_INDEX_BYTES

_SEED_PREFIX = b"pda"


def _index_bytes(index: int) -> bytes:
    i = int(index)
    if i < 0 or i > MAX_SLOT_INDEX:
        raise ValueError(f"index must be 0..{MAX_SLOT_INDEX}; got: {index}")
    return i.to_bytes(SLOT_INDEX_BYTES, "little")


def derive_address(owner: str, index: int) -> str:
    """Deterministic storage-unit address for (owner, index).

    Seeds: b"pda" | owner (utf-8) | index (2 bytes, little endian).
    """
    o = str(owner or "").strip()
    if not o:
        raise ValueError("owner must be a non-empty string")
    h = sha256()
    h.update(_SEED_PREFIX)
    h.update(o.encode("utf-8"))
    h.update(_index_bytes(index))
    return f"unit:{h.hexdigest()}"


class Sha256AddressDeriver:
    """AddressDeriver backed by derive_address()."""

    def derive_address(self, owner: str, index: int) -> str:
        return derive_address(owner, index)
