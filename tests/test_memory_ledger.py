from __future__ import annotations

import pytest

from voicechat.ledger.addresses import Sha256AddressDeriver, derive_address
from voicechat.ledger.constants import KIB
from voicechat.ledger.interfaces import AddressDeriver, GrowthLedger, UnitWriter
from voicechat.ledger.memory import InMemoryLedger
from voicechat.runtime.errors import InvalidRequest, NoGrowthNeeded, NotFound


def test_memory_ledger_satisfies_collaborator_protocols() -> None:
    ledger = InMemoryLedger()
    assert isinstance(ledger, GrowthLedger)
    assert isinstance(ledger, UnitWriter)
    assert isinstance(ledger, AddressDeriver)
    assert isinstance(Sha256AddressDeriver(), AddressDeriver)


def test_address_derivation_is_deterministic_and_index_scoped() -> None:
    a0 = derive_address("authority", 0)
    assert a0 == derive_address("authority", 0)
    assert a0.startswith("unit:")
    assert len(a0) == len("unit:") + 64
    assert a0 != derive_address("authority", 1)
    assert a0 != derive_address("other", 0)
    assert derive_address("authority", 65535)

    with pytest.raises(ValueError):
        derive_address("authority", 65536)
    with pytest.raises(ValueError):
        derive_address("", 0)


def test_create_unit_is_idempotent() -> None:
    ledger = InMemoryLedger()
    ledger.create_unit("u", 10 * KIB)
    ledger.submit_growth_step("u", 10 * KIB, target_size=40 * KIB)
    ledger.create_unit("u", 10 * KIB)
    assert ledger.read_unit_size("u") == 20 * KIB
    assert ledger.unit_ids() == ["u"]


def test_growth_is_capped_per_call_and_by_target() -> None:
    ledger = InMemoryLedger()
    ledger.create_unit("u", 10 * KIB)

    ledger.submit_growth_step("u", 50 * KIB, target_size=100 * KIB)
    assert ledger.read_unit_size("u") == 20 * KIB

    ledger.submit_growth_step("u", 10 * KIB, target_size=25 * KIB)
    assert ledger.read_unit_size("u") == 25 * KIB

    with pytest.raises(NoGrowthNeeded):
        ledger.submit_growth_step("u", 10 * KIB, target_size=25 * KIB)
    with pytest.raises(InvalidRequest):
        ledger.submit_growth_step("u", 0, target_size=100 * KIB)


def test_unknown_unit_unless_auto_create() -> None:
    with pytest.raises(NotFound):
        InMemoryLedger().read_unit_size("nope")

    auto = InMemoryLedger(auto_create_size=10 * KIB)
    assert auto.read_unit_size("fresh") == 10 * KIB


def test_writes_are_bounded_by_unit_size() -> None:
    ledger = InMemoryLedger()
    ledger.create_unit("u", 100)
    ledger.submit_write("u", b"a" * 60)
    with pytest.raises(InvalidRequest):
        ledger.submit_write("u", b"b" * 41)
    ledger.submit_write("u", b"c" * 40)
    assert ledger.stored_bytes("u") == 100
