from __future__ import annotations

import pytest

from voicechat.ledger.constants import GROWTH_PROFILES, KIB
from voicechat.ledger.memory import InMemoryLedger
from voicechat.runtime.errors import GrowthIncomplete, InvalidRequest, NotFound, TargetTooLarge
from voicechat.runtime.growth import GrowthController, GrowthState, grow_units, steps_needed


class _StuckLedger:
    """Accepts growth requests but never grows."""

    def __init__(self, size: int) -> None:
        self.size = size
        self.calls = 0

    def submit_growth_step(self, unit_id: str, requested_increment: int, *, target_size: int) -> None:
        self.calls += 1

    def read_unit_size(self, unit_id: str) -> int:
        return self.size


class _BrokenLedger(_StuckLedger):
    def submit_growth_step(self, unit_id: str, requested_increment: int, *, target_size: int) -> None:
        raise ConnectionError("rpc timeout")


def test_steps_needed_rounds_up() -> None:
    assert steps_needed(10 * KIB, 35 * KIB, 10 * KIB) == 3
    assert steps_needed(10 * KIB, 30 * KIB, 10 * KIB) == 2
    assert steps_needed(40 * KIB, 35 * KIB, 10 * KIB) == 0


def test_three_steps_then_done_without_further_calls() -> None:
    ledger = InMemoryLedger()
    ledger.create_unit("u1", 10 * KIB)
    gc = GrowthController(ledger)

    assert gc.state is GrowthState.UNINITIALIZED
    assert gc.initialize("u1", 35 * KIB) == 3
    assert gc.state is GrowthState.GROWING

    assert gc.step() == (20 * KIB, False)
    assert gc.step() == (30 * KIB, False)
    assert gc.step() == (35 * KIB, True)
    assert gc.state is GrowthState.COMPLETE
    assert len(ledger.growth_calls) == 3

    assert gc.step() == (35 * KIB, True)
    assert len(ledger.growth_calls) == 3


def test_run_returns_final_target() -> None:
    ledger = InMemoryLedger()
    ledger.create_unit("u1", 10 * KIB)

    g = GrowthController(ledger).run("u1", 35 * KIB)

    assert g.observed_size == 35 * KIB
    assert g.steps_taken == 3
    assert g.steps_needed == 3
    assert g.reached is True
    assert g.to_json()["reached"] is True


def test_growth_resumes_from_observed_size() -> None:
    ledger = InMemoryLedger()
    ledger.create_unit("u1", 10 * KIB)
    ledger.submit_growth_step("u1", 10 * KIB, target_size=35 * KIB)
    ledger.submit_growth_step("u1", 5 * KIB, target_size=35 * KIB)

    gc = GrowthController(ledger)
    assert gc.initialize("u1", 35 * KIB) == 1
    g = gc.run("u1", 35 * KIB)
    assert g.observed_size == 35 * KIB
    assert g.steps_taken == 1


def test_unit_already_at_target_is_complete_immediately() -> None:
    ledger = InMemoryLedger()
    ledger.create_unit("u1", 40 * KIB)
    gc = GrowthController(ledger)

    assert gc.initialize("u1", 35 * KIB) == 0
    assert gc.state is GrowthState.COMPLETE
    g = gc.run("u1", 35 * KIB)
    assert g.steps_taken == 0
    assert ledger.growth_calls == []


def test_target_above_profile_max_is_rejected() -> None:
    ledger = InMemoryLedger()
    ledger.create_unit("u1")

    with pytest.raises(TargetTooLarge):
        GrowthController(ledger).initialize("u1", 1_048_577)

    kib = GROWTH_PROFILES["kib"]
    with pytest.raises(TargetTooLarge) as ei:
        GrowthController(ledger, profile=kib).initialize("u1", 1_024_001)
    assert ei.value.details["max_size"] == 1_024_000
    assert GrowthController(ledger, profile=kib).initialize("u1", 1_024_000) > 0


def test_no_growth_needed_mid_run_counts_as_done() -> None:
    ledger = InMemoryLedger(max_size=20 * KIB)
    ledger.create_unit("u1", 10 * KIB)
    gc = GrowthController(ledger)

    g = gc.run("u1", 35 * KIB)

    assert gc.state is GrowthState.COMPLETE
    assert g.observed_size == 20 * KIB
    assert g.reached is False


def test_stuck_collaborator_exhausts_bound() -> None:
    ledger = _StuckLedger(10 * KIB)
    with pytest.raises(GrowthIncomplete) as ei:
        GrowthController(ledger).run("u1", 35 * KIB)

    assert ledger.calls == 3 + 2
    assert ei.value.details["attempts"] == 5
    assert ei.value.details["observed_size"] == 10 * KIB


def test_collaborator_errors_propagate_unchanged() -> None:
    with pytest.raises(ConnectionError):
        GrowthController(_BrokenLedger(10 * KIB)).run("u1", 35 * KIB)


def test_step_before_initialize_is_invalid() -> None:
    with pytest.raises(InvalidRequest):
        GrowthController(InMemoryLedger()).step()


def test_grow_to_one_mib() -> None:
    ledger = InMemoryLedger()
    ledger.create_unit("big", 10 * KIB)
    g = GrowthController(ledger).run("big", 1_048_576)
    assert g.observed_size == 1_048_576
    assert g.steps_needed == 102
    assert g.steps_taken == 102


def test_grow_units_settles_each_unit() -> None:
    ledger = InMemoryLedger()
    ledger.create_unit("a", 10 * KIB)
    ledger.create_unit("b", 10 * KIB)

    out = grow_units(ledger, {"a": 30 * KIB, "b": 50 * KIB, "missing": 30 * KIB})

    assert out["a"].ok and out["a"].result.observed_size == 30 * KIB
    assert out["b"].ok and out["b"].result.observed_size == 50 * KIB
    assert not out["missing"].ok
    assert isinstance(out["missing"].error, NotFound)


class _NoTargetController(GrowthController):
    """Skips recording a target."""

    def initialize(self, unit_id: str, target_size: int) -> int:
        return 0


def test_run_without_recorded_target_is_invalid() -> None:
    ctl = _NoTargetController(InMemoryLedger(), slack=0)

    with pytest.raises(InvalidRequest) as ei:
        ctl.run("u1", 35 * KIB)

    assert ei.value.reason == "growth_not_initialized"
    assert ei.value.details == {"unit_id": "u1"}
