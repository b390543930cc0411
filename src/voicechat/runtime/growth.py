# src/voicechat/runtime/growth.py
from __future__ import annotations

"""
Incremental growth controller.

A single growth request on the ledger is capped (10 KiB), so reaching a large
target takes many steps. The controller drives one unit:

    UNINITIALIZED --initialize()--> GROWING --step()*--> COMPLETE

Rules:
  - every run starts by reading the unit's actual size; a partially grown
    unit resumes from where it is, not from the initial size
  - NoGrowthNeeded from the ledger means done, not failure
  - step() on a COMPLETE unit returns immediately without touching the ledger
  - run() bounds itself to steps_needed + slack iterations and raises
    GrowthIncomplete if the target is still not reached
  - any other ledger error propagates unchanged; a step is safe to retry
"""

import logging
import math
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, replace
from enum import Enum
from typing import Dict, List, Mapping, Optional, Tuple

from voicechat.ledger.constants import GROWTH_PROFILES, GROWTH_SLACK_STEPS, GrowthProfile
from voicechat.ledger.interfaces import GrowthLedger
from voicechat.ledger.types import GrowthTarget
from voicechat.runtime.errors import GrowthIncomplete, InvalidRequest, NoGrowthNeeded, TargetTooLarge
from voicechat.runtime.event_log import log_event
from voicechat.runtime.metrics import inc_counter

log = logging.getLogger("voicechat.growth")


class GrowthState(str, Enum):
    UNINITIALIZED = "uninitialized"
    GROWING = "growing"
    COMPLETE = "complete"


def steps_needed(observed_size: int, target_size: int, step_size: int) -> int:
    remaining = int(target_size) - int(observed_size)
    if remaining <= 0:
        return 0
    return math.ceil(remaining / int(step_size))


class GrowthController:
    def __init__(
        self,
        ledger: GrowthLedger,
        *,
        profile: GrowthProfile = GROWTH_PROFILES["mib"],
        slack: int = GROWTH_SLACK_STEPS,
        step_delay_s: float = 0.0,
    ) -> None:
        self._ledger = ledger
        self.profile = profile
        self.slack = max(0, int(slack))
        self.step_delay_s = max(0.0, float(step_delay_s))
        self.state = GrowthState.UNINITIALIZED
        self._target: Optional[GrowthTarget] = None

    @property
    def target(self) -> Optional[GrowthTarget]:
        return None if self._target is None else replace(self._target)

    def initialize(self, unit_id: str, target_size: int) -> int:
        t = int(target_size)
        if t > self.profile.max_size:
            raise TargetTooLarge(
                "target_exceeds_max_size",
                {"unit_id": unit_id, "target_size": t, "max_size": self.profile.max_size, "profile": self.profile.name},
            )
        if t <= 0:
            raise InvalidRequest("non_positive_target", {"unit_id": unit_id, "target_size": t})

        observed = int(self._ledger.read_unit_size(unit_id))
        needed = steps_needed(observed, t, self.profile.step_size)
        self._target = GrowthTarget(
            unit_id=unit_id,
            observed_size=observed,
            target_size=t,
            step_size=self.profile.step_size,
            initial_size=self.profile.initial_size,
            steps_needed=needed,
        )
        self.state = GrowthState.COMPLETE if observed >= t else GrowthState.GROWING
        log_event(log, "growth_initialized", unit_id=unit_id, observed_size=observed, target_size=t, steps_needed=needed)
        return needed

    def step(self) -> Tuple[int, bool]:
        g = self._target
        if g is None:
            raise InvalidRequest("growth_not_initialized", {})
        if self.state is GrowthState.COMPLETE:
            return (g.observed_size, True)

        increment = min(g.step_size, g.target_size - g.observed_size)
        no_growth = False
        try:
            self._ledger.submit_growth_step(g.unit_id, increment, target_size=g.target_size)
        except NoGrowthNeeded:
            no_growth = True

        g.observed_size = int(self._ledger.read_unit_size(g.unit_id))
        g.steps_taken += 1
        done = no_growth or g.observed_size >= g.target_size
        if done:
            self.state = GrowthState.COMPLETE

        inc_counter("growth_steps_total")
        log_event(
            log,
            "growth_step",
            unit_id=g.unit_id,
            requested=increment,
            observed_size=g.observed_size,
            target_size=g.target_size,
            step=g.steps_taken,
            done=done,
            no_growth_needed=no_growth,
        )
        return (g.observed_size, done)

    def run(self, unit_id: str, target_size: int) -> GrowthTarget:
        needed = self.initialize(unit_id, target_size)
        bound = needed + self.slack

        attempts = 0
        while self.state is not GrowthState.COMPLETE and attempts < bound:
            if attempts and self.step_delay_s:
                time.sleep(self.step_delay_s)
            self.step()
            attempts += 1

        g = self._target
        if g is None:
            raise InvalidRequest("growth_not_initialized", {"unit_id": unit_id})
        if self.state is not GrowthState.COMPLETE:
            inc_counter("growth_incomplete_total")
            raise GrowthIncomplete(
                "iteration_bound_exhausted",
                {"unit_id": unit_id, "observed_size": g.observed_size, "target_size": g.target_size, "attempts": attempts},
            )

        log_event(log, "growth_complete", unit_id=unit_id, observed_size=g.observed_size, steps=g.steps_taken)
        return replace(g)


@dataclass(frozen=True)
class GrowthOutcome:
    unit_id: str
    ok: bool
    result: Optional[GrowthTarget] = None
    error: Optional[Exception] = None


def grow_units(
    ledger: GrowthLedger,
    targets: Mapping[str, int],
    *,
    profile: GrowthProfile = GROWTH_PROFILES["mib"],
    max_workers: int = 4,
) -> Dict[str, GrowthOutcome]:
    """Grow independent units in parallel; each unit's steps stay sequential."""

    def _one(item: Tuple[str, int]) -> GrowthOutcome:
        unit_id, size = item
        try:
            return GrowthOutcome(unit_id, True, GrowthController(ledger, profile=profile).run(unit_id, size))
        except Exception as e:
            log.warning("growth of %s failed: %s", unit_id, e)
            return GrowthOutcome(unit_id, False, None, e)

    items: List[Tuple[str, int]] = list(targets.items())
    if not items:
        return {}
    with ThreadPoolExecutor(max_workers=max(1, min(int(max_workers), len(items)))) as pool:
        outcomes = list(pool.map(_one, items))
    return {o.unit_id: o for o in outcomes}
