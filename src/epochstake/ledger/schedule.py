# src/epochstake/ledger/schedule.py
from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

from epochstake.ledger.checked import mul_div
from epochstake.ledger.constants import PERCENT_DENOMINATOR, WEEK
from epochstake.ledger.types import ScheduleEntry, StakingParams
from epochstake.runtime.errors import InvalidConfig, InvalidTime


@dataclass(frozen=True, slots=True)
class EpochWindow:
    """Half-open epoch window [start_time, end_time)."""

    epoch_id: int
    start_time: int
    end_time: int


def validate_schedule(schedule: List[ScheduleEntry]) -> None:
    """Fail-fast validation: non-empty, well-formed, ordered, non-overlapping."""
    if not schedule:
        raise InvalidConfig(reason="empty_schedule")

    prev_end: Optional[int] = None
    for i, e in enumerate(schedule):
        if int(e.amount) < 0:
            raise InvalidConfig(reason="negative_amount", details={"index": i})
        if int(e.start_time) >= int(e.end_time):
            raise InvalidConfig(
                reason="empty_schedule_window",
                details={"index": i, "start_time": e.start_time, "end_time": e.end_time},
            )
        if prev_end is not None and int(e.start_time) < prev_end:
            raise InvalidConfig(reason="overlapping_schedule", details={"index": i})
        prev_end = int(e.end_time)


def validate_params(params: StakingParams) -> None:
    validate_schedule(list(params.distribution_schedule))

    for name in ("instant_claim_percentage_loss", "unbonding_period"):
        v = getattr(params, name)
        if isinstance(v, bool) or not isinstance(v, int):
            raise InvalidConfig(reason=f"bad_{name}", details={"value": v})

    pct = params.instant_claim_percentage_loss
    if pct < 0 or pct > PERCENT_DENOMINATOR:
        raise InvalidConfig(reason="bad_instant_claim_percentage", details={"value": pct})

    if params.unbonding_period < 0:
        raise InvalidConfig(reason="negative_unbonding_period", details={"value": params.unbonding_period})

    for name in ("owner", "staking_token", "reward_token", "burn_address"):
        if not str(getattr(params, name) or "").strip():
            raise InvalidConfig(reason=f"missing_{name}")


def epoch_id(params: StakingParams, t: int) -> int:
    """1-based epoch id containing timestamp t."""
    t = int(t)
    if t < params.start_time:
        raise InvalidTime(reason="before_distribution_start", details={"time": t, "start_time": params.start_time})
    return (t - params.start_time) // WEEK + 1


def epoch_window(params: StakingParams, eid: int) -> EpochWindow:
    eid = int(eid)
    if eid < 1:
        raise InvalidTime(reason="bad_epoch_id", details={"epoch_id": eid})
    end = params.start_time + eid * WEEK
    return EpochWindow(epoch_id=eid, start_time=end - WEEK, end_time=end)


def resolve_entry(params: StakingParams, window: EpochWindow) -> Optional[ScheduleEntry]:
    """Schedule entry that fully contains the window, if any."""
    for entry in params.distribution_schedule:
        if int(entry.start_time) <= window.start_time and int(entry.end_time) >= window.end_time:
            return entry
    return None


def rate_for(params: StakingParams, window: EpochWindow) -> int:
    """Per-epoch emission in force for the window (0 when no entry covers it)."""
    entry = resolve_entry(params, window)
    if entry is None:
        return 0
    return mul_div(entry.amount, WEEK, entry.duration)


def epoch_emission(params: StakingParams, eid: int, now: int) -> int:
    """Amount emitted in epoch `eid` as of `now`.

    Closed epochs emit their whole share. The open epoch emits the elapsed
    fraction, computed from the entry budget in a single floor division.
    """
    window = epoch_window(params, eid)
    entry = resolve_entry(params, window)
    if entry is None:
        return 0

    now = int(now)
    if now <= window.start_time:
        return 0
    elapsed = min(now, window.end_time) - window.start_time
    return mul_div(entry.amount, elapsed, entry.duration)
