# src/epochstake/ledger/weights.py
from __future__ import annotations

from typing import Dict, Optional

from epochstake.ledger.checked import checked_add, checked_mul
from epochstake.ledger.keys import EPOCH_WEIGHTS, MEMBER_WEIGHTS
from epochstake.ledger.schedule import epoch_id, epoch_window
from epochstake.ledger.types import Stake, StakingParams
from epochstake.runtime.errors import InvalidTime
from epochstake.runtime.kv_store import KV

WeightDeltas = Dict[int, int]


def overlap_seconds(window_start: int, window_end: int, since: int, until: int) -> int:
    """Length of [since, until) intersected with [window_start, window_end); never negative."""
    return max(0, min(int(window_end), int(until)) - max(int(window_start), int(since)))


def accrue(stake_before: Optional[Stake], now: int, params: StakingParams) -> WeightDeltas:
    """Stake-seconds accrued by `stake_before` over [stake_before.time, now), per epoch.

    Pure: the caller decides whether to persist the result (mutations) or
    add it on top of stored weights (queries). Epochs with no overlap are
    omitted. Accrual stops at the schedule end; later epochs emit nothing.
    """
    if stake_before is None or int(stake_before.amount) == 0:
        return {}

    since = int(stake_before.time)
    now = int(now)
    if now < since:
        raise InvalidTime(reason="time_before_last_update", details={"time": now, "last_update": since})
    until = min(now, int(params.end_time))
    if until <= since:
        return {}

    deltas: WeightDeltas = {}
    for eid in range(epoch_id(params, since), epoch_id(params, until) + 1):
        w = epoch_window(params, eid)
        secs = overlap_seconds(w.start_time, w.end_time, since, until)
        if secs <= 0:
            continue
        deltas[eid] = checked_mul(stake_before.amount, secs)
    return deltas


def apply_member_deltas(kv: KV, account: str, deltas: WeightDeltas) -> None:
    for eid in sorted(deltas):
        slot = MEMBER_WEIGHTS.at(account, eid)
        slot.save(kv, checked_add(slot.load(kv, 0), deltas[eid]))


def apply_epoch_deltas(kv: KV, deltas: WeightDeltas) -> None:
    for eid in sorted(deltas):
        slot = EPOCH_WEIGHTS.at(eid)
        slot.save(kv, checked_add(slot.load(kv, 0), deltas[eid]))


def member_weight(kv: KV, account: str, eid: int) -> int:
    return MEMBER_WEIGHTS.at(account, eid).load(kv, 0)


def epoch_weight(kv: KV, eid: int) -> int:
    return EPOCH_WEIGHTS.at(eid).load(kv, 0)


def member_weights(kv: KV, account: str) -> Dict[int, int]:
    """Persisted per-epoch weights for an account (settled up to its last update)."""
    out: Dict[int, int] = {}
    for suffix, w in MEMBER_WEIGHTS.scan(kv, sub_prefix=f"{account}/"):
        out[int(suffix)] = int(w)
    return out
