# src/epochstake/ledger/rewards.py
from __future__ import annotations

from epochstake.ledger.checked import checked_add, mul_div
from epochstake.ledger.keys import STAKES, TOTAL_KEY, WITHDRAWN
from epochstake.ledger.schedule import epoch_emission, epoch_id
from epochstake.ledger.types import StakingParams
from epochstake.ledger.weights import accrue, epoch_weight, member_weight
from epochstake.runtime.errors import NotInitialized
from epochstake.runtime.kv_store import KV


def earned(kv: KV, params: StakingParams, account: str, now: int) -> int:
    """Total reward earned by `account` from the distribution start up to `now`.

    Side-effect free. The unflushed interval since the account's (and the
    total's) last update is projected on top of the stored weights, so the
    answer is the same whether or not anyone has touched the ledger since.

    Per epoch e in 1..min(epoch_id(now), epoch_id(end_time)):
        emission(e) * member_weight(e) // epoch_weight(e)
    where the open epoch only emits its elapsed fraction. Epochs nobody
    staked in (epoch_weight == 0) contribute nothing.
    """
    now = int(now)
    if now < params.start_time:
        return 0

    stake = STAKES.at(account).may_load(kv)
    if stake is None:
        return 0

    total = TOTAL_KEY.may_load(kv)
    if total is None:
        raise NotInitialized(reason="total_missing")

    member_pending = accrue(stake, now, params)
    epoch_pending = accrue(total, now, params)

    reward = 0
    last = min(epoch_id(params, now), epoch_id(params, params.end_time))
    for eid in range(1, last + 1):
        ew = checked_add(epoch_weight(kv, eid), epoch_pending.get(eid, 0))
        if ew == 0:
            continue
        mw = checked_add(member_weight(kv, account, eid), member_pending.get(eid, 0))
        if mw == 0:
            continue
        emission = epoch_emission(params, eid, now)
        if emission == 0:
            continue
        reward = checked_add(reward, mul_div(emission, mw, ew))
    return reward


def withdrawn(kv: KV, account: str) -> int:
    return WITHDRAWN.at(account).load(kv, 0)


def available(kv: KV, params: StakingParams, account: str, now: int) -> int:
    """Reward that a withdraw at `now` would pay out.

    A later bond can re-divide an open epoch that was already paid from,
    leaving earned below withdrawn; that reads as nothing available.
    """
    return max(0, earned(kv, params, account, now) - withdrawn(kv, account))
