# src/epochstake/runtime/state_invariants.py
from __future__ import annotations

"""Ledger invariant checks.

Used by tests and by operators (read-only) to confirm the stored ledger is
self-consistent:

  - Total.amount == sum of every account's Stake.amount
  - for every epoch e up to `now`:
        sum over accounts of member weight(e) == epoch weight(e)
    where both sides include the not-yet-flushed interval since each
    record's last update, so the check holds at any time, not only right
    after every account was touched.
"""

from typing import Dict, List

from epochstake.ledger.checked import checked_add
from epochstake.ledger.keys import STAKES, TOTAL_KEY
from epochstake.ledger.schedule import epoch_id
from epochstake.ledger.types import StakingParams
from epochstake.ledger.weights import accrue, epoch_weight, member_weight
from epochstake.runtime.errors import NotInitialized
from epochstake.runtime.kv_store import KV


def check_invariants(kv: KV, params: StakingParams, now: int) -> List[str]:
    """Return human-readable violations; empty list means consistent."""
    violations: List[str] = []

    total = TOTAL_KEY.may_load(kv)
    if total is None:
        raise NotInitialized(reason="total_missing")

    stakes = STAKES.scan(kv)
    stake_sum = 0
    for _, s in stakes:
        stake_sum = checked_add(stake_sum, s.amount)
    if stake_sum != int(total.amount):
        violations.append(f"total_stake_mismatch: total={total.amount} sum={stake_sum}")

    if int(now) < params.start_time:
        return violations

    last = min(epoch_id(params, now), epoch_id(params, params.end_time))
    projected_total = accrue(total, now, params)
    member_sums: Dict[int, int] = {}
    for account, s in stakes:
        pending = accrue(s, now, params)
        for eid in range(1, last + 1):
            w = member_weight(kv, account, eid) + pending.get(eid, 0)
            member_sums[eid] = member_sums.get(eid, 0) + w

    for eid in range(1, last + 1):
        ew = epoch_weight(kv, eid) + projected_total.get(eid, 0)
        ms = member_sums.get(eid, 0)
        if ew != ms:
            violations.append(f"epoch_weight_mismatch: epoch={eid} epoch_weight={ew} member_sum={ms}")

    return violations


__all__ = ["check_invariants"]
