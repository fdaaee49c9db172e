# src/epochstake/ledger/claims.py
from __future__ import annotations

from typing import List, Tuple

from epochstake.ledger.checked import checked_add, checked_sub, mul_div
from epochstake.ledger.constants import PERCENT_DENOMINATOR
from epochstake.ledger.keys import CLAIMS_BY_ACCOUNT
from epochstake.ledger.types import Claim
from epochstake.runtime.kv_store import KV


def load_claims(kv: KV, account: str) -> List[Claim]:
    return CLAIMS_BY_ACCOUNT.at(account).load(kv, [])


def create_claim(kv: KV, account: str, amount: int, release_at: int) -> Claim:
    claim = Claim(amount=int(amount), release_at=int(release_at))
    slot = CLAIMS_BY_ACCOUNT.at(account)
    slot.save(kv, slot.load(kv, []) + [claim])
    return claim


def split_mature(claims: List[Claim], now: int) -> Tuple[int, List[Claim]]:
    """(sum of matured amounts, claims still pending) as of `now`."""
    released = 0
    pending: List[Claim] = []
    for c in claims:
        if c.is_mature(now):
            released = checked_add(released, c.amount)
        else:
            pending.append(c)
    return released, pending


def release_claims(kv: KV, account: str, now: int) -> int:
    """Remove every claim matured at `now` and return the released sum.

    The caller decides what a zero release means; nothing is written then.
    """
    slot = CLAIMS_BY_ACCOUNT.at(account)
    claims = slot.load(kv, [])
    released, pending = split_mature(claims, now)
    if released == 0:
        return 0
    if pending:
        slot.save(kv, pending)
    else:
        slot.remove(kv)
    return released


def instant_claim_fee(amount: int, percentage_loss: int) -> Tuple[int, int]:
    """(payout, fee) for an instant release of `amount`."""
    fee = mul_div(amount, int(percentage_loss), PERCENT_DENOMINATOR)
    return checked_sub(amount, fee), fee
