# src/epochstake/runtime/outbox.py
from __future__ import annotations

"""Transfer outbox.

The engine never moves value. Each payout it decides on is appended here in
the same store transaction that updated claims/withdrawn, so a committed
payout request exists iff its bookkeeping committed. The surrounding system
drains pending() and acknowledges executed ids.
"""

from typing import Iterable, List

from epochstake.ledger.checked import checked_add
from epochstake.ledger.keys import OUTBOX_ITEMS, OUTBOX_SEQ, outbox_key_part
from epochstake.ledger.types import TransferRequest
from epochstake.runtime.kv_store import KV


def enqueue(kv: KV, transfers: Iterable[TransferRequest]) -> List[TransferRequest]:
    """Assign ids and persist; zero-amount requests are dropped."""
    seq = OUTBOX_SEQ.load(kv, 0)
    out: List[TransferRequest] = []
    for t in transfers:
        if int(t.amount) <= 0:
            continue
        seq = checked_add(seq, 1)
        stored = TransferRequest(asset=t.asset, recipient=t.recipient, amount=int(t.amount), action=t.action, id=seq)
        OUTBOX_ITEMS.at(outbox_key_part(seq)).save(kv, stored)
        out.append(stored)
    if out:
        OUTBOX_SEQ.save(kv, seq)
    return out


def pending(kv: KV, *, limit: int) -> List[TransferRequest]:
    return [t for _, t in OUTBOX_ITEMS.scan(kv, limit=int(limit))]


def ack(kv: KV, ids: Iterable[int]) -> List[int]:
    """Remove acknowledged requests; returns the ids that were actually pending."""
    removed: List[int] = []
    for i in sorted({int(x) for x in ids}):
        slot = OUTBOX_ITEMS.at(outbox_key_part(i))
        if slot.may_load(kv) is None:
            continue
        slot.remove(kv)
        removed.append(i)
    return removed
