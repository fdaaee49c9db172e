# src/epochstake/ledger/keys.py
from __future__ import annotations

"""Typed keys over the raw KV store.

Layout (all values canonical JSON):
  params                          StakingParams
  total                           Stake
  stake/<account>                 Stake
  epoch_weight/<epoch:012d>       int
  member_weight/<account>/<epoch:012d>   int
  claims/<account>                [Claim, ...]
  withdrawn/<account>             int
  outbox/seq                      int
  outbox/item/<id:020d>           TransferRequest

Account-scoped maps put the account right after the namespace so a prefix
scan over stake/ is ordered by account id.
"""

import json
from dataclasses import dataclass
from typing import Any, Callable, Generic, List, Optional, Tuple, TypeVar

from epochstake.ledger.checked import as_u128
from epochstake.ledger.types import Claim, Stake, StakingParams, TransferRequest
from epochstake.runtime.kv_store import KV
from epochstake.runtime.sqlite_db import _canon_json

T = TypeVar("T")


@dataclass(frozen=True)
class Codec(Generic[T]):
    encode: Callable[[T], Any]
    decode: Callable[[Any], T]


def _u128_decode(v: Any) -> int:
    if isinstance(v, bool) or not isinstance(v, int):
        raise ValueError(f"schema error: expected int (got {type(v).__name__})")
    return as_u128(v)


def _claims_decode(v: Any) -> List[Claim]:
    if not isinstance(v, list):
        raise ValueError("schema error: claims must be a list")
    return [Claim.from_json(x) for x in v]


U128 = Codec[int](encode=int, decode=_u128_decode)
STAKE = Codec[Stake](encode=lambda s: s.to_json(), decode=Stake.from_json)
PARAMS = Codec[StakingParams](encode=lambda p: p.to_json(), decode=StakingParams.from_json)
CLAIMS = Codec[List[Claim]](encode=lambda cs: [c.to_json() for c in cs], decode=_claims_decode)
TRANSFER = Codec[TransferRequest](encode=lambda t: t.to_json(), decode=TransferRequest.from_json)


class Slot(Generic[T]):
    """A single typed key."""

    def __init__(self, key: str, codec: Codec[T]) -> None:
        self.key = str(key)
        self.codec = codec

    def may_load(self, kv: KV) -> Optional[T]:
        raw = kv.get(self.key)
        if raw is None:
            return None
        return self.codec.decode(json.loads(raw))

    def load(self, kv: KV, default: T) -> T:
        v = self.may_load(kv)
        return default if v is None else v

    def save(self, kv: KV, value: T) -> None:
        kv.set(self.key, _canon_json(self.codec.encode(value)))

    def remove(self, kv: KV) -> None:
        kv.delete(self.key)

    def update(self, kv: KV, fn: Callable[[Optional[T]], T]) -> T:
        out = fn(self.may_load(kv))
        self.save(kv, out)
        return out


class Namespace(Generic[T]):
    """A family of typed keys sharing a prefix."""

    def __init__(self, name: str, codec: Codec[T]) -> None:
        self.prefix = f"{name}/"
        self.codec = codec

    def at(self, *parts: Any) -> Slot[T]:
        return Slot(self.prefix + "/".join(_part(p) for p in parts), self.codec)

    def scan(
        self,
        kv: KV,
        *,
        sub_prefix: str = "",
        start_after: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[Tuple[str, T]]:
        """Ordered (suffix, value) pairs; start_after is an exclusive suffix bound."""
        lo = self.prefix + sub_prefix
        after = None if start_after is None else self.prefix + sub_prefix + start_after
        out: List[Tuple[str, T]] = []
        for k, raw in kv.scan(lo, start_after=after, limit=limit):
            out.append((k[len(lo):], self.codec.decode(json.loads(raw))))
        return out


def _part(p: Any) -> str:
    if isinstance(p, bool):
        raise TypeError("bool is not a valid key part")
    if isinstance(p, int):
        return f"{p:012d}"
    s = str(p)
    if not s:
        raise ValueError("empty key part")
    return s


PARAMS_KEY: Slot[StakingParams] = Slot("params", PARAMS)
TOTAL_KEY: Slot[Stake] = Slot("total", STAKE)
STAKES: Namespace[Stake] = Namespace("stake", STAKE)
EPOCH_WEIGHTS: Namespace[int] = Namespace("epoch_weight", U128)
MEMBER_WEIGHTS: Namespace[int] = Namespace("member_weight", U128)
CLAIMS_BY_ACCOUNT: Namespace[List[Claim]] = Namespace("claims", CLAIMS)
WITHDRAWN: Namespace[int] = Namespace("withdrawn", U128)
OUTBOX_SEQ: Slot[int] = Slot("outbox/seq", U128)
OUTBOX_ITEMS: Namespace[TransferRequest] = Namespace("outbox/item", TRANSFER)


def outbox_key_part(transfer_id: int) -> str:
    return f"{int(transfer_id):020d}"
