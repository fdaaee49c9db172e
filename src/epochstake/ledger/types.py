"""epochstake.ledger.types

Value objects persisted in the staking store.

Every type round-trips through a JSON object (to_json/from_json) so the
store can keep canonical JSON text per key. from_json is strict: malformed
persisted values raise ValueError instead of silently defaulting.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from epochstake.ledger.checked import as_u128

Json = Dict[str, Any]


def _coerce_int(v: Any, *, field: str) -> int:
    # no floats, numeric strings or bools: 1.9 must not become 1
    if isinstance(v, bool) or not isinstance(v, int):
        raise ValueError(f"schema error: field '{field}' must be an int (got {type(v).__name__})")
    return v


def _coerce_str(v: Any, *, field: str) -> str:
    if v is None:
        return ""
    if not isinstance(v, (str, int)):
        raise ValueError(f"schema error: field '{field}' must be a string (got {type(v).__name__})")
    return str(v).strip()


def _require_dict(v: Any, *, what: str) -> Json:
    if not isinstance(v, dict):
        raise ValueError(f"schema error: {what} must be a JSON object (got {type(v).__name__})")
    return v


@dataclass(frozen=True, slots=True)
class ScheduleEntry:
    amount: int
    start_time: int
    end_time: int

    @property
    def duration(self) -> int:
        return int(self.end_time) - int(self.start_time)

    @staticmethod
    def from_json(j: Any) -> "ScheduleEntry":
        if isinstance(j, ScheduleEntry):
            return j
        d = _require_dict(j, what="schedule entry")
        return ScheduleEntry(
            amount=as_u128(_coerce_int(d.get("amount"), field="amount"), field="amount"),
            start_time=_coerce_int(d.get("start_time"), field="start_time"),
            end_time=_coerce_int(d.get("end_time"), field="end_time"),
        )

    def to_json(self) -> Json:
        return {"amount": int(self.amount), "start_time": int(self.start_time), "end_time": int(self.end_time)}


@dataclass(frozen=True, slots=True)
class StakingParams:
    owner: str
    staking_token: str
    reward_token: str
    unbonding_period: int
    burn_address: str
    instant_claim_percentage_loss: int
    distribution_schedule: List[ScheduleEntry] = field(default_factory=list)

    @property
    def start_time(self) -> int:
        return int(self.distribution_schedule[0].start_time)

    @property
    def end_time(self) -> int:
        return int(self.distribution_schedule[-1].end_time)

    @staticmethod
    def from_json(j: Any) -> "StakingParams":
        if isinstance(j, StakingParams):
            return j
        d = _require_dict(j, what="staking params")
        sched_raw = d.get("distribution_schedule")
        if not isinstance(sched_raw, list):
            raise ValueError("schema error: field 'distribution_schedule' must be a list")
        return StakingParams(
            owner=_coerce_str(d.get("owner"), field="owner"),
            staking_token=_coerce_str(d.get("staking_token"), field="staking_token"),
            reward_token=_coerce_str(d.get("reward_token"), field="reward_token"),
            unbonding_period=_coerce_int(d.get("unbonding_period", 0), field="unbonding_period"),
            burn_address=_coerce_str(d.get("burn_address"), field="burn_address"),
            instant_claim_percentage_loss=_coerce_int(
                d.get("instant_claim_percentage_loss", 0), field="instant_claim_percentage_loss"
            ),
            distribution_schedule=[ScheduleEntry.from_json(x) for x in sched_raw],
        )

    def to_json(self) -> Json:
        return {
            "owner": self.owner,
            "staking_token": self.staking_token,
            "reward_token": self.reward_token,
            "unbonding_period": int(self.unbonding_period),
            "burn_address": self.burn_address,
            "instant_claim_percentage_loss": int(self.instant_claim_percentage_loss),
            "distribution_schedule": [e.to_json() for e in self.distribution_schedule],
        }

    def to_public_json(self) -> Json:
        out = self.to_json()
        out["start_time"] = self.start_time
        out["end_time"] = self.end_time
        return out


@dataclass(frozen=True, slots=True)
class Stake:
    """Stake outstanding since `time` (last bond/unbond)."""

    amount: int
    time: int

    @staticmethod
    def from_json(j: Any) -> "Stake":
        d = _require_dict(j, what="stake")
        return Stake(
            amount=as_u128(_coerce_int(d.get("amount"), field="amount"), field="amount"),
            time=_coerce_int(d.get("time"), field="time"),
        )

    def to_json(self) -> Json:
        return {"amount": int(self.amount), "time": int(self.time)}


@dataclass(frozen=True, slots=True)
class Claim:
    amount: int
    release_at: int

    def is_mature(self, now: int) -> bool:
        return int(now) >= int(self.release_at)

    @staticmethod
    def from_json(j: Any) -> "Claim":
        d = _require_dict(j, what="claim")
        return Claim(
            amount=as_u128(_coerce_int(d.get("amount"), field="amount"), field="amount"),
            release_at=_coerce_int(d.get("release_at"), field="release_at"),
        )

    def to_json(self) -> Json:
        return {"amount": int(self.amount), "release_at": int(self.release_at)}


@dataclass(frozen=True, slots=True)
class TransferRequest:
    """A payout the surrounding system must execute after commit."""

    asset: str
    recipient: str
    amount: int
    action: str
    id: Optional[int] = None

    @staticmethod
    def from_json(j: Any) -> "TransferRequest":
        d = _require_dict(j, what="transfer request")
        raw_id = d.get("id")
        return TransferRequest(
            asset=_coerce_str(d.get("asset"), field="asset"),
            recipient=_coerce_str(d.get("recipient"), field="recipient"),
            amount=as_u128(_coerce_int(d.get("amount"), field="amount"), field="amount"),
            action=_coerce_str(d.get("action"), field="action"),
            id=None if raw_id is None else _coerce_int(raw_id, field="id"),
        )

    def to_json(self) -> Json:
        return {
            "id": self.id,
            "asset": self.asset,
            "recipient": self.recipient,
            "amount": int(self.amount),
            "action": self.action,
        }


@dataclass(frozen=True, slots=True)
class MemberInfo:
    address: str
    stake: int
    reward: int
    withdrawn: int
    claims: List[Claim] = field(default_factory=list)

    @property
    def available(self) -> int:
        return max(int(self.reward) - int(self.withdrawn), 0)

    def to_json(self) -> Json:
        return {
            "address": self.address,
            "stake": int(self.stake),
            "reward": int(self.reward),
            "withdrawn": int(self.withdrawn),
            "available": int(self.available),
            "claims": [c.to_json() for c in self.claims],
        }


@dataclass(frozen=True, slots=True)
class ExecResult:
    """Outcome of a committed engine operation."""

    action: str
    attributes: Json = field(default_factory=dict)
    transfers: List[TransferRequest] = field(default_factory=list)

    def to_json(self) -> Json:
        return {
            "action": self.action,
            "attributes": dict(self.attributes),
            "transfers": [t.to_json() for t in self.transfers],
        }
