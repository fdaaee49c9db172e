# src/epochstake/runtime/engine.py
from __future__ import annotations

import dataclasses
import logging
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from epochstake.ledger import claims as claims_queue
from epochstake.ledger.checked import as_u128, checked_add, checked_sub
from epochstake.ledger.constants import DEFAULT_LIMIT, DEFAULT_OUTBOX_LIMIT, MAX_LIMIT, MAX_OUTBOX_LIMIT
from epochstake.ledger.keys import PARAMS_KEY, STAKES, TOTAL_KEY, WITHDRAWN
from epochstake.ledger.rewards import available, earned, withdrawn
from epochstake.ledger.schedule import epoch_emission, epoch_window, rate_for, validate_params
from epochstake.ledger.types import (
    Claim,
    ExecResult,
    MemberInfo,
    ScheduleEntry,
    Stake,
    StakingParams,
    TransferRequest,
)
from epochstake.ledger.weights import (
    accrue,
    apply_epoch_deltas,
    apply_member_deltas,
    epoch_weight,
    member_weights,
)
from epochstake.runtime import outbox
from epochstake.runtime.errors import (
    AlreadyInitialized,
    InvalidAccount,
    InvalidAmount,
    InvalidConfig,
    InvalidTime,
    InvalidToken,
    NotInitialized,
    NothingToClaim,
    NothingToWithdraw,
    Overflow,
    StakingClosed,
    StakingError,
    Unauthorized,
    Underflow,
)
from epochstake.runtime.kv_store import KV, KVStore
from epochstake.runtime.metrics import inc_counter, set_gauge
from epochstake.runtime.runtime_logging import log_event

Json = Dict[str, Any]
Body = Callable[[KV], Tuple[Json, List[TransferRequest]]]

_EVENTS = {
    "bond": "stake_bond",
    "unbond": "stake_unbond",
    "claim": "stake_claim",
    "instant_claim": "stake_instant_claim",
}


def _require_account(v: Any, *, field: str = "sender") -> str:
    if not isinstance(v, str):
        raise InvalidAccount(details={"field": field, "type": type(v).__name__})
    s = v.strip()
    if not s or s != v or "/" in s:
        raise InvalidAccount(details={"field": field, "account": v})
    return s


def _require_time(v: Any) -> int:
    if isinstance(v, bool) or not isinstance(v, int) or v < 0:
        raise InvalidTime(reason="bad_timestamp", details={"time": v})
    return v


def _require_amount(v: Any) -> int:
    if isinstance(v, bool) or not isinstance(v, int):
        raise InvalidAmount(reason="amount_not_integer", details={"amount": v})
    if v <= 0:
        raise InvalidAmount(details={"amount": v})
    return as_u128(v, field="amount")


def _load_params(kv: KV) -> StakingParams:
    params = PARAMS_KEY.may_load(kv)
    if params is None:
        raise NotInitialized()
    return params


def _load_total(kv: KV) -> Stake:
    total = TOTAL_KEY.may_load(kv)
    if total is None:
        raise NotInitialized(reason="total_missing")
    return total


def _settle(kv: KV, params: StakingParams, account: str, stake: Optional[Stake], total: Stake, now: int) -> None:
    """Flush weight for [last update, now) using the stake that was actually outstanding."""
    apply_member_deltas(kv, account, accrue(stake, now, params))
    apply_epoch_deltas(kv, accrue(total, now, params))


class StakingEngine:
    """Epoch-weighted staking ledger over an injected KV store.

    Every public mutation runs as one store transaction: either all of its
    writes (stake, weights, claims, withdrawn, outbox) commit, or none do.
    Time and caller identity are always parameters.
    """

    def __init__(self, *, store: KVStore, instance_id: str = "local") -> None:
        self._store = store
        self.instance_id = str(instance_id)
        self._log = logging.getLogger("epochstake.engine")

    @property
    def store(self) -> KVStore:
        return self._store

    # ------------------------------------------------------------------
    # execution plumbing
    # ------------------------------------------------------------------

    def _execute(self, action: str, sender: str, body: Body) -> ExecResult:
        try:
            with self._store.transaction() as kv:
                attrs, transfers = body(kv)
                queued = outbox.enqueue(kv, transfers)
        except StakingError as e:
            inc_counter(f"{action}_rejected_total")
            log_event(
                self._log,
                "stake_rejected",
                level=logging.WARNING,
                instance_id=self.instance_id,
                action=action,
                sender=sender,
                code=e.code,
                reason=e.reason,
            )
            raise

        inc_counter(f"{action}_total")
        if "total" in attrs:
            set_gauge("total_stake", int(attrs["total"]))
        log_event(
            self._log,
            _EVENTS.get(action, action),
            instance_id=self.instance_id,
            sender=sender,
            transfers=[t.to_json() for t in queued],
            **attrs,
        )
        return ExecResult(action=action, attributes=attrs, transfers=queued)

    def _query(self, fn: Callable[[KV], Any]) -> Any:
        with self._store.transaction(readonly=True) as kv:
            return fn(kv)

    # ------------------------------------------------------------------
    # administration
    # ------------------------------------------------------------------

    def is_initialized(self) -> bool:
        return bool(self._query(lambda kv: PARAMS_KEY.may_load(kv) is not None))

    def instantiate(self, params: StakingParams) -> ExecResult:
        try:
            params = StakingParams.from_json(params.to_json() if isinstance(params, StakingParams) else params)
        except (ValueError, Overflow, Underflow) as e:
            raise InvalidConfig(reason="bad_params", details={"error": str(e)}) from e
        validate_params(params)

        def body(kv: KV) -> Tuple[Json, List[TransferRequest]]:
            if PARAMS_KEY.may_load(kv) is not None:
                raise AlreadyInitialized()
            PARAMS_KEY.save(kv, params)
            TOTAL_KEY.save(kv, Stake(amount=0, time=params.start_time))
            return {"owner": params.owner, "start_time": params.start_time, "end_time": params.end_time}, []

        return self._execute("instantiate", params.owner, body)

    def update_config(
        self,
        *,
        sender: str,
        owner: Optional[str] = None,
        burn_address: Optional[str] = None,
        unbonding_period: Optional[int] = None,
        instant_claim_percentage_loss: Optional[int] = None,
        distribution_schedule: Optional[Sequence[Any]] = None,
    ) -> ExecResult:
        sender = _require_account(sender)

        def body(kv: KV) -> Tuple[Json, List[TransferRequest]]:
            cur = _load_params(kv)
            if sender != cur.owner:
                raise Unauthorized(details={"sender": sender})

            changes: Json = {}
            if owner is not None:
                changes["owner"] = _require_account(owner, field="owner")
            if burn_address is not None:
                changes["burn_address"] = _require_account(burn_address, field="burn_address")
            if unbonding_period is not None:
                changes["unbonding_period"] = unbonding_period
            if instant_claim_percentage_loss is not None:
                changes["instant_claim_percentage_loss"] = instant_claim_percentage_loss
            if distribution_schedule is not None:
                try:
                    changes["distribution_schedule"] = [ScheduleEntry.from_json(e) for e in distribution_schedule]
                except (ValueError, Overflow, Underflow) as e:
                    raise InvalidConfig(reason="bad_schedule", details={"error": str(e)}) from e

            new = dataclasses.replace(cur, **changes)
            validate_params(new)
            if new.start_time != cur.start_time:
                raise InvalidConfig(
                    reason="start_time_immutable",
                    details={"start_time": cur.start_time, "requested": new.start_time},
                )

            PARAMS_KEY.save(kv, new)
            return {"updated": sorted(changes)}, []

        return self._execute("config_update", sender, body)

    # ------------------------------------------------------------------
    # staking operations
    # ------------------------------------------------------------------

    def bond(self, *, sender: str, asset: str, amount: int, now: int) -> ExecResult:
        sender = _require_account(sender)
        now = _require_time(now)

        def body(kv: KV) -> Tuple[Json, List[TransferRequest]]:
            params = _load_params(kv)
            if asset != params.staking_token:
                raise InvalidToken(details={"asset": asset})
            amt = _require_amount(amount)
            if now < params.start_time or now > params.end_time:
                raise StakingClosed(
                    details={"time": now, "start_time": params.start_time, "end_time": params.end_time}
                )

            stake = STAKES.at(sender).may_load(kv)
            total = _load_total(kv)
            _settle(kv, params, sender, stake, total, now)

            new_stake = Stake(amount=checked_add(stake.amount if stake else 0, amt), time=now)
            new_total = Stake(amount=checked_add(total.amount, amt), time=now)
            STAKES.at(sender).save(kv, new_stake)
            TOTAL_KEY.save(kv, new_total)
            return {"amount": amt, "stake": new_stake.amount, "total": new_total.amount}, []

        return self._execute("bond", sender, body)

    def unbond(self, *, sender: str, amount: int, now: int) -> ExecResult:
        sender = _require_account(sender)
        now = _require_time(now)

        def body(kv: KV) -> Tuple[Json, List[TransferRequest]]:
            params = _load_params(kv)
            amt = _require_amount(amount)

            stake = STAKES.at(sender).may_load(kv)
            total = _load_total(kv)
            held = stake.amount if stake else 0
            if amt > held:
                raise Underflow(reason="insufficient_stake", details={"stake": held, "amount": amt})

            _settle(kv, params, sender, stake, total, now)

            new_stake = Stake(amount=checked_sub(held, amt), time=now)
            new_total = Stake(amount=checked_sub(total.amount, amt), time=now)
            STAKES.at(sender).save(kv, new_stake)
            TOTAL_KEY.save(kv, new_total)

            release_at = checked_add(now, params.unbonding_period)
            claims_queue.create_claim(kv, sender, amt, release_at)
            return {
                "amount": amt,
                "stake": new_stake.amount,
                "total": new_total.amount,
                "release_at": release_at,
            }, []

        return self._execute("unbond", sender, body)

    def claim(self, *, sender: str, now: int) -> ExecResult:
        sender = _require_account(sender)
        now = _require_time(now)

        def body(kv: KV) -> Tuple[Json, List[TransferRequest]]:
            params = _load_params(kv)
            released = claims_queue.release_claims(kv, sender, now)
            if released == 0:
                raise NothingToClaim(details={"sender": sender, "time": now})
            return {"released": released}, [
                TransferRequest(asset=params.staking_token, recipient=sender, amount=released, action="claim"),
            ]

        return self._execute("claim", sender, body)

    def instant_claim(self, *, sender: str, now: int) -> ExecResult:
        """Release every outstanding claim now, minus the instant-claim fee."""
        sender = _require_account(sender)
        now = _require_time(now)

        def body(kv: KV) -> Tuple[Json, List[TransferRequest]]:
            params = _load_params(kv)
            horizon = checked_add(now, params.unbonding_period)
            released = claims_queue.release_claims(kv, sender, horizon)
            if released == 0:
                raise NothingToClaim(details={"sender": sender, "time": now})

            payout, fee = claims_queue.instant_claim_fee(released, params.instant_claim_percentage_loss)
            return {"released": released, "payout": payout, "fee": fee}, [
                TransferRequest(asset=params.staking_token, recipient=sender, amount=payout, action="instant_claim"),
                TransferRequest(
                    asset=params.staking_token,
                    recipient=params.burn_address,
                    amount=fee,
                    action="instant_claim_fee",
                ),
            ]

        return self._execute("instant_claim", sender, body)

    def withdraw(self, *, sender: str, now: int) -> ExecResult:
        sender = _require_account(sender)
        now = _require_time(now)

        def body(kv: KV) -> Tuple[Json, List[TransferRequest]]:
            params = _load_params(kv)
            amount = available(kv, params, sender, now)
            if amount == 0:
                raise NothingToWithdraw(details={"sender": sender, "time": now})

            slot = WITHDRAWN.at(sender)
            total_withdrawn = checked_add(slot.load(kv, 0), amount)
            slot.save(kv, total_withdrawn)
            return {"amount": amount, "withdrawn": total_withdrawn}, [
                TransferRequest(asset=params.reward_token, recipient=sender, amount=amount, action="withdraw"),
            ]

        return self._execute("reward_withdraw", sender, body)

    def ack_transfers(self, ids: Iterable[int]) -> List[int]:
        """Acknowledge executed payouts; unknown ids are ignored."""
        wanted = [int(i) for i in ids]
        removed: List[int] = []

        def body(kv: KV) -> Tuple[Json, List[TransferRequest]]:
            removed.extend(outbox.ack(kv, wanted))
            return {"acked": list(removed)}, []

        self._execute("transfers_ack", "SYSTEM", body)
        return removed

    # ------------------------------------------------------------------
    # queries
    # ------------------------------------------------------------------

    def config(self) -> StakingParams:
        return self._query(_load_params)

    def total(self) -> Stake:
        return self._query(_load_total)

    def stake(self, account: str) -> Stake:
        account = _require_account(account, field="account")
        return self._query(lambda kv: STAKES.at(account).load(kv, Stake(amount=0, time=0)))

    def claims(self, account: str) -> List[Claim]:
        account = _require_account(account, field="account")
        return self._query(lambda kv: claims_queue.load_claims(kv, account))

    def withdrawn(self, account: str) -> int:
        account = _require_account(account, field="account")
        return self._query(lambda kv: withdrawn(kv, account))

    def earned(self, account: str, now: int) -> int:
        account = _require_account(account, field="account")
        now = _require_time(now)
        return self._query(lambda kv: earned(kv, _load_params(kv), account, now))

    def available(self, account: str, now: int) -> int:
        account = _require_account(account, field="account")
        now = _require_time(now)
        return self._query(lambda kv: available(kv, _load_params(kv), account, now))

    def member(self, account: str, now: int) -> Optional[MemberInfo]:
        account = _require_account(account, field="account")
        now = _require_time(now)

        def q(kv: KV) -> Optional[MemberInfo]:
            params = _load_params(kv)
            stake = STAKES.at(account).may_load(kv)
            if stake is None:
                return None
            return self._member_info(kv, params, account, stake, now)

        return self._query(q)

    def member_weights(self, account: str) -> Dict[int, int]:
        account = _require_account(account, field="account")
        return self._query(lambda kv: member_weights(kv, account))

    def epoch(self, eid: int, now: int) -> Json:
        now = _require_time(now)

        def q(kv: KV) -> Json:
            params = _load_params(kv)
            window = epoch_window(params, eid)
            pending = accrue(_load_total(kv), now, params) if now >= params.start_time else {}
            return {
                "epoch_id": window.epoch_id,
                "start_time": window.start_time,
                "end_time": window.end_time,
                "rate": rate_for(params, window),
                "emission": epoch_emission(params, window.epoch_id, now),
                "weight": checked_add(epoch_weight(kv, window.epoch_id), pending.get(window.epoch_id, 0)),
            }

        return self._query(q)

    def list_members(self, *, start_after: Optional[str] = None, limit: Optional[int] = None, now: int) -> List[MemberInfo]:
        """Members ordered by account id, strictly after `start_after`."""
        now = _require_time(now)
        n = DEFAULT_LIMIT if limit is None else max(1, min(int(limit), MAX_LIMIT))
        after = None if start_after is None else _require_account(start_after, field="start_after")

        def q(kv: KV) -> List[MemberInfo]:
            params = _load_params(kv)
            return [
                self._member_info(kv, params, account, stake, now)
                for account, stake in STAKES.scan(kv, start_after=after, limit=n)
            ]

        return self._query(q)

    def pending_transfers(self, limit: Optional[int] = None) -> List[TransferRequest]:
        n = DEFAULT_OUTBOX_LIMIT if limit is None else max(1, min(int(limit), MAX_OUTBOX_LIMIT))
        return self._query(lambda kv: outbox.pending(kv, limit=n))

    @staticmethod
    def _member_info(kv: KV, params: StakingParams, account: str, stake: Stake, now: int) -> MemberInfo:
        return MemberInfo(
            address=account,
            stake=stake.amount,
            reward=earned(kv, params, account, now),
            withdrawn=withdrawn(kv, account),
            claims=claims_queue.load_claims(kv, account),
        )


__all__ = ["StakingEngine"]
