from __future__ import annotations

import pytest

from conftest import T0, WEEK
from epochstake.ledger.claims import instant_claim_fee, split_mature
from epochstake.ledger.types import Claim
from epochstake.runtime.engine import StakingEngine
from epochstake.runtime.errors import NothingToClaim, Underflow

PERIOD = 2 * WEEK


def test_claim_matures_exactly_at_release_time(engine: StakingEngine) -> None:
    engine.bond(sender="alice", asset="ustake", amount=1_000_000, now=T0)
    t0 = T0 + 3_600
    res = engine.unbond(sender="alice", amount=400_000, now=t0)
    assert res.attributes["release_at"] == t0 + PERIOD
    assert engine.claims("alice") == [Claim(amount=400_000, release_at=t0 + PERIOD)]

    with pytest.raises(NothingToClaim):
        engine.claim(sender="alice", now=t0 + PERIOD - 1)

    out = engine.claim(sender="alice", now=t0 + PERIOD)
    assert out.attributes["released"] == 400_000
    assert [(t.recipient, t.asset, t.amount, t.action) for t in out.transfers] == [
        ("alice", "ustake", 400_000, "claim"),
    ]
    assert engine.claims("alice") == []
    assert engine.stake("alice").amount == 600_000


def test_claim_releases_only_matured_entries(engine: StakingEngine) -> None:
    engine.bond(sender="alice", asset="ustake", amount=100, now=T0)
    engine.unbond(sender="alice", amount=10, now=T0 + 10)
    engine.unbond(sender="alice", amount=20, now=T0 + 20)

    out = engine.claim(sender="alice", now=T0 + 15 + PERIOD)
    assert out.attributes["released"] == 10
    assert engine.claims("alice") == [Claim(amount=20, release_at=T0 + 20 + PERIOD)]

    with pytest.raises(NothingToClaim):
        engine.claim(sender="alice", now=T0 + 15 + PERIOD)


def test_instant_claim_applies_fee_and_routes_it_to_burn(engine: StakingEngine) -> None:
    engine.bond(sender="alice", asset="ustake", amount=1_000_000, now=T0)
    engine.unbond(sender="alice", amount=1_000_000, now=T0 + 10)

    out = engine.instant_claim(sender="alice", now=T0 + 20)
    assert out.attributes == {"released": 1_000_000, "payout": 900_000, "fee": 100_000}
    assert [(t.recipient, t.amount, t.action) for t in out.transfers] == [
        ("alice", 900_000, "instant_claim"),
        ("burn", 100_000, "instant_claim_fee"),
    ]
    assert engine.claims("alice") == []


def test_instant_claim_with_nothing_pending_fails(engine: StakingEngine) -> None:
    engine.bond(sender="alice", asset="ustake", amount=5, now=T0)
    with pytest.raises(NothingToClaim):
        engine.instant_claim(sender="alice", now=T0 + 1)


def test_bond_then_unbond_round_trip_returns_principal(engine: StakingEngine) -> None:
    engine.bond(sender="alice", asset="ustake", amount=777, now=T0 + 50)
    engine.unbond(sender="alice", amount=777, now=T0 + 50)
    out = engine.claim(sender="alice", now=T0 + 50 + PERIOD)
    assert out.attributes["released"] == 777
    assert engine.total().amount == 0


def test_unbond_more_than_stake_fails_without_changes(engine: StakingEngine) -> None:
    engine.bond(sender="alice", asset="ustake", amount=5, now=T0)
    before = engine.store.dump()
    with pytest.raises(Underflow) as ei:
        engine.unbond(sender="alice", amount=6, now=T0 + 1)
    assert ei.value.reason == "insufficient_stake"
    assert engine.store.dump() == before

    with pytest.raises(Underflow):
        engine.unbond(sender="nobody", amount=1, now=T0 + 1)


def test_split_mature_and_fee_helpers() -> None:
    claims = [Claim(amount=3, release_at=10), Claim(amount=4, release_at=11), Claim(amount=5, release_at=9)]
    released, pending = split_mature(claims, 10)
    assert released == 8
    assert pending == [Claim(amount=4, release_at=11)]

    assert instant_claim_fee(1_000_000, 10) == (900_000, 100_000)
    assert instant_claim_fee(999, 0) == (999, 0)
    assert instant_claim_fee(999, 100) == (0, 999)
    assert instant_claim_fee(7, 10) == (7, 0)
