from __future__ import annotations

import pytest

from conftest import T0, WEEK, make_params
from epochstake.runtime.engine import StakingEngine
from epochstake.runtime.errors import AlreadyInitialized, InvalidAccount, InvalidConfig, Unauthorized


def test_instantiate_twice_is_rejected(engine: StakingEngine) -> None:
    with pytest.raises(AlreadyInitialized):
        engine.instantiate(make_params())


def test_instantiate_rejects_invalid_params() -> None:
    from epochstake.runtime.kv_store import MemoryKVStore

    eng = StakingEngine(store=MemoryKVStore())
    with pytest.raises(InvalidConfig):
        eng.instantiate(make_params(distribution_schedule=[]))
    with pytest.raises(InvalidConfig):
        eng.instantiate(
            {
                "owner": "o",
                "staking_token": "s",
                "reward_token": "r",
                "burn_address": "b",
                "distribution_schedule": [{"amount": -5, "start_time": T0, "end_time": T0 + WEEK}],
            }
        )
    assert eng.is_initialized() is False


def test_update_config_requires_owner(engine: StakingEngine) -> None:
    with pytest.raises(Unauthorized):
        engine.update_config(sender="mallory", unbonding_period=1)
    assert engine.config().unbonding_period == 2 * WEEK


def test_update_config_changes_selected_fields(engine: StakingEngine) -> None:
    res = engine.update_config(sender="owner", instant_claim_percentage_loss=25, burn_address="fees")
    assert res.attributes == {"updated": ["burn_address", "instant_claim_percentage_loss"]}

    cfg = engine.config()
    assert cfg.instant_claim_percentage_loss == 25
    assert cfg.burn_address == "fees"
    assert cfg.owner == "owner"


def test_update_config_transfers_ownership(engine: StakingEngine) -> None:
    engine.update_config(sender="owner", owner="new-owner")
    with pytest.raises(Unauthorized):
        engine.update_config(sender="owner", unbonding_period=5)
    engine.update_config(sender="new-owner", unbonding_period=5)
    assert engine.config().unbonding_period == 5


def test_update_config_extends_schedule_and_end_time(engine: StakingEngine) -> None:
    schedule = [
        {"amount": 150_000_000_000, "start_time": T0, "end_time": T0 + WEEK},
        {"amount": 10_000, "start_time": T0 + WEEK, "end_time": T0 + 3 * WEEK},
    ]
    engine.update_config(sender="owner", distribution_schedule=schedule)
    cfg = engine.config()
    assert cfg.end_time == T0 + 3 * WEEK

    # bonding is open until the new end
    engine.bond(sender="alice", asset="ustake", amount=1, now=T0 + 2 * WEEK)


def test_update_config_cannot_move_start(engine: StakingEngine) -> None:
    schedule = [{"amount": 1, "start_time": T0 + 1, "end_time": T0 + WEEK}]
    with pytest.raises(InvalidConfig) as ei:
        engine.update_config(sender="owner", distribution_schedule=schedule)
    assert ei.value.reason == "start_time_immutable"


def test_update_config_rejects_bad_values(engine: StakingEngine) -> None:
    with pytest.raises(InvalidConfig):
        engine.update_config(sender="owner", instant_claim_percentage_loss=150)
    with pytest.raises(InvalidAccount):
        engine.update_config(sender="owner", burn_address="  ")


def test_existing_claims_keep_release_time_after_period_change(engine: StakingEngine) -> None:
    engine.bond(sender="alice", asset="ustake", amount=10, now=T0)
    engine.unbond(sender="alice", amount=10, now=T0 + 1)
    engine.update_config(sender="owner", unbonding_period=0)
    assert engine.claims("alice")[0].release_at == T0 + 1 + 2 * WEEK


@pytest.mark.parametrize("kw", [{"unbonding_period": 1.5}, {"instant_claim_percentage_loss": "5"}])
def test_update_config_rejects_non_integer_values(engine: StakingEngine, kw) -> None:
    with pytest.raises(InvalidConfig):
        engine.update_config(sender="owner", **kw)
    assert engine.config().unbonding_period == 2 * WEEK
    assert engine.config().instant_claim_percentage_loss == 10


def test_update_config_rejects_fractional_schedule_amount(engine: StakingEngine) -> None:
    with pytest.raises(InvalidConfig) as ei:
        engine.update_config(
            sender="owner",
            distribution_schedule=[{"amount": 1.9, "start_time": T0, "end_time": T0 + WEEK}],
        )
    assert ei.value.reason == "bad_schedule"
