from __future__ import annotations

import sys
from pathlib import Path

import pytest

# Ensure local "src/" takes precedence over any globally-installed "epochstake" package.
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"

src_str = str(SRC)
if src_str not in sys.path:
    sys.path.insert(0, src_str)


WEEK = 604_800
T0 = 1_700_000_000


def make_params(**overrides):
    from epochstake.ledger.types import ScheduleEntry, StakingParams

    schedule = overrides.pop(
        "distribution_schedule",
        [ScheduleEntry(amount=150_000_000_000, start_time=T0, end_time=T0 + WEEK)],
    )
    base = dict(
        owner="owner",
        staking_token="ustake",
        reward_token="ureward",
        unbonding_period=2 * WEEK,
        burn_address="burn",
        instant_claim_percentage_loss=10,
        distribution_schedule=schedule,
    )
    base.update(overrides)
    return StakingParams(**base)


@pytest.fixture(autouse=True)
def _reset_metrics():
    from epochstake.runtime import metrics

    metrics.reset()
    yield
    metrics.reset()


@pytest.fixture
def params():
    return make_params()


@pytest.fixture
def engine(params):
    from epochstake.runtime.engine import StakingEngine
    from epochstake.runtime.kv_store import MemoryKVStore

    eng = StakingEngine(store=MemoryKVStore(), instance_id="test")
    eng.instantiate(params)
    return eng
