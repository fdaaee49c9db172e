from __future__ import annotations

import json
import os
from pathlib import Path

import pytest
import yaml

from conftest import T0, WEEK
from epochstake.env import load_dotenv_if_present, reset_dotenv_state
from epochstake.runtime.engine_boot import build_engine
from epochstake.runtime.errors import InvalidConfig
from epochstake.runtime.genesis_config import load_genesis
from epochstake.runtime.kv_store import MemoryKVStore
from epochstake.runtime.node_config import default_node_config
from epochstake.runtime.sqlite_db import SqliteKVStore

GENESIS = {
    "owner": "owner",
    "staking_token": "ustake",
    "reward_token": "ureward",
    "unbonding_period": 1_209_600,
    "burn_address": "burn",
    "instant_claim_percentage_loss": 10,
    "distribution_schedule": [{"amount": 1_000, "start_time": T0, "end_time": T0 + WEEK}],
}


def _cfg(tmp_path: Path, **kw):
    from dataclasses import replace

    return replace(default_node_config(), **{"mode": "dev", "db_path": str(tmp_path / "node.db"), **kw})


def test_load_genesis_from_yaml_with_staking_section(tmp_path: Path) -> None:
    p = tmp_path / "genesis.yaml"
    p.write_text(yaml.safe_dump({"staking": GENESIS}), encoding="utf-8")
    params = load_genesis(str(p))
    assert params.staking_token == "ustake"
    assert params.start_time == T0
    assert params.end_time == T0 + WEEK


def test_load_genesis_from_json(tmp_path: Path) -> None:
    p = tmp_path / "genesis.json"
    p.write_text(json.dumps(GENESIS), encoding="utf-8")
    assert load_genesis(str(p)).unbonding_period == 1_209_600


def test_load_genesis_rejects_bad_content(tmp_path: Path) -> None:
    p = tmp_path / "genesis.json"
    p.write_text(json.dumps(dict(GENESIS, instant_claim_percentage_loss=200)), encoding="utf-8")
    with pytest.raises(InvalidConfig):
        load_genesis(str(p))

    p.write_text("[]", encoding="utf-8")
    with pytest.raises(ValueError):
        load_genesis(str(p))

    with pytest.raises(FileNotFoundError):
        load_genesis(str(tmp_path / "missing.json"))


@pytest.mark.parametrize(
    "field, value",
    [("unbonding_period", 1.5), ("instant_claim_percentage_loss", "10"), ("amount", 1.9), ("amount", "1000")],
)
def test_load_genesis_rejects_non_integer_numbers(tmp_path: Path, field: str, value) -> None:
    doc = json.loads(json.dumps(GENESIS))
    if field == "amount":
        doc["distribution_schedule"][0]["amount"] = value
    else:
        doc[field] = value
    p = tmp_path / "genesis.json"
    p.write_text(json.dumps(doc), encoding="utf-8")
    with pytest.raises(ValueError, match="must be an int"):
        load_genesis(str(p))


def test_build_engine_instantiates_from_genesis_once(tmp_path: Path) -> None:
    g = tmp_path / "genesis.json"
    g.write_text(json.dumps(GENESIS), encoding="utf-8")
    cfg = _cfg(tmp_path, genesis_path=str(g))

    eng = build_engine(cfg)
    assert isinstance(eng.store, SqliteKVStore)
    assert eng.config().reward_token == "ureward"
    eng.bond(sender="alice", asset="ustake", amount=3, now=T0 + 1)

    # a second boot over the same file keeps existing state
    again = build_engine(cfg)
    assert again.stake("alice").amount == 3


def test_build_engine_memory_without_genesis(tmp_path: Path) -> None:
    eng = build_engine(_cfg(tmp_path, db_path=":memory:"))
    assert isinstance(eng.store, MemoryKVStore)
    assert eng.is_initialized() is False


def test_dotenv_loads_once_without_overriding(tmp_path: Path, monkeypatch) -> None:
    env = tmp_path / ".env"
    env.write_text("EPOCHSTAKE_TEST_A=from_file\nEPOCHSTAKE_TEST_B=from_file\n", encoding="utf-8")
    monkeypatch.setenv("EPOCHSTAKE_TEST_B", "from_env")
    monkeypatch.delenv("EPOCHSTAKE_TEST_A", raising=False)

    reset_dotenv_state()
    try:
        assert load_dotenv_if_present(str(env)) is True
        assert load_dotenv_if_present(str(env)) is False
        assert os.environ["EPOCHSTAKE_TEST_A"] == "from_file"
        assert os.environ["EPOCHSTAKE_TEST_B"] == "from_env"
    finally:
        reset_dotenv_state()
        os.environ.pop("EPOCHSTAKE_TEST_A", None)
