from __future__ import annotations

import json
from pathlib import Path

import pytest

from epochstake.runtime.node_config import (
    default_node_config,
    load_node_config,
    read_node_config_file,
    validate_node_config,
)

_ENV = [
    "EPOCHSTAKE_CONFIG_PATH",
    "EPOCHSTAKE_INSTANCE_ID",
    "EPOCHSTAKE_MODE",
    "EPOCHSTAKE_DB_PATH",
    "EPOCHSTAKE_GENESIS_PATH",
    "EPOCHSTAKE_API_HOST",
    "EPOCHSTAKE_API_PORT",
    "EPOCHSTAKE_LOG_LEVEL",
]


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for k in _ENV:
        monkeypatch.delenv(k, raising=False)


def test_defaults_are_production_safe() -> None:
    cfg = load_node_config()
    assert cfg == default_node_config()
    assert cfg.mode == "prod"
    assert cfg.db_path != ":memory:"


def test_file_then_env_overrides(tmp_path: Path, monkeypatch) -> None:
    p = tmp_path / "node.json"
    p.write_text(
        json.dumps({"instance_id": "stake-a", "mode": "testnet", "db_path": str(tmp_path / "a.db"), "api_port": 9001}),
        encoding="utf-8",
    )
    monkeypatch.setenv("EPOCHSTAKE_CONFIG_PATH", str(p))
    monkeypatch.setenv("EPOCHSTAKE_API_PORT", "9100")

    cfg = load_node_config()
    assert cfg.instance_id == "stake-a"
    assert cfg.mode == "testnet"
    assert cfg.api_port == 9100
    assert cfg.log_level == "INFO"


def test_read_node_config_file_rejects_non_object(tmp_path: Path) -> None:
    p = tmp_path / "node.json"
    p.write_text("[1, 2]", encoding="utf-8")
    with pytest.raises(ValueError):
        read_node_config_file(str(p))


@pytest.mark.parametrize(
    "field,value",
    [
        ("mode", "staging"),
        ("api_port", 70_000),
        ("instance_id", " "),
        ("log_level", "LOUD"),
        ("genesis_path", "/definitely/not/here.yaml"),
    ],
)
def test_validation_fails_fast(field, value) -> None:
    from dataclasses import replace

    with pytest.raises(ValueError):
        validate_node_config(replace(default_node_config(), **{field: value}))


def test_memory_store_not_allowed_in_prod() -> None:
    from dataclasses import replace

    with pytest.raises(ValueError):
        validate_node_config(replace(default_node_config(), db_path=":memory:"))
    validate_node_config(replace(default_node_config(), db_path=":memory:", mode="dev"))
