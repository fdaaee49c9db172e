from __future__ import annotations

from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient


class _FakeEngine(SimpleNamespace):
    """Minimal engine stub for API lifecycle tests."""

    def is_initialized(self) -> bool:
        return False


def test_create_app_boot_runtime_false_does_not_attach_engine() -> None:
    from epochstake.api.app import create_app

    app = create_app(boot_runtime=False)
    assert getattr(app.state, "engine", None) is None

    with TestClient(app) as client:
        j = client.get("/v1/health").json()
        assert j["engine_attached"] is False


def test_create_app_boot_runtime_true_attaches_engine(monkeypatch: pytest.MonkeyPatch) -> None:
    from epochstake.api import app as api_app

    monkeypatch.setattr(api_app, "build_engine", lambda: _FakeEngine(instance_id="stake-test"))

    app = api_app.create_app(boot_runtime=True)
    assert getattr(app.state.engine, "instance_id", "") == "stake-test"

    with TestClient(app) as client:
        assert client.get("/v1/health").json()["instance_id"] == "stake-test"


def test_docs_are_disabled_in_prod(monkeypatch: pytest.MonkeyPatch) -> None:
    from epochstake.api.app import create_app

    monkeypatch.setenv("EPOCHSTAKE_MODE", "prod")
    c = TestClient(create_app(boot_runtime=False))
    assert c.get("/openapi.json").status_code == 404

    monkeypatch.setenv("EPOCHSTAKE_MODE", "dev")
    c = TestClient(create_app(boot_runtime=False))
    assert c.get("/openapi.json").status_code == 200


def test_wildcard_cors_refused_in_prod(monkeypatch: pytest.MonkeyPatch) -> None:
    from epochstake.api.app import create_app

    monkeypatch.setenv("EPOCHSTAKE_MODE", "prod")
    monkeypatch.setenv("EPOCHSTAKE_CORS_ORIGINS", "*")
    with pytest.raises(RuntimeError):
        create_app(boot_runtime=False)


def test_boot_from_env_uses_genesis(tmp_path, monkeypatch: pytest.MonkeyPatch) -> None:
    import json

    from conftest import T0, WEEK
    from epochstake.api.app import create_app

    genesis = tmp_path / "genesis.json"
    genesis.write_text(
        json.dumps(
            {
                "owner": "owner",
                "staking_token": "ustake",
                "reward_token": "ureward",
                "burn_address": "burn",
                "distribution_schedule": [{"amount": 10, "start_time": T0, "end_time": T0 + WEEK}],
            }
        ),
        encoding="utf-8",
    )
    monkeypatch.delenv("EPOCHSTAKE_CONFIG_PATH", raising=False)
    monkeypatch.setenv("EPOCHSTAKE_MODE", "dev")
    monkeypatch.setenv("EPOCHSTAKE_DB_PATH", str(tmp_path / "api.db"))
    monkeypatch.setenv("EPOCHSTAKE_GENESIS_PATH", str(genesis))

    with TestClient(create_app(boot_runtime=True)) as client:
        assert client.get("/v1/health").json()["initialized"] is True
        assert client.get("/v1/staking/config").json()["config"]["reward_token"] == "ureward"
