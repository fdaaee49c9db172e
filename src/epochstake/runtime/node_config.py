# src/epochstake/runtime/node_config.py
from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

Json = Dict[str, Any]

MEMORY_DB = ":memory:"


def _as_int(v: Any, default: int) -> int:
    try:
        return int(v)
    except Exception:
        return int(default)


def _as_str(v: Any, default: str) -> str:
    if v is None:
        return str(default)
    s = str(v)
    return s if s.strip() else str(default)


@dataclass(frozen=True)
class NodeConfig:
    instance_id: str
    mode: str  # "dev" | "testnet" | "prod"

    # SQLite file for the staking store; ":memory:" selects the in-process store.
    db_path: str
    # Optional genesis (JSON or YAML) used to instantiate an empty store.
    genesis_path: str

    api_host: str
    api_port: int

    log_level: str


_ALLOWED_MODES = {"dev", "testnet", "prod"}
_ALLOWED_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def validate_node_config(cfg: NodeConfig) -> None:
    """Fail-fast validation for operator config."""

    if not isinstance(cfg.instance_id, str) or not cfg.instance_id.strip():
        raise ValueError("instance_id must be a non-empty string")

    mode = str(cfg.mode or "").strip().lower()
    if mode not in _ALLOWED_MODES:
        raise ValueError(f"mode must be one of {sorted(_ALLOWED_MODES)}; got: {cfg.mode!r}")

    if int(cfg.api_port) <= 0 or int(cfg.api_port) > 65535:
        raise ValueError(f"api_port must be 1..65535; got: {cfg.api_port}")

    if not isinstance(cfg.db_path, str) or not cfg.db_path.strip():
        raise ValueError("db_path must be a non-empty string")

    if mode == "prod" and cfg.db_path == MEMORY_DB:
        raise ValueError("db_path ':memory:' is not allowed in prod mode")

    if cfg.genesis_path and not Path(cfg.genesis_path).is_file():
        raise ValueError(f"genesis_path does not exist or is not a file: {cfg.genesis_path!r}")

    if str(cfg.log_level or "").strip().upper() not in _ALLOWED_LEVELS:
        raise ValueError(f"log_level must be one of {sorted(_ALLOWED_LEVELS)}; got: {cfg.log_level!r}")


def default_node_config() -> NodeConfig:
    return NodeConfig(
        instance_id="epochstake-dev",
        # Production-safe default: never drop into a permissive dev posture
        # just because no config file was given.
        mode="prod",
        db_path="./data/epochstake.db",
        genesis_path="",
        api_host="127.0.0.1",
        api_port=8080,
        log_level="INFO",
    )


def node_config_from_dict(raw: Json, *, base: Optional[NodeConfig] = None) -> NodeConfig:
    d = base or default_node_config()
    return NodeConfig(
        instance_id=_as_str(raw.get("instance_id"), d.instance_id),
        mode=_as_str(raw.get("mode"), d.mode).strip().lower(),
        db_path=_as_str(raw.get("db_path"), d.db_path),
        genesis_path=str(raw.get("genesis_path") or d.genesis_path),
        api_host=_as_str(raw.get("api_host"), d.api_host),
        api_port=_as_int(raw.get("api_port"), d.api_port),
        log_level=_as_str(raw.get("log_level"), d.log_level).strip().upper(),
    )


def read_node_config_file(path: str) -> NodeConfig:
    raw = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(raw, dict):
        raise ValueError("node config must be a JSON object")
    cfg = node_config_from_dict(raw)
    validate_node_config(cfg)
    return cfg


def node_config_from_env(base: Optional[NodeConfig] = None) -> NodeConfig:
    """Overlay EPOCHSTAKE_* environment variables on `base` (or defaults)."""
    return node_config_from_dict(
        {
            "instance_id": os.environ.get("EPOCHSTAKE_INSTANCE_ID"),
            "mode": os.environ.get("EPOCHSTAKE_MODE"),
            "db_path": os.environ.get("EPOCHSTAKE_DB_PATH"),
            "genesis_path": os.environ.get("EPOCHSTAKE_GENESIS_PATH"),
            "api_host": os.environ.get("EPOCHSTAKE_API_HOST"),
            "api_port": os.environ.get("EPOCHSTAKE_API_PORT"),
            "log_level": os.environ.get("EPOCHSTAKE_LOG_LEVEL"),
        },
        base=base,
    )


def load_node_config(*, config_path: Optional[str] = None) -> NodeConfig:
    """File (explicit arg or EPOCHSTAKE_CONFIG_PATH) first, then env overrides."""
    p = config_path or os.environ.get("EPOCHSTAKE_CONFIG_PATH")
    base = read_node_config_file(p) if p else None
    cfg = node_config_from_env(base)
    validate_node_config(cfg)
    return cfg
