# src/epochstake/runtime/engine_boot.py

from __future__ import annotations

import logging
from typing import Optional

from epochstake.runtime.engine import StakingEngine
from epochstake.runtime.genesis_config import load_genesis
from epochstake.runtime.kv_store import KVStore, MemoryKVStore
from epochstake.runtime.node_config import MEMORY_DB, NodeConfig, load_node_config
from epochstake.runtime.runtime_logging import log_event
from epochstake.runtime.sqlite_db import SqliteDB, SqliteKVStore

_log = logging.getLogger("epochstake.boot")


def build_store(cfg: NodeConfig) -> KVStore:
    if cfg.db_path == MEMORY_DB:
        return MemoryKVStore()
    return SqliteKVStore(db=SqliteDB(path=cfg.db_path))


def build_engine(cfg: Optional[NodeConfig] = None) -> StakingEngine:
    """
    Build a StakingEngine from an explicit config or, if omitted, from
    EPOCHSTAKE_CONFIG_PATH / EPOCHSTAKE_* environment variables.

    An empty store is instantiated from the genesis file when one is
    configured; an already-instantiated store is left untouched.
    """
    c = cfg or load_node_config()
    engine = StakingEngine(store=build_store(c), instance_id=c.instance_id)

    if c.genesis_path and not engine.is_initialized():
        params = load_genesis(c.genesis_path)
        engine.instantiate(params)
        log_event(_log, "genesis_applied", instance_id=c.instance_id, genesis_path=c.genesis_path)

    log_event(
        _log,
        "engine_ready",
        instance_id=c.instance_id,
        mode=c.mode,
        db_path=c.db_path,
        initialized=engine.is_initialized(),
    )
    return engine
