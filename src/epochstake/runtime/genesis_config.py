# src/epochstake/runtime/genesis_config.py
from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict

import yaml

from epochstake.ledger.schedule import validate_params
from epochstake.ledger.types import StakingParams

Json = Dict[str, Any]


def _read_obj(p: Path) -> Any:
    raw = p.read_text(encoding="utf-8")
    if p.suffix.lower() in {".yaml", ".yml"}:
        return yaml.safe_load(raw)
    return json.loads(raw)


def load_genesis(path: str) -> StakingParams:
    """Load StakingParams from a JSON or YAML genesis file.

    Supported shapes:
      - the params object itself
      - {"staking": {...params...}}

    Params shape:
      {"owner": "...", "staking_token": "...", "reward_token": "...",
       "unbonding_period": 1209600, "burn_address": "...",
       "instant_claim_percentage_loss": 10,
       "distribution_schedule": [{"amount": 1, "start_time": 0, "end_time": 604800}, ...]}
    """
    p = Path(path)
    if not p.is_file():
        raise FileNotFoundError(str(p))

    obj = _read_obj(p)
    if not isinstance(obj, dict):
        raise ValueError("genesis must be a mapping")

    staking = obj.get("staking", obj)
    if not isinstance(staking, dict):
        raise ValueError("genesis 'staking' section must be a mapping")

    params = StakingParams.from_json(staking)
    validate_params(params)
    return params
