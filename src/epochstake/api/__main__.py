# src/epochstake/api/__main__.py
from __future__ import annotations

import uvicorn

from epochstake.env import load_dotenv_if_present


def main() -> None:
    # Load .env early so EPOCHSTAKE_* vars exist before anything reads them.
    load_dotenv_if_present()

    # Import after dotenv load (prevents "config read before env" surprises)
    from epochstake.api.app import create_app
    from epochstake.runtime.node_config import load_node_config

    cfg = load_node_config()
    uvicorn.run(create_app(), host=cfg.api_host, port=cfg.api_port, log_level=cfg.log_level.lower())


if __name__ == "__main__":
    main()
