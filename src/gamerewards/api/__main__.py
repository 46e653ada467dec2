# src/gamerewards/api/__main__.py
from __future__ import annotations

import uvicorn

from gamerewards.env import load_dotenv_if_present


def main() -> None:
    # Load .env early so REWARDS_* vars exist before anything reads them.
    load_dotenv_if_present()

    from gamerewards.api.app import create_app
    from gamerewards.runtime.config import load_rewards_config

    cfg = load_rewards_config()
    uvicorn.run(create_app(cfg=cfg), host=cfg.api_host, port=int(cfg.api_port), log_level=cfg.log_level.lower())


if __name__ == "__main__":
    main()
