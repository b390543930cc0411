# src/voicechat/api/__main__.py
from __future__ import annotations

import uvicorn

from voicechat.env import load_dotenv_if_present


def main() -> None:
    # Load .env early so VOICECHAT_* vars exist before anything reads them.
    load_dotenv_if_present()

    # Import after dotenv load (prevents "config read before env" surprises)
    from voicechat.api.app import create_app
    from voicechat.runtime.config import load_config
    from voicechat.runtime.event_log import configure_structured_logging

    cfg = load_config()
    configure_structured_logging(cfg.log_level)
    uvicorn.run(create_app(), host=cfg.api_host, port=cfg.api_port, log_level=cfg.log_level.lower())


if __name__ == "__main__":
    main()
