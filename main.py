"""
main.py
========
Central entry point for the VoiceRelay application.

Run with:
    python main.py
"""

import logging
import os
import sys

from dotenv import load_dotenv

load_dotenv()  # Load .env before any module reads env vars

# Configure logging for the entire application
logging.basicConfig(
    level=getattr(logging, os.environ.get("LOG_LEVEL", "INFO").strip().upper(), logging.INFO),
    format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)

# Suppress OpenAI SDK internal HTTP/transport logs so only relay logs are shown.
for _openai_logger_name in (
    "openai",
    "openai._base_client",
    "httpx",
    "httpcore",
):
    logging.getLogger(_openai_logger_name).setLevel(logging.CRITICAL)

from voicerelay.api.app import create_app  # noqa: E402
from voicerelay.config import ConfigError, load_config  # noqa: E402

logger = logging.getLogger("voicerelay.main")


def main() -> int:
    try:
        config = load_config()
    except ConfigError as exc:
        logger.error("Fatal: %s", exc)
        return 1

    import uvicorn

    uvicorn.run(create_app(config), host=config.host, port=config.port)
    return 0


if __name__ == "__main__":
    sys.exit(main())
