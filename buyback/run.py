#!/usr/bin/env python3
"""
Run the buyback relay.

Usage:
    python -m buyback.run

Environment variables:
    TOKEN_ADDRESS - Token mint to buy back / track
    DEV_WALLET_PK - Base58 private key of the buyback wallet (actor mode)
    WALLET_ADDRESS - Address to watch for buybacks (detector mode)

Optional:
    BUYBACK_MODE - actor, detector or auto (default: auto)
    SOLANA_RPC - RPC endpoint (default: mainnet-beta)
    PORT - HTTP/WebSocket port (default: 3003)
    BUYBACK_INTERVAL_SECONDS - Seconds between cycles (default: 20)
    BUYBACK_AMOUNT_SOL - SOL per buyback (default: 0.01)
    LOG_LEVEL - Logging level (default: INFO)
"""

import logging
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

project_root = Path(__file__).resolve().parents[1]


def load_env():
    """Load environment variables from .env files without overriding the shell."""
    for env_path in (project_root / ".env", Path.cwd() / ".env"):
        if env_path.exists():
            load_dotenv(env_path, override=False)


def setup_logging():
    level = os.environ.get("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def main():
    """Main entry point."""
    load_env()
    setup_logging()
    logger = logging.getLogger("buyback")

    import uvicorn

    from buyback.config import ConfigError, describe, load_config
    from buyback.server import create_app

    try:
        config = load_config()
    except ConfigError as e:
        logger.error(f"Invalid configuration: {e}")
        sys.exit(1)

    summary = describe(config)
    logger.info(f"Buyback relay running at http://localhost:{config.port}")
    if summary:
        logger.info(summary)

    app = create_app(config)
    uvicorn.run(app, host=config.host, port=config.port, log_level="warning")


if __name__ == "__main__":
    main()
