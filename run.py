#!/usr/bin/env python3
"""
Bryxcoin Ledger Entry Point

Clones the ledger repository, computes balances and starts the FastAPI server.
The local working copy is removed again on clean shutdown.
"""

import sys

from bryxcoin.api import run_server
from bryxcoin.config import get_config
from bryxcoin.logging_config import setup_logging


if __name__ == "__main__":
    config = get_config()
    logger = setup_logging(config.log_level, log_format=config.log_format)
    logger.info(f"ledger_repo: {config.ledger_repo}")
    logger.info(f"ledger_dir: {config.ledger_dir}")
    logger.info(f"directory_db_path: {config.directory_db_path}")

    try:
        run_server(host=config.host, port=config.port)
    except KeyboardInterrupt:
        logger.info("Shutting down Bryxcoin ledger")
    except Exception as e:
        logger.exception(f"Error starting server: {e}")
        sys.exit(1)
