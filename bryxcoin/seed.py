#!/usr/bin/env python3
"""Seed script for the Bryxcoin account directory

Loads accounts from a JSON file holding a list of objects with first_name,
last_name, address and credential, and registers each one in the configured
directory database. Already registered addresses are skipped.

Run with: python -m bryxcoin.seed accounts.json
"""

from pathlib import Path
from typing import List, Optional
import argparse
import json
import logging

from .config import get_config
from .directory import AccountDirectory
from .logging_config import setup_logging
from .storage import SQLiteStorage


logger = logging.getLogger(__name__)


def seed_accounts(directory: AccountDirectory, entries: List[dict]) -> int:
    """Register every entry not already present; returns how many were added"""
    added = 0
    for entry in entries:
        if directory.lookup_by_address(entry['address']) is not None:
            logger.info(f"Skipping existing account {entry['address']}")
            continue
        directory.register(
            first_name=entry['first_name'],
            last_name=entry['last_name'],
            address=entry['address'],
            credential=entry['credential']
        )
        added += 1
    return added


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Seed the Bryxcoin account directory")
    parser.add_argument("accounts_file", type=Path, help="JSON list of accounts")
    parser.add_argument("--db", default=None, help="Directory database (defaults to config)")
    args = parser.parse_args(argv)

    config = get_config()
    setup_logging(config.log_level, log_format=config.log_format)

    entries = json.loads(args.accounts_file.read_text(encoding="utf-8"))
    storage = SQLiteStorage(args.db or config.directory_db_path)
    try:
        added = seed_accounts(AccountDirectory(storage), entries)
    finally:
        storage.close()

    logger.info(f"Registered {added} of {len(entries)} accounts")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
