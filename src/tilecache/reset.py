#!/usr/bin/env python3
"""
Durable Store Reset

Clears every preference this plugin keeps in a durable SQLite store (last
visited sections, section zero state, stray content). Consent records are
kept so users are not asked again.

Usage:
    python -m tilecache.reset                 # store from config / TILECACHE_DURABLE_DB
    python -m tilecache.reset /path/to/durable.db
"""

import logging
import sys
from pathlib import Path

from .backends import SQLiteStorage
from .config import default_config
from .exceptions import StorageUnavailable
from .keys import is_consent_key, is_namespaced

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
)
logger = logging.getLogger(__name__)


def get_durable_db_path() -> str:
    """Resolve which store to clear: first CLI argument, else configuration."""
    if len(sys.argv) > 1:
        return sys.argv[1]
    return str(default_config().durable_db_path)


def purge_durable_store(db_path: str) -> int:
    """
    Remove all namespaced non-consent keys from the store.

    Returns:
        number of keys removed, or -1 if the store could not be opened
    """
    if not Path(db_path).exists():
        logger.info(f"No durable store at {db_path}, nothing to clear")
        return 0

    logger.info(f"Clearing durable store: {db_path}")
    try:
        storage = SQLiteStorage(db_path)
    except StorageUnavailable as e:
        logger.error(f"Failed to open durable store: {e}")
        return -1

    removed = 0
    try:
        for key in storage.keys():
            if is_namespaced(key) and not is_consent_key(key):
                storage.remove_item(key)
                removed += 1
    except StorageUnavailable as e:
        logger.error(f"Failed to clear durable store: {e}")
        return -1
    finally:
        storage.close()

    logger.info(f"Durable store cleared: {removed} keys removed")
    return removed


def main():
    """Entry point for manual invocation."""
    removed = purge_durable_store(get_durable_db_path())
    return 0 if removed >= 0 else 1


if __name__ == "__main__":
    sys.exit(main())
