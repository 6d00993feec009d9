# -*- coding: utf-8 -*-
"""
Sync "Comprado" vehicles from Airtable into inventario_cache.

Example:
  python scripts/sync_airtable_data.py
  python scripts/sync_airtable_data.py --delay-ms 500 --log-level DEBUG
"""
import os, sys, argparse, logging

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from trefa.config import load_sync_config, missing_settings, setup_logging
from trefa.db import SessionLocal
from trefa.sync.airtable import AirtableClient, AirtableError, sync_airtable_data

logger = logging.getLogger("sync_airtable_data")


def main():
    cfg = load_sync_config()

    p = argparse.ArgumentParser(description="Airtable -> inventario_cache data sync")
    p.add_argument("--delay-ms", type=int, default=cfg["AIRTABLE_RATE_LIMIT_MS"],
                   help="pause between Airtable pages")
    p.add_argument("--log-level", type=str, default=None)
    args = p.parse_args()

    setup_logging(args.log_level)

    missing = missing_settings(cfg, "AIRTABLE_API_KEY", "AIRTABLE_BASE_ID", "AIRTABLE_TABLE_ID")
    if missing:
        logger.error("Missing settings: %s", ", ".join(missing))
        sys.exit(2)

    client = AirtableClient(cfg["AIRTABLE_API_KEY"], cfg["AIRTABLE_BASE_ID"], cfg["AIRTABLE_TABLE_ID"])

    logger.info("Starting Airtable to inventario_cache data sync...")
    db = SessionLocal()
    try:
        stats = sync_airtable_data(db, client, delay=args.delay_ms / 1000)
    except AirtableError as e:
        logger.error("A critical error occurred during the sync process: %s", e)
        sys.exit(1)
    finally:
        db.close()

    if stats["failed"]:
        logger.warning("%s records could not be synced", stats["failed"])


if __name__ == "__main__":
    main()
