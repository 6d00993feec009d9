# -*- coding: utf-8 -*-
"""
Mirror Airtable vehicle photos into the storage bucket and write the public
URLs back to inventario_cache.

Runs immediately, then every IMAGE_SYNC_INTERVAL_MIN minutes (30 by default).

Example:
  python scripts/sync_airtable_images.py
  python scripts/sync_airtable_images.py --once
"""
import os, sys, argparse, logging

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from trefa.config import load_sync_config, missing_settings, setup_logging
from trefa.sync.airtable import AirtableClient
from trefa.sync.images import ImageSync, build_scheduler
from trefa.sync.storage import StorageBucket

logger = logging.getLogger("sync_airtable_images")


def main():
    cfg = load_sync_config()

    p = argparse.ArgumentParser(description="Airtable -> storage bucket image sync")
    p.add_argument("--once", action="store_true", help="run a single sync and exit")
    p.add_argument("--interval", type=int, default=cfg["IMAGE_SYNC_INTERVAL_MIN"],
                   help="minutes between runs")
    p.add_argument("--log-level", type=str, default=None)
    args = p.parse_args()

    setup_logging(args.log_level)

    missing = missing_settings(
        cfg, "AIRTABLE_API_KEY", "AIRTABLE_BASE_ID", "AIRTABLE_TABLE_ID",
        "SUPABASE_URL", "SUPABASE_SERVICE_KEY",
    )
    if missing:
        logger.error("Missing settings: %s", ", ".join(missing))
        sys.exit(2)

    sync = ImageSync(
        AirtableClient(cfg["AIRTABLE_API_KEY"], cfg["AIRTABLE_BASE_ID"], cfg["AIRTABLE_TABLE_ID"]),
        StorageBucket(cfg["SUPABASE_URL"], cfg["SUPABASE_SERVICE_KEY"], cfg["SUPABASE_BUCKET_NAME"]),
    )

    if args.once:
        if sync.run_sync() is None:
            sys.exit(1)
        return

    scheduler = build_scheduler(sync, interval_minutes=args.interval)
    logger.info("Image sync scheduled every %s minutes", args.interval)
    try:
        scheduler.start()
    except (KeyboardInterrupt, SystemExit):
        logger.info("Scheduler stopped")


if __name__ == "__main__":
    main()
