# -*- coding: utf-8 -*-
"""
Create the inventario_cache table on a fresh database (no Alembic history).

Example:
  python scripts/init_db_once.py
  python scripts/init_db_once.py --stamp   # then mark it as migrated to head
"""
import os, sys, argparse, logging

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from sqlalchemy import inspect

from trefa.config import setup_logging
from trefa.db import Base, DATABASE_URL, engine
from trefa.models import InventarioCache

logger = logging.getLogger("init_db_once")

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))


def main():
    p = argparse.ArgumentParser(description="Create missing tables for the TREFA backend")
    p.add_argument("--stamp", action="store_true", help="stamp the Alembic head after creating tables")
    p.add_argument("--log-level", type=str, default=None)
    args = p.parse_args()

    setup_logging(args.log_level)

    existing = set(inspect(engine).get_table_names())
    table = InventarioCache.__tablename__
    logger.info("Database: %s", engine.url.render_as_string(hide_password=True))
    if table in existing:
        logger.info("Table %s already exists, nothing to create", table)
    else:
        Base.metadata.create_all(bind=engine)
        logger.info("Created table %s", table)

    if args.stamp:
        from alembic import command
        from alembic.config import Config

        cfg = Config(os.path.join(ROOT, "alembic.ini"))
        cfg.set_main_option("script_location", os.path.join(ROOT, "trefa", "migrations"))
        cfg.set_main_option("sqlalchemy.url", DATABASE_URL)
        command.stamp(cfg, "head")
        logger.info("Stamped Alembic head")


if __name__ == "__main__":
    main()
