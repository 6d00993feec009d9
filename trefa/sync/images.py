# -*- coding: utf-8 -*-
"""
Airtable -> Storage image mirroring.

- Copies feature/exterior/interior photos into the bucket under
  <OrdenCompra or record id>/<field>/<file name>
- Skips files that are already in the bucket (no re-download)
- Writes the public URLs + last_synced_at back to inventario_cache
- Never runs two syncs at once; scheduled every N minutes
"""
import logging
import os
from datetime import datetime, timezone
from threading import Lock
from typing import Dict, List, Optional, Set
from urllib.parse import unquote, urlparse

import requests
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from trefa.db import SessionLocal
from trefa.models import InventarioCache
from trefa.services.normalize import split_list
from trefa.sync.airtable import AirtableClient, AirtableError
from trefa.sync.storage import StorageBucket, StorageError

logger = logging.getLogger(__name__)

IMAGE_FIELDS = ("feature_image_url", "fotos_exterior_url", "fotos_interior_url")
SINGLE_IMAGE_FIELD = "feature_image_url"


class ImageSync:
    def __init__(self, airtable: AirtableClient, storage: StorageBucket,
                 session_factory=SessionLocal, http: Optional[requests.Session] = None,
                 timeout: int = 60):
        self.airtable = airtable
        self.storage = storage
        self.session_factory = session_factory
        self.http = http or requests.Session()
        self.timeout = timeout
        self._running = Lock()
        self._listings: Dict[str, Set[str]] = {}

    # ----------------- bucket -----------------
    def _folder_files(self, folder: str) -> Set[str]:
        if folder not in self._listings:
            try:
                self._listings[folder] = {f.get("name") for f in self.storage.list(folder, limit=1000)}
            except StorageError as e:
                logger.error("Error listing storage folder %s: %s", folder, e)
                return set()
        return self._listings[folder]

    def is_file_in_folder(self, vehicle_id: str, field: str, file_name: str) -> bool:
        return file_name in self._folder_files(f"{vehicle_id}/{field}/")

    def download_and_upload(self, url, vehicle_id: str, field: str) -> Optional[str]:
        if not url or not isinstance(url, str):
            return None

        try:
            file_name = unquote(os.path.basename(urlparse(url).path))
        except ValueError as e:
            logger.error("Malformed image URL %r: %s", url, e)
            return None
        if not file_name:
            logger.warning("No file name in image URL: %s", url)
            return None
        path = f"{vehicle_id}/{field}/{file_name}"

        if self.is_file_in_folder(vehicle_id, field, file_name):
            logger.info("Skipped (already uploaded): %s", path)
            return self.storage.public_url(path)

        try:
            r = self.http.get(url, timeout=self.timeout)
            if not r.ok:
                logger.error("Failed to download image: %s (status: %s)", url, r.status_code)
                return None
            self.storage.upload(
                path,
                r.content,
                content_type=r.headers.get("content-type") or "application/octet-stream",
                upsert=False,
            )
        except (requests.RequestException, ValueError) as e:
            logger.error("Error downloading image %s: %s", url, e)
            return None
        except StorageError as e:
            logger.error("Upload error for %s: %s", path, e)
            return None

        self._listings.setdefault(f"{vehicle_id}/{field}/", set()).add(file_name)
        public_url = self.storage.public_url(path)
        logger.info("Uploaded %s -> %s", file_name, public_url)
        return public_url

    # ----------------- records -----------------
    def process_record(self, record: dict) -> dict:
        fields = record.get("fields") or {}
        vehicle_id = str(fields.get("OrdenCompra") or record.get("id"))
        logger.info("Processing vehicle: %s", vehicle_id)

        update = {"record_id": record.get("id")}
        for field in IMAGE_FIELDS:
            uploaded = [self.download_and_upload(u, vehicle_id, field) for u in split_list(fields.get(field))]
            valid = [u for u in uploaded if u]
            if not valid:
                update[field] = None
            elif field == SINGLE_IMAGE_FIELD:
                update[field] = valid[0]
            else:
                update[field] = valid
        update["last_synced_at"] = datetime.now(timezone.utc)
        return update

    def update_cache_table(self, db, updates: List[dict]) -> int:
        logger.info("Updating inventario_cache table...")
        valid = [u for u in updates if u and u.get("record_id")]
        if not valid:
            logger.warning("No valid records to update.")
            return 0

        updated = 0
        try:
            for u in valid:
                row = db.execute(
                    select(InventarioCache).where(InventarioCache.record_id == u["record_id"])
                ).scalar_one_or_none()
                if row is None:
                    logger.warning("No cached vehicle for record %s, run the data sync first.", u["record_id"])
                    continue
                for k, v in u.items():
                    # a field with no mirrored images keeps what it had
                    if k != "record_id" and v is not None:
                        setattr(row, k, v)
                db.add(row)
                updated += 1
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error("Error updating inventario_cache: %s", e)
            return 0

        logger.info("Updated %s records.", updated)
        return updated

    # ----------------- runner -----------------
    def run_sync(self) -> Optional[int]:
        if not self._running.acquire(blocking=False):
            logger.info("Previous sync still running, skipping this cycle.")
            return None

        try:
            self._listings.clear()
            logger.info("Fetching 'Comprado' vehicles from Airtable...")
            records = self.airtable.fetch_all()
            logger.info("Fetched %s vehicles.", len(records))

            updates = []
            for record in records:
                try:
                    updates.append(self.process_record(record))
                except Exception:
                    # skip the record, keep the run going
                    logger.exception("Failed to process record %s", record.get("id"))

            db = self.session_factory()
            try:
                updated = self.update_cache_table(db, updates)
            finally:
                db.close()
            logger.info("Sync complete.")
            return updated
        except (AirtableError, SQLAlchemyError) as e:
            logger.error("Sync failed: %s", e)
            return None
        finally:
            self._running.release()


def build_scheduler(sync: ImageSync, interval_minutes: int = 30, background: bool = False):
    """Runs the sync right away, then every `interval_minutes`."""
    scheduler = BackgroundScheduler() if background else BlockingScheduler()
    scheduler.add_job(
        sync.run_sync,
        IntervalTrigger(minutes=interval_minutes),
        id="airtable_image_sync",
        name="Airtable image sync",
        next_run_time=datetime.now(),
        max_instances=1,
        coalesce=True,
        replace_existing=True,
    )
    return scheduler
