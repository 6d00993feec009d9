# -*- coding: utf-8 -*-
"""
Airtable -> inventario_cache record sync.

Pages through the Airtable REST API (100 records per page, ~4 requests per
second) and upserts every page into inventario_cache keyed by record_id.
"""
import logging
import time
from datetime import datetime, timezone
from typing import Dict, Iterator, List, Optional

import requests
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from trefa.models import InventarioCache
from trefa.services.normalize import safe_parse_float, safe_parse_int, split_list

logger = logging.getLogger(__name__)

API_URL = "https://api.airtable.com/v0"
COMPRADO_FORMULA = "{OrdenStatus} = 'Comprado'"
PAGE_SIZE = 100  # Airtable's max page size
RATE_LIMIT_DELAY = 0.25


class AirtableError(RuntimeError):
    pass


class AirtableClient:
    def __init__(self, api_key: str, base_id: str, table_id: str,
                 session: Optional[requests.Session] = None, timeout: int = 30):
        self.url = f"{API_URL}/{base_id}/{table_id}"
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({"Authorization": f"Bearer {api_key}"})

    def iter_pages(self, formula: str = COMPRADO_FORMULA, page_size: int = PAGE_SIZE,
                   delay: float = RATE_LIMIT_DELAY) -> Iterator[List[dict]]:
        """Yield one list of records per Airtable page, following the offset cursor."""
        params = {"filterByFormula": formula, "pageSize": page_size}
        offset = None
        while True:
            if offset:
                params["offset"] = offset
            try:
                r = self.session.get(self.url, params=params, timeout=self.timeout)
            except requests.RequestException as e:
                raise AirtableError(f"Airtable request failed: {e}") from e
            if not r.ok:
                raise AirtableError(f"Airtable API responded with status: {r.status_code}")

            data = r.json()
            yield data.get("records") or []

            offset = data.get("offset")
            if not offset:
                break
            time.sleep(delay)

    def fetch_all(self, formula: str = COMPRADO_FORMULA, delay: float = RATE_LIMIT_DELAY) -> List[dict]:
        records: List[dict] = []
        for page in self.iter_pages(formula, delay=delay):
            records.extend(page)
        return records


# ----------------- mapping -----------------
def _parse_datetime(value) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None


def _text(value) -> Optional[str]:
    """Single-value column: lists (linked/multi-select fields) are comma joined."""
    if value is None:
        return None
    if isinstance(value, list):
        return ",".join(str(v).strip() for v in value if v is not None)
    return str(value)


def map_airtable_record(record: dict) -> Dict:
    f = record.get("fields") or {}
    now = datetime.now(timezone.utc)
    return {
        "record_id": record.get("id"),
        "title": f.get("Auto"),
        "slug": f.get("slug"),
        "marca": f.get("Marca"),
        "modelo": f.get("Modelo"),
        "autoano": safe_parse_int(f.get("AutoAño")),
        "precio": safe_parse_float(f.get("Precio")),
        "kilometraje": safe_parse_int(f.get("kilometraje")),
        "transmision": f.get("Transmision"),
        "combustible": f.get("Combustible"),
        "carroceria": f.get("Carroceria"),
        "ordenstatus": f.get("OrdenStatus"),
        "vendido": bool(f.get("Vendido") or False),
        "separado": bool(f.get("Separado") or False),
        "ubicacion": _text(f.get("Ubicacion")),
        "vin": f.get("vin"),
        "consigna": bool(f.get("consigna") or False),
        "clasificacionid": f.get("ClasificacionID"),
        "viewcount": safe_parse_int(f.get("viewCount")),
        "automotor": _text(f.get("AutoMotor")),
        "cilindros": safe_parse_int(f.get("AutoCilindros")),
        "ordencompra": _text(f.get("OrdenCompra")),
        "ingreso_inventario": _text(f.get("ingreso_inventario")),
        "descripcion": f.get("descripcion"),
        "formulafinanciamiento": _text(f.get("FormulaFinanciamiento")),
        "garantia": _text(f.get("garantia")),
        "feature_image": split_list(f.get("feature_image_url")),
        "mensualidad_minima": safe_parse_float(f.get("mensualidad_minima")),
        "mensualidad_recomendada": safe_parse_float(f.get("mensualidad_recomendada")),
        "enganchemin": safe_parse_float(f.get("enganche_minimo")),
        "enganche_recomendado": safe_parse_float(f.get("enganche_recomendado")),
        "plazomax": safe_parse_int(f.get("PlazoMax")),
        "numero_duenos": safe_parse_int(f.get("numero_duenos")),
        "fotos_exterior_url": split_list(f.get("fotos_exterior_url")),
        "fotos_interior_url": split_list(f.get("fotos_interior_url")),
        "created_at": _parse_datetime(f.get("CreatedAt")) or now,
        "updated_at": now,
    }


# ----------------- DB upsert -----------------
def upsert_vehicle(db, data: Dict) -> bool:
    """Insert or update by record_id. Returns True when a new row was added."""
    record_id = data.get("record_id")
    if not record_id:
        return False

    exist = db.execute(
        select(InventarioCache).where(InventarioCache.record_id == record_id)
    ).scalar_one_or_none()

    if exist:
        for k, v in data.items():
            if k == "created_at":
                continue
            setattr(exist, k, v)
        db.add(exist)
        return False

    db.add(InventarioCache(**data))
    return True


def _sync_batch(db, rows: List[Dict], page_number: int) -> tuple[int, int]:
    try:
        for row in rows:
            upsert_vehicle(db, row)
        db.commit()
        return len(rows), 0
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("Failed to sync batch %s: %s", page_number, e)

    # retry one by one so a single bad record doesn't sink the page
    synced = failed = 0
    for row in rows:
        try:
            upsert_vehicle(db, row)
            db.commit()
            synced += 1
        except SQLAlchemyError as e:
            db.rollback()
            failed += 1
            logger.error("Failed record ID: %s (%s)", row.get("record_id"), e)
            logger.debug("Problematic record data: %r", row)
    return synced, failed


def sync_airtable_data(db, client: AirtableClient, delay: float = RATE_LIMIT_DELAY) -> Dict[str, int]:
    logger.info('Fetching all "Comprado" records from Airtable in batches...')
    stats = {"fetched": 0, "synced": 0, "failed": 0}

    for page_number, records in enumerate(client.iter_pages(COMPRADO_FORMULA, delay=delay), start=1):
        logger.info("Fetched page %s with %s records.", page_number, len(records))
        stats["fetched"] += len(records)

        rows = [map_airtable_record(r) for r in records if r.get("id")]
        logger.info("Upserting batch of %s records...", len(rows))
        synced, failed = _sync_batch(db, rows, page_number)
        stats["synced"] += synced
        stats["failed"] += failed
        if not failed:
            logger.info("Successfully synced batch %s.", page_number)

    logger.info("Fetched a total of %s records from Airtable.", stats["fetched"])
    logger.info("Sync complete. Successfully synced %s of %s records.", stats["synced"], stats["fetched"])
    return stats
