# trefa/services/vehicles.py
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.exc import MultipleResultsFound, SQLAlchemyError

from trefa.db import SessionLocal
from trefa.models import InventarioCache
from trefa.services.filters import (
    AVAILABLE_STATUS, VEHICLES_PER_PAGE, VehicleFilters, build_vehicle_query,
)
from trefa.services.local_store import LocalStore
from trefa.services.normalize import (
    map_sucursales, normalize_vehicle, normalize_vehicle_data, safe_parse_float, split_list,
)

logger = logging.getLogger(__name__)

CACHE_TTL = 5 * 60  # seconds
STALE_TTL = 24 * 60 * 60  # stale pages kept this long as an outage fallback
MAX_CACHED_PAGES = 200
LISTINGS_KEY = "trefa_vehicle_listings"
VIEW_COUNT_KEY = "trefa_vehicle_views"
RECENTLY_VIEWED_MAX = 10


@dataclass
class CacheEntry:
    data: List[Dict[str, Any]]
    total_count: int
    timestamp: float


class VehicleService:
    """
    Read side of the inventory: paged/filtered listings behind a two level
    TTL cache (process memory, then the local store), single vehicle lookup
    with view tracking, and the lookups the filter sidebar needs.
    """

    def __init__(
        self,
        store: LocalStore,
        session_factory=SessionLocal,
        ttl: float = CACHE_TTL,
        per_page: int = VEHICLES_PER_PAGE,
        clock: Callable[[], float] = time.time,
        stale_ttl: float = STALE_TTL,
        max_pages: int = MAX_CACHED_PAGES,
    ):
        self.store = store
        self.session_factory = session_factory
        self.ttl = ttl
        self.per_page = per_page
        self.clock = clock
        self.stale_ttl = stale_ttl
        self.max_pages = max_pages
        self._memory: Dict[str, CacheEntry] = {}

    # ----------------------------- listings -----------------------------
    def get_all_vehicles(self, filters: Optional[VehicleFilters] = None, page: int = 1) -> dict:
        filters = filters or VehicleFilters()
        key = filters.cache_key(page)
        now = self.clock()

        cached = self._memory.get(key)
        if cached and now - cached.timestamp < self.ttl:
            logger.debug("Cache hit: %s", key)
            return self._result(cached.data, cached.total_count)

        try:
            local = self._stored_page(key)
            if local and now - local["timestamp"] < self.ttl:
                logger.debug("Local store cache hit: %s", key)
                entry = CacheEntry(local["data"], local["totalCount"], local["timestamp"])
                self._memory[key] = entry
                return self._result(entry.data, entry.total_count)
        except (KeyError, TypeError) as e:
            logger.warning("Could not read local store cache %s: %s", key, e)

        try:
            vehicles, total = self._query_vehicles(filters, page)
        except SQLAlchemyError:
            logger.exception("Primary data source failed, attempting to use stale cache.")
            stale = self._memory.get(key)
            if stale:
                logger.warning("Returning stale in-memory cache data.")
                return self._result(stale.data, stale.total_count)
            try:
                local = self._stored_page(key)
                if local:
                    logger.warning("Returning stale local store cache data.")
                    return self._result(local["data"], local.get("totalCount", 0))
            except (KeyError, TypeError) as e:
                logger.error("Could not read stale local store cache: %s", e)
            raise

        stamp = self.clock()
        self._memory[key] = CacheEntry(vehicles, total, stamp)
        self._memory = self._prune(self._memory, lambda e: e.timestamp, stamp)

        page_entry = {"data": vehicles, "totalCount": total, "timestamp": stamp}
        try:
            self.store.update(
                LISTINGS_KEY,
                lambda pages: self._prune(
                    {**(pages if isinstance(pages, dict) else {}), key: page_entry},
                    lambda p: p.get("timestamp", 0) if isinstance(p, dict) else 0,
                    stamp,
                ),
            )
        except (OSError, TypeError, ValueError) as e:
            logger.warning("Could not write local store cache: %s", e)

        return self._result(vehicles, total)

    def _stored_page(self, key: str) -> Optional[dict]:
        pages = self.store.get(LISTINGS_KEY)
        if not isinstance(pages, dict):
            return None
        return pages.get(key)

    def _prune(self, entries: dict, timestamp_of, now: float) -> dict:
        """Drop pages past the stale window, then keep only the newest `max_pages`."""
        alive = [(k, v) for k, v in entries.items() if now - timestamp_of(v) < self.stale_ttl]
        alive.sort(key=lambda kv: timestamp_of(kv[1]), reverse=True)
        return dict(alive[:self.max_pages])

    def _query_vehicles(self, filters: VehicleFilters, page: int):
        rows_stmt, count_stmt = build_vehicle_query(filters, page, self.per_page)
        db = self.session_factory()
        try:
            rows = db.execute(rows_stmt).scalars().all()
            total = db.execute(count_stmt).scalar() or 0
            return normalize_vehicle_data([r.to_dict() for r in rows]), int(total)
        finally:
            db.close()

    def _result(self, data, total_count) -> dict:
        return {"vehicles": self.apply_view_counts(data), "totalCount": total_count}

    def clear_cache(self):
        self._memory.clear()

    # ----------------------------- single vehicle -----------------------------
    def get_vehicle_by_slug(self, slug: str) -> Optional[dict]:
        if not slug:
            return None
        db = self.session_factory()
        try:
            row = db.execute(
                select(InventarioCache).where(InventarioCache.slug == slug)
            ).scalar_one_or_none()
            if row is None:
                return None
            vehicle = normalize_vehicle(row.to_dict())
            return self._record_vehicle_view(db, vehicle)
        except MultipleResultsFound:
            logger.error("More than one vehicle with slug %r", slug)
            return None
        except SQLAlchemyError:
            logger.exception("Error fetching vehicle by slug %r", slug)
            return None
        finally:
            db.close()

    def get_all_vehicle_slugs(self) -> List[dict]:
        db = self.session_factory()
        try:
            slugs = db.execute(
                select(InventarioCache.slug)
                .where(InventarioCache.ordenstatus == AVAILABLE_STATUS)
                .order_by(InventarioCache.updated_at.desc())
            ).scalars().all()
            return [{"slug": s} for s in slugs]
        except SQLAlchemyError:
            logger.exception("Error fetching all vehicle slugs")
            return []
        finally:
            db.close()

    def get_recently_viewed(self, ids, exclude_id: Optional[int] = None) -> List[dict]:
        """`ids` is the visitor's own list, most recent first (see `remember_viewed`)."""
        ids = [i for i in _clean_ids(ids) if i != exclude_id]
        if not ids:
            return []
        db = self.session_factory()
        try:
            rows = db.execute(
                select(InventarioCache).where(InventarioCache.id.in_(ids))
            ).scalars().all()
        except SQLAlchemyError:
            logger.exception("Error fetching recently viewed vehicles")
            return []
        finally:
            db.close()

        by_id = {r.id: r for r in rows}
        ordered = [by_id[i].to_dict() for i in ids if i in by_id]
        return self.apply_view_counts(normalize_vehicle_data(ordered)[:RECENTLY_VIEWED_MAX])

    # ----------------------------- filter options -----------------------------
    def get_filter_options(self) -> dict:
        C = InventarioCache
        available = C.ordenstatus == AVAILABLE_STATUS
        db = self.session_factory()
        try:
            def distinct(col, desc=False):
                stmt = (
                    select(col).where(available, col.isnot(None)).distinct()
                    .order_by(col.desc() if desc else col.asc())
                )
                return [v for v in db.execute(stmt).scalars().all() if v != ""]

            precio_min, precio_max, eng_min, eng_max = db.execute(
                select(
                    func.min(C.precio), func.max(C.precio),
                    func.min(C.enganchemin), func.max(C.enganchemin),
                ).where(available)
            ).one()

            sucursales: List[str] = []
            for raw in distinct(C.ubicacion):
                for name in map_sucursales(raw):
                    if name not in sucursales:
                        sucursales.append(name)

            promociones = set()
            for promos in db.execute(select(C.promociones).where(available)).scalars().all():
                promociones.update(str(p) for p in split_list(promos))

            return {
                "marcas": distinct(C.marca),
                "autoanos": distinct(C.autoano, desc=True),
                "transmisiones": distinct(C.transmision),
                "combustibles": distinct(C.combustible),
                "carrocerias": distinct(C.carroceria),
                "garantias": distinct(C.garantia),
                "sucursales": sorted(sucursales),
                "promociones": sorted(promociones),
                "precio": {"min": safe_parse_float(precio_min), "max": safe_parse_float(precio_max)},
                "enganche": {"min": safe_parse_float(eng_min), "max": safe_parse_float(eng_max)},
            }
        except SQLAlchemyError:
            logger.exception("Error fetching filter options")
            return {}
        finally:
            db.close()

    # ----------------------------- view tracking -----------------------------
    def apply_view_counts(self, vehicles: List[dict]) -> List[dict]:
        counts = self._view_counts()
        return [
            {
                **v,
                "view_count": counts.get(str(v.get("id"))) or v.get("view_count") or v.get("viewcount") or 0,
            }
            for v in vehicles
        ]

    def _record_vehicle_view(self, db, vehicle: dict) -> dict:
        vid = vehicle["id"]
        try:
            db.execute(
                update(InventarioCache)
                .where(InventarioCache.id == vid)
                .values(viewcount=func.coalesce(InventarioCache.viewcount, 0) + 1)
                .execution_options(synchronize_session=False)
            )
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            logger.exception("Error incrementing view count for vehicle %s", vid)

        def bump(counts):
            counts = dict(counts) if isinstance(counts, dict) else {}
            counts[str(vid)] = (
                counts.get(str(vid)) or vehicle.get("view_count") or vehicle.get("viewcount") or 0
            ) + 1
            return counts

        try:
            new_count = self.store.update(VIEW_COUNT_KEY, bump)[str(vid)]
        except (OSError, TypeError, ValueError) as e:
            logger.error("Failed to save view counts: %s", e)
            new_count = bump(self._view_counts())[str(vid)]

        return {**vehicle, "view_count": new_count}

    def _view_counts(self) -> dict:
        counts = self.store.get(VIEW_COUNT_KEY)
        return dict(counts) if isinstance(counts, dict) else {}


# ----------------------------- recently viewed -----------------------------
def _clean_ids(ids) -> List[int]:
    if not isinstance(ids, list):
        return []
    return [i for i in ids if isinstance(i, int) and not isinstance(i, bool)]


def remember_viewed(ids, vehicle_id: int) -> List[int]:
    """Move `vehicle_id` to the front of a visitor's recently viewed ids."""
    ids = [i for i in _clean_ids(ids) if i != vehicle_id]
    ids.insert(0, vehicle_id)
    return ids[:RECENTLY_VIEWED_MAX]
