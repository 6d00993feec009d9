# trefa/services/filters.py
from __future__ import annotations

import json
from dataclasses import dataclass, field, fields, replace
from typing import Any, List, Optional, Tuple

from sqlalchemy import String, and_, cast, func, literal, or_, select

from trefa.models import InventarioCache
from trefa.services.normalize import REVERSE_SUCURSAL_MAPPING, safe_parse_float

VEHICLES_PER_PAGE = 20
AVAILABLE_STATUS = "Comprado"

ORDER_FIELD_MAP = {
    "price": "precio",
    "year": "autoano",
    "mileage": "kilometraje",
}

# dataclass field -> query-string key sent by the frontend
ARG_NAMES = {
    "min_price": "minPrice",
    "max_price": "maxPrice",
    "max_enganche": "maxEnganche",
    "hide_separado": "hideSeparado",
}

LIST_FIELDS = (
    "marca", "autoano", "transmision", "combustible", "garantia",
    "carroceria", "ubicacion", "promotion",
)


def _getlist(args, key: str) -> List[str]:
    if hasattr(args, "getlist"):
        raw = args.getlist(key)
    else:
        raw = args.get(key)
        if raw is None:
            raw = []
        elif not isinstance(raw, (list, tuple)):
            raw = [raw]
    out = []
    for v in raw:
        out.extend(s.strip() for s in str(v).split(",") if s.strip())
    return out


def _number(value) -> Optional[float]:
    if value in (None, ""):
        return None
    n = safe_parse_float(value, fallback=None)
    return n or None


@dataclass(frozen=True)
class VehicleFilters:
    search: Optional[str] = None
    marca: List[str] = field(default_factory=list)
    autoano: List[int] = field(default_factory=list)
    transmision: List[str] = field(default_factory=list)
    combustible: List[str] = field(default_factory=list)
    garantia: List[str] = field(default_factory=list)
    carroceria: List[str] = field(default_factory=list)
    ubicacion: List[str] = field(default_factory=list)
    promotion: List[str] = field(default_factory=list)
    min_price: Optional[float] = None
    max_price: Optional[float] = None
    enganchemin: Optional[float] = None
    max_enganche: Optional[float] = None
    hide_separado: bool = False
    orderby: Optional[str] = None

    @classmethod
    def from_args(cls, args) -> "VehicleFilters":
        """Build filters from request.args (or any mapping)."""
        kw: dict[str, Any] = {}
        for name in LIST_FIELDS:
            values = _getlist(args, name)
            if name == "autoano":
                values = [int(v) for v in values if v.isdigit()]
            kw[name] = values

        for name in ("min_price", "max_price", "enganchemin", "max_enganche"):
            kw[name] = _number(args.get(ARG_NAMES.get(name, name)))

        search = (args.get("search") or "").strip()
        kw["search"] = search or None
        orderby = (args.get("orderby") or "").strip()
        kw["orderby"] = orderby or None
        kw["hide_separado"] = str(args.get("hideSeparado") or "").lower() in ("1", "true", "yes")
        return cls(**kw)

    def to_dict(self) -> dict:
        """Only the filters that are actually set."""
        out = {}
        for f in fields(self):
            v = getattr(self, f.name)
            if v in (None, False, [], ""):
                continue
            out[f.name] = list(v) if isinstance(v, list) else v
        return out

    def cache_key(self, page: int) -> str:
        return f"vehicles_{json.dumps(self.to_dict(), sort_keys=True, ensure_ascii=False)}_{page}"

    # ---------- filter state helpers ----------
    def merged(self, **changes) -> "VehicleFilters":
        return replace(self, **changes)

    def without(self, key: str, value: Any = None) -> "VehicleFilters":
        """Remove one value from a list filter, or the whole filter otherwise."""
        current = getattr(self, key)
        if isinstance(current, list):
            # query-string values arrive as text ("2020" for autoano)
            remaining = [v for v in current if str(v) != str(value)] if value is not None else []
            return replace(self, **{key: remaining})
        return replace(self, **{key: VehicleFilters.__dataclass_fields__[key].default})

    def cleared(self) -> "VehicleFilters":
        return VehicleFilters()


def _order_clause(orderby: Optional[str]):
    if not orderby:
        return InventarioCache.updated_at.desc()
    field_name, _, direction = orderby.partition("-")
    column_name = ORDER_FIELD_MAP.get(field_name, field_name)
    column = InventarioCache.__table__.columns.get(column_name)
    if column is None:
        return InventarioCache.updated_at.desc()
    return column.asc() if direction == "asc" else column.desc()


def _where_clauses(filters: VehicleFilters) -> list:
    C = InventarioCache
    where = [C.ordenstatus == AVAILABLE_STATUS]
    if filters.hide_separado:
        where.append(or_(C.separado.is_(None), C.separado.is_(False)))

    if filters.marca:
        where.append(C.marca.in_(filters.marca))
    if filters.autoano:
        where.append(C.autoano.in_(filters.autoano))
    if filters.transmision:
        where.append(C.transmision.in_(filters.transmision))
    if filters.combustible:
        where.append(C.combustible.in_(filters.combustible))
    if filters.garantia:
        where.append(C.garantia.in_(filters.garantia))
    if filters.carroceria:
        where.append(C.carroceria.in_(filters.carroceria))
    if filters.ubicacion:
        # ubicacion holds one or more comma separated branch codes ("MTY,GPE")
        tokens = literal(",") + func.upper(func.replace(C.ubicacion, " ", "")) + literal(",")
        codes = [REVERSE_SUCURSAL_MAPPING.get(s, s).replace(" ", "").upper() for s in filters.ubicacion]
        where.append(or_(*[tokens.like(f"%,{code},%") for code in codes]))

    if filters.min_price:
        where.append(C.precio >= filters.min_price)
    if filters.max_price:
        where.append(C.precio <= filters.max_price)
    if filters.enganchemin:
        where.append(C.enganchemin >= filters.enganchemin)
    if filters.max_enganche:
        where.append(C.enganchemin <= filters.max_enganche)

    if filters.search:
        pattern = f"%{filters.search}%"
        where.append(or_(
            C.title.ilike(pattern),
            C.marca.ilike(pattern),
            C.modelo.ilike(pattern),
        ))

    if filters.promotion:
        # promociones is a JSON list; match the quoted element in its text form
        promo_text = cast(C.promociones, String)
        where.append(or_(*[
            promo_text.like(f"%{json.dumps(p, ensure_ascii=False)}%") for p in filters.promotion
        ]))
    return where


def build_vehicle_query(
    filters: Optional[VehicleFilters] = None,
    page: int = 1,
    per_page: int = VEHICLES_PER_PAGE,
) -> Tuple[Any, Any]:
    """
    Returns (rows_stmt, count_stmt). Both share the same WHERE clause; the
    rows statement is ordered and limited to the requested page.
    """
    filters = filters or VehicleFilters()
    page = max(int(page or 1), 1)
    where = _where_clauses(filters)

    rows_stmt = (
        select(InventarioCache)
        .where(and_(*where))
        .order_by(_order_clause(filters.orderby), InventarioCache.id.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
    )
    count_stmt = select(func.count()).select_from(InventarioCache).where(and_(*where))
    return rows_stmt, count_stmt
