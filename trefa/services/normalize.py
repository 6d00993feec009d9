# trefa/services/normalize.py
# -*- coding: utf-8 -*-
"""
Shape loosely-typed inventory rows (Airtable mirror) into the Vehicle dict
the frontend consumes.
"""
from __future__ import annotations

import re
import unicodedata
from typing import Any, Dict, Iterable, List, Optional
from urllib.parse import urlparse

SUCURSAL_MAPPING = {
    "MTY": "Monterrey",
    "GPE": "Guadalupe",
    "TMPS": "Reynosa",
    "COAH": "Saltillo",
}
REVERSE_SUCURSAL_MAPPING = {v: k for k, v in SUCURSAL_MAPPING.items()}

DEFAULT_TITLE = "Auto sin título"

_FLOAT_RE = re.compile(r"^\s*[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")
_INT_RE = re.compile(r"^\s*[+-]?\d+")


# ----------------------------- numbers -----------------------------
def _numeric_text(value: Any) -> Optional[str]:
    if value is None or isinstance(value, bool):
        return None
    return str(value).replace(",", "")


def safe_parse_float(value: Any, fallback: float = 0) -> float:
    """'1,234.50 MXN' -> 1234.5 ; anything unparseable -> fallback"""
    txt = _numeric_text(value)
    m = _FLOAT_RE.match(txt) if txt is not None else None
    if not m:
        return fallback
    return float(m.group(0))


def safe_parse_int(value: Any, fallback: int = 0) -> int:
    """'2,021' -> 2021 ; '12.9' -> 12 ; anything unparseable -> fallback"""
    txt = _numeric_text(value)
    m = _INT_RE.match(txt) if txt is not None else None
    if not m:
        return fallback
    return int(m.group(0))


# ----------------------------- text/urls -----------------------------
def is_valid_image_url(url: Any) -> bool:
    if not isinstance(url, str) or not url.strip():
        return False
    p = urlparse(url.strip())
    return p.scheme in ("http", "https") and bool(p.netloc)


def generate_slug(text: str) -> str:
    s = unicodedata.normalize("NFKD", text or "")
    s = s.encode("ascii", "ignore").decode("ascii").lower()
    s = re.sub(r"[^a-z0-9]+", "-", s)
    return s.strip("-")


def split_list(value: Any) -> List[Any]:
    """
    Accepts the shapes Airtable and the cache table hand back for
    multi-valued fields: a list, a comma separated string, or attachment
    objects ({"url": ...}). Anything else gives [].
    """
    if isinstance(value, list):
        items = value
    elif isinstance(value, str):
        items = value.split(",")
    else:
        return []

    out = []
    for it in items:
        if isinstance(it, dict):
            it = it.get("url")
        if isinstance(it, str):
            it = it.strip()
            if not it:
                continue
        if it is None:
            continue
        out.append(it)
    return out


def unique_image_urls(urls: Iterable[Any]) -> List[str]:
    seen = set()
    out = []
    for u in urls:
        if not is_valid_image_url(u):
            continue
        u = u.strip()
        if u not in seen:
            seen.add(u)
            out.append(u)
    return out


def map_sucursales(value: Any) -> List[str]:
    names = []
    for s in split_list(value):
        s = str(s).strip()
        name = SUCURSAL_MAPPING.get(s.upper(), s)
        if name:
            names.append(name)
    return names


# ----------------------------- vehicles -----------------------------
def normalize_vehicle(item: Dict[str, Any]) -> Dict[str, Any]:
    marca = item.get("marca")
    modelo = item.get("modelo")
    title = (
        item.get("title")
        or f"{marca or ''} {modelo or ''} {item.get('autoano') or ''}".strip()
        or DEFAULT_TITLE
    )
    slug = item.get("slug") or generate_slug(title)

    raw_clas = item.get("clasificacionid")
    if isinstance(raw_clas, list):
        clasificacionid = [str(c) for c in raw_clas]
    elif isinstance(raw_clas, str):
        clasificacionid = [c.strip() for c in raw_clas.split(",") if c.strip()]
    else:
        clasificacionid = []

    sucursales = map_sucursales(item.get("ubicacion"))

    feature_candidates = [
        item.get("feature_image_url"),
        *split_list(item.get("feature_image")),
        *split_list(item.get("fotos_exterior_url")),
    ]
    feature = next((u.strip() for u in feature_candidates if is_valid_image_url(u)), None)

    exterior = unique_image_urls(
        split_list(item.get("fotos_exterior_url")) + split_list(item.get("galeria_exterior"))
    )
    interior = unique_image_urls(split_list(item.get("fotos_interior_url")))

    precio = safe_parse_float(item.get("precio"))
    autoano = safe_parse_int(item.get("autoano"))
    kilometraje = safe_parse_int(item.get("kilometraje"))
    promociones = item.get("promociones")

    return {
        "id": item.get("id"),
        "slug": slug,
        "ordencompra": item.get("ordencompra"),
        "record_id": item.get("record_id") or None,

        "titulo": title,
        "descripcion": item.get("descripcion"),
        "metadescripcion": item.get("metadescripcion"),

        "marca": marca,
        "modelo": modelo,

        "autoano": autoano,
        "precio": precio,
        "kilometraje": kilometraje,
        "transmision": item.get("transmision"),
        "combustible": item.get("combustible"),
        "carroceria": item.get("carroceria"),
        "cilindros": safe_parse_int(item.get("cilindros")),

        "enganchemin": safe_parse_float(item.get("enganchemin")),
        "enganche_recomendado": safe_parse_float(item.get("enganche_recomendado")),
        "mensualidad_minima": safe_parse_float(item.get("mensualidad_minima")),
        "mensualidad_recomendada": safe_parse_float(item.get("mensualidad_recomendada")),
        "plazomax": safe_parse_int(item.get("plazomax")),

        "feature_image": [feature] if feature else [],
        "galeria_exterior": exterior,
        "fotos_exterior_url": list(exterior),
        "galeria_interior": interior,

        "ubicacion": sucursales,
        "sucursal": list(sucursales),

        "garantia": item.get("garantia"),

        "vendido": bool(item.get("vendido")),
        "separado": bool(item.get("separado")),
        "ordenstatus": item.get("ordenstatus"),

        "clasificacionid": clasificacionid,
        "promociones": promociones if isinstance(promociones, list) else [],

        "viewcount": safe_parse_int(item.get("viewcount")),

        # compatibility aliases
        "title": title,
        "price": precio,
        "year": autoano,
        "kms": kilometraje,
    }


def normalize_vehicle_data(raw: Iterable[Optional[Dict[str, Any]]]) -> List[Dict[str, Any]]:
    return [normalize_vehicle(item) for item in raw if item]
