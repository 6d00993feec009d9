# trefa/models/vehicle.py
from datetime import datetime
from typing import Optional, List, Any

from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import (
    BigInteger, Integer, String, Numeric, Boolean, DateTime, Text, JSON, func, text
)
from sqlalchemy.dialects.postgresql import JSONB

from trefa.db import Base  # Base comes from trefa.db only, never from trefa.models

# JSONB on Postgres, plain JSON elsewhere (sqlite in tests)
JSONList = JSON().with_variant(JSONB(), "postgresql")
PK = BigInteger().with_variant(Integer(), "sqlite")

class InventarioCache(Base):
    """Mirror of the Airtable inventory, one row per Airtable record."""

    __tablename__ = "inventario_cache"

    id: Mapped[int] = mapped_column(PK, primary_key=True, autoincrement=True)

    # ---------- identity ----------
    record_id: Mapped[Optional[str]] = mapped_column(String(32), unique=True, index=True)
    slug: Mapped[Optional[str]] = mapped_column(String(255), index=True)
    ordencompra: Mapped[Optional[str]] = mapped_column(String(64))
    vin: Mapped[Optional[str]] = mapped_column(String(64))

    # ---------- description ----------
    title: Mapped[Optional[str]] = mapped_column(String(255))
    marca: Mapped[Optional[str]] = mapped_column(String(80), index=True)
    modelo: Mapped[Optional[str]] = mapped_column(String(120))
    autoano: Mapped[Optional[int]] = mapped_column(Integer)
    descripcion: Mapped[Optional[str]] = mapped_column(Text)
    metadescripcion: Mapped[Optional[str]] = mapped_column(Text)
    kilometraje: Mapped[Optional[int]] = mapped_column(Integer)
    transmision: Mapped[Optional[str]] = mapped_column(String(60))
    combustible: Mapped[Optional[str]] = mapped_column(String(60))
    carroceria: Mapped[Optional[str]] = mapped_column(String(60))
    automotor: Mapped[Optional[str]] = mapped_column(String(120))
    cilindros: Mapped[Optional[int]] = mapped_column(Integer)
    numero_duenos: Mapped[Optional[int]] = mapped_column(Integer)
    garantia: Mapped[Optional[str]] = mapped_column(String(120))
    ubicacion: Mapped[Optional[str]] = mapped_column(String(120))  # branch code(s), e.g. 'MTY' or 'MTY,GPE'
    clasificacionid: Mapped[Optional[Any]] = mapped_column(JSONList)
    formulafinanciamiento: Mapped[Optional[str]] = mapped_column(Text)
    ingreso_inventario: Mapped[Optional[str]] = mapped_column(String(40))

    # ---------- commercial ----------
    precio: Mapped[Optional[float]] = mapped_column(Numeric(12, 2))
    enganchemin: Mapped[Optional[float]] = mapped_column(Numeric(12, 2))
    enganche_recomendado: Mapped[Optional[float]] = mapped_column(Numeric(12, 2))
    mensualidad_minima: Mapped[Optional[float]] = mapped_column(Numeric(12, 2))
    mensualidad_recomendada: Mapped[Optional[float]] = mapped_column(Numeric(12, 2))
    plazomax: Mapped[Optional[int]] = mapped_column(Integer)
    promociones: Mapped[Optional[List[str]]] = mapped_column(JSONList)

    # ---------- media ----------
    feature_image: Mapped[Optional[List[str]]] = mapped_column(JSONList)
    feature_image_url: Mapped[Optional[str]] = mapped_column(Text)
    fotos_exterior_url: Mapped[Optional[List[str]]] = mapped_column(JSONList)
    fotos_interior_url: Mapped[Optional[List[str]]] = mapped_column(JSONList)
    galeria_exterior: Mapped[Optional[List[str]]] = mapped_column(JSONList)

    # ---------- status ----------
    vendido: Mapped[bool] = mapped_column(Boolean, default=False, server_default=text("false"))
    separado: Mapped[Optional[bool]] = mapped_column(Boolean, default=False)
    consigna: Mapped[bool] = mapped_column(Boolean, default=False, server_default=text("false"))
    ordenstatus: Mapped[Optional[str]] = mapped_column(String(40), index=True)

    viewcount: Mapped[int] = mapped_column(Integer, default=0, server_default=text("0"))

    created_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    last_synced_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    def to_dict(self) -> dict:
        return {c.key: getattr(self, c.key) for c in self.__table__.columns}

    def __repr__(self) -> str:
        return f"<InventarioCache {self.record_id} {self.title!r}>"
