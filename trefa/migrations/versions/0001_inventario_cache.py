"""inventario_cache table

Revision ID: 0001
Revises:
Create Date: 2025-10-02 10:00:00
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None

JSONList = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")
Money = sa.Numeric(12, 2)


def upgrade():
    op.create_table(
        "inventario_cache",
        sa.Column("id", sa.BigInteger().with_variant(sa.Integer(), "sqlite"), primary_key=True, autoincrement=True),
        sa.Column("record_id", sa.String(32), nullable=True),
        sa.Column("slug", sa.String(255), nullable=True),
        sa.Column("ordencompra", sa.String(64), nullable=True),
        sa.Column("vin", sa.String(64), nullable=True),
        sa.Column("title", sa.String(255), nullable=True),
        sa.Column("marca", sa.String(80), nullable=True),
        sa.Column("modelo", sa.String(120), nullable=True),
        sa.Column("autoano", sa.Integer(), nullable=True),
        sa.Column("descripcion", sa.Text(), nullable=True),
        sa.Column("metadescripcion", sa.Text(), nullable=True),
        sa.Column("kilometraje", sa.Integer(), nullable=True),
        sa.Column("transmision", sa.String(60), nullable=True),
        sa.Column("combustible", sa.String(60), nullable=True),
        sa.Column("carroceria", sa.String(60), nullable=True),
        sa.Column("automotor", sa.String(120), nullable=True),
        sa.Column("cilindros", sa.Integer(), nullable=True),
        sa.Column("numero_duenos", sa.Integer(), nullable=True),
        sa.Column("garantia", sa.String(120), nullable=True),
        sa.Column("ubicacion", sa.String(120), nullable=True),
        sa.Column("clasificacionid", JSONList, nullable=True),
        sa.Column("formulafinanciamiento", sa.Text(), nullable=True),
        sa.Column("ingreso_inventario", sa.String(40), nullable=True),
        sa.Column("precio", Money, nullable=True),
        sa.Column("enganchemin", Money, nullable=True),
        sa.Column("enganche_recomendado", Money, nullable=True),
        sa.Column("mensualidad_minima", Money, nullable=True),
        sa.Column("mensualidad_recomendada", Money, nullable=True),
        sa.Column("plazomax", sa.Integer(), nullable=True),
        sa.Column("promociones", JSONList, nullable=True),
        sa.Column("feature_image", JSONList, nullable=True),
        sa.Column("feature_image_url", sa.Text(), nullable=True),
        sa.Column("fotos_exterior_url", JSONList, nullable=True),
        sa.Column("fotos_interior_url", JSONList, nullable=True),
        sa.Column("galeria_exterior", JSONList, nullable=True),
        sa.Column("vendido", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("separado", sa.Boolean(), nullable=True),
        sa.Column("consigna", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("ordenstatus", sa.String(40), nullable=True),
        sa.Column("viewcount", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.Column("last_synced_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_inventario_cache_record_id", "inventario_cache", ["record_id"], unique=True)
    op.create_index("ix_inventario_cache_slug", "inventario_cache", ["slug"])
    op.create_index("ix_inventario_cache_marca", "inventario_cache", ["marca"])
    op.create_index("ix_inventario_cache_ordenstatus", "inventario_cache", ["ordenstatus"])


def downgrade():
    op.drop_index("ix_inventario_cache_ordenstatus", table_name="inventario_cache")
    op.drop_index("ix_inventario_cache_marca", table_name="inventario_cache")
    op.drop_index("ix_inventario_cache_slug", table_name="inventario_cache")
    op.drop_index("ix_inventario_cache_record_id", table_name="inventario_cache")
    op.drop_table("inventario_cache")
