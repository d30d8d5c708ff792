"""validadores y movimientos schema

Revision ID: a1b2c3d4e5f6
Revises:
Create Date: 2026-10-18 10:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "a1b2c3d4e5f6"
down_revision = None
branch_labels = None
depends_on = None


CATALOG_TABLES = ("tipo_area", "origen", "envio", "estado", "rol")


def upgrade():
    for table in CATALOG_TABLES:
        op.create_table(
            table,
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("nombre", sa.String(length=80), nullable=False),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("nombre"),
        )

    op.create_table(
        "usuario",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("nombre", sa.String(length=80), nullable=False),
        sa.Column("apellido", sa.String(length=120), nullable=False, server_default=""),
        sa.Column("correo", sa.String(length=255), nullable=False),
        sa.Column("rol_id", sa.Integer(), nullable=False),
        sa.Column("activo", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.ForeignKeyConstraint(["rol_id"], ["rol.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("correo"),
    )

    op.create_table(
        "validador",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("amid", sa.String(length=60), nullable=False),
        sa.Column("modelo", sa.String(length=120), nullable=True),
        sa.Column("tipo_id", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["tipo_id"], ["tipo_area.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("amid"),
    )

    op.create_table(
        "movimiento",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("validador_id", sa.Integer(), nullable=False),
        sa.Column("fecha_ingreso", sa.Date(), nullable=False),
        sa.Column("origen_id", sa.Integer(), nullable=False),
        sa.Column("observacion_inicial", sa.Text(), nullable=True),
        sa.Column("fecha_salida", sa.Date(), nullable=True),
        sa.Column("envio_id", sa.Integer(), nullable=True),
        sa.Column("estado_final_id", sa.Integer(), nullable=True),
        sa.Column("created_by_id", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint("fecha_salida IS NULL OR fecha_salida >= fecha_ingreso", name="ck_movimiento_fechas"),
        sa.ForeignKeyConstraint(["validador_id"], ["validador.id"]),
        sa.ForeignKeyConstraint(["origen_id"], ["origen.id"]),
        sa.ForeignKeyConstraint(["envio_id"], ["envio.id"]),
        sa.ForeignKeyConstraint(["estado_final_id"], ["estado.id"]),
        sa.ForeignKeyConstraint(["created_by_id"], ["usuario.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_movimiento_validador_fecha", "movimiento", ["validador_id", "fecha_ingreso"], unique=False)
    op.create_index("ix_movimiento_created_at", "movimiento", ["created_at"], unique=False)

    op.create_table(
        "diagnostico",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("movimiento_id", sa.Integer(), nullable=False),
        sa.Column("ppu_inicial", sa.String(length=20), nullable=True),
        sa.Column("falla_tarjeton", sa.String(length=255), nullable=True),
        sa.Column("es_falla", sa.Boolean(), nullable=True),
        sa.Column("conectado", sa.Boolean(), nullable=True),
        sa.Column("hora_conectado", sa.Time(), nullable=True),
        sa.Column("observacion_diagnostico", sa.Text(), nullable=True),
        sa.Column("created_by_id", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["movimiento_id"], ["movimiento.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["created_by_id"], ["usuario.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ux_diagnostico_movimiento", "diagnostico", ["movimiento_id"], unique=True)
    op.create_index("ix_diagnostico_created_at", "diagnostico", ["created_at"], unique=False)

    op.create_table(
        "revision_supervisor",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("movimiento_id", sa.Integer(), nullable=False),
        sa.Column("trx_pendientes_ok", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("patente_asignada", sa.String(length=20), nullable=True),
        sa.Column("estado_diagnostico_id", sa.Integer(), nullable=False),
        sa.Column("nota_supervisor", sa.Text(), nullable=True),
        sa.Column("fecha_revision", sa.Date(), nullable=True),
        sa.Column("created_by_id", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["movimiento_id"], ["movimiento.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["estado_diagnostico_id"], ["estado.id"]),
        sa.ForeignKeyConstraint(["created_by_id"], ["usuario.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ux_revision_supervisor_mov", "revision_supervisor", ["movimiento_id"], unique=True)
    op.create_index("ix_revision_created_at", "revision_supervisor", ["created_at"], unique=False)

    op.create_table(
        "preparacion",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("movimiento_id", sa.Integer(), nullable=False),
        sa.Column("usuario_id", sa.Integer(), nullable=True),
        sa.Column("estado_preparacion_id", sa.Integer(), nullable=False),
        sa.Column("cambio_patente", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("detalle_preparacion", sa.Text(), nullable=True),
        sa.Column("ppu_final", sa.String(length=20), nullable=True),
        sa.Column("fecha_preparacion", sa.Date(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint(
            "NOT cambio_patente OR ppu_final IS NOT NULL",
            name="ck_preparacion_ppu_final_si_cambio",
        ),
        sa.ForeignKeyConstraint(["movimiento_id"], ["movimiento.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["usuario_id"], ["usuario.id"]),
        sa.ForeignKeyConstraint(["estado_preparacion_id"], ["estado.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ux_preparacion_movimiento", "preparacion", ["movimiento_id"], unique=True)
    op.create_index("ix_preparacion_created_at", "preparacion", ["created_at"], unique=False)


def downgrade():
    op.drop_index("ix_preparacion_created_at", table_name="preparacion")
    op.drop_index("ux_preparacion_movimiento", table_name="preparacion")
    op.drop_table("preparacion")
    op.drop_index("ix_revision_created_at", table_name="revision_supervisor")
    op.drop_index("ux_revision_supervisor_mov", table_name="revision_supervisor")
    op.drop_table("revision_supervisor")
    op.drop_index("ix_diagnostico_created_at", table_name="diagnostico")
    op.drop_index("ux_diagnostico_movimiento", table_name="diagnostico")
    op.drop_table("diagnostico")
    op.drop_index("ix_movimiento_created_at", table_name="movimiento")
    op.drop_index("ix_movimiento_validador_fecha", table_name="movimiento")
    op.drop_table("movimiento")
    op.drop_table("validador")
    op.drop_table("usuario")
    for table in reversed(CATALOG_TABLES):
        op.drop_table(table)
