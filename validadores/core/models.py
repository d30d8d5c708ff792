from __future__ import annotations

from datetime import date, datetime, time, timezone

from sqlalchemy import CheckConstraint, ForeignKey, Index, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from validadores.core.extensions import db


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


ORIGENES = ("Garantía", "Terreno", "Nuevo")
ESTADOS = ("OK", "NO OK", "Operativo", "No operativo", "Pendiente")
ENVIOS = ("Operativo", "Reparación Externa", "Reparación Interna")
TIPOS_AREA = ("Bus", "Zona paga", "Estación")
ROLES = ("Administrador", "Técnico terreno", "Supervisor", "Técnico preparación")


# Catalogos ---------------------------------------------------------------


class TipoArea(db.Model):
    __tablename__ = "tipo_area"

    id: Mapped[int] = mapped_column(primary_key=True)
    nombre: Mapped[str] = mapped_column(db.String(80), unique=True, nullable=False)


class Origen(db.Model):
    __tablename__ = "origen"

    id: Mapped[int] = mapped_column(primary_key=True)
    nombre: Mapped[str] = mapped_column(db.String(80), unique=True, nullable=False)


class Envio(db.Model):
    __tablename__ = "envio"

    id: Mapped[int] = mapped_column(primary_key=True)
    nombre: Mapped[str] = mapped_column(db.String(80), unique=True, nullable=False)


class Estado(db.Model):
    __tablename__ = "estado"

    id: Mapped[int] = mapped_column(primary_key=True)
    nombre: Mapped[str] = mapped_column(db.String(80), unique=True, nullable=False)


class Rol(db.Model):
    __tablename__ = "rol"

    id: Mapped[int] = mapped_column(primary_key=True)
    nombre: Mapped[str] = mapped_column(db.String(80), unique=True, nullable=False)


class Usuario(db.Model):
    # Identidad gestionada fuera del flujo; aqui solo se referencia quien crea cada registro.
    __tablename__ = "usuario"

    id: Mapped[int] = mapped_column(primary_key=True)
    nombre: Mapped[str] = mapped_column(db.String(80), nullable=False)
    apellido: Mapped[str] = mapped_column(db.String(120), nullable=False, default="")
    correo: Mapped[str] = mapped_column(db.String(255), unique=True, nullable=False)
    rol_id: Mapped[int] = mapped_column(ForeignKey("rol.id"), nullable=False)
    activo: Mapped[bool] = mapped_column(nullable=False, default=True)

    rol = relationship("Rol")


# Dispositivos ------------------------------------------------------------


class Validador(db.Model):
    __tablename__ = "validador"

    id: Mapped[int] = mapped_column(primary_key=True)
    amid: Mapped[str] = mapped_column(db.String(60), unique=True, nullable=False)
    modelo: Mapped[str | None] = mapped_column(db.String(120), nullable=True)
    tipo_id: Mapped[int | None] = mapped_column(ForeignKey("tipo_area.id"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)

    tipo = relationship("TipoArea")
    movimientos = relationship("Movimiento", back_populates="validador")


class Movimiento(db.Model):
    # Un ciclo del validador: ingreso -> diagnostico -> revision -> preparacion -> salida.
    __tablename__ = "movimiento"
    __table_args__ = (
        CheckConstraint(
            "fecha_salida IS NULL OR fecha_salida >= fecha_ingreso",
            name="ck_movimiento_fechas",
        ),
        Index("ix_movimiento_validador_fecha", "validador_id", "fecha_ingreso"),
        Index("ix_movimiento_created_at", "created_at"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    validador_id: Mapped[int] = mapped_column(ForeignKey("validador.id"), nullable=False)
    fecha_ingreso: Mapped[date] = mapped_column(nullable=False)
    origen_id: Mapped[int] = mapped_column(ForeignKey("origen.id"), nullable=False)
    observacion_inicial: Mapped[str | None] = mapped_column(db.Text, nullable=True)
    fecha_salida: Mapped[date | None] = mapped_column(nullable=True)
    envio_id: Mapped[int | None] = mapped_column(ForeignKey("envio.id"), nullable=True)
    estado_final_id: Mapped[int | None] = mapped_column(ForeignKey("estado.id"), nullable=True)
    created_by_id: Mapped[int | None] = mapped_column(ForeignKey("usuario.id"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)

    validador = relationship("Validador", back_populates="movimientos")
    origen = relationship("Origen")
    envio = relationship("Envio")
    estado_final = relationship("Estado")
    diagnostico = relationship(
        "Diagnostico",
        back_populates="movimiento",
        uselist=False,
        cascade="all, delete-orphan",
    )
    revision = relationship(
        "RevisionSupervisor",
        back_populates="movimiento",
        uselist=False,
        cascade="all, delete-orphan",
    )
    preparacion = relationship(
        "Preparacion",
        back_populates="movimiento",
        uselist=False,
        cascade="all, delete-orphan",
    )

    def is_closed(self, today: date) -> bool:
        return self.fecha_salida is not None and self.fecha_salida <= today


class Diagnostico(db.Model):
    # Tecnico de terreno; solo movimientos de origen Terreno.
    __tablename__ = "diagnostico"
    __table_args__ = (
        Index("ux_diagnostico_movimiento", "movimiento_id", unique=True),
        Index("ix_diagnostico_created_at", "created_at"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    movimiento_id: Mapped[int] = mapped_column(
        ForeignKey("movimiento.id", ondelete="CASCADE"),
        nullable=False,
    )
    ppu_inicial: Mapped[str | None] = mapped_column(db.String(20), nullable=True)
    falla_tarjeton: Mapped[str | None] = mapped_column(db.String(255), nullable=True)
    es_falla: Mapped[bool | None] = mapped_column(nullable=True)
    conectado: Mapped[bool | None] = mapped_column(nullable=True)
    hora_conectado: Mapped[time | None] = mapped_column(nullable=True)
    observacion_diagnostico: Mapped[str | None] = mapped_column(db.Text, nullable=True)
    created_by_id: Mapped[int | None] = mapped_column(ForeignKey("usuario.id"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)

    movimiento = relationship("Movimiento", back_populates="diagnostico")

    @property
    def is_complete(self) -> bool:
        return self.es_falla is not None and self.conectado is not None


class RevisionSupervisor(db.Model):
    # Veredicto del supervisor sobre el diagnostico; una y solo una por movimiento.
    __tablename__ = "revision_supervisor"
    __table_args__ = (
        Index("ux_revision_supervisor_mov", "movimiento_id", unique=True),
        Index("ix_revision_created_at", "created_at"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    movimiento_id: Mapped[int] = mapped_column(
        ForeignKey("movimiento.id", ondelete="CASCADE"),
        nullable=False,
    )
    trx_pendientes_ok: Mapped[bool] = mapped_column(nullable=False, default=False)
    patente_asignada: Mapped[str | None] = mapped_column(db.String(20), nullable=True)
    estado_diagnostico_id: Mapped[int] = mapped_column(ForeignKey("estado.id"), nullable=False)
    nota_supervisor: Mapped[str | None] = mapped_column(db.Text, nullable=True)
    fecha_revision: Mapped[date | None] = mapped_column(nullable=True)
    created_by_id: Mapped[int | None] = mapped_column(ForeignKey("usuario.id"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)

    movimiento = relationship("Movimiento", back_populates="revision")
    estado_diagnostico = relationship("Estado")


class Preparacion(db.Model):
    # Trabajo final de los tecnicos de preparacion; a lo sumo una por movimiento.
    __tablename__ = "preparacion"
    __table_args__ = (
        CheckConstraint(
            "NOT cambio_patente OR ppu_final IS NOT NULL",
            name="ck_preparacion_ppu_final_si_cambio",
        ),
        Index("ux_preparacion_movimiento", "movimiento_id", unique=True),
        Index("ix_preparacion_created_at", "created_at"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    movimiento_id: Mapped[int] = mapped_column(
        ForeignKey("movimiento.id", ondelete="CASCADE"),
        nullable=False,
    )
    usuario_id: Mapped[int | None] = mapped_column(ForeignKey("usuario.id"), nullable=True)
    estado_preparacion_id: Mapped[int] = mapped_column(ForeignKey("estado.id"), nullable=False)
    cambio_patente: Mapped[bool] = mapped_column(nullable=False, default=False)
    detalle_preparacion: Mapped[str | None] = mapped_column(db.Text, nullable=True)
    ppu_final: Mapped[str | None] = mapped_column(db.String(20), nullable=True)
    fecha_preparacion: Mapped[date | None] = mapped_column(nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)

    movimiento = relationship("Movimiento", back_populates="preparacion")
    tecnico = relationship("Usuario")
    estado_preparacion = relationship("Estado")


def _missing_names(session, model, names: tuple[str, ...]) -> list[str]:
    existing = {
        (nombre or "").strip().lower()
        for (nombre,) in session.query(model.nombre).all()
    }
    return [name for name in names if name.lower() not in existing]


def seed_catalog(session, system_user_email: str = "sistema@local") -> dict[str, int]:
    """Insert the bootstrap catalog names and the system user if they are missing."""
    created: dict[str, int] = {}
    for model, names in (
        (TipoArea, TIPOS_AREA),
        (Origen, ORIGENES),
        (Envio, ENVIOS),
        (Estado, ESTADOS),
        (Rol, ROLES),
    ):
        missing = _missing_names(session, model, names)
        session.add_all([model(nombre=name) for name in missing])
        created[model.__tablename__] = len(missing)
    session.flush()

    email = system_user_email.strip().lower()
    system_user = session.query(Usuario).filter(func.lower(Usuario.correo) == email).first()
    if system_user is None:
        admin_rol = session.query(Rol).filter_by(nombre="Administrador").first()
        session.add(
            Usuario(
                nombre="Sistema",
                apellido="",
                correo=email,
                rol_id=admin_rol.id,
            )
        )
        created["usuario"] = 1
    session.commit()
    return created
