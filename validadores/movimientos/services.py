from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import date, datetime, time
from typing import Iterator

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from validadores.core.catalog import CatalogIds, catalog_ids, get_catalog
from validadores.core.exceptions import (
    DuplicateStage,
    EditLocked,
    GateViolation,
    GuardViolation,
    NotFoundError,
    StructuralInvariantViolation,
)
from validadores.core.extensions import db
from validadores.core.models import (
    Diagnostico,
    Movimiento,
    Preparacion,
    RevisionSupervisor,
    Usuario,
    Validador,
)

logger = logging.getLogger(__name__)

NOTA_REVISION_AUTOCREADA = "Autocreado al ingresar por Terreno"
DETALLE_PREPARACION_AUTOCREADA = "Autocreado por ingreso no-Terreno"
DETALLE_PREPARACION_TRAS_REVISION = "Autocreado tras revisión OK con diagnóstico completo"

DIAGNOSTICO_FIELDS = (
    "ppu_inicial",
    "falla_tarjeton",
    "es_falla",
    "conectado",
    "hora_conectado",
    "observacion_diagnostico",
)
REVISION_FIELDS = ("trx_pendientes_ok", "patente_asignada", "nota_supervisor", "fecha_revision")
PREPARACION_FIELDS = (
    "usuario_id",
    "cambio_patente",
    "detalle_preparacion",
    "ppu_final",
    "fecha_preparacion",
)
MOVIMIENTO_FIELDS = ("observacion_inicial", "envio")
DERIVED_MOVIMIENTO_FIELDS = ("estado_final", "estado_final_id")
NON_NULL_FIELDS = ("trx_pendientes_ok", "cambio_patente")


# ---------------------------------------------------------------------------
# Transaction, clock and lookups
# ---------------------------------------------------------------------------


@contextmanager
def _atomic() -> Iterator[None]:
    # Escritura + efectos derivados confirman juntos o no confirman.
    try:
        yield
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise


def processing_date(today: date | None = None) -> date:
    if today is not None:
        return today
    return current_app.config.get("CLOCK", date.today)()


def _is_unique_violation(exc: IntegrityError) -> bool:
    if getattr(exc.orig, "pgcode", None) == "23505":
        return True
    return "unique" in str(exc.orig).lower()


def _is_check_violation(exc: IntegrityError) -> bool:
    if getattr(exc.orig, "pgcode", None) == "23514":
        return True
    return "check constraint" in str(exc.orig).lower()


def _flush_stage(etapa: str, movimiento_id: int) -> None:
    # Insercion optimista: el indice unico decide, no una consulta previa.
    try:
        db.session.flush()
    except IntegrityError as exc:
        if _is_unique_violation(exc):
            logger.warning(
                "Etapa duplicada %s en movimiento %s",
                etapa,
                movimiento_id,
                extra={"movimiento_id": movimiento_id},
            )
            raise DuplicateStage(etapa, movimiento_id) from exc
        if _is_check_violation(exc):
            raise StructuralInvariantViolation(str(exc.orig)) from exc
        raise


def validador_by_id(validador_id: int) -> Validador:
    validador = db.session.get(Validador, validador_id)
    if not validador:
        raise NotFoundError("Validador", validador_id)
    return validador


def movimiento_by_id(movimiento_id: int) -> Movimiento:
    movimiento = db.session.get(Movimiento, movimiento_id)
    if not movimiento:
        raise NotFoundError("Movimiento", movimiento_id)
    return movimiento


def _movimiento_for_update(movimiento_id: int) -> Movimiento:
    # FOR UPDATE serializa escritores del mismo movimiento (no-op en SQLite).
    movimiento = db.session.get(Movimiento, movimiento_id, with_for_update=True)
    if not movimiento:
        raise NotFoundError("Movimiento", movimiento_id)
    return movimiento


def _diagnostico_for(movimiento_id: int) -> Diagnostico | None:
    return Diagnostico.query.filter_by(movimiento_id=movimiento_id).one_or_none()


def _revision_for(movimiento_id: int) -> RevisionSupervisor | None:
    return RevisionSupervisor.query.filter_by(movimiento_id=movimiento_id).one_or_none()


def _preparacion_for(movimiento_id: int) -> Preparacion | None:
    return Preparacion.query.filter_by(movimiento_id=movimiento_id).one_or_none()


def _known_user_id(usuario_id: int | None) -> int | None:
    if usuario_id is None:
        return None
    if isinstance(usuario_id, bool) or not isinstance(usuario_id, int):
        raise ValueError(f"Usuario invalido: {usuario_id!r}")
    with db.session.no_autoflush:
        usuario = db.session.get(Usuario, usuario_id)
    if usuario is None:
        raise NotFoundError("Usuario", usuario_id)
    return usuario_id


def _system_user_id(fallback: int | None) -> int | None:
    email = (current_app.config.get("SYSTEM_USER_EMAIL") or "").strip().lower()
    if not email:
        return fallback
    user_id = (
        db.session.query(Usuario.id)
        .filter(func.lower(Usuario.correo) == email)
        .limit(1)
        .scalar()
    )
    return user_id if user_id is not None else fallback


def _origen_id(origen: int | str, ids: CatalogIds) -> int:
    valid = {ids.origen_terreno, ids.origen_garantia, ids.origen_nuevo}
    if isinstance(origen, bool) or not isinstance(origen, (int, str)):
        raise ValueError(f"Origen invalido: {origen!r}")
    if isinstance(origen, int):
        origen_id = origen
    else:
        origen_id = get_catalog().find("origen", origen)
    if origen_id not in valid:
        raise ValueError(f"Origen invalido: {origen}")
    return origen_id


def _stage_state_id(value: int | str, ids: CatalogIds, field_name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, str)):
        raise ValueError(f"{field_name} invalido: {value!r}")
    if isinstance(value, int):
        state_id = value
    else:
        state_id = get_catalog().find("estado", value)
    if state_id not in ids.stage_states:
        raise ValueError(f"{field_name} invalido: {value}")
    return state_id


def _apply_fields(target, fields: dict[str, object] | None, allowed: tuple[str, ...]) -> None:
    fields = fields or {}
    unknown = sorted(set(fields) - set(allowed))
    if unknown:
        raise ValueError(f"Campos no permitidos: {', '.join(unknown)}")
    for key, value in fields.items():
        if isinstance(value, str):
            value = value.strip() or None
        if value is None and key in NON_NULL_FIELDS:
            raise ValueError(f"{key} no admite valor nulo")
        if key == "usuario_id":
            value = _known_user_id(value)
        setattr(target, key, value)


# ---------------------------------------------------------------------------
# Edit-lock guard
# ---------------------------------------------------------------------------


def assert_editable(movimiento: Movimiento, today: date) -> None:
    if movimiento.is_closed(today):
        logger.warning(
            "Edicion rechazada: movimiento %s cerrado (salida %s, hoy %s)",
            movimiento.id,
            movimiento.fecha_salida,
            today,
            extra={"movimiento_id": movimiento.id},
        )
        raise EditLocked(movimiento.id, movimiento.fecha_salida)


def _require_terreno(movimiento: Movimiento, ids: CatalogIds, etapa: str) -> None:
    if movimiento.origen_id != ids.origen_terreno:
        raise GuardViolation(etapa, movimiento.id)


def _begin_write(movimiento_id: int, today: date | None) -> tuple[Movimiento, CatalogIds, date]:
    ids = catalog_ids()
    hoy = processing_date(today)
    movimiento = _movimiento_for_update(movimiento_id)
    assert_editable(movimiento, hoy)
    return movimiento, ids, hoy


# ---------------------------------------------------------------------------
# Final-state resolver
# ---------------------------------------------------------------------------


def _set_final_state(movimiento: Movimiento, estado_id: int) -> None:
    if movimiento.estado_final_id == estado_id:
        return
    previous = movimiento.estado_final_id
    movimiento.estado_final_id = estado_id
    logger.info(
        "Movimiento %s: estado final %s -> %s",
        movimiento.id,
        get_catalog().label("estado", previous),
        get_catalog().label("estado", estado_id),
        extra={"movimiento_id": movimiento.id},
    )


def propagate_revision(movimiento: Movimiento, ids: CatalogIds, today: date, usuario_id: int | None) -> None:
    """Re-evaluate the supervisor verdict of a field movement.

    NO OK closes the review path with final status "No operativo". OK with a
    complete diagnosis opens a pending preparation unless one already exists.
    Anything else leaves the movement as it is.
    """
    if movimiento.origen_id != ids.origen_terreno:
        return
    revision = _revision_for(movimiento.id)
    if revision is None:
        return

    if revision.estado_diagnostico_id == ids.estado_no_ok:
        _set_final_state(movimiento, ids.estado_no_operativo)
        return

    if revision.estado_diagnostico_id != ids.estado_ok:
        return
    diagnostico = _diagnostico_for(movimiento.id)
    if diagnostico is None or not diagnostico.is_complete:
        return
    if _preparacion_for(movimiento.id) is not None:
        return

    _insert_preparacion(
        movimiento,
        ids,
        estado_id=ids.estado_pendiente,
        fields={"detalle_preparacion": DETALLE_PREPARACION_TRAS_REVISION},
        usuario_id=_system_user_id(usuario_id),
        today=today,
    )
    logger.info(
        "Movimiento %s: preparacion abierta tras revision OK",
        movimiento.id,
        extra={"movimiento_id": movimiento.id},
    )


def apply_preparacion_final_state(movimiento: Movimiento, preparacion: Preparacion, ids: CatalogIds) -> None:
    if preparacion.estado_preparacion_id == ids.estado_ok:
        _set_final_state(movimiento, ids.estado_operativo)
    elif preparacion.estado_preparacion_id == ids.estado_no_ok:
        _set_final_state(movimiento, ids.estado_no_operativo)


# ---------------------------------------------------------------------------
# Validators and movement intake
# ---------------------------------------------------------------------------


def register_validador(amid: str, modelo: str | None = None, tipo: str | None = None) -> Validador:
    amid = (amid or "").strip()
    if not amid:
        raise ValueError("El AMID es obligatorio")
    if Validador.query.filter_by(amid=amid).first():
        raise ValueError("Ya existe un validador con ese AMID")
    tipo_id = None
    if tipo:
        tipo_id = get_catalog().find("tipo_area", tipo)
        if tipo_id is None:
            raise ValueError(f"Tipo de area invalido: {tipo}")
    validador = Validador(amid=amid, modelo=(modelo or "").strip() or None, tipo_id=tipo_id)
    with _atomic():
        db.session.add(validador)
    return validador


def open_movimiento(
    validador_id: int,
    fecha_ingreso: date,
    origen: int | str,
    usuario_id: int | None,
    observacion: str | None = None,
    today: date | None = None,
) -> Movimiento:
    with _atomic():
        ids = catalog_ids()
        hoy = processing_date(today)
        validador_by_id(validador_id)
        usuario_id = _known_user_id(usuario_id)
        origen_id = _origen_id(origen, ids)

        movimiento = Movimiento(
            validador_id=validador_id,
            fecha_ingreso=fecha_ingreso,
            origen_id=origen_id,
            observacion_inicial=(observacion or "").strip() or None,
            created_by_id=usuario_id,
        )
        db.session.add(movimiento)
        db.session.flush()
        _autocreate_stages(movimiento, ids, _system_user_id(usuario_id), hoy)

    logger.info(
        "Movimiento %s abierto para validador %s (origen %s)",
        movimiento.id,
        validador_id,
        get_catalog().label("origen", origen_id),
        extra={"movimiento_id": movimiento.id},
    )
    return movimiento


def _autocreate_stages(movimiento: Movimiento, ids: CatalogIds, stamp_user_id: int | None, today: date) -> None:
    if movimiento.origen_id == ids.origen_terreno:
        db.session.add_all(
            [
                Diagnostico(movimiento_id=movimiento.id, created_by_id=stamp_user_id),
                RevisionSupervisor(
                    movimiento_id=movimiento.id,
                    trx_pendientes_ok=False,
                    estado_diagnostico_id=ids.estado_pendiente,
                    nota_supervisor=NOTA_REVISION_AUTOCREADA,
                    fecha_revision=today,
                    created_by_id=stamp_user_id,
                ),
            ]
        )
        _flush_stage("diagnostico/revision", movimiento.id)
        return

    db.session.add(
        Preparacion(
            movimiento_id=movimiento.id,
            usuario_id=stamp_user_id,
            estado_preparacion_id=ids.estado_pendiente,
            cambio_patente=False,
            detalle_preparacion=DETALLE_PREPARACION_AUTOCREADA,
            fecha_preparacion=today,
        )
    )
    _flush_stage("preparacion", movimiento.id)


def update_movimiento(movimiento_id: int, fields: dict[str, object], today: date | None = None) -> Movimiento:
    with _atomic():
        movimiento, _ids, _hoy = _begin_write(movimiento_id, today)
        if any(key in fields for key in DERIVED_MOVIMIENTO_FIELDS):
            raise ValueError("El estado final se deriva automaticamente y no puede asignarse")
        unknown = sorted(set(fields) - set(MOVIMIENTO_FIELDS))
        if unknown:
            raise ValueError(f"Campos no permitidos: {', '.join(unknown)}")
        if "observacion_inicial" in fields:
            movimiento.observacion_inicial = (str(fields["observacion_inicial"] or "")).strip() or None
        if "envio" in fields:
            envio = fields["envio"]
            if envio in (None, ""):
                movimiento.envio_id = None
            else:
                envio_id = get_catalog().find("envio", str(envio))
                if envio_id is None:
                    raise ValueError(f"Tipo de envio invalido: {envio}")
                movimiento.envio_id = envio_id
    return movimiento


def close_movimiento(movimiento_id: int, fecha_salida: date, today: date | None = None) -> Movimiento:
    with _atomic():
        movimiento, _ids, _hoy = _begin_write(movimiento_id, today)
        if fecha_salida < movimiento.fecha_ingreso:
            raise ValueError("La fecha de salida no puede ser anterior a la de ingreso")
        movimiento.fecha_salida = fecha_salida
    logger.info(
        "Movimiento %s: fecha de salida %s",
        movimiento.id,
        fecha_salida.isoformat(),
        extra={"movimiento_id": movimiento.id},
    )
    return movimiento


def delete_movimiento(movimiento_id: int, today: date | None = None) -> None:
    # Borrado del agregado completo: las etapas caen con el movimiento.
    with _atomic():
        movimiento, _ids, _hoy = _begin_write(movimiento_id, today)
        db.session.delete(movimiento)
    logger.info(
        "Movimiento %s eliminado con sus etapas",
        movimiento_id,
        extra={"movimiento_id": movimiento_id},
    )


# ---------------------------------------------------------------------------
# Diagnostic stage
# ---------------------------------------------------------------------------


def record_diagnostico(
    movimiento_id: int,
    fields: dict[str, object],
    usuario_id: int | None,
    today: date | None = None,
) -> Diagnostico:
    with _atomic():
        movimiento, ids, hoy = _begin_write(movimiento_id, today)
        usuario_id = _known_user_id(usuario_id)
        _require_terreno(movimiento, ids, "diagnostico")
        diagnostico = _diagnostico_for(movimiento.id)
        if diagnostico is None:
            diagnostico = Diagnostico(movimiento_id=movimiento.id, created_by_id=usuario_id)
            db.session.add(diagnostico)
            _flush_stage("diagnostico", movimiento.id)
        _apply_fields(diagnostico, fields, DIAGNOSTICO_FIELDS)
        db.session.flush()
        propagate_revision(movimiento, ids, hoy, usuario_id)
    return diagnostico


# ---------------------------------------------------------------------------
# Supervisor review
# ---------------------------------------------------------------------------


def _insert_revision(
    movimiento: Movimiento,
    ids: CatalogIds,
    veredicto: int | str,
    fields: dict[str, object] | None,
    usuario_id: int | None,
    today: date,
) -> RevisionSupervisor:
    revision = RevisionSupervisor(
        movimiento_id=movimiento.id,
        estado_diagnostico_id=_stage_state_id(veredicto, ids, "Veredicto"),
        trx_pendientes_ok=False,
        fecha_revision=today,
        created_by_id=usuario_id,
    )
    _apply_fields(revision, fields, REVISION_FIELDS)
    db.session.add(revision)
    _flush_stage("revision", movimiento.id)
    return revision


def _update_revision(
    revision: RevisionSupervisor,
    ids: CatalogIds,
    veredicto: int | str | None,
    fields: dict[str, object] | None,
) -> None:
    if veredicto is not None:
        revision.estado_diagnostico_id = _stage_state_id(veredicto, ids, "Veredicto")
    _apply_fields(revision, fields, REVISION_FIELDS)
    db.session.flush()


def create_revision(
    movimiento_id: int,
    veredicto: int | str,
    fields: dict[str, object] | None,
    usuario_id: int | None,
    today: date | None = None,
) -> RevisionSupervisor:
    with _atomic():
        movimiento, ids, hoy = _begin_write(movimiento_id, today)
        usuario_id = _known_user_id(usuario_id)
        _require_terreno(movimiento, ids, "revision")
        revision = _insert_revision(movimiento, ids, veredicto, fields, usuario_id, hoy)
        propagate_revision(movimiento, ids, hoy, usuario_id)
    return revision


def update_revision(
    movimiento_id: int,
    veredicto: int | str | None,
    fields: dict[str, object] | None,
    usuario_id: int | None,
    today: date | None = None,
) -> RevisionSupervisor:
    with _atomic():
        movimiento, ids, hoy = _begin_write(movimiento_id, today)
        usuario_id = _known_user_id(usuario_id)
        _require_terreno(movimiento, ids, "revision")
        revision = _revision_for(movimiento.id)
        if revision is None:
            raise NotFoundError("Revision", movimiento.id)
        _update_revision(revision, ids, veredicto, fields)
        propagate_revision(movimiento, ids, hoy, usuario_id)
    return revision


def record_revision(
    movimiento_id: int,
    veredicto: int | str | None,
    fields: dict[str, object] | None,
    usuario_id: int | None,
    today: date | None = None,
) -> RevisionSupervisor:
    with _atomic():
        movimiento, ids, hoy = _begin_write(movimiento_id, today)
        usuario_id = _known_user_id(usuario_id)
        _require_terreno(movimiento, ids, "revision")
        revision = _revision_for(movimiento.id)
        if revision is None:
            if veredicto is None:
                raise ValueError("Veredicto obligatorio")
            revision = _insert_revision(movimiento, ids, veredicto, fields, usuario_id, hoy)
        else:
            _update_revision(revision, ids, veredicto, fields)
        propagate_revision(movimiento, ids, hoy, usuario_id)
    logger.info(
        "Movimiento %s: veredicto %s",
        movimiento_id,
        get_catalog().label("estado", revision.estado_diagnostico_id),
        extra={"movimiento_id": movimiento_id},
    )
    return revision


# ---------------------------------------------------------------------------
# Preparation stage
# ---------------------------------------------------------------------------


def _check_cambio_patente(preparacion: Preparacion) -> None:
    if preparacion.cambio_patente and not (preparacion.ppu_final or "").strip():
        raise StructuralInvariantViolation("Si hay cambio de patente, la PPU final es obligatoria")


def _insert_preparacion(
    movimiento: Movimiento,
    ids: CatalogIds,
    estado_id: int,
    fields: dict[str, object] | None,
    usuario_id: int | None,
    today: date,
) -> Preparacion:
    if movimiento.origen_id == ids.origen_terreno:
        revision = _revision_for(movimiento.id)
        if revision is None or revision.estado_diagnostico_id != ids.estado_ok:
            raise GateViolation(movimiento.id)

    preparacion = Preparacion(
        movimiento_id=movimiento.id,
        usuario_id=usuario_id,
        estado_preparacion_id=estado_id,
        cambio_patente=False,
        fecha_preparacion=today,
    )
    _apply_fields(preparacion, fields, PREPARACION_FIELDS)
    _check_cambio_patente(preparacion)
    db.session.add(preparacion)
    _flush_stage("preparacion", movimiento.id)
    return preparacion


def _update_preparacion(
    preparacion: Preparacion,
    ids: CatalogIds,
    estado: int | str | None,
    fields: dict[str, object] | None,
) -> None:
    if estado is not None:
        preparacion.estado_preparacion_id = _stage_state_id(estado, ids, "Estado de preparacion")
    _apply_fields(preparacion, fields, PREPARACION_FIELDS)
    _check_cambio_patente(preparacion)
    _flush_stage("preparacion", preparacion.movimiento_id)


def create_preparacion(
    movimiento_id: int,
    estado: int | str | None,
    fields: dict[str, object] | None,
    usuario_id: int | None,
    today: date | None = None,
) -> Preparacion:
    with _atomic():
        movimiento, ids, hoy = _begin_write(movimiento_id, today)
        usuario_id = _known_user_id(usuario_id)
        estado_id = ids.estado_pendiente if estado is None else _stage_state_id(estado, ids, "Estado de preparacion")
        preparacion = _insert_preparacion(movimiento, ids, estado_id, fields, usuario_id, hoy)
        apply_preparacion_final_state(movimiento, preparacion, ids)
    return preparacion


def update_preparacion(
    movimiento_id: int,
    estado: int | str | None,
    fields: dict[str, object] | None,
    today: date | None = None,
) -> Preparacion:
    with _atomic():
        movimiento, ids, _hoy = _begin_write(movimiento_id, today)
        preparacion = _preparacion_for(movimiento.id)
        if preparacion is None:
            raise NotFoundError("Preparacion", movimiento.id)
        _update_preparacion(preparacion, ids, estado, fields)
        apply_preparacion_final_state(movimiento, preparacion, ids)
    return preparacion


def record_preparacion(
    movimiento_id: int,
    estado: int | str | None,
    fields: dict[str, object] | None,
    usuario_id: int | None,
    today: date | None = None,
) -> Preparacion:
    with _atomic():
        movimiento, ids, hoy = _begin_write(movimiento_id, today)
        usuario_id = _known_user_id(usuario_id)
        preparacion = _preparacion_for(movimiento.id)
        if preparacion is None:
            estado_id = ids.estado_pendiente if estado is None else _stage_state_id(estado, ids, "Estado de preparacion")
            preparacion = _insert_preparacion(movimiento, ids, estado_id, fields, usuario_id, hoy)
        else:
            _update_preparacion(preparacion, ids, estado, fields)
        apply_preparacion_final_state(movimiento, preparacion, ids)
    logger.info(
        "Movimiento %s: preparacion %s",
        movimiento_id,
        get_catalog().label("estado", preparacion.estado_preparacion_id),
        extra={"movimiento_id": movimiento_id},
    )
    return preparacion


# ---------------------------------------------------------------------------
# Read model
# ---------------------------------------------------------------------------


def _iso(value: date | time | datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def movimiento_snapshot(movimiento_id: int, today: date | None = None) -> dict[str, object]:
    catalog = get_catalog()
    movimiento = movimiento_by_id(movimiento_id)
    diagnostico = _diagnostico_for(movimiento.id)
    revision = _revision_for(movimiento.id)
    preparacion = _preparacion_for(movimiento.id)
    return {
        "id": movimiento.id,
        "validador_id": movimiento.validador_id,
        "amid": movimiento.validador.amid,
        "fecha_ingreso": _iso(movimiento.fecha_ingreso),
        "origen": catalog.label("origen", movimiento.origen_id),
        "observacion_inicial": movimiento.observacion_inicial,
        "fecha_salida": _iso(movimiento.fecha_salida),
        "envio": catalog.label("envio", movimiento.envio_id),
        "estado_final": catalog.label("estado", movimiento.estado_final_id),
        "cerrado": movimiento.is_closed(processing_date(today)),
        "diagnostico": None
        if diagnostico is None
        else {
            "ppu_inicial": diagnostico.ppu_inicial,
            "falla_tarjeton": diagnostico.falla_tarjeton,
            "es_falla": diagnostico.es_falla,
            "conectado": diagnostico.conectado,
            "hora_conectado": _iso(diagnostico.hora_conectado),
            "observacion_diagnostico": diagnostico.observacion_diagnostico,
            "completo": diagnostico.is_complete,
        },
        "revision": None
        if revision is None
        else {
            "veredicto": catalog.label("estado", revision.estado_diagnostico_id),
            "trx_pendientes_ok": revision.trx_pendientes_ok,
            "patente_asignada": revision.patente_asignada,
            "nota_supervisor": revision.nota_supervisor,
            "fecha_revision": _iso(revision.fecha_revision),
        },
        "preparacion": None
        if preparacion is None
        else {
            "estado": catalog.label("estado", preparacion.estado_preparacion_id),
            "usuario_id": preparacion.usuario_id,
            "cambio_patente": preparacion.cambio_patente,
            "detalle_preparacion": preparacion.detalle_preparacion,
            "ppu_final": preparacion.ppu_final,
            "fecha_preparacion": _iso(preparacion.fecha_preparacion),
        },
    }
