from __future__ import annotations

from datetime import date, time

from flask import jsonify, request

from validadores.core.exceptions import (
    ConfigurationError,
    DuplicateStage,
    EditLocked,
    GateViolation,
    GuardViolation,
    NotFoundError,
    StructuralInvariantViolation,
)
from validadores.movimientos import movimientos_bp
from validadores.movimientos.services import (
    DIAGNOSTICO_FIELDS,
    PREPARACION_FIELDS,
    REVISION_FIELDS,
    close_movimiento,
    delete_movimiento,
    movimiento_snapshot,
    open_movimiento,
    record_diagnostico,
    record_preparacion,
    record_revision,
    register_validador,
    update_movimiento,
)

ERROR_STATUS: tuple[tuple[type[Exception], int], ...] = (
    (NotFoundError, 404),
    (EditLocked, 423),
    (GuardViolation, 409),
    (GateViolation, 409),
    (DuplicateStage, 409),
    (StructuralInvariantViolation, 422),
    (ConfigurationError, 500),
)

DATE_FIELDS = {"fecha_revision", "fecha_preparacion"}
TIME_FIELDS = {"hora_conectado"}
BOOL_FIELDS = {"es_falla", "conectado", "trx_pendientes_ok", "cambio_patente"}


@movimientos_bp.errorhandler(ValueError)
def workflow_error(exc: ValueError):
    status = 400
    for exc_type, exc_status in ERROR_STATUS:
        if isinstance(exc, exc_type):
            status = exc_status
            break
    code = getattr(exc, "code", "ERR_VALIDATION")
    return jsonify({"error": code, "message": str(exc)}), status


def _acting_user_id() -> int | None:
    raw = (request.headers.get("X-Usuario-Id") or "").strip()
    return int(raw) if raw.isdigit() else None


def _payload() -> dict[str, object]:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValueError("Se esperaba un objeto JSON")
    return data


def _parse_iso_date(value: object, field_name: str) -> date:
    raw = str(value or "").strip()
    if not raw:
        raise ValueError(f"Falta {field_name}")
    try:
        return date.fromisoformat(raw)
    except ValueError as exc:
        raise ValueError(f"Formato de fecha invalido para {field_name}") from exc


def _parse_time(value: object, field_name: str) -> time:
    try:
        return time.fromisoformat(str(value).strip())
    except ValueError as exc:
        raise ValueError(f"Formato de hora invalido para {field_name}") from exc


def _parse_bool(value: object, field_name: str) -> bool:
    if isinstance(value, bool):
        return value
    raw = str(value).strip().lower()
    if raw in {"true", "1", "si", "sí"}:
        return True
    if raw in {"false", "0", "no"}:
        return False
    raise ValueError(f"Valor booleano invalido para {field_name}")


def _stage_fields(data: dict[str, object], allowed: tuple[str, ...]) -> dict[str, object]:
    fields: dict[str, object] = {}
    for key in allowed:
        if key not in data:
            continue
        value = data[key]
        if value is None or value == "":
            fields[key] = None
        elif key in DATE_FIELDS:
            fields[key] = _parse_iso_date(value, key)
        elif key in TIME_FIELDS:
            fields[key] = _parse_time(value, key)
        elif key in BOOL_FIELDS:
            fields[key] = _parse_bool(value, key)
        else:
            fields[key] = value
    return fields


@movimientos_bp.post("/validadores")
def validador_create():
    data = _payload()
    validador = register_validador(
        str(data.get("amid") or ""),
        modelo=data.get("modelo"),
        tipo=data.get("tipo"),
    )
    return jsonify({"id": validador.id, "amid": validador.amid}), 201


@movimientos_bp.post("/movimientos")
def movimiento_create():
    data = _payload()
    validador_id = data.get("validador_id")
    if not isinstance(validador_id, int):
        raise ValueError("Falta validador_id")
    movimiento = open_movimiento(
        validador_id=validador_id,
        fecha_ingreso=_parse_iso_date(data.get("fecha_ingreso"), "fecha_ingreso"),
        origen=data.get("origen") or "",
        usuario_id=_acting_user_id(),
        observacion=data.get("observacion_inicial"),
    )
    return jsonify(movimiento_snapshot(movimiento.id)), 201


@movimientos_bp.get("/movimientos/<int:movimiento_id>")
def movimiento_detail(movimiento_id: int):
    return jsonify(movimiento_snapshot(movimiento_id))


@movimientos_bp.patch("/movimientos/<int:movimiento_id>")
def movimiento_update(movimiento_id: int):
    update_movimiento(movimiento_id, _payload())
    return jsonify(movimiento_snapshot(movimiento_id))


@movimientos_bp.delete("/movimientos/<int:movimiento_id>")
def movimiento_delete(movimiento_id: int):
    delete_movimiento(movimiento_id)
    return "", 204


@movimientos_bp.post("/movimientos/<int:movimiento_id>/cierre")
def movimiento_close(movimiento_id: int):
    data = _payload()
    close_movimiento(movimiento_id, _parse_iso_date(data.get("fecha_salida"), "fecha_salida"))
    return jsonify(movimiento_snapshot(movimiento_id))


@movimientos_bp.put("/movimientos/<int:movimiento_id>/diagnostico")
def diagnostico_record(movimiento_id: int):
    data = _payload()
    record_diagnostico(movimiento_id, _stage_fields(data, DIAGNOSTICO_FIELDS), _acting_user_id())
    return jsonify(movimiento_snapshot(movimiento_id))


@movimientos_bp.put("/movimientos/<int:movimiento_id>/revision")
def revision_record(movimiento_id: int):
    data = _payload()
    record_revision(
        movimiento_id,
        data.get("veredicto"),
        _stage_fields(data, REVISION_FIELDS),
        _acting_user_id(),
    )
    return jsonify(movimiento_snapshot(movimiento_id))


@movimientos_bp.put("/movimientos/<int:movimiento_id>/preparacion")
def preparacion_record(movimiento_id: int):
    data = _payload()
    record_preparacion(
        movimiento_id,
        data.get("estado"),
        _stage_fields(data, PREPARACION_FIELDS),
        _acting_user_id(),
    )
    return jsonify(movimiento_snapshot(movimiento_id))
