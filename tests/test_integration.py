from __future__ import annotations

from conftest import TODAY
from validadores.core.extensions import db
from validadores.core.models import Movimiento


def _open(client, validador_id: int, origen: str, usuario_id: int | None = None):
    headers = {"X-Usuario-Id": str(usuario_id)} if usuario_id else {}
    return client.post(
        "/api/movimientos",
        json={"validador_id": validador_id, "fecha_ingreso": "2025-03-01", "origen": origen},
        headers=headers,
    )


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.get_json() == {"status": "ok"}


def test_register_validador_endpoint(client):
    response = client.post("/api/validadores", json={"amid": "AM-77", "modelo": "V200", "tipo": "Bus"})
    assert response.status_code == 201
    assert response.get_json()["amid"] == "AM-77"

    duplicate = client.post("/api/validadores", json={"amid": "AM-77"})
    assert duplicate.status_code == 400
    assert duplicate.get_json()["error"] == "ERR_VALIDATION"


def test_field_flow_over_http(client, validador_id, system_user_id):
    opened = _open(client, validador_id, "Terreno", usuario_id=system_user_id)
    assert opened.status_code == 201
    body = opened.get_json()
    assert body["origen"] == "Terreno"
    assert body["revision"]["veredicto"] == "Pendiente"
    assert body["preparacion"] is None
    mid = body["id"]

    diagnostico = client.put(
        f"/api/movimientos/{mid}/diagnostico",
        json={"es_falla": True, "conectado": "si", "hora_conectado": "10:30", "ppu_inicial": "BB2222"},
    )
    assert diagnostico.status_code == 200
    assert diagnostico.get_json()["diagnostico"]["completo"] is True
    assert diagnostico.get_json()["diagnostico"]["hora_conectado"] == "10:30:00"

    revision = client.put(f"/api/movimientos/{mid}/revision", json={"veredicto": "OK"})
    assert revision.status_code == 200
    assert revision.get_json()["preparacion"]["estado"] == "Pendiente"

    preparacion = client.put(
        f"/api/movimientos/{mid}/preparacion",
        json={"estado": "OK", "cambio_patente": True, "ppu_final": "CC3333"},
    )
    assert preparacion.status_code == 200
    assert preparacion.get_json()["estado_final"] == "Operativo"

    detail = client.get(f"/api/movimientos/{mid}")
    assert detail.get_json()["preparacion"]["ppu_final"] == "CC3333"


def test_guard_and_gate_map_to_conflict(client, validador_id):
    garantia = _open(client, validador_id, "Garantía").get_json()["id"]
    terreno = _open(client, validador_id, "Terreno").get_json()["id"]

    guard = client.put(f"/api/movimientos/{garantia}/diagnostico", json={"es_falla": False})
    assert guard.status_code == 409
    assert guard.get_json()["error"] == "ERR_GUARD"

    gate = client.put(f"/api/movimientos/{terreno}/preparacion", json={"estado": "OK"})
    assert gate.status_code == 409
    assert gate.get_json()["error"] == "ERR_GATE"


def test_plate_change_without_plate_is_unprocessable(client, validador_id):
    mid = _open(client, validador_id, "Nuevo").get_json()["id"]

    response = client.put(f"/api/movimientos/{mid}/preparacion", json={"cambio_patente": "true"})
    assert response.status_code == 422
    assert response.get_json()["error"] == "ERR_STRUCTURAL"


def test_closed_movement_returns_locked(app, client, validador_id):
    mid = _open(client, validador_id, "Nuevo").get_json()["id"]

    closed = client.post(f"/api/movimientos/{mid}/cierre", json={"fecha_salida": TODAY.isoformat()})
    assert closed.status_code == 200
    assert closed.get_json()["cerrado"] is True

    locked = client.patch(f"/api/movimientos/{mid}", json={"observacion_inicial": "cambio"})
    assert locked.status_code == 423
    assert locked.get_json()["error"] == "ERR_EDIT_LOCKED"

    deleted = client.delete(f"/api/movimientos/{mid}")
    assert deleted.status_code == 423
    with app.app_context():
        assert db.session.get(Movimiento, mid) is not None


def test_patch_rejects_final_status(client, validador_id):
    mid = _open(client, validador_id, "Nuevo").get_json()["id"]

    response = client.patch(f"/api/movimientos/{mid}", json={"estado_final": "Operativo"})
    assert response.status_code == 400
    assert client.get(f"/api/movimientos/{mid}").get_json()["estado_final"] is None


def test_patch_sets_envio(client, validador_id):
    mid = _open(client, validador_id, "Garantía").get_json()["id"]

    response = client.patch(f"/api/movimientos/{mid}", json={"envio": "Reparación Interna"})
    assert response.status_code == 200
    assert response.get_json()["envio"] == "Reparación Interna"


def test_delete_movement_then_not_found(client, validador_id):
    mid = _open(client, validador_id, "Terreno").get_json()["id"]

    deleted = client.delete(f"/api/movimientos/{mid}")
    assert deleted.status_code == 204
    missing = client.get(f"/api/movimientos/{mid}")
    assert missing.status_code == 404
    assert missing.get_json()["error"] == "ERR_NOT_FOUND"


def test_bad_payloads_are_rejected(client, validador_id):
    not_json = client.post("/api/movimientos", data="x", content_type="text/plain")
    assert not_json.status_code == 400

    bad_date = client.post(
        "/api/movimientos",
        json={"validador_id": validador_id, "fecha_ingreso": "01/03/2025", "origen": "Terreno"},
    )
    assert bad_date.status_code == 400
    assert "fecha" in bad_date.get_json()["message"]

    unknown = client.get("/api/nada")
    assert unknown.status_code == 404


def test_unknown_acting_user_is_not_found(client, validador_id):
    response = _open(client, validador_id, "Nuevo", usuario_id=999)
    assert response.status_code == 404
    assert response.get_json()["error"] == "ERR_NOT_FOUND"
    assert "Usuario" in response.get_json()["message"]

    mid = _open(client, validador_id, "Terreno").get_json()["id"]
    diagnostico = client.put(
        f"/api/movimientos/{mid}/diagnostico",
        json={"es_falla": True},
        headers={"X-Usuario-Id": "999"},
    )
    assert diagnostico.status_code == 404


def test_null_required_flags_are_bad_requests(client, validador_id):
    terreno = _open(client, validador_id, "Terreno").get_json()["id"]
    nuevo = _open(client, validador_id, "Nuevo").get_json()["id"]

    revision = client.put(
        f"/api/movimientos/{terreno}/revision",
        json={"veredicto": "OK", "trx_pendientes_ok": None},
    )
    assert revision.status_code == 400
    assert revision.get_json()["error"] == "ERR_VALIDATION"

    preparacion = client.put(
        f"/api/movimientos/{nuevo}/preparacion",
        json={"estado": "OK", "cambio_patente": None},
    )
    assert preparacion.status_code == 400
    assert client.get(f"/api/movimientos/{nuevo}").get_json()["estado_final"] is None


def test_non_text_catalog_values_are_bad_requests(client, validador_id):
    opened = client.post(
        "/api/movimientos",
        json={"validador_id": validador_id, "fecha_ingreso": "2025-03-01", "origen": True},
    )
    assert opened.status_code == 400

    mid = _open(client, validador_id, "Terreno").get_json()["id"]
    revision = client.put(f"/api/movimientos/{mid}/revision", json={"veredicto": ["OK"]})
    assert revision.status_code == 400
    assert client.get(f"/api/movimientos/{mid}").get_json()["revision"]["veredicto"] == "Pendiente"
