from __future__ import annotations

import json
import logging

from validadores.core.extensions import db
from validadores.core.logging_config import JSONFormatter
from validadores.core.models import Estado, Usuario


def test_seed_catalog_is_idempotent(app):
    runner = app.test_cli_runner()

    result = runner.invoke(args=["seed-catalog"])

    assert result.exit_code == 0
    assert "origen=0" in result.output
    assert "estado=0" in result.output
    with app.app_context():
        assert Estado.query.count() == 5
        assert Usuario.query.count() == 1


def test_seed_catalog_restores_missing_names(app):
    with app.app_context():
        Estado.query.filter_by(nombre="No operativo").delete()
        db.session.commit()

    result = app.test_cli_runner().invoke(args=["seed-catalog"])

    assert result.exit_code == 0
    assert "estado=1" in result.output
    assert "validadores.catalog" not in app.extensions


def test_close_movement_command(app, open_movement):
    mid = open_movement("Nuevo")
    runner = app.test_cli_runner()

    result = runner.invoke(args=["close-movement", "--id", str(mid), "--fecha", "2025-03-10"])
    assert result.exit_code == 0
    assert "2025-03-10" in result.output

    again = runner.invoke(args=["close-movement", "--id", str(mid), "--fecha", "2025-03-12"])
    assert again.exit_code == 1
    assert "cerrado" in again.output

    missing = runner.invoke(args=["close-movement", "--id", "9999", "--fecha", "2025-03-10"])
    assert missing.exit_code == 1
    assert "no encontrado" in missing.output


def test_json_formatter_carries_movement_id():
    record = logging.LogRecord("validadores", logging.INFO, __file__, 1, "Movimiento %s", (7,), None)
    record.movimiento_id = 7

    payload = json.loads(JSONFormatter().format(record))

    assert payload["message"] == "Movimiento 7"
    assert payload["level"] == "INFO"
    assert payload["movimiento_id"] == 7


def test_service_logs_carry_movement_id(app, open_movement, caplog):
    caplog.set_level(logging.INFO, logger="validadores.movimientos.services")

    mid = open_movement("Nuevo")

    ids = {getattr(record, "movimiento_id", None) for record in caplog.records}
    assert mid in ids
