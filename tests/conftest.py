from __future__ import annotations

import sys
from datetime import date
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from validadores import create_app
from validadores.core.config import Config
from validadores.core.extensions import db
from validadores.core.models import Usuario, Validador, seed_catalog
from validadores.movimientos.services import open_movimiento

TODAY = date(2025, 3, 10)


def fixed_today() -> date:
    return TODAY


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    SECRET_KEY = "test-secret"
    LOG_LEVEL = "WARNING"
    CLOCK = fixed_today


@pytest.fixture
def app():
    app = create_app(TestConfig)
    with app.app_context():
        db.create_all()
        seed_catalog(db.session, TestConfig.SYSTEM_USER_EMAIL)
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def system_user_id(app):
    with app.app_context():
        return Usuario.query.filter_by(correo=TestConfig.SYSTEM_USER_EMAIL).one().id


@pytest.fixture
def validador_id(app):
    with app.app_context():
        validador = Validador(amid="AM-0001", modelo="V200")
        db.session.add(validador)
        db.session.commit()
        return validador.id


@pytest.fixture
def open_movement(app, validador_id):
    def _open(origen: str, fecha_ingreso: date = date(2025, 3, 1), usuario_id: int | None = None) -> int:
        with app.app_context():
            return open_movimiento(validador_id, fecha_ingreso, origen, usuario_id).id

    return _open
