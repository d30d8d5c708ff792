from __future__ import annotations

from datetime import date

import click
from flask import Flask, jsonify

from validadores.core.catalog import reset_catalog
from validadores.core.config import Config
from validadores.core.extensions import db, migrate
from validadores.core.logging_config import configure_logging
from validadores.core.models import seed_catalog
from validadores.movimientos import movimientos_bp


def create_app(config_object: type[Config] | None = None) -> Flask:
    app = Flask(__name__)
    app.config.from_object(config_object or Config)

    configure_logging(app)
    db.init_app(app)
    migrate.init_app(app, db)

    app.register_blueprint(movimientos_bp)

    register_cli(app)
    register_routes(app)
    return app


def register_routes(app: Flask) -> None:
    @app.get("/health")
    def health():
        return jsonify({"status": "ok"})

    @app.errorhandler(404)
    def not_found(_error):
        return jsonify({"error": "ERR_NOT_FOUND", "message": "Recurso no encontrado"}), 404


def register_cli(app: Flask) -> None:
    @app.cli.command("seed-catalog")
    @click.option("--create-tables", is_flag=True, help="Create missing tables before seeding.")
    def seed_catalog_command(create_tables: bool) -> None:
        """Insert bootstrap catalog names and the system user."""
        if create_tables:
            db.create_all()
        created = seed_catalog(db.session, app.config["SYSTEM_USER_EMAIL"])
        reset_catalog()
        summary = " ".join(f"{table}={count}" for table, count in created.items())
        click.echo(f"Catalogo sembrado: {summary}")

    @app.cli.command("close-movement")
    @click.option("--id", "movimiento_id", type=int, required=True, help="Movement id.")
    @click.option("--fecha", "fecha_salida", type=str, required=True, help="Exit date, YYYY-MM-DD.")
    def close_movement_command(movimiento_id: int, fecha_salida: str) -> None:
        """Set the exit date of a movement."""
        from validadores.movimientos.services import close_movimiento

        try:
            movimiento = close_movimiento(movimiento_id, date.fromisoformat(fecha_salida))
        except ValueError as exc:
            raise click.ClickException(str(exc)) from exc
        click.echo(f"Movimiento {movimiento.id} con salida {movimiento.fecha_salida.isoformat()}")
