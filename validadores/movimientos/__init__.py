from __future__ import annotations

from flask import Blueprint

movimientos_bp = Blueprint("movimientos", __name__, url_prefix="/api")

from validadores.movimientos import routes  # noqa: E402,F401
