from __future__ import annotations

import os
from datetime import date


class Config:
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key")
    SQLALCHEMY_DATABASE_URI = os.getenv(
        "DATABASE_URL",
        "sqlite:///validadores.db",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    LOG_FORMAT = os.getenv("LOG_FORMAT", "readable")
    # Usuario con el que se firman las etapas autocreadas; si no existe se usa el usuario que actua.
    SYSTEM_USER_EMAIL = os.getenv("SYSTEM_USER_EMAIL", "sistema@local")
    # Fuente de la fecha de proceso para el bloqueo por fecha de salida.
    CLOCK = date.today
