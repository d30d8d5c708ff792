"""
Name -> id resolution for the catalog tables.

The workflow compares integer ids only. Names are read once per process
(per Flask app) and kept in ``app.extensions``; an administrator who edits
the catalogs must call :func:`reset_catalog` (``flask seed-catalog`` does).
"""

from __future__ import annotations

import logging
import unicodedata
from dataclasses import dataclass

from flask import current_app

from validadores.core.exceptions import ConfigurationError
from validadores.core.extensions import db
from validadores.core.models import Envio, Estado, Origen, Rol, TipoArea

logger = logging.getLogger(__name__)

_EXTENSION_KEY = "validadores.catalog"

CATALOG_MODELS = {
    "origen": Origen,
    "estado": Estado,
    "envio": Envio,
    "tipo_area": TipoArea,
    "rol": Rol,
}


def normalize_name(value: str) -> str:
    decomposed = unicodedata.normalize("NFKD", (value or "").strip())
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch)).casefold()


@dataclass(frozen=True)
class CatalogIds:
    origen_terreno: int
    origen_garantia: int
    origen_nuevo: int
    estado_pendiente: int
    estado_ok: int
    estado_no_ok: int
    estado_operativo: int
    estado_no_operativo: int

    @property
    def stage_states(self) -> frozenset[int]:
        # Valores validos para veredicto de revision y estado de preparacion.
        return frozenset({self.estado_pendiente, self.estado_ok, self.estado_no_ok})


class CatalogResolver:
    def __init__(self, names: dict[str, dict[str, int]], labels: dict[str, dict[int, str]]) -> None:
        self._ids_by_name = names
        self._labels = labels
        self.ids = self._required_ids()

    @classmethod
    def load(cls, session) -> "CatalogResolver":
        names: dict[str, dict[str, int]] = {}
        labels: dict[str, dict[int, str]] = {}
        for catalog, model in CATALOG_MODELS.items():
            rows = session.query(model.id, model.nombre).all()
            names[catalog] = {normalize_name(nombre): row_id for row_id, nombre in rows}
            labels[catalog] = {row_id: nombre for row_id, nombre in rows}
        return cls(names, labels)

    def resolve(self, catalog: str, name: str) -> int:
        row_id = self._ids_by_name.get(catalog, {}).get(normalize_name(name))
        if row_id is None:
            raise ConfigurationError(catalog, name)
        return row_id

    def find(self, catalog: str, name: str) -> int | None:
        return self._ids_by_name.get(catalog, {}).get(normalize_name(name))

    def label(self, catalog: str, row_id: int | None) -> str | None:
        if row_id is None:
            return None
        return self._labels.get(catalog, {}).get(row_id)

    def _required_ids(self) -> CatalogIds:
        return CatalogIds(
            origen_terreno=self.resolve("origen", "Terreno"),
            origen_garantia=self.resolve("origen", "Garantía"),
            origen_nuevo=self.resolve("origen", "Nuevo"),
            estado_pendiente=self.resolve("estado", "Pendiente"),
            estado_ok=self.resolve("estado", "OK"),
            estado_no_ok=self.resolve("estado", "NO OK"),
            estado_operativo=self.resolve("estado", "Operativo"),
            estado_no_operativo=self.resolve("estado", "No operativo"),
        )


def get_catalog() -> CatalogResolver:
    catalog = current_app.extensions.get(_EXTENSION_KEY)
    if catalog is None:
        try:
            catalog = CatalogResolver.load(db.session)
        except ConfigurationError as exc:
            logger.error("Catalogo incompleto: %s", exc)
            raise
        current_app.extensions[_EXTENSION_KEY] = catalog
        logger.info("Catalogo resuelto: %s", catalog.ids)
    return catalog


def catalog_ids() -> CatalogIds:
    return get_catalog().ids


def reset_catalog() -> None:
    current_app.extensions.pop(_EXTENSION_KEY, None)
