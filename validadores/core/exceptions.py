"""
Typed failures raised by the movement workflow.

All of them derive from ``ValueError`` so callers that already handle
``ValueError`` from the service layer keep working, while the HTTP layer
can map each type to its own status code.
"""

from __future__ import annotations

from datetime import date


class WorkflowError(ValueError):
    code = "ERR_WORKFLOW"


class NotFoundError(WorkflowError):
    code = "ERR_NOT_FOUND"

    def __init__(self, resource: str, resource_id: int | str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        super().__init__(f"{resource} no encontrado")


class ConfigurationError(WorkflowError):
    """A catalog name required by the workflow cannot be resolved."""

    code = "ERR_CONFIGURATION"

    def __init__(self, catalog: str, name: str) -> None:
        self.catalog = catalog
        self.name = name
        super().__init__(f"Config: no existe {catalog} {name!r}")


class GuardViolation(WorkflowError):
    """A diagnostic or review write targets a movement that is not of field origin."""

    code = "ERR_GUARD"

    def __init__(self, etapa: str, movimiento_id: int) -> None:
        self.etapa = etapa
        self.movimiento_id = movimiento_id
        super().__init__(f"El movimiento {movimiento_id} no proviene de Terreno: no admite {etapa}")


class GateViolation(WorkflowError):
    """A preparation is opened for a field movement without an OK review."""

    code = "ERR_GATE"

    def __init__(self, movimiento_id: int) -> None:
        self.movimiento_id = movimiento_id
        super().__init__(
            f"No se puede crear PREPARACION: el veredicto del supervisor para el movimiento {movimiento_id} no es OK"
        )


class DuplicateStage(WorkflowError):
    """A second review, preparation or diagnostic row was inserted for one movement.

    Callers must re-read the movement before retrying.
    """

    code = "ERR_DUPLICATE_STAGE"

    def __init__(self, etapa: str, movimiento_id: int) -> None:
        self.etapa = etapa
        self.movimiento_id = movimiento_id
        super().__init__(f"El movimiento {movimiento_id} ya tiene {etapa}")


class StructuralInvariantViolation(WorkflowError):
    code = "ERR_STRUCTURAL"

    def __init__(self, message: str) -> None:
        super().__init__(message)


class EditLocked(WorkflowError):
    """The movement reached its exit date; it and its stages are frozen."""

    code = "ERR_EDIT_LOCKED"

    def __init__(self, movimiento_id: int, fecha_salida: date) -> None:
        self.movimiento_id = movimiento_id
        self.fecha_salida = fecha_salida
        super().__init__(
            f"Movimiento {movimiento_id} cerrado desde {fecha_salida.isoformat()}: no admite cambios"
        )
