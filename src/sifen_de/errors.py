"""Jerarquía de excepciones del motor de DE.

ES: Errores de validación, de numeración y de guarda de estado. Los errores
    de adaptadores externos viven en `sifen_de.adapters.errors`.
EN: Validation, numbering and state-guard errors. External adapter
    errors live in `sifen_de.adapters.errors`.
"""


class SifenError(Exception):
    """Error base del motor SIFEN.

    ES: Clase padre de todas las excepciones de dominio.
    EN: Base class for all domain exceptions.
    """


class SifenValidationError(SifenError):
    """Datos de entrada inválidos.

    ES: Configuración, timbrado, receptor o ítems faltantes. Se levanta
        antes de cualquier cambio de estado.
    EN: Missing config, authorization, receiver or items. Raised before
        any state change.
    """

    def __init__(self, message: str, errors: list[str] | None = None) -> None:
        super().__init__(message)
        self.errors: list[str] = errors or []


class SeriesNotProvisionedError(SifenError):
    """Serie de numeración no creada por un operador."""


class SeriesInUseError(SifenError):
    """La serie ya emitió números y no puede eliminarse."""


class StateGuardError(SifenError):
    """Operación no permitida desde el estado actual.

    ES: Aplica tanto a DE como a lotes; conserva el estado observado.
    EN: Applies to DEs and batches; keeps the observed state.
    """

    def __init__(self, message: str, current_state: str | None = None) -> None:
        super().__init__(message)
        self.current_state = current_state


class DocumentNotFoundError(SifenError):
    """DE inexistente para el tenant."""


class LoteNotFoundError(SifenError):
    """Lote inexistente."""
