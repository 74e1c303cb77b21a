"""Jerarquía de excepciones de los adaptadores externos.

ES: Toda falla de generación, firma, QR, envío, consulta, cancelación o
    renderizado se expresa como `ExternalAdapterError`. Los timeouts se
    reportan como una falla ordinaria.
EN: Every generation, signing, QR, submission, query, cancellation or
    rendering failure is an `ExternalAdapterError`. Timeouts surface as
    ordinary failures.
"""


class ExternalAdapterError(Exception):
    """Error base de un adaptador externo.

    ES: Se registra sobre la entidad afectada y queda a cargo del
        reintento acotado del planificador.
    EN: Recorded on the affected entity and left to the scheduler's
        bounded retry.
    """

    step = "adaptador"

    def __init__(self, message: str, response: dict | None = None) -> None:
        super().__init__(message)
        self.response: dict | None = response


class GenerationError(ExternalAdapterError):
    """Falla del generador de XML."""

    step = "generacion"


class SigningError(ExternalAdapterError):
    """Falla de la firma digital (clave ausente, passphrase inválida)."""

    step = "firma"


class QrEncodingError(ExternalAdapterError):
    """Falla de la generación del QR."""

    step = "qr"


class SubmissionError(ExternalAdapterError):
    """La SET rechazó o no recibió el lote."""

    step = "envio"


class QueryError(ExternalAdapterError):
    """Falla de la consulta de lote."""

    step = "consulta"


class CancellationError(ExternalAdapterError):
    """Falla del evento de cancelación."""

    step = "cancelacion"


class RenderError(ExternalAdapterError):
    """Falla del renderizado del KUDE o de su almacenamiento."""

    step = "kude"


class AdapterTimeoutError(ExternalAdapterError):
    """Tiempo de espera agotado en el borde del adaptador."""

    step = "timeout"
