"""Cancelación (anulación) de DE aprobados.

ES: Solo un DE APPROVED puede cancelarse. Si el evento falla el DE
    permanece APPROVED con el mensaje de error, y la falla se propaga al
    reintento acotado del planificador.
EN: Only an APPROVED document can be cancelled. If the event fails the
    document stays APPROVED with the error message, and the failure
    propagates to the scheduler's bounded retry.
"""

import asyncio
import logging

from sifen_de.adapters.base import BaseFiscalConfigSource, BaseNotifier, BaseSifenClient
from sifen_de.adapters.errors import CancellationError, ExternalAdapterError
from sifen_de.engine.notify import (
    EVENT_CANCELLATION_ERROR,
    EVENT_DE_CANCELLED,
    notify_safely,
)
from sifen_de.engine.orchestrator import validate_cancel_reason
from sifen_de.errors import DocumentNotFoundError, SifenValidationError, StateGuardError
from sifen_de.lifecycle.states import CANCELLATION_ALLOWED, ensure_transition
from sifen_de.models.document import DocumentoElectronico
from sifen_de.models.enums import DEState
from sifen_de.store.base import BaseRepository

logger = logging.getLogger(__name__)


class CancellationHandler:
    """Envía el evento de cancelación y aplica su resultado."""

    def __init__(
        self,
        repository: BaseRepository,
        config_source: BaseFiscalConfigSource,
        client: BaseSifenClient,
        notifier: BaseNotifier,
    ) -> None:
        self._repository = repository
        self._config_source = config_source
        self._client = client
        self._notifier = notifier

    def cancel(self, tenant_id: str, de_id: str, reason: str) -> DocumentoElectronico:
        """Cancela un DE aprobado.

        Returns:
            El DE en CANCELLED (o ya cancelado, si la tarea fue reentregada).

        Raises:
            DocumentNotFoundError: Si el DE no existe para el tenant.
            StateGuardError: Si el DE no está APPROVED.
            CancellationError: Si la SET no acepta el evento.
        """
        document = self._repository.get_document(de_id, tenant_id)
        if document is None:
            msg = f"DE no encontrado : {de_id}"
            raise DocumentNotFoundError(msg)

        if document.state is DEState.CANCELLED:
            logger.info("DE %s ya CANCELLED : cancelación sin efecto", de_id)
            return document
        if document.state not in CANCELLATION_ALLOWED:
            msg = (
                f"DE {de_id} en estado {document.state.value} : solo un DE "
                f"aprobado puede cancelarse"
            )
            raise StateGuardError(msg, current_state=document.state.value)

        cleaned = validate_cancel_reason(reason)
        config = self._config_source.get_config(tenant_id)
        if config is None:
            msg = f"Configuración SIFEN no encontrada para el tenant {tenant_id}"
            raise SifenValidationError(msg, errors=["config"])

        try:
            ack = asyncio.run(
                self._client.cancel(
                    document.cdc, cleaned, config.environment, config.endpoints.evento
                )
            )
        except Exception as exc:
            if isinstance(exc, ExternalAdapterError):
                error = exc
            else:
                error = CancellationError(f"{type(exc).__name__}: {exc}")
            logger.error("DE %s : cancelación rechazada : %s", de_id, error)
            document.error_message = f"[{error.step}] {error}"
            self._repository.save_document(document, expected_state=DEState.APPROVED)
            notify_safely(
                self._notifier,
                tenant_id,
                EVENT_CANCELLATION_ERROR,
                {"de_id": de_id, "cdc": document.cdc, "error": str(error)},
            )
            if error is exc:
                raise
            raise error from exc

        ensure_transition(document.state, DEState.CANCELLED)
        document.state = DEState.CANCELLED
        document.cancel_reason = cleaned
        document.cancellation_response = ack.model_dump()
        document.error_message = None
        document = self._repository.save_document(
            document, expected_state=DEState.APPROVED
        )
        logger.info("DE %s : APPROVED → CANCELLED", de_id)
        notify_safely(
            self._notifier,
            tenant_id,
            EVENT_DE_CANCELLED,
            {"de_id": de_id, "cdc": document.cdc, "motivo": cleaned},
        )
        return document
