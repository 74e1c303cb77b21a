"""Eventos notificados y envío sin propagación de fallas."""

import logging

from sifen_de.adapters.base import BaseNotifier

logger = logging.getLogger(__name__)

EVENT_DE_APPROVED = "sifen.de.aprobado"
EVENT_DE_REJECTED = "sifen.de.rechazado"
EVENT_DE_CANCELLED = "sifen.de.anulado"
EVENT_DE_ERROR = "sifen.de.error"
EVENT_CANCELLATION_ERROR = "sifen.de.anulacion_error"
EVENT_LOTE_ERROR = "sifen.lote.error"
EVENT_TASK_EXHAUSTED = "sifen.task.agotada"


def notify_safely(
    notifier: BaseNotifier, tenant_id: str, event: str, payload: dict
) -> None:
    """Notifica un evento; una falla del destino solo se registra."""
    try:
        notifier.notify(tenant_id, event, payload)
    except Exception:
        logger.exception("Falla al notificar %s (tenant %s)", event, tenant_id)
