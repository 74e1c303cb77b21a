"""Destino de notificaciones por defecto."""

import logging

from sifen_de.adapters.base import BaseNotifier

logger = logging.getLogger(__name__)


class LoggingNotifier(BaseNotifier):
    """Registra cada evento en el log.

    ES: Destino por defecto cuando no se configura webhook ni correo.
        Los eventos `*.error` y `*.agotada` se registran como advertencia.
    EN: Default sink when no webhook or email delivery is configured.
    """

    def notify(self, tenant_id: str, event: str, payload: dict) -> None:
        level = logging.WARNING if event.endswith((".error", ".agotada")) else logging.INFO
        logger.log(level, "Evento %s (tenant %s) : %s", event, tenant_id, payload)
