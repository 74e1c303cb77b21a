"""Tareas Celery del motor SIFEN.

ES: Una sola tarea genérica ejecuta cualquier tipo de tarea del motor y
    traduce su TaskResult a la política de reintentos: PENDING reprograma
    la consulta sin consumir el presupuesto de fallas, FAILED reintenta
    con espera creciente y, agotados los intentos, alerta al operador.
EN: One generic task runs any engine task type and maps its TaskResult
    to the retry policy: PENDING reschedules the poll without spending
    the failure budget, FAILED retries with growing backoff and alerts
    the operator once attempts are exhausted.
"""

import logging

from celery import shared_task

from sifen_de.engine.notify import EVENT_TASK_EXHAUSTED, notify_safely
from sifen_de.engine.results import TaskStatus

logger = logging.getLogger(__name__)


@shared_task(bind=True, acks_late=True)
def run_sifen_task(self, task_type: str, tenant_id: str, payload: dict) -> dict:
    """Ejecuta una tarea del motor con reintentos acotados.

    ES: Instancia el motor con `get_engine()` y delega en
        `SifenEngine.handle`. Devuelve el TaskResult serializado. Una
        excepción inesperada también se reintenta hasta MAX_RETRIES;
        agotados los intentos se alerta al operador y se propaga.
    EN: Builds the engine with `get_engine()` and delegates to
        `SifenEngine.handle`. Returns the serialized TaskResult. An
        unexpected exception is retried up to MAX_RETRIES, then the
        operator is alerted and the exception propagates.
    """
    from sifen_de.contrib.django.conf import get_engine, get_setting

    engine = get_engine()
    retries = self.request.retries
    try:
        result = engine.handle(task_type, tenant_id, payload)
    except Exception as exc:
        max_retries = get_setting("MAX_RETRIES")
        if retries < max_retries:
            logger.exception(
                "Tarea %s (tenant %s) interrumpida (intento %d/%d)",
                task_type,
                tenant_id,
                retries + 1,
                max_retries,
            )
            raise self.retry(
                exc=exc, countdown=60 * (retries + 1), max_retries=max_retries
            ) from exc
        _exhausted(engine, task_type, tenant_id, payload, f"{type(exc).__name__}: {exc}")
        raise

    if result.status is TaskStatus.PENDING:
        max_polls = get_setting("POLL_MAX_RETRIES")
        if retries < max_polls:
            logger.info(
                "Tarea %s pendiente (intento %d) : %s", task_type, retries + 1, result.detail
            )
            raise self.retry(countdown=get_setting("POLL_COUNTDOWN"), max_retries=max_polls)
        _exhausted(engine, task_type, tenant_id, payload, result.detail or "pendiente")

    elif result.status is TaskStatus.FAILED:
        max_retries = get_setting("MAX_RETRIES")
        if retries < max_retries:
            logger.warning(
                "Tarea %s fallida (intento %d/%d) : %s",
                task_type,
                retries + 1,
                max_retries,
                result.error,
            )
            raise self.retry(countdown=60 * (retries + 1), max_retries=max_retries)
        _exhausted(engine, task_type, tenant_id, payload, result.error or "")

    return result.model_dump(mode="json")


def _exhausted(engine, task_type: str, tenant_id: str, payload: dict, error: str) -> None:
    logger.error(
        "Tarea %s agotó sus reintentos (tenant %s) : %s", task_type, tenant_id, error
    )
    notify_safely(
        engine.notifier,
        tenant_id,
        EVENT_TASK_EXHAUSTED,
        {"tarea": task_type, "payload": payload, "error": error},
    )


@shared_task
def assemble_pending_lotes() -> list[str]:
    """Tarea periódica: programa el armado de lotes por tenant."""
    from sifen_de.contrib.django.conf import get_engine

    tenants = get_engine().batch.sweep()
    if tenants:
        logger.info("Armado de lotes programado para %d tenants", len(tenants))
    return tenants


@shared_task
def requeue_failed_documents(tenant_id: str) -> list[str]:
    """Reencola la emisión de los DE en ERROR de un tenant."""
    from sifen_de.contrib.django.conf import get_engine

    return get_engine().orchestrator.requeue_failed(tenant_id)
