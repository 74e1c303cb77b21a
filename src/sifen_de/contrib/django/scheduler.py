"""Planificador de tareas sobre Celery."""

import logging

from sifen_de.adapters.base import BaseTaskScheduler
from sifen_de.models.enums import TaskType

logger = logging.getLogger(__name__)


class CeleryTaskScheduler(BaseTaskScheduler):
    """Encola cada tarea del motor en `run_sifen_task`.

    ES: Celery entrega al-menos-una-vez con acks tardíos; los reintentos
        los decide la propia tarea según el TaskResult.
    EN: Celery delivers at-least-once with late acks; the task itself
        decides retries from the TaskResult.
    """

    def enqueue(self, task_type: TaskType, tenant_id: str, payload: dict) -> str:
        from sifen_de.contrib.django.tasks import run_sifen_task

        result = run_sifen_task.apply_async(
            args=[TaskType(task_type).value, tenant_id, payload]
        )
        logger.debug("Tarea %s encolada : %s", task_type, result.id)
        return result.id
