"""Manejador de tareas del planificador.

ES: Traduce cada tipo de tarea a una operación del motor y su resultado
    a DONE, PENDING o FAILED. Las fallas de adaptadores ya quedaron
    registradas sobre la entidad: aquí solo se devuelven como FAILED para
    el reintento acotado. Un error de guarda de estado en una tarea
    reentregada significa que otro intento ya avanzó la entidad: DONE.
EN: Maps each task type to an engine operation and its outcome to DONE,
    PENDING or FAILED. Adapter failures are already recorded on the
    entity and are returned as FAILED for the bounded retry. A state
    guard error on a redelivered task means another attempt already
    advanced the entity: DONE.
"""

import logging

from sifen_de.adapters.errors import ExternalAdapterError
from sifen_de.engine.batch import BatchAssembler
from sifen_de.engine.cancellation import CancellationHandler
from sifen_de.engine.kude import KudeGenerator
from sifen_de.engine.pipeline import EmissionPipeline
from sifen_de.engine.results import TaskResult
from sifen_de.engine.submission import BatchSubmitter
from sifen_de.errors import SifenError, StateGuardError
from sifen_de.models.enums import TaskType

logger = logging.getLogger(__name__)


class TaskHandler:
    """Punto de entrada `handle(task_type, tenant_id, payload)`."""

    def __init__(
        self,
        pipeline: EmissionPipeline,
        batch: BatchAssembler,
        submitter: BatchSubmitter,
        cancellation: CancellationHandler,
        kude: KudeGenerator,
    ) -> None:
        self._pipeline = pipeline
        self._batch = batch
        self._submitter = submitter
        self._cancellation = cancellation
        self._kude = kude
        self._handlers = {
            TaskType.EMITIR_DE: self._emit,
            TaskType.ARMAR_LOTE: self._assemble,
            TaskType.ENVIAR_LOTE: self._submit,
            TaskType.CONSULTAR_LOTE: self._poll,
            TaskType.ANULAR_DE: self._cancel,
            TaskType.GENERAR_KUDE: self._render_kude,
        }

    def handle(self, task_type: TaskType | str, tenant_id: str, payload: dict) -> TaskResult:
        """Ejecuta una tarea entregada por el planificador."""
        try:
            handler = self._handlers[TaskType(task_type)]
        except (KeyError, ValueError):
            logger.error("Tipo de tarea desconocido : %s", task_type)
            return TaskResult.failed(f"Tipo de tarea desconocido : {task_type}")

        try:
            return handler(tenant_id, payload)
        except ExternalAdapterError as exc:
            logger.warning("Tarea %s (tenant %s) fallida : %s", task_type, tenant_id, exc)
            return TaskResult.failed(f"[{exc.step}] {exc}")
        except StateGuardError as exc:
            logger.info("Tarea %s sin efecto : %s", task_type, exc)
            return TaskResult.done(f"sin efecto : {exc}")
        except KeyError as exc:
            logger.error("Tarea %s con payload incompleto : %s", task_type, payload)
            return TaskResult.failed(f"Payload sin {exc}")
        except SifenError as exc:
            logger.error("Tarea %s (tenant %s) rechazada : %s", task_type, tenant_id, exc)
            return TaskResult.failed(str(exc))

    # --- Tareas ---

    def _emit(self, tenant_id: str, payload: dict) -> TaskResult:
        document = self._pipeline.run(tenant_id, payload["de_id"])
        return TaskResult.done(f"DE {document.id} en {document.state.value}")

    def _assemble(self, tenant_id: str, payload: dict) -> TaskResult:
        created = self._batch.assemble_all(tenant_id)
        return TaskResult.done(f"{len(created)} lotes armados")

    def _submit(self, tenant_id: str, payload: dict) -> TaskResult:
        lote = self._submitter.submit_batch(payload["lote_id"], tenant_id)
        return TaskResult.done(f"lote {lote.id} en {lote.state.value}")

    def _poll(self, tenant_id: str, payload: dict) -> TaskResult:
        return self._submitter.poll_batch(payload["lote_id"], tenant_id).to_task_result()

    def _cancel(self, tenant_id: str, payload: dict) -> TaskResult:
        document = self._cancellation.cancel(tenant_id, payload["de_id"], payload["reason"])
        return TaskResult.done(f"DE {document.id} en {document.state.value}")

    def _render_kude(self, tenant_id: str, payload: dict) -> TaskResult:
        key = self._kude.generate(tenant_id, payload["de_id"])
        return TaskResult.done(key)
