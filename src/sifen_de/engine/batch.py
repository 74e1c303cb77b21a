"""Armado de lotes.

ES: Agrupa los DE ENQUEUED de un tenant en lotes de hasta 50, los más
    antiguos primero. La selección, la creación del lote con sus ítems
    ordenados y el paso de los DE a IN_LOTE se confirman juntos.
EN: Groups a tenant's ENQUEUED documents into batches of up to 50,
    oldest first. Selection, batch and ordered item creation, and the
    move to IN_LOTE commit together.
"""

import logging

from sifen_de.adapters.base import BaseTaskScheduler
from sifen_de.engine.settings import EngineSettings
from sifen_de.models.enums import TaskType
from sifen_de.models.lote import LoteDetail
from sifen_de.store.base import BaseRepository

logger = logging.getLogger(__name__)


class BatchAssembler:
    """Armado de lotes por tenant."""

    def __init__(
        self,
        repository: BaseRepository,
        scheduler: BaseTaskScheduler,
        settings: EngineSettings,
    ) -> None:
        self._repository = repository
        self._scheduler = scheduler
        self._settings = settings

    def assemble(self, tenant_id: str) -> LoteDetail | None:
        """Arma un lote con los DE listos del tenant.

        Returns:
            El lote creado, o None si no hay DE listos (no es un error).
        """
        detail = self._repository.assemble_lote(tenant_id, self._settings.lote_max_size)
        if detail is None:
            logger.debug("Sin DE listos para lote (tenant %s)", tenant_id)
            return None
        logger.info(
            "Lote %s armado con %d DE (tenant %s)",
            detail.lote.id,
            len(detail.items),
            tenant_id,
        )
        return detail

    def assemble_all(self, tenant_id: str) -> list[LoteDetail]:
        """Arma lotes hasta agotar los DE listos y encola su envío."""
        created: list[LoteDetail] = []
        while True:
            detail = self.assemble(tenant_id)
            if detail is None:
                break
            self._scheduler.enqueue(
                TaskType.ENVIAR_LOTE, tenant_id, {"lote_id": detail.lote.id}
            )
            created.append(detail)
        return created

    def sweep(self) -> list[str]:
        """Encola el armado de lotes de cada tenant con DE listos."""
        tenants = self._repository.tenants_with_ready_documents()
        for tenant_id in tenants:
            self._scheduler.enqueue(TaskType.ARMAR_LOTE, tenant_id, {})
        return tenants
