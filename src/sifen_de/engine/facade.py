"""Ensamblado del motor por inyección de dependencias."""

from collections.abc import Mapping

from sifen_de.adapters.base import (
    BaseFiscalConfigSource,
    BaseKudeRenderer,
    BaseNotifier,
    BaseQrEncoder,
    BaseSifenClient,
    BaseSigner,
    BaseStorage,
    BaseTaskScheduler,
    BaseXmlGenerator,
)
from sifen_de.adapters.notifiers import LoggingNotifier
from sifen_de.engine.batch import BatchAssembler
from sifen_de.engine.cancellation import CancellationHandler
from sifen_de.engine.handlers import TaskHandler
from sifen_de.engine.kude import KudeGenerator
from sifen_de.engine.orchestrator import DocumentOrchestrator
from sifen_de.engine.pipeline import EmissionPipeline
from sifen_de.engine.results import TaskResult
from sifen_de.engine.settings import EngineSettings
from sifen_de.engine.submission import BatchSubmitter
from sifen_de.generators.xml import DEXmlGenerator
from sifen_de.models.document import CreatedDocument, DocumentInput
from sifen_de.models.enums import TaskType
from sifen_de.numbering.registry import NumberingRegistry
from sifen_de.store.base import BaseRepository


class SifenEngine:
    """Motor del ciclo de vida de DE.

    ES: Recibe el almacén, la fuente de configuración fiscal, el
        planificador y cada adaptador externo en la construcción; no hay
        búsquedas de dependencias en tiempo de ejecución.
    EN: Receives the store, fiscal config source, scheduler and every
        external adapter at construction; no runtime dependency lookups.
    """

    def __init__(
        self,
        *,
        repository: BaseRepository,
        config_source: BaseFiscalConfigSource,
        scheduler: BaseTaskScheduler,
        signer: BaseSigner,
        qr_encoder: BaseQrEncoder,
        client: BaseSifenClient,
        kude_renderer: BaseKudeRenderer,
        storage: BaseStorage,
        xml_generator: BaseXmlGenerator | None = None,
        notifier: BaseNotifier | None = None,
        settings: EngineSettings | None = None,
    ) -> None:
        self.settings = settings or EngineSettings()
        self.repository = repository
        self.scheduler = scheduler
        self.notifier = notifier or LoggingNotifier()

        self.numbering = NumberingRegistry(repository)
        self.orchestrator = DocumentOrchestrator(
            repository, self.numbering, config_source, scheduler
        )
        self.pipeline = EmissionPipeline(
            repository,
            config_source,
            xml_generator or DEXmlGenerator(),
            signer,
            qr_encoder,
            self.notifier,
        )
        self.batch = BatchAssembler(repository, scheduler, self.settings)
        self.submitter = BatchSubmitter(
            repository, config_source, client, scheduler, self.notifier
        )
        self.cancellation = CancellationHandler(
            repository, config_source, client, self.notifier
        )
        self.kude = KudeGenerator(
            repository, config_source, kude_renderer, storage, self.settings
        )
        self.handler = TaskHandler(
            self.pipeline, self.batch, self.submitter, self.cancellation, self.kude
        )

    # --- Atajos de la capa API ---

    def create_de(
        self, tenant_id: str, data: DocumentInput | Mapping
    ) -> CreatedDocument:
        return self.orchestrator.create_de(tenant_id, data)

    def enqueue_emission(self, tenant_id: str, de_id: str) -> str:
        return self.orchestrator.enqueue_emission(tenant_id, de_id)

    def request_cancellation(self, tenant_id: str, de_id: str, reason: str) -> str:
        return self.orchestrator.request_cancellation(tenant_id, de_id, reason)

    def handle(self, task_type: TaskType | str, tenant_id: str, payload: dict) -> TaskResult:
        """Punto de entrega del planificador."""
        return self.handler.handle(task_type, tenant_id, payload)
