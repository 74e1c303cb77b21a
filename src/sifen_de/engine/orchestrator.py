"""Orquestador de documentos electrónicos.

ES: Punto de entrada síncrono de la capa API: crea DE en DRAFT con su
    número asignado y totales calculados, y encola el trabajo asíncrono
    (emisión, cancelación, KUDE) en el planificador. Los errores de
    validación y de guarda de estado vuelven directamente al llamador.
EN: Synchronous entry point for the API layer: creates DRAFT documents
    with their assigned number and computed totals, and schedules the
    async work. Validation and state-guard errors return to the caller.
"""

import logging
import uuid
from collections.abc import Mapping

from pydantic import ValidationError

from sifen_de.adapters.base import BaseFiscalConfigSource, BaseTaskScheduler
from sifen_de.engine.taxes import compute_totals
from sifen_de.errors import (
    DocumentNotFoundError,
    LoteNotFoundError,
    SifenValidationError,
    StateGuardError,
)
from sifen_de.lifecycle.states import CANCELLATION_ALLOWED, EMISSION_ALLOWED
from sifen_de.models.config import FiscalConfig
from sifen_de.models.document import (
    PLACEHOLDER_CDC,
    CreatedDocument,
    DocumentInput,
    DocumentoElectronico,
    SelfBilledSeller,
)
from sifen_de.models.enums import DEState, LoteState, TaskType
from sifen_de.models.lote import Lote, LoteDetail
from sifen_de.models.series import SeriesKey
from sifen_de.numbering.registry import NumberingRegistry
from sifen_de.store.base import BaseRepository

logger = logging.getLogger(__name__)

CANCEL_REASON_MIN = 5
CANCEL_REASON_MAX = 500


def validate_cancel_reason(reason: str) -> str:
    """Motivo de cancelación sin espacios extremos, de 5 a 500 caracteres."""
    cleaned = (reason or "").strip()
    if not CANCEL_REASON_MIN <= len(cleaned) <= CANCEL_REASON_MAX:
        msg = (
            f"El motivo de cancelación debe tener entre {CANCEL_REASON_MIN} "
            f"y {CANCEL_REASON_MAX} caracteres"
        )
        raise SifenValidationError(msg, errors=["reason"])
    return cleaned


class DocumentOrchestrator:
    """Creación de DE y encolado de trabajo asíncrono."""

    def __init__(
        self,
        repository: BaseRepository,
        numbering: NumberingRegistry,
        config_source: BaseFiscalConfigSource,
        scheduler: BaseTaskScheduler,
    ) -> None:
        self._repository = repository
        self._numbering = numbering
        self._config_source = config_source
        self._scheduler = scheduler

    # --- Creación ---

    def create_de(
        self, tenant_id: str, data: DocumentInput | Mapping
    ) -> CreatedDocument:
        """Crea un DE en DRAFT con número asignado.

        ES: Valida la configuración fiscal, el timbrado, el receptor, los
            ítems y la referencia asociada antes de tomar un número. El
            número consumido no se devuelve si un paso posterior falla.
        EN: Validates fiscal config, authorization, receiver, items and
            the associated reference before taking a number. A consumed
            number is not returned if a later step fails.

        Args:
            tenant_id: Tenant emisor.
            data: Datos del DE, ya validados o como mapeo crudo.

        Returns:
            Id y número asignado del DE.

        Raises:
            SifenValidationError: Datos o configuración inválidos.
            SeriesNotProvisionedError: La serie no fue provista.
        """
        document_input = self._parse_input(data)
        config = self._config_source.get_config(tenant_id)
        if config is None:
            msg = f"Configuración SIFEN no encontrada para el tenant {tenant_id}"
            raise SifenValidationError(msg, errors=["config"])

        errors = self._validate(document_input, config)
        if errors:
            msg = "Datos del DE inválidos : " + " ; ".join(errors)
            raise SifenValidationError(msg, errors=errors)

        totals = compute_totals(document_input.items, document_input.currency)
        establishment = document_input.establishment or config.establishment
        point = document_input.point or config.point

        key = SeriesKey(
            tenant_id=tenant_id,
            document_type=document_input.document_type,
            establishment=establishment,
            point=point,
            authorization=config.authorization,
        )
        number = self._numbering.next_number(key)

        document = DocumentoElectronico(
            id=str(uuid.uuid4()),
            tenant_id=tenant_id,
            document_type=document_input.document_type,
            establishment=establishment,
            point=point,
            number=number,
            authorization=config.authorization,
            cdc=PLACEHOLDER_CDC,
            issue_date=document_input.issue_date,
            currency=document_input.currency,
            receiver=document_input.receiver,
            items=document_input.items,
            totals=totals,
            referenced_cdc=document_input.referenced_cdc,
            state=DEState.DRAFT,
        )
        stored = self._repository.add_document(document)
        logger.info(
            "DE %s creado : tipo %d, número %s (tenant %s)",
            stored.id,
            int(stored.document_type),
            stored.full_number,
            tenant_id,
        )
        return CreatedDocument(id=stored.id, number=number)

    @staticmethod
    def _parse_input(data: DocumentInput | Mapping) -> DocumentInput:
        if isinstance(data, DocumentInput):
            return data
        try:
            return DocumentInput.model_validate(data)
        except ValidationError as exc:
            errors = [
                f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}"
                for err in exc.errors()
            ]
            msg = "Datos del DE inválidos"
            raise SifenValidationError(msg, errors=errors) from exc

    @staticmethod
    def _validate(document_input: DocumentInput, config: FiscalConfig) -> list[str]:
        errors: list[str] = []
        document_type = document_input.document_type

        if not config.authorization:
            errors.append("timbrado no configurado")
        elif (
            config.authorization_end is not None
            and document_input.issue_date > config.authorization_end
        ):
            errors.append(f"timbrado vencido el {config.authorization_end.isoformat()}")

        receiver = document_input.receiver
        if receiver is None:
            errors.append("receptor requerido")
        elif document_type.is_self_billed and not isinstance(receiver, SelfBilledSeller):
            errors.append("la autofactura requiere los datos del vendedor")
        elif not document_type.is_self_billed and isinstance(receiver, SelfBilledSeller):
            errors.append("datos de vendedor solo válidos en autofactura")

        if not document_input.items:
            errors.append("al menos un ítem requerido")

        if document_type.requires_reference and not document_input.referenced_cdc:
            errors.append("las notas de crédito y débito requieren el CDC asociado")

        return errors

    # --- Encolado ---

    def enqueue_emission(self, tenant_id: str, de_id: str) -> str:
        """Encola la emisión de un DE en DRAFT o ERROR.

        Returns:
            Identificador de la tarea encolada.

        Raises:
            StateGuardError: Si el DE no está en DRAFT ni en ERROR.
        """
        document = self.get_document(tenant_id, de_id)
        if document.state not in EMISSION_ALLOWED:
            msg = (
                f"DE {de_id} en estado {document.state.value} : la emisión solo "
                f"puede encolarse desde DRAFT o ERROR"
            )
            raise StateGuardError(msg, current_state=document.state.value)

        task_id = self._scheduler.enqueue(TaskType.EMITIR_DE, tenant_id, {"de_id": de_id})
        logger.info("Emisión del DE %s encolada (tarea %s)", de_id, task_id)
        return task_id

    def request_cancellation(self, tenant_id: str, de_id: str, reason: str) -> str:
        """Encola la cancelación de un DE aprobado.

        Raises:
            SifenValidationError: Motivo fuera de 5..500 caracteres.
            StateGuardError: Si el DE no está APPROVED.
        """
        document = self.get_document(tenant_id, de_id)
        if document.state not in CANCELLATION_ALLOWED:
            msg = (
                f"DE {de_id} en estado {document.state.value} : solo un DE "
                f"aprobado puede cancelarse"
            )
            raise StateGuardError(msg, current_state=document.state.value)
        cleaned = validate_cancel_reason(reason)

        task_id = self._scheduler.enqueue(
            TaskType.ANULAR_DE, tenant_id, {"de_id": de_id, "reason": cleaned}
        )
        logger.info("Cancelación del DE %s encolada (tarea %s)", de_id, task_id)
        return task_id

    def request_kude(self, tenant_id: str, de_id: str) -> str:
        """Encola la generación del KUDE a demanda."""
        document = self.get_document(tenant_id, de_id)
        if not (document.xml_signed or document.xml_unsigned):
            msg = f"DE {de_id} sin XML generado : KUDE no disponible"
            raise StateGuardError(msg, current_state=document.state.value)
        return self._scheduler.enqueue(TaskType.GENERAR_KUDE, tenant_id, {"de_id": de_id})

    def requeue_failed(self, tenant_id: str, limit: int = 50) -> list[str]:
        """Reencola la emisión de los DE en ERROR del tenant."""
        failed = self._repository.list_documents(
            tenant_id, state=DEState.ERROR, limit=limit
        )
        task_ids = [
            self._scheduler.enqueue(TaskType.EMITIR_DE, tenant_id, {"de_id": d.id})
            for d in failed
        ]
        if task_ids:
            logger.info("%d DE en ERROR reencolados (tenant %s)", len(task_ids), tenant_id)
        return task_ids

    # --- Consultas ---

    def get_document(self, tenant_id: str, de_id: str) -> DocumentoElectronico:
        document = self._repository.get_document(de_id, tenant_id)
        if document is None:
            msg = f"DE no encontrado : {de_id}"
            raise DocumentNotFoundError(msg)
        return document

    def list_documents(
        self,
        tenant_id: str,
        state: DEState | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[DocumentoElectronico]:
        return self._repository.list_documents(tenant_id, state, limit, offset)

    def list_lotes(
        self,
        tenant_id: str,
        state: LoteState | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[Lote]:
        return self._repository.list_lotes(tenant_id, state, limit, offset)

    def get_lote_detail(self, tenant_id: str, lote_id: str) -> LoteDetail:
        """Lote con sus ítems en orden."""
        lote = self._repository.get_lote(lote_id)
        if lote is None or lote.tenant_id != tenant_id:
            msg = f"Lote no encontrado : {lote_id}"
            raise LoteNotFoundError(msg)
        return LoteDetail(lote=lote, items=self._repository.list_lote_items(lote_id))
