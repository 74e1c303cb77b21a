"""Pipeline de emisión: generar → firmar → QR.

ES: Ejecutado por el manejador de tareas con entrega al-menos-una-vez.
    Cada paso persiste su resultado (escritura condicionada al estado
    previo) antes del siguiente, y un DE que ya superó un paso no se
    reprocesa. Una falla de adaptador deja el DE en ERROR con el mensaje,
    emite una alerta y se propaga al reintento acotado del planificador.
EN: Run by the task handler under at-least-once delivery. Each step
    persists its output (compare-and-set on the previous state) before
    the next one, and a DE already past a step is not reprocessed. An
    adapter failure leaves the DE in ERROR, raises an operator alert and
    propagates to the scheduler's bounded retry.
"""

import logging
from datetime import UTC, datetime
from typing import NoReturn

from sifen_de.adapters.base import (
    BaseFiscalConfigSource,
    BaseNotifier,
    BaseQrEncoder,
    BaseSigner,
    BaseXmlGenerator,
)
from sifen_de.adapters.errors import (
    ExternalAdapterError,
    GenerationError,
    QrEncodingError,
    SigningError,
)
from sifen_de.adapters.models import DocumentData, IssuerParams
from sifen_de.engine.notify import EVENT_DE_ERROR, notify_safely
from sifen_de.errors import (
    DocumentNotFoundError,
    SifenValidationError,
    StateGuardError,
)
from sifen_de.lifecycle.states import ensure_transition, has_reached
from sifen_de.models.config import FiscalConfig
from sifen_de.models.document import DocumentoElectronico
from sifen_de.models.enums import DEState
from sifen_de.store.base import BaseRepository

logger = logging.getLogger(__name__)


class EmissionPipeline:
    """Avanza un DE de DRAFT (o ERROR) hasta ENQUEUED."""

    def __init__(
        self,
        repository: BaseRepository,
        config_source: BaseFiscalConfigSource,
        xml_generator: BaseXmlGenerator,
        signer: BaseSigner,
        qr_encoder: BaseQrEncoder,
        notifier: BaseNotifier,
    ) -> None:
        self._repository = repository
        self._config_source = config_source
        self._xml_generator = xml_generator
        self._signer = signer
        self._qr_encoder = qr_encoder
        self._notifier = notifier

    def run(self, tenant_id: str, de_id: str) -> DocumentoElectronico:
        """Ejecuta los pasos pendientes del DE.

        Returns:
            El DE en su estado final (ENQUEUED, o el estado ya alcanzado
            si la tarea fue reentregada).

        Raises:
            DocumentNotFoundError: Si el DE no existe para el tenant.
            SifenValidationError: Si falta la configuración fiscal.
            ExternalAdapterError: Falla de un adaptador (DE ya en ERROR).
            StateGuardError: Si otro proceso avanzó el DE entretanto.
        """
        document = self._repository.get_document(de_id, tenant_id)
        if document is None:
            msg = f"DE no encontrado : {de_id}"
            raise DocumentNotFoundError(msg)

        if has_reached(document.state, DEState.ENQUEUED):
            logger.info(
                "DE %s ya en %s : emisión sin efecto", de_id, document.state.value
            )
            return document

        config = self._config_source.get_config(tenant_id)
        if config is None:
            msg = f"Configuración SIFEN no encontrada para el tenant {tenant_id}"
            raise SifenValidationError(msg, errors=["config"])

        if document.state in (DEState.DRAFT, DEState.ERROR):
            document = self._generate(document, config)
        if document.state is DEState.GENERATED:
            document = self._sign(document)
        if document.state is DEState.SIGNED:
            document = self._encode(document)
        return document

    # --- Pasos ---

    def _generate(
        self, document: DocumentoElectronico, config: FiscalConfig
    ) -> DocumentoElectronico:
        previous = document.state
        if (
            previous is DEState.ERROR
            and document.xml_unsigned
            and not document.has_placeholder_cdc
        ):
            # El XML sin firmar persistido sigue siendo válido
            logger.info("DE %s : reemisión con el XML ya generado", document.id)
        else:
            issuer = IssuerParams(
                ruc=config.ruc,
                dv=config.dv,
                business_name=config.business_name,
                taxpayer_type=config.taxpayer_type,
                environment=config.environment,
                establishment=document.establishment,
                point=document.point,
                number=document.number,
                authorization=document.authorization,
                authorization_start=config.authorization_start,
            )
            data = DocumentData(
                document_id=document.id,
                document_type=document.document_type,
                issue_date=document.issue_date,
                currency=document.currency,
                receiver=document.receiver,
                items=document.items,
                totals=document.totals,
                referenced_cdc=document.referenced_cdc,
            )
            try:
                generated = self._xml_generator.generate(issuer, data)
            except Exception as exc:
                self._fail(document, previous, GenerationError, exc)
            document.xml_unsigned = generated.xml
            document.cdc = generated.cdc

        document.state = DEState.GENERATED
        document.error_message = None
        return self._advance(document, previous)

    def _sign(self, document: DocumentoElectronico) -> DocumentoElectronico:
        previous = document.state
        try:
            keys = self._config_source.get_signing_keys(document.tenant_id)
            if keys is None:
                msg = "Claves de firma no cargadas para el tenant"
                raise SigningError(msg)
            xml_signed = self._signer.sign(
                document.xml_unsigned, keys.private_key, keys.passphrase
            )
        except Exception as exc:
            self._fail(document, previous, SigningError, exc)

        document.xml_signed = xml_signed
        document.state = DEState.SIGNED
        return self._advance(document, previous)

    def _encode(self, document: DocumentoElectronico) -> DocumentoElectronico:
        previous = document.state
        try:
            qr = self._qr_encoder.encode(document.xml_signed)
        except Exception as exc:
            self._fail(document, previous, QrEncodingError, exc)

        document.qr_text = qr.text
        document.qr_image = qr.image
        document.state = DEState.ENQUEUED
        document.enqueued_at = datetime.now(UTC)
        return self._advance(document, previous)

    # --- Persistencia ---

    def _advance(
        self, document: DocumentoElectronico, previous: DEState
    ) -> DocumentoElectronico:
        ensure_transition(previous, document.state)
        saved = self._repository.save_document(document, expected_state=previous)
        logger.info("DE %s : %s → %s", saved.id, previous.value, saved.state.value)
        return saved

    def _fail(
        self,
        document: DocumentoElectronico,
        previous: DEState,
        error_class: type[ExternalAdapterError],
        exc: Exception,
    ) -> NoReturn:
        """Registra la falla sobre el DE, alerta y relanza."""
        if isinstance(exc, ExternalAdapterError):
            error = exc
        else:
            error = error_class(f"{type(exc).__name__}: {exc}")

        logger.error(
            "DE %s : falla en el paso %s : %s", document.id, error.step, error
        )
        document.state = DEState.ERROR
        document.error_message = f"[{error.step}] {error}"
        try:
            self._repository.save_document(document, expected_state=previous)
        except StateGuardError:
            logger.warning(
                "DE %s : estado cambiado por otro proceso, falla no registrada",
                document.id,
            )

        notify_safely(
            self._notifier,
            document.tenant_id,
            EVENT_DE_ERROR,
            {
                "de_id": document.id,
                "numero": document.full_number,
                "paso": error.step,
                "error": str(error),
            },
        )
        if error is exc:
            raise error
        raise error from exc
