"""Envío de lotes y consulta asíncrona de resultados.

ES: El envío entrega los XML firmados en el orden de los ítems y pasa el
    lote y sus DE a SENT. La consulta interpreta el código del lote:
    0362 (procesado), 0300 (procesado, acuse anterior) y 0365 (lote
    rechazado) son terminales; cualquier otro código, como 0361, significa
    "en procesamiento" y se devuelve como PENDING, nunca como error.
EN: Submission sends the signed XMLs in item order and moves the batch
    and its documents to SENT. Polling reads the batch code: 0362, 0300
    and 0365 are terminal; any other code, such as 0361, means "still
    processing" and is returned as PENDING, never as an error.
"""

import asyncio
import logging
from datetime import UTC, datetime

from sifen_de.adapters.base import (
    BaseFiscalConfigSource,
    BaseNotifier,
    BaseSifenClient,
    BaseTaskScheduler,
)
from sifen_de.adapters.errors import ExternalAdapterError, QueryError, SubmissionError
from sifen_de.adapters.models import LoteItemResult, LoteQueryResult
from sifen_de.engine.notify import (
    EVENT_DE_APPROVED,
    EVENT_DE_REJECTED,
    EVENT_LOTE_ERROR,
    notify_safely,
)
from sifen_de.engine.results import PollResult, TaskStatus
from sifen_de.errors import LoteNotFoundError, SifenValidationError, StateGuardError
from sifen_de.lifecycle.states import ensure_lote_transition
from sifen_de.models.config import FiscalConfig
from sifen_de.models.document import DocumentoElectronico
from sifen_de.models.enums import DEState, LoteItemOutcome, LoteState, TaskType
from sifen_de.models.lote import Lote, LoteItem
from sifen_de.store.base import BaseRepository

logger = logging.getLogger(__name__)

CODE_PROCESSED = "0362"
CODE_PROCESSED_LEGACY = "0300"
CODE_LOTE_REJECTED = "0365"

TERMINAL_CODES: frozenset[str] = frozenset(
    {CODE_PROCESSED, CODE_PROCESSED_LEGACY, CODE_LOTE_REJECTED}
)


class BatchSubmitter:
    """Envío y consulta de lotes ante la SET."""

    def __init__(
        self,
        repository: BaseRepository,
        config_source: BaseFiscalConfigSource,
        client: BaseSifenClient,
        scheduler: BaseTaskScheduler,
        notifier: BaseNotifier,
    ) -> None:
        self._repository = repository
        self._config_source = config_source
        self._client = client
        self._scheduler = scheduler
        self._notifier = notifier

    def _get_lote(self, lote_id: str, tenant_id: str | None) -> Lote:
        lote = self._repository.get_lote(lote_id)
        if lote is None or (tenant_id is not None and lote.tenant_id != tenant_id):
            msg = f"Lote no encontrado : {lote_id}"
            raise LoteNotFoundError(msg)
        return lote

    def _get_config(self, tenant_id: str) -> FiscalConfig:
        config = self._config_source.get_config(tenant_id)
        if config is None:
            msg = f"Configuración SIFEN no encontrada para el tenant {tenant_id}"
            raise SifenValidationError(msg, errors=["config"])
        return config

    # --- Envío ---

    def submit_batch(self, lote_id: str, tenant_id: str | None = None) -> Lote:
        """Envía un lote CREATED (o reenvía uno en ERROR).

        ES: Un lote ya SENT o COMPLETED no se reenvía. En un lote SENT la
            reentrega completa lo que la entrega anterior no terminó: pasa
            a SENT los DE que quedaron en IN_LOTE y vuelve a programar la
            consulta. Si la SET rechaza el envío el lote pasa a ERROR con
            la respuesta capturada y sus DE quedan en IN_LOTE.
        EN: A SENT or COMPLETED batch is not resent. Redelivery against a
            SENT batch finishes what the previous delivery left undone:
            IN_LOTE members move to SENT and the poll is scheduled again.
            On rejection the batch goes to ERROR and its documents stay
            IN_LOTE.

        Raises:
            LoteNotFoundError: Si el lote no existe.
            SubmissionError: Si el envío falla.
        """
        lote = self._get_lote(lote_id, tenant_id)
        if lote.state is LoteState.COMPLETED:
            logger.info("Lote %s ya en COMPLETED : envío sin efecto", lote_id)
            return lote
        if lote.state is LoteState.SENT:
            logger.info("Lote %s ya enviado : se retoma el seguimiento", lote_id)
            items = self._repository.list_lote_items(lote_id)
            self._mark_members_sent(
                [self._repository.get_document(item.de_id) for item in items]
            )
            self._schedule_poll(lote)
            return lote

        config = self._get_config(lote.tenant_id)
        items = self._repository.list_lote_items(lote_id)
        documents = [self._repository.get_document(item.de_id) for item in items]
        previous = lote.state

        try:
            if not documents or any(d is None or not d.xml_signed for d in documents):
                msg = f"Lote {lote_id} con DE faltantes o sin firmar"
                raise SubmissionError(msg)
            submission = asyncio.run(
                self._client.submit_lote(
                    [d.xml_signed for d in documents],
                    config.environment,
                    config.endpoints.recibe_lote,
                )
            )
        except Exception as exc:
            if isinstance(exc, ExternalAdapterError):
                error = exc
            else:
                error = SubmissionError(f"{type(exc).__name__}: {exc}")
            logger.error("Lote %s : envío fallido : %s", lote_id, error)
            ensure_lote_transition(previous, LoteState.ERROR)
            lote.state = LoteState.ERROR
            lote.raw_response = error.response
            lote.last_message = str(error)
            self._repository.save_lote(lote, expected_state=previous)
            notify_safely(
                self._notifier,
                lote.tenant_id,
                EVENT_LOTE_ERROR,
                {"lote_id": lote_id, "error": str(error)},
            )
            if error is exc:
                raise
            raise error from exc

        ensure_lote_transition(previous, LoteState.SENT)
        lote.state = LoteState.SENT
        lote.external_id = submission.external_id
        lote.raw_response = submission.raw_response
        lote.last_code = submission.code
        lote.last_message = submission.message
        lote.sent_at = datetime.now(UTC)
        lote = self._repository.save_lote(lote, expected_state=previous)

        self._mark_members_sent(documents)
        logger.info(
            "Lote %s enviado : número SET %s, %d DE",
            lote_id,
            lote.external_id,
            len(documents),
        )
        self._schedule_poll(lote)
        return lote

    def _mark_members_sent(self, documents: list[DocumentoElectronico | None]) -> None:
        for document in documents:
            if document is None or document.state is not DEState.IN_LOTE:
                continue
            document.state = DEState.SENT
            try:
                self._repository.save_document(document, expected_state=DEState.IN_LOTE)
            except StateGuardError:
                logger.debug("DE %s ya fue movido por otro proceso", document.id)

    def _schedule_poll(self, lote: Lote) -> None:
        self._scheduler.enqueue(TaskType.CONSULTAR_LOTE, lote.tenant_id, {"lote_id": lote.id})

    # --- Consulta ---

    def poll_batch(self, lote_id: str, tenant_id: str | None = None) -> PollResult:
        """Consulta el resultado de un lote enviado.

        ES: Cada ítem se resuelve de forma independiente e idempotente.
            El lote pasa a COMPLETED solo cuando todos sus ítems quedaron
            resueltos; volver a consultar un lote COMPLETED no tiene efecto.
        EN: Each item is resolved independently and idempotently. The
            batch becomes COMPLETED only once every item is resolved;
            re-polling a COMPLETED batch is a no-op.

        Returns:
            DONE, PENDING (reintentar más tarde) o FAILED (consulta fallida).

        Raises:
            LoteNotFoundError: Si el lote no existe.
            StateGuardError: Si el lote todavía no fue enviado.
        """
        lote = self._get_lote(lote_id, tenant_id)
        if lote.state is LoteState.COMPLETED:
            logger.info("Lote %s ya COMPLETED : consulta sin efecto", lote_id)
            return PollResult(
                status=TaskStatus.DONE,
                lote_id=lote_id,
                code=lote.last_code,
                message=lote.last_message,
            )
        if lote.state is not LoteState.SENT:
            msg = f"Lote {lote_id} en estado {lote.state.value} : no fue enviado"
            raise StateGuardError(msg, current_state=lote.state.value)

        config = self._get_config(lote.tenant_id)
        try:
            result = asyncio.run(
                self._client.query_lote(
                    lote.external_id, config.environment, config.endpoints.consulta_lote
                )
            )
        except Exception as exc:
            error = exc if isinstance(exc, ExternalAdapterError) else QueryError(str(exc))
            logger.error("Lote %s : consulta fallida : %s", lote_id, error)
            lote.last_message = str(error)
            self._repository.save_lote(lote, expected_state=LoteState.SENT)
            return PollResult(status=TaskStatus.FAILED, lote_id=lote_id, error=str(error))

        if result.code not in TERMINAL_CODES:
            logger.info(
                "Lote %s en procesamiento (código %s)", lote_id, result.code
            )
            return PollResult(
                status=TaskStatus.PENDING,
                lote_id=lote_id,
                code=result.code,
                message=result.message,
            )

        return self._apply_result(lote, result)

    def _apply_result(self, lote: Lote, result: LoteQueryResult) -> PollResult:
        items = self._repository.list_lote_items(lote.id)
        wholesale = result.code == CODE_LOTE_REJECTED and not result.items
        by_cdc = {r.cdc: r for r in result.items if r.cdc}

        approved: list[str] = []
        rejected: list[str] = []
        unresolved = 0

        for position, item in enumerate(items):
            document = self._repository.get_document(item.de_id)
            if document is None:
                logger.error("Lote %s : DE %s inexistente", lote.id, item.de_id)
                unresolved += 1
                continue

            if wholesale:
                outcome = LoteItemOutcome.REJECTED
                code, message = result.code, result.message
            else:
                match = self._match(result.items, by_cdc, document.cdc, position)
                if match is None:
                    unresolved += 1
                    continue
                outcome = (
                    LoteItemOutcome.APPROVED if match.approved else LoteItemOutcome.REJECTED
                )
                code, message = match.code, match.message or match.status

            if self._resolve_item(lote, item, document, outcome, code, message):
                target = approved if outcome is LoteItemOutcome.APPROVED else rejected
                target.append(document.id)
            else:
                unresolved += 1

        lote.last_code = result.code
        lote.last_message = result.message
        lote.raw_response = result.raw_response
        if unresolved:
            logger.warning(
                "Lote %s : %d ítems sin resolver, se volverá a consultar",
                lote.id,
                unresolved,
            )
            self._repository.save_lote(lote, expected_state=LoteState.SENT)
            status = TaskStatus.PENDING
        else:
            ensure_lote_transition(lote.state, LoteState.COMPLETED)
            lote.state = LoteState.COMPLETED
            lote.completed_at = datetime.now(UTC)
            self._repository.save_lote(lote, expected_state=LoteState.SENT)
            status = TaskStatus.DONE
            logger.info(
                "Lote %s completado : %d aprobados, %d rechazados",
                lote.id,
                len(approved),
                len(rejected),
            )

        return PollResult(
            status=status,
            lote_id=lote.id,
            code=result.code,
            message=result.message,
            approved=approved,
            rejected=rejected,
            unresolved=unresolved,
        )

    @staticmethod
    def _match(
        results: list[LoteItemResult],
        by_cdc: dict[str, LoteItemResult],
        cdc: str,
        position: int,
    ) -> LoteItemResult | None:
        """Resultado de un DE: por CDC, o por posición si no trae CDC."""
        match = by_cdc.get(cdc)
        if match is None and position < len(results):
            candidate = results[position]
            if candidate.cdc is None:
                match = candidate
        return match

    def _resolve_item(
        self,
        lote: Lote,
        item: LoteItem,
        document: DocumentoElectronico,
        outcome: LoteItemOutcome,
        code: str | None,
        message: str | None,
    ) -> bool:
        """Aplica el resultado a un DE y a su ítem.

        Returns:
            False si el DE está en un estado que no admite el resultado.
        """
        target = DEState.APPROVED if outcome is LoteItemOutcome.APPROVED else DEState.REJECTED

        if document.state is DEState.IN_LOTE:
            # Envío interrumpido entre el lote y sus DE
            document.state = DEState.SENT
            document = self._repository.save_document(
                document, expected_state=DEState.IN_LOTE
            )

        if document.state is DEState.SENT:
            document.state = target
            document.response_code = code
            document.response_message = message
            if target is DEState.REJECTED:
                document.error_message = message
            document = self._repository.save_document(
                document, expected_state=DEState.SENT
            )
            logger.info("DE %s : SENT → %s (%s)", document.id, target.value, code)
            self._after_resolution(document)
        elif document.state is not target and not (
            target is DEState.APPROVED and document.state is DEState.CANCELLED
        ):
            logger.warning(
                "Lote %s : DE %s en %s no admite el resultado %s",
                lote.id,
                document.id,
                document.state.value,
                target.value,
            )
            return False

        if item.outcome is not outcome:
            item.outcome = outcome
            item.code = code
            item.message = message
            self._repository.save_lote_item(item)
        return True

    def _after_resolution(self, document: DocumentoElectronico) -> None:
        payload = {
            "de_id": document.id,
            "cdc": document.cdc,
            "numero": document.full_number,
            "codigo": document.response_code,
            "mensaje": document.response_message,
        }
        if document.state is DEState.APPROVED:
            self._scheduler.enqueue(
                TaskType.GENERAR_KUDE, document.tenant_id, {"de_id": document.id}
            )
            notify_safely(self._notifier, document.tenant_id, EVENT_DE_APPROVED, payload)
        else:
            notify_safely(self._notifier, document.tenant_id, EVENT_DE_REJECTED, payload)
