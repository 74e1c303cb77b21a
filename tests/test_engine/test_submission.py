"""Pruebas del envío y de la consulta de lotes."""

import pytest

from sifen_de.adapters.errors import QueryError, SubmissionError
from sifen_de.engine.results import TaskStatus
from sifen_de.errors import LoteNotFoundError, StateGuardError
from sifen_de.models.enums import DEState, LoteItemOutcome, LoteState, TaskType


def _states(repository, de_ids):
    return [repository.get_document(de_id).state for de_id in de_ids]


class TestSubmitBatch:
    """Pruebas de submit_batch()."""

    def test_submit_moves_lote_and_documents_to_sent(
        self, engine, repository, scheduler, client, tenant_id, emit
    ):
        de_ids = emit(2)
        detail = engine.batch.assemble(tenant_id)

        lote = engine.submitter.submit_batch(detail.lote.id, tenant_id)

        assert lote.state == LoteState.SENT
        assert lote.external_id == client.submitted[0]
        assert lote.last_code == "0300"
        assert lote.sent_at is not None
        assert _states(repository, de_ids) == [DEState.SENT, DEState.SENT]
        poll = scheduler.of_type(TaskType.CONSULTAR_LOTE)
        assert poll[0].payload == {"lote_id": lote.id}

    def test_sends_signed_xml_in_item_order(self, engine, repository, client, tenant_id, emit):
        de_ids = emit(3)
        detail = engine.batch.assemble(tenant_id)
        lote = engine.submitter.submit_batch(detail.lote.id, tenant_id)

        expected = [repository.get_document(de_id).cdc for de_id in de_ids]
        assert client.cdcs_of(lote.external_id) == expected

    def test_resubmit_sent_is_noop(self, engine, client, tenant_id, send_lote):
        lote_id, _ = send_lote(1)
        engine.submitter.submit_batch(lote_id, tenant_id)
        assert len(client.submitted) == 1

    def test_redelivery_schedules_lost_poll(
        self, engine, repository, scheduler, client, tenant_id, emit, monkeypatch
    ):
        """Si la consulta no se pudo programar, la reentrega la programa."""
        de_ids = emit(2)
        detail = engine.batch.assemble(tenant_id)
        enqueue = scheduler.enqueue
        failures = [ConnectionError("broker caído")]

        def flaky_enqueue(task_type, task_tenant, payload):
            if task_type == TaskType.CONSULTAR_LOTE and failures:
                raise failures.pop()
            return enqueue(task_type, task_tenant, payload)

        monkeypatch.setattr(scheduler, "enqueue", flaky_enqueue)
        payload = {"lote_id": detail.lote.id}

        with pytest.raises(ConnectionError):
            engine.handle(TaskType.ENVIAR_LOTE, tenant_id, payload)
        assert scheduler.of_type(TaskType.CONSULTAR_LOTE) == []

        result = engine.handle(TaskType.ENVIAR_LOTE, tenant_id, payload)

        assert result.status == TaskStatus.DONE
        assert len(client.submitted) == 1
        assert repository.get_lote(detail.lote.id).state == LoteState.SENT
        assert _states(repository, de_ids) == [DEState.SENT, DEState.SENT]
        [poll] = scheduler.of_type(TaskType.CONSULTAR_LOTE)
        assert poll.payload == payload

    def test_redelivery_moves_members_left_in_lote(
        self, engine, repository, scheduler, client, tenant_id, emit, monkeypatch
    ):
        de_ids = emit(2)
        detail = engine.batch.assemble(tenant_id)
        save_document = repository.save_document
        failures = [RuntimeError("conexión perdida")]

        def flaky_save(document, expected_state=None):
            if document.state is DEState.SENT and failures:
                raise failures.pop()
            return save_document(document, expected_state=expected_state)

        monkeypatch.setattr(repository, "save_document", flaky_save)

        with pytest.raises(RuntimeError):
            engine.submitter.submit_batch(detail.lote.id, tenant_id)
        assert _states(repository, de_ids) == [DEState.IN_LOTE, DEState.IN_LOTE]

        engine.submitter.submit_batch(detail.lote.id, tenant_id)

        assert len(client.submitted) == 1
        assert _states(repository, de_ids) == [DEState.SENT, DEState.SENT]
        assert len(scheduler.of_type(TaskType.CONSULTAR_LOTE)) == 1

    def test_resubmit_completed_is_noop(
        self, engine, scheduler, client, tenant_id, send_lote
    ):
        lote_id, _ = send_lote(1)
        client.approve_all(engine.repository.get_lote(lote_id).external_id)
        engine.submitter.poll_batch(lote_id, tenant_id)
        scheduler.clear()

        lote = engine.submitter.submit_batch(lote_id, tenant_id)

        assert lote.state == LoteState.COMPLETED
        assert scheduler.of_type(TaskType.CONSULTAR_LOTE) == []

    def test_submission_failure(
        self, engine, repository, client, notifier, tenant_id, emit
    ):
        de_ids = emit(1)
        detail = engine.batch.assemble(tenant_id)
        client.submit_error = SubmissionError(
            "XML mal formado", response={"dCodRes": "0301"}
        )

        with pytest.raises(SubmissionError):
            engine.submitter.submit_batch(detail.lote.id, tenant_id)

        lote = repository.get_lote(detail.lote.id)
        assert lote.state == LoteState.ERROR
        assert lote.raw_response == {"dCodRes": "0301"}
        assert lote.last_message == "XML mal formado"
        assert _states(repository, de_ids) == [DEState.IN_LOTE]
        assert notifier.names() == ["sifen.lote.error"]

    def test_resubmit_after_error(self, engine, repository, client, tenant_id, emit):
        de_ids = emit(1)
        detail = engine.batch.assemble(tenant_id)
        client.submit_error = SubmissionError("timeout")
        with pytest.raises(SubmissionError):
            engine.submitter.submit_batch(detail.lote.id, tenant_id)

        client.submit_error = None
        lote = engine.submitter.submit_batch(detail.lote.id, tenant_id)
        assert lote.state == LoteState.SENT
        assert _states(repository, de_ids) == [DEState.SENT]

    def test_unknown_lote(self, engine, tenant_id):
        with pytest.raises(LoteNotFoundError):
            engine.submitter.submit_batch("no-existe", tenant_id)


class TestPollBatch:
    """Pruebas de poll_batch()."""

    def test_still_processing(self, engine, repository, tenant_id, send_lote):
        lote_id, de_ids = send_lote(2)

        result = engine.submitter.poll_batch(lote_id, tenant_id)

        assert result.status == TaskStatus.PENDING
        assert result.code == "0361"
        assert repository.get_lote(lote_id).state == LoteState.SENT
        assert _states(repository, de_ids) == [DEState.SENT, DEState.SENT]

    def test_mixed_results(
        self, engine, repository, scheduler, client, notifier, tenant_id, send_lote
    ):
        lote_id, de_ids = send_lote(3)
        external_id = repository.get_lote(lote_id).external_id
        client.resolve(external_id, ["Aprobado", "Rechazado", "Aprobado"])

        result = engine.submitter.poll_batch(lote_id, tenant_id)

        assert result.status == TaskStatus.DONE
        assert result.is_partial
        assert result.approved == [de_ids[0], de_ids[2]]
        assert result.rejected == [de_ids[1]]
        assert _states(repository, de_ids) == [
            DEState.APPROVED,
            DEState.REJECTED,
            DEState.APPROVED,
        ]
        assert repository.get_lote(lote_id).state == LoteState.COMPLETED

        kude = scheduler.of_type(TaskType.GENERAR_KUDE)
        assert [task.payload["de_id"] for task in kude] == [de_ids[0], de_ids[2]]
        assert notifier.names().count("sifen.de.aprobado") == 2
        assert notifier.names().count("sifen.de.rechazado") == 1

    def test_rejected_document_keeps_message(self, engine, repository, client, tenant_id, send_lote):
        lote_id, de_ids = send_lote(1)
        client.resolve(repository.get_lote(lote_id).external_id, ["Rechazado"])

        engine.submitter.poll_batch(lote_id, tenant_id)

        document = repository.get_document(de_ids[0])
        assert document.response_code == "0160"
        assert document.error_message == "XML mal formado"
        items = repository.list_lote_items(lote_id)
        assert items[0].outcome == LoteItemOutcome.REJECTED

    def test_positional_results(self, engine, repository, client, tenant_id, send_lote):
        lote_id, de_ids = send_lote(2)
        external_id = repository.get_lote(lote_id).external_id
        client.resolve(external_id, ["Rechazado", "Aprobado"], match_by_cdc=False)

        result = engine.submitter.poll_batch(lote_id, tenant_id)

        assert result.status == TaskStatus.DONE
        assert _states(repository, de_ids) == [DEState.REJECTED, DEState.APPROVED]

    def test_wholesale_rejection(self, engine, repository, client, tenant_id, send_lote):
        lote_id, de_ids = send_lote(2)
        client.reject_lote(repository.get_lote(lote_id).external_id, "RUC inhabilitado")

        result = engine.submitter.poll_batch(lote_id, tenant_id)

        assert result.status == TaskStatus.DONE
        assert result.rejected == de_ids
        assert _states(repository, de_ids) == [DEState.REJECTED, DEState.REJECTED]
        lote = repository.get_lote(lote_id)
        assert lote.state == LoteState.COMPLETED
        assert lote.last_code == "0365"

    def test_partial_item_results_keep_lote_open(
        self, engine, repository, client, tenant_id, send_lote
    ):
        lote_id, de_ids = send_lote(3)
        external_id = repository.get_lote(lote_id).external_id
        client.resolve(external_id, ["Aprobado", "Aprobado"])

        first = engine.submitter.poll_batch(lote_id, tenant_id)

        assert first.status == TaskStatus.PENDING
        assert first.unresolved == 1
        assert repository.get_lote(lote_id).state == LoteState.SENT
        assert _states(repository, de_ids)[2] == DEState.SENT

        client.approve_all(external_id)
        second = engine.submitter.poll_batch(lote_id, tenant_id)

        assert second.status == TaskStatus.DONE
        assert second.unresolved == 0
        assert repository.get_lote(lote_id).state == LoteState.COMPLETED
        assert _states(repository, de_ids) == [DEState.APPROVED] * 3

    def test_completed_lote_is_noop(
        self, engine, repository, scheduler, client, tenant_id, send_lote
    ):
        lote_id, _ = send_lote(1)
        client.approve_all(repository.get_lote(lote_id).external_id)
        engine.submitter.poll_batch(lote_id, tenant_id)

        again = engine.submitter.poll_batch(lote_id, tenant_id)

        assert again.status == TaskStatus.DONE
        assert len(scheduler.of_type(TaskType.GENERAR_KUDE)) == 1

    def test_query_failure_is_failed_result(self, engine, repository, client, tenant_id, send_lote):
        lote_id, _ = send_lote(1)
        client.query_error = QueryError("servicio no disponible")

        result = engine.submitter.poll_batch(lote_id, tenant_id)

        assert result.status == TaskStatus.FAILED
        assert result.error == "servicio no disponible"
        assert repository.get_lote(lote_id).state == LoteState.SENT

    def test_poll_unsent_lote(self, engine, tenant_id, emit):
        emit(1)
        detail = engine.batch.assemble(tenant_id)
        with pytest.raises(StateGuardError):
            engine.submitter.poll_batch(detail.lote.id, tenant_id)

    def test_interrupted_submission_is_repaired(
        self, engine, repository, client, tenant_id, send_lote
    ):
        """Un DE que quedó en IN_LOTE dentro de un lote SENT se resuelve igual."""
        lote_id, de_ids = send_lote(1)
        document = repository.get_document(de_ids[0])
        document.state = DEState.IN_LOTE
        repository.save_document(document)
        client.approve_all(repository.get_lote(lote_id).external_id)

        result = engine.submitter.poll_batch(lote_id, tenant_id)

        assert result.status == TaskStatus.DONE
        assert _states(repository, de_ids) == [DEState.APPROVED]
