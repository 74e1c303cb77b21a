"""Pruebas de las tareas Celery y del planificador."""

import pytest
from django.test import override_settings

from sifen_de.adapters.connectors.memory import MemoryNotifier
from sifen_de.contrib.django import conf
from sifen_de.contrib.django.scheduler import CeleryTaskScheduler
from sifen_de.contrib.django.tasks import run_sifen_task
from sifen_de.engine.notify import EVENT_TASK_EXHAUSTED
from sifen_de.engine.results import TaskResult
from sifen_de.models.enums import TaskType


class StubEngine:
    """Motor mínimo que devuelve siempre el mismo resultado."""

    def __init__(self, result: TaskResult) -> None:
        self.result = result
        self.notifier = MemoryNotifier()
        self.calls: list[tuple] = []

    def handle(self, task_type, tenant_id, payload):
        self.calls.append((task_type, tenant_id, payload))
        return self.result


class BrokenEngine(StubEngine):
    """Motor cuyo manejador falla con una excepción inesperada."""

    def handle(self, task_type, tenant_id, payload):
        self.calls.append((task_type, tenant_id, payload))
        raise RuntimeError("conexión a la base perdida")


@pytest.fixture
def use_engine(monkeypatch):
    def _use(result: TaskResult) -> StubEngine:
        engine = StubEngine(result)
        monkeypatch.setattr(conf, "get_engine", lambda: engine)
        return engine

    return _use


class TestRunSifenTask:
    """Pruebas de la política de reintentos de run_sifen_task."""

    def test_done(self, use_engine):
        engine = use_engine(TaskResult.done("ok"))
        outcome = run_sifen_task.apply(
            args=[TaskType.GENERAR_KUDE.value, "tenant-a", {"de_id": "1"}]
        ).get()

        assert outcome["status"] == "DONE"
        assert engine.calls == [("SIFEN_GENERAR_KUDE", "tenant-a", {"de_id": "1"})]
        assert engine.notifier.events == []

    @override_settings(SIFEN_DE={"MAX_RETRIES": 2})
    def test_failed_until_exhausted(self, use_engine):
        engine = use_engine(TaskResult.failed("[firma] certificado vencido"))
        run_sifen_task.apply(args=[TaskType.EMITIR_DE.value, "tenant-a", {"de_id": "1"}])

        assert len(engine.calls) == 3
        [event] = engine.notifier.events
        assert event.event == EVENT_TASK_EXHAUSTED
        assert event.payload["error"] == "[firma] certificado vencido"

    @override_settings(SIFEN_DE={"MAX_RETRIES": 2})
    def test_unexpected_error_retried_then_alerted(self, monkeypatch):
        engine = BrokenEngine(TaskResult.done())
        monkeypatch.setattr(conf, "get_engine", lambda: engine)

        outcome = run_sifen_task.apply(
            args=[TaskType.ENVIAR_LOTE.value, "tenant-a", {"lote_id": "L"}]
        )

        assert outcome.state == "FAILURE"
        assert isinstance(outcome.result, RuntimeError)
        assert len(engine.calls) == 3
        [event] = engine.notifier.events
        assert event.event == EVENT_TASK_EXHAUSTED
        assert event.payload["error"] == "RuntimeError: conexión a la base perdida"

    @override_settings(SIFEN_DE={"POLL_MAX_RETRIES": 1})
    def test_pending_poll_budget(self, use_engine):
        engine = use_engine(TaskResult.pending("0361"))
        run_sifen_task.apply(args=[TaskType.CONSULTAR_LOTE.value, "tenant-a", {"lote_id": "L"}])

        assert len(engine.calls) == 2
        assert engine.notifier.names() == [EVENT_TASK_EXHAUSTED]


class TestCeleryTaskScheduler:
    def test_enqueue(self, monkeypatch):
        sent = []

        class FakeAsyncResult:
            id = "celery-1"

        def fake_apply_async(args):
            sent.append(args)
            return FakeAsyncResult()

        monkeypatch.setattr(run_sifen_task, "apply_async", fake_apply_async)

        task_id = CeleryTaskScheduler().enqueue(
            TaskType.ARMAR_LOTE, "tenant-a", {"tenant_id": "tenant-a"}
        )

        assert task_id == "celery-1"
        assert sent == [["SIFEN_ARMAR_LOTE", "tenant-a", {"tenant_id": "tenant-a"}]]
