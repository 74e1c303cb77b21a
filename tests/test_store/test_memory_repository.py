"""Pruebas del almacén en memoria."""

import threading
from datetime import UTC, date, datetime, timedelta
from decimal import Decimal

import pytest

from sifen_de.errors import DocumentNotFoundError, LoteNotFoundError, StateGuardError
from sifen_de.models.document import DEItem, DocumentoElectronico, TaxTotals, TaxpayerReceiver
from sifen_de.models.enums import DEState, DocumentType, LoteItemOutcome, LoteState
from sifen_de.models.series import SeriesKey
from sifen_de.store.memory import MemoryRepository


def _document(number: int, tenant_id: str = "tenant-a", **fields) -> DocumentoElectronico:
    values = {
        "id": f"de-{number}",
        "tenant_id": tenant_id,
        "document_type": DocumentType.FACTURA,
        "establishment": "001",
        "point": "001",
        "number": f"{number:07d}",
        "authorization": "12345678",
        "issue_date": date(2026, 10, 1),
        "receiver": TaxpayerReceiver(ruc="80012345", dv="7", name="ACME"),
        "items": [
            DEItem(code="A", description="Art", quantity=Decimal("1"), unit_price=Decimal("100"))
        ],
        "totals": TaxTotals(grand_total=Decimal("100")),
    }
    values.update(fields)
    return DocumentoElectronico(**values)


def _ready(number: int, minutes: int, tenant_id: str = "tenant-a") -> DocumentoElectronico:
    return _document(
        number,
        tenant_id,
        state=DEState.ENQUEUED,
        xml_signed="<rDE/>",
        enqueued_at=datetime(2026, 10, 1, tzinfo=UTC) + timedelta(minutes=minutes),
    )


@pytest.fixture
def repository() -> MemoryRepository:
    return MemoryRepository()


def _key(point: int) -> SeriesKey:
    return SeriesKey(
        tenant_id="tenant-a",
        document_type=DocumentType.FACTURA,
        establishment="001",
        point=f"{point:03d}",
        authorization="12345678",
    )


class TestSeries:
    """Pruebas del acceso concurrente a las series."""

    def test_reads_are_copies(self, repository):
        repository.create_series(_key(1), last_number=5)
        series = repository.get_series(_key(1))
        series.last_number = 99
        assert repository.get_series(_key(1)).last_number == 5

    def test_delete_while_listing(self, repository):
        """Crear y eliminar series mientras otro hilo las lista no falla."""
        errors: list[Exception] = []
        done = threading.Event()

        def writer():
            try:
                for _ in range(200):
                    for point in range(1, 6):
                        repository.create_series(_key(point))
                    for point in range(1, 6):
                        repository.delete_series(_key(point))
            except Exception as exc:
                errors.append(exc)
            finally:
                done.set()

        def reader():
            try:
                while not done.is_set():
                    repository.list_series("tenant-a")
                    repository.get_series(_key(3))
            except Exception as exc:
                errors.append(exc)

        threads = [threading.Thread(target=writer)] + [
            threading.Thread(target=reader) for _ in range(3)
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert errors == []
        assert repository.list_series("tenant-a") == []


class TestDocuments:
    """Pruebas de las operaciones sobre DE."""

    def test_reads_are_copies(self, repository):
        repository.add_document(_document(1))
        document = repository.get_document("de-1")
        document.state = DEState.ERROR
        assert repository.get_document("de-1").state == DEState.DRAFT

    def test_tenant_filter(self, repository):
        repository.add_document(_document(1))
        assert repository.get_document("de-1", "tenant-a") is not None
        assert repository.get_document("de-1", "tenant-b") is None

    def test_compare_and_set(self, repository):
        repository.add_document(_document(1))
        document = repository.get_document("de-1")
        document.state = DEState.GENERATED
        repository.save_document(document, expected_state=DEState.DRAFT)

        stale = _document(1, state=DEState.ERROR)
        with pytest.raises(StateGuardError) as exc_info:
            repository.save_document(stale, expected_state=DEState.DRAFT)
        assert exc_info.value.current_state == "GENERATED"

    def test_save_unknown(self, repository):
        with pytest.raises(DocumentNotFoundError):
            repository.save_document(_document(9))

    def test_list_with_pagination(self, repository):
        for number in range(1, 6):
            repository.add_document(_document(number))
        page = repository.list_documents("tenant-a", limit=2, offset=1)
        assert len(page) == 2
        assert len(repository.list_documents("tenant-a", state=DEState.APPROVED)) == 0


class TestLotes:
    """Pruebas del armado y persistencia de lotes."""

    def test_assemble_orders_by_enqueued_at(self, repository):
        repository.add_document(_ready(1, minutes=5))
        repository.add_document(_ready(2, minutes=1))
        repository.add_document(_document(3))

        detail = repository.assemble_lote("tenant-a", limit=50)

        assert [item.de_id for item in detail.items] == ["de-2", "de-1"]
        assert repository.get_document("de-1").state == DEState.IN_LOTE
        assert repository.get_document("de-3").state == DEState.DRAFT

    def test_assemble_respects_limit(self, repository):
        for number in range(1, 4):
            repository.add_document(_ready(number, minutes=number))
        detail = repository.assemble_lote("tenant-a", limit=2)
        assert len(detail.items) == 2
        assert repository.tenants_with_ready_documents() == ["tenant-a"]

    def test_assemble_nothing_ready(self, repository):
        assert repository.assemble_lote("tenant-a", limit=50) is None

    def test_save_lote_compare_and_set(self, repository):
        repository.add_document(_ready(1, minutes=0))
        lote = repository.assemble_lote("tenant-a", limit=50).lote
        lote.state = LoteState.SENT
        repository.save_lote(lote, expected_state=LoteState.CREATED)

        with pytest.raises(StateGuardError):
            repository.save_lote(lote, expected_state=LoteState.CREATED)

    def test_save_lote_item(self, repository):
        repository.add_document(_ready(1, minutes=0))
        detail = repository.assemble_lote("tenant-a", limit=50)
        item = detail.items[0]
        item.outcome = LoteItemOutcome.APPROVED
        item.code = "0260"
        repository.save_lote_item(item)

        [stored] = repository.list_lote_items(detail.lote.id)
        assert stored.outcome == LoteItemOutcome.APPROVED
        assert stored.code == "0260"

    def test_save_item_unknown_lote(self, repository):
        repository.add_document(_ready(1, minutes=0))
        item = repository.assemble_lote("tenant-a", limit=50).items[0]
        item.lote_id = "otro"
        with pytest.raises(LoteNotFoundError):
            repository.save_lote_item(item)

    def test_tenants_with_ready_documents(self, repository):
        repository.add_document(_ready(1, minutes=0, tenant_id="tenant-b"))
        repository.add_document(_ready(2, minutes=0, tenant_id="tenant-a"))
        assert repository.tenants_with_ready_documents() == ["tenant-a", "tenant-b"]
