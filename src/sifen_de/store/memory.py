"""Almacén en memoria para pruebas y desarrollo.

ES: Simula las garantías transaccionales del almacén SQL: un bloqueo por
    serie para el incremento de numeración, un bloqueo global corto para
    el resto de las escrituras, y copias profundas en cada lectura para
    que ningún llamador modifique el estado persistido por referencia.
EN: Simulates the SQL store guarantees: one lock per series for number
    increments, a short global lock for other writes, and deep copies on
    every read so no caller mutates persisted state by reference.
"""

import threading
import uuid
from datetime import UTC, datetime

from sifen_de.errors import (
    DocumentNotFoundError,
    LoteNotFoundError,
    SeriesInUseError,
    SeriesNotProvisionedError,
    StateGuardError,
)
from sifen_de.models.document import DocumentoElectronico
from sifen_de.models.enums import DEState, LoteState
from sifen_de.models.lote import Lote, LoteDetail, LoteItem
from sifen_de.models.series import NumberingSeries, SeriesKey
from sifen_de.store.base import BaseRepository


def _now() -> datetime:
    return datetime.now(UTC)


class MemoryRepository(BaseRepository):
    """Implementación en memoria de BaseRepository, segura entre hilos."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._series_locks: dict[SeriesKey, threading.Lock] = {}
        self._series: dict[SeriesKey, NumberingSeries] = {}
        self._documents: dict[str, DocumentoElectronico] = {}
        self._lotes: dict[str, Lote] = {}
        self._lote_items: dict[str, list[LoteItem]] = {}

    def _series_lock(self, key: SeriesKey) -> threading.Lock:
        """Bloqueo exclusivo de una serie (creado a demanda)."""
        with self._lock:
            lock = self._series_locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._series_locks[key] = lock
            return lock

    # --- Series de numeración ---

    def create_series(self, key: SeriesKey, last_number: int = 0) -> NumberingSeries:
        with self._series_lock(key), self._lock:
            now = _now()
            existing = self._series.get(key)
            series = NumberingSeries(
                key=key,
                last_number=last_number,
                created_at=existing.created_at if existing else now,
                updated_at=now,
            )
            self._series[key] = series
            return series.model_copy(deep=True)

    def get_series(self, key: SeriesKey) -> NumberingSeries | None:
        with self._lock:
            series = self._series.get(key)
            return series.model_copy(deep=True) if series else None

    def list_series(self, tenant_id: str) -> list[NumberingSeries]:
        with self._lock:
            series = [
                s.model_copy(deep=True)
                for k, s in self._series.items()
                if k.tenant_id == tenant_id
            ]
        series.sort(
            key=lambda s: (int(s.key.document_type), s.key.establishment, s.key.point)
        )
        return series

    def delete_series(self, key: SeriesKey) -> None:
        with self._series_lock(key), self._lock:
            series = self._series.get(key)
            if series is None:
                msg = f"Serie no encontrada : {key.describe()}"
                raise SeriesNotProvisionedError(msg)
            if series.last_number != 0:
                msg = (
                    f"La serie {key.describe()} ya emitió números "
                    f"(último : {series.last_number}) y no puede eliminarse"
                )
                raise SeriesInUseError(msg)
            del self._series[key]

    def increment_series(self, key: SeriesKey) -> int:
        with self._series_lock(key), self._lock:
            series = self._series.get(key)
            if series is None:
                msg = f"Serie no encontrada : {key.describe()}"
                raise SeriesNotProvisionedError(msg)
            series.last_number += 1
            series.updated_at = _now()
            return series.last_number

    # --- Documentos electrónicos ---

    def add_document(self, document: DocumentoElectronico) -> DocumentoElectronico:
        stored = document.model_copy(deep=True)
        now = _now()
        stored.created_at = stored.created_at or now
        stored.updated_at = now
        with self._lock:
            self._documents[stored.id] = stored
        return stored.model_copy(deep=True)

    def get_document(
        self, de_id: str, tenant_id: str | None = None
    ) -> DocumentoElectronico | None:
        with self._lock:
            document = self._documents.get(de_id)
            if document is None:
                return None
            if tenant_id is not None and document.tenant_id != tenant_id:
                return None
            return document.model_copy(deep=True)

    def save_document(
        self,
        document: DocumentoElectronico,
        expected_state: DEState | None = None,
    ) -> DocumentoElectronico:
        with self._lock:
            current = self._documents.get(document.id)
            if current is None:
                msg = f"DE no encontrado : {document.id}"
                raise DocumentNotFoundError(msg)
            if expected_state is not None and current.state != expected_state:
                msg = (
                    f"DE {document.id} : estado esperado {expected_state.value}, "
                    f"encontrado {current.state.value}"
                )
                raise StateGuardError(msg, current_state=current.state.value)
            stored = document.model_copy(deep=True)
            stored.updated_at = _now()
            self._documents[stored.id] = stored
            return stored.model_copy(deep=True)

    def list_documents(
        self,
        tenant_id: str,
        state: DEState | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[DocumentoElectronico]:
        with self._lock:
            documents = [
                d
                for d in reversed(list(self._documents.values()))
                if d.tenant_id == tenant_id and (state is None or d.state == state)
            ]
        documents.sort(key=lambda d: d.created_at, reverse=True)
        return [d.model_copy(deep=True) for d in documents[offset : offset + limit]]

    # --- Lotes ---

    def assemble_lote(self, tenant_id: str, limit: int) -> LoteDetail | None:
        with self._lock:
            ready = [
                d
                for d in self._documents.values()
                if d.tenant_id == tenant_id
                and d.state == DEState.ENQUEUED
                and d.xml_signed is not None
            ]
            if not ready:
                return None
            ready.sort(key=lambda d: d.enqueued_at or d.created_at)
            selected = ready[:limit]

            now = _now()
            lote = Lote(id=str(uuid.uuid4()), tenant_id=tenant_id, created_at=now)
            items = []
            for order, document in enumerate(selected):
                items.append(LoteItem(lote_id=lote.id, de_id=document.id, order=order))
                document.state = DEState.IN_LOTE
                document.updated_at = now

            self._lotes[lote.id] = lote
            self._lote_items[lote.id] = items
            return LoteDetail(
                lote=lote.model_copy(deep=True),
                items=[item.model_copy() for item in items],
            )

    def get_lote(self, lote_id: str) -> Lote | None:
        with self._lock:
            lote = self._lotes.get(lote_id)
            return lote.model_copy(deep=True) if lote else None

    def list_lote_items(self, lote_id: str) -> list[LoteItem]:
        with self._lock:
            items = sorted(self._lote_items.get(lote_id, []), key=lambda i: i.order)
            return [item.model_copy() for item in items]

    def save_lote(self, lote: Lote, expected_state: LoteState | None = None) -> Lote:
        with self._lock:
            current = self._lotes.get(lote.id)
            if current is None:
                msg = f"Lote no encontrado : {lote.id}"
                raise LoteNotFoundError(msg)
            if expected_state is not None and current.state != expected_state:
                msg = (
                    f"Lote {lote.id} : estado esperado {expected_state.value}, "
                    f"encontrado {current.state.value}"
                )
                raise StateGuardError(msg, current_state=current.state.value)
            self._lotes[lote.id] = lote.model_copy(deep=True)
            return lote.model_copy(deep=True)

    def save_lote_item(self, item: LoteItem) -> LoteItem:
        with self._lock:
            items = self._lote_items.get(item.lote_id)
            if items is None:
                msg = f"Lote no encontrado : {item.lote_id}"
                raise LoteNotFoundError(msg)
            for index, existing in enumerate(items):
                if existing.de_id == item.de_id:
                    items[index] = item.model_copy()
                    break
            else:
                items.append(item.model_copy())
            return item.model_copy()

    def list_lotes(
        self,
        tenant_id: str,
        state: LoteState | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[Lote]:
        with self._lock:
            lotes = [
                lote
                for lote in reversed(list(self._lotes.values()))
                if lote.tenant_id == tenant_id and (state is None or lote.state == state)
            ]
        lotes.sort(key=lambda lote: lote.created_at, reverse=True)
        return [lote.model_copy(deep=True) for lote in lotes[offset : offset + limit]]

    def tenants_with_ready_documents(self) -> list[str]:
        with self._lock:
            tenants = {
                d.tenant_id
                for d in self._documents.values()
                if d.state == DEState.ENQUEUED and d.xml_signed is not None
            }
        return sorted(tenants)
