"""Almacén del motor sobre el ORM de Django.

ES: Cada escritura de un DE o lote es un UPDATE condicionado al estado
    esperado; si ninguna fila coincide, otro proceso ganó la carrera y se
    lanza StateGuardError. El incremento de una serie toma un bloqueo de
    fila (SELECT ... FOR UPDATE) y el armado de lotes salta las filas ya
    bloqueadas por otro armador (SKIP LOCKED).
EN: Every DE or batch write is an UPDATE conditioned on the expected
    state; zero matched rows means another process won the race. Series
    increments take a row lock and batch assembly skips rows locked by a
    concurrent assembler.
"""

import logging
import uuid

from django.db import transaction
from django.utils import timezone

from sifen_de.contrib.django.models import ElectronicDocument
from sifen_de.contrib.django.models import Lote as LoteRow
from sifen_de.contrib.django.models import LoteItem as LoteItemRow
from sifen_de.contrib.django.models import NumberingSeries as SeriesRow
from sifen_de.errors import (
    DocumentNotFoundError,
    LoteNotFoundError,
    SeriesInUseError,
    SeriesNotProvisionedError,
    StateGuardError,
)
from sifen_de.models.document import DocumentoElectronico
from sifen_de.models.enums import DEState, LoteItemOutcome, LoteState
from sifen_de.models.lote import Lote, LoteDetail, LoteItem
from sifen_de.models.series import NumberingSeries, SeriesKey
from sifen_de.store.base import BaseRepository

logger = logging.getLogger(__name__)


def _as_uuid(value: str) -> uuid.UUID | None:
    try:
        return uuid.UUID(str(value))
    except ValueError:
        return None


class DjangoRepository(BaseRepository):
    """Implementación de BaseRepository con el ORM de Django."""

    # --- Series de numeración ---

    def create_series(self, key: SeriesKey, last_number: int = 0) -> NumberingSeries:
        row, created = SeriesRow.objects.update_or_create(
            defaults={"last_number": last_number},
            **SeriesRow.key_filter(key),
        )
        logger.debug(
            "Serie %s %s (último número %d)",
            key.describe(),
            "creada" if created else "reiniciada",
            last_number,
        )
        return row.to_domain()

    def get_series(self, key: SeriesKey) -> NumberingSeries | None:
        row = SeriesRow.objects.filter(**SeriesRow.key_filter(key)).first()
        return row.to_domain() if row else None

    def list_series(self, tenant_id: str) -> list[NumberingSeries]:
        rows = SeriesRow.objects.filter(tenant_id=tenant_id).order_by(
            "document_type", "establishment", "point"
        )
        return [row.to_domain() for row in rows]

    def delete_series(self, key: SeriesKey) -> None:
        with transaction.atomic():
            row = (
                SeriesRow.objects.select_for_update()
                .filter(**SeriesRow.key_filter(key))
                .first()
            )
            if row is None:
                msg = f"Serie no encontrada : {key.describe()}"
                raise SeriesNotProvisionedError(msg)
            if row.last_number != 0:
                msg = (
                    f"La serie {key.describe()} ya emitió números "
                    f"(último : {row.last_number}) y no puede eliminarse"
                )
                raise SeriesInUseError(msg)
            row.delete()

    def increment_series(self, key: SeriesKey) -> int:
        with transaction.atomic():
            row = (
                SeriesRow.objects.select_for_update()
                .filter(**SeriesRow.key_filter(key))
                .first()
            )
            if row is None:
                msg = f"Serie no encontrada : {key.describe()}"
                raise SeriesNotProvisionedError(msg)
            row.last_number += 1
            row.save(update_fields=["last_number", "updated_at"])
            return row.last_number

    # --- Documentos electrónicos ---

    def add_document(self, document: DocumentoElectronico) -> DocumentoElectronico:
        row = ElectronicDocument.from_domain(document)
        row.save(force_insert=True)
        return row.to_domain()

    def get_document(
        self, de_id: str, tenant_id: str | None = None
    ) -> DocumentoElectronico | None:
        pk = _as_uuid(de_id)
        if pk is None:
            return None
        queryset = ElectronicDocument.objects.filter(pk=pk)
        if tenant_id is not None:
            queryset = queryset.filter(tenant_id=tenant_id)
        row = queryset.first()
        return row.to_domain() if row else None

    def save_document(
        self,
        document: DocumentoElectronico,
        expected_state: DEState | None = None,
    ) -> DocumentoElectronico:
        pk = uuid.UUID(document.id)
        queryset = ElectronicDocument.objects.filter(pk=pk)
        if expected_state is not None:
            queryset = queryset.filter(state=expected_state.value)

        updated = queryset.update(
            **ElectronicDocument.field_values(document),
            updated_at=timezone.now(),
        )
        if not updated:
            current = ElectronicDocument.objects.filter(pk=pk).values_list(
                "state", flat=True
            ).first()
            if current is None:
                msg = f"DE no encontrado : {document.id}"
                raise DocumentNotFoundError(msg)
            msg = (
                f"DE {document.id} : estado esperado {expected_state.value}, "
                f"encontrado {current}"
            )
            raise StateGuardError(msg, current_state=current)
        return ElectronicDocument.objects.get(pk=pk).to_domain()

    def list_documents(
        self,
        tenant_id: str,
        state: DEState | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[DocumentoElectronico]:
        queryset = ElectronicDocument.objects.filter(tenant_id=tenant_id)
        if state is not None:
            queryset = queryset.filter(state=state.value)
        rows = queryset.order_by("-created_at")[offset : offset + limit]
        return [row.to_domain() for row in rows]

    # --- Lotes ---

    def assemble_lote(self, tenant_id: str, limit: int) -> LoteDetail | None:
        with transaction.atomic():
            ready = list(
                ElectronicDocument.objects.select_for_update(skip_locked=True)
                .filter(
                    tenant_id=tenant_id,
                    state=DEState.ENQUEUED.value,
                    xml_signed__isnull=False,
                )
                .order_by("enqueued_at", "created_at")[:limit]
            )
            if not ready:
                return None

            lote = LoteRow.objects.create(
                tenant_id=tenant_id, state=LoteState.CREATED.value
            )
            items = LoteItemRow.objects.bulk_create(
                [
                    LoteItemRow(
                        lote=lote,
                        document=row,
                        order=order,
                        outcome=LoteItemOutcome.PENDING.value,
                    )
                    for order, row in enumerate(ready)
                ]
            )
            ElectronicDocument.objects.filter(
                pk__in=[row.pk for row in ready]
            ).update(state=DEState.IN_LOTE.value, updated_at=timezone.now())

        logger.debug("Lote %s armado con %d DE", lote.pk, len(items))
        return LoteDetail(
            lote=lote.to_domain(), items=[item.to_domain() for item in items]
        )

    def get_lote(self, lote_id: str) -> Lote | None:
        pk = _as_uuid(lote_id)
        if pk is None:
            return None
        row = LoteRow.objects.filter(pk=pk).first()
        return row.to_domain() if row else None

    def list_lote_items(self, lote_id: str) -> list[LoteItem]:
        pk = _as_uuid(lote_id)
        if pk is None:
            return []
        rows = LoteItemRow.objects.filter(lote_id=pk).order_by("order")
        return [row.to_domain() for row in rows]

    def save_lote(self, lote: Lote, expected_state: LoteState | None = None) -> Lote:
        pk = uuid.UUID(lote.id)
        queryset = LoteRow.objects.filter(pk=pk)
        if expected_state is not None:
            queryset = queryset.filter(state=expected_state.value)

        if not queryset.update(**LoteRow.field_values(lote)):
            current = LoteRow.objects.filter(pk=pk).values_list("state", flat=True).first()
            if current is None:
                msg = f"Lote no encontrado : {lote.id}"
                raise LoteNotFoundError(msg)
            msg = (
                f"Lote {lote.id} : estado esperado {expected_state.value}, "
                f"encontrado {current}"
            )
            raise StateGuardError(msg, current_state=current)
        return LoteRow.objects.get(pk=pk).to_domain()

    def save_lote_item(self, item: LoteItem) -> LoteItem:
        lote_pk = uuid.UUID(item.lote_id)
        if not LoteRow.objects.filter(pk=lote_pk).exists():
            msg = f"Lote no encontrado : {item.lote_id}"
            raise LoteNotFoundError(msg)
        row, _ = LoteItemRow.objects.update_or_create(
            lote_id=lote_pk,
            document_id=uuid.UUID(item.de_id),
            defaults={
                "order": item.order,
                "outcome": item.outcome.value,
                "code": item.code,
                "message": item.message,
            },
        )
        return row.to_domain()

    def list_lotes(
        self,
        tenant_id: str,
        state: LoteState | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[Lote]:
        queryset = LoteRow.objects.filter(tenant_id=tenant_id)
        if state is not None:
            queryset = queryset.filter(state=state.value)
        rows = queryset.order_by("-created_at")[offset : offset + limit]
        return [row.to_domain() for row in rows]

    def tenants_with_ready_documents(self) -> list[str]:
        tenants = (
            ElectronicDocument.objects.filter(
                state=DEState.ENQUEUED.value, xml_signed__isnull=False
            )
            .order_by("tenant_id")
            .values_list("tenant_id", flat=True)
            .distinct()
        )
        return list(tenants)
