"""Modelos de lotes de envío asíncrono.

ES: Un lote agrupa hasta 50 DE firmados; cada ítem conserva su posición
    porque la SET puede correlacionar respuestas por orden.
EN: A batch groups up to 50 signed DEs; each item keeps its position
    since the authority may correlate answers by order.
"""

from datetime import datetime

from pydantic import BaseModel, Field

from sifen_de.models.enums import LoteItemOutcome, LoteState


class Lote(BaseModel):
    """Lote de DE enviado a la SET."""

    id: str
    tenant_id: str
    state: LoteState = LoteState.CREATED
    external_id: str | None = Field(
        default=None,
        description="Número de lote asignado por la SET / Authority batch id",
    )
    raw_response: dict | None = None
    last_code: str | None = None
    last_message: str | None = None
    created_at: datetime | None = None
    sent_at: datetime | None = None
    completed_at: datetime | None = None


class LoteItem(BaseModel):
    """Vínculo ordenado entre un lote y un DE."""

    lote_id: str
    de_id: str
    order: int = Field(..., ge=0)
    outcome: LoteItemOutcome = LoteItemOutcome.PENDING
    code: str | None = None
    message: str | None = None


class LoteDetail(BaseModel):
    """Lote con sus ítems en orden."""

    lote: Lote
    items: list[LoteItem]
