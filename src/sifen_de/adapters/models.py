"""Modelos de intercambio con los adaptadores.

ES: Parámetros de entrada y respuestas de generación, QR, envío y consulta
    de lotes y eventos de cancelación.
EN: Inputs and responses for generation, QR, batch submission/query and
    cancellation events.
"""

from datetime import date

from pydantic import BaseModel, Field

from sifen_de.models.document import DEItem, Receiver, TaxTotals
from sifen_de.models.enums import Currency, DocumentType, Environment, TaxpayerType

APPROVED_ITEM_STATES = frozenset({"Aprobado", "Aprobado con observación"})


class IssuerParams(BaseModel):
    """Datos del emisor y del timbrado para generar el XML."""

    ruc: str
    dv: str
    business_name: str
    taxpayer_type: TaxpayerType
    environment: Environment
    establishment: str
    point: str
    number: str
    authorization: str
    authorization_start: date | None = None


class DocumentData(BaseModel):
    """Contenido del DE entregado al generador."""

    document_id: str
    document_type: DocumentType
    issue_date: date
    currency: Currency
    receiver: Receiver
    items: list[DEItem]
    totals: TaxTotals
    referenced_cdc: str | None = None


class GeneratedXml(BaseModel):
    """XML sin firmar y CDC definitivo."""

    xml: str
    cdc: str = Field(..., pattern=r"^\d{44}$")


class QrCode(BaseModel):
    """Texto del QR y su imagen en base64."""

    text: str
    image: str | None = None


class LoteSubmission(BaseModel):
    """Respuesta de recepción de lote."""

    external_id: str
    code: str | None = None
    message: str | None = None
    raw_response: dict | None = None


class LoteItemResult(BaseModel):
    """Resultado de un DE en la consulta de lote."""

    cdc: str | None = None
    status: str = Field(..., description="dEstRes: Aprobado, Rechazado, ...")
    code: str | None = None
    message: str | None = None

    @property
    def approved(self) -> bool:
        return self.status in APPROVED_ITEM_STATES


class LoteQueryResult(BaseModel):
    """Respuesta de consulta de lote (dCodResLot y resultados por DE)."""

    code: str
    message: str | None = None
    items: list[LoteItemResult] = Field(default_factory=list)
    raw_response: dict | None = None


class CancellationAck(BaseModel):
    """Acuse del evento de cancelación."""

    code: str
    message: str | None = None
    raw_response: dict | None = None


class KudeIssuer(BaseModel):
    """Metadatos del emisor para el KUDE."""

    ruc: str
    dv: str
    business_name: str
    qr_text: str = ""
    qr_image: str = ""
