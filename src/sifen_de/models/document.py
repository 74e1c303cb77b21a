"""Modelos del Documento Electrónico (DE).

ES: Receptor (unión etiquetada por `kind`), ítems, totales de IVA, datos de
    entrada validados en el borde del sistema y el registro persistido.
EN: Receiver (tagged union on `kind`), items, VAT totals, boundary-validated
    input data and the persisted document record.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Annotated, Literal

from pydantic import BaseModel, Field, computed_field

from sifen_de.models.enums import Currency, DEState, DocumentType, TaxRate

PLACEHOLDER_CDC = "0" * 44
"""CDC provisional hasta que se genera el XML / Placeholder control code."""

_CDC_PATTERN = r"^\d{44}$"


class TaxpayerReceiver(BaseModel):
    """Receptor contribuyente (con RUC).

    ES: Operación B2B con un contribuyente inscripto.
    EN: B2B operation with a registered taxpayer.
    """

    kind: Literal["contribuyente"] = "contribuyente"
    ruc: str = Field(..., pattern=r"^\d{1,8}$", description="RUC sin DV / Tax ID")
    dv: str = Field(..., pattern=r"^\d$", description="Dígito verificador / Check digit")
    name: str = Field(..., min_length=1, description="Razón social / Legal name")
    address: str | None = Field(default=None, description="Dirección / Address")
    email: str | None = Field(default=None, description="Correo / Email")


class NonTaxpayerReceiver(BaseModel):
    """Receptor no contribuyente (consumidor final, extranjero)."""

    kind: Literal["no_contribuyente"] = "no_contribuyente"
    id_type: int = Field(
        default=1,
        ge=1,
        le=9,
        description="Tipo de documento de identidad (1 = cédula) / ID type",
    )
    id_number: str = Field(..., min_length=1, description="Número de documento / ID number")
    name: str = Field(..., min_length=1, description="Nombre / Name")
    address: str | None = None
    email: str | None = None


class SelfBilledSeller(BaseModel):
    """Vendedor de una autofactura.

    ES: En la autofactura el comprador emite el documento; los datos del
        receptor describen al vendedor no contribuyente.
    EN: In a self-billed invoice the buyer issues the document; receiver
        data describe the non-taxpayer seller.
    """

    kind: Literal["autofactura"] = "autofactura"
    seller_type: int = Field(
        default=1,
        ge=1,
        le=2,
        description="1 = no contribuyente, 2 = extranjero / Seller nature",
    )
    id_number: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    address: str = Field(..., min_length=1, description="Lugar de la transacción")


Receiver = Annotated[
    TaxpayerReceiver | NonTaxpayerReceiver | SelfBilledSeller,
    Field(discriminator="kind"),
]


class DEItem(BaseModel):
    """Ítem del DE.

    ES: El precio unitario incluye IVA, como exige la liquidación SIFEN.
    EN: Unit price is VAT-inclusive, as SIFEN settlement requires.
    """

    code: str = Field(..., min_length=1, description="Código interno / Item code")
    description: str = Field(..., min_length=1, description="Descripción / Description")
    quantity: Decimal = Field(..., gt=0, description="Cantidad / Quantity")
    unit_price: Decimal = Field(
        ..., ge=0, description="Precio unitario IVA incluido / VAT-inclusive unit price"
    )
    tax_rate: TaxRate = Field(default=TaxRate.IVA_10, description="Tasa de IVA / VAT rate")
    unit: int = Field(default=77, description="Unidad de medida (77 = UNI)")

    @computed_field  # type: ignore[prop-decorator]
    @property
    def subtotal(self) -> Decimal:
        """Subtotal de la línea / Line subtotal."""
        return self.quantity * self.unit_price


class TaxTotals(BaseModel):
    """Totales de liquidación de IVA del DE.

    ES: Subtotales por tasa, IVA incluido en cada subtotal y total general.
    EN: Per-rate subtotals, VAT contained in each subtotal, and grand total.
    """

    subtotal_exempt: Decimal = Decimal("0")
    subtotal_5: Decimal = Decimal("0")
    subtotal_10: Decimal = Decimal("0")
    tax_5: Decimal = Decimal("0")
    tax_10: Decimal = Decimal("0")
    total_tax: Decimal = Decimal("0")
    grand_total: Decimal = Decimal("0")


class DocumentInput(BaseModel):
    """Datos de entrada para crear un DE.

    ES: Forma validada en el borde (API). El receptor y los ítems se
        declaran opcionales aquí para que el orquestador devuelva un
        error de validación de dominio explícito.
    EN: Boundary-validated shape. Receiver and items are optional here so
        the orchestrator can raise an explicit domain validation error.
    """

    document_type: DocumentType = DocumentType.FACTURA
    issue_date: date = Field(default_factory=date.today)
    currency: Currency = Currency.PYG
    receiver: Receiver | None = None
    items: list[DEItem] = Field(default_factory=list)
    referenced_cdc: str | None = Field(
        default=None,
        pattern=_CDC_PATTERN,
        description="CDC del DE asociado (notas de crédito/débito)",
    )
    establishment: str | None = Field(default=None, pattern=r"^\d{3}$")
    point: str | None = Field(default=None, pattern=r"^\d{3}$")


class DocumentoElectronico(BaseModel):
    """Registro persistido de un DE.

    ES: Pertenece exclusivamente a su tenant; nunca se elimina, solo
        transiciona hacia un estado terminal.
    EN: Owned by its tenant; never deleted, only transitioned.
    """

    id: str
    tenant_id: str
    document_type: DocumentType
    establishment: str
    point: str
    number: str
    authorization: str
    cdc: str = PLACEHOLDER_CDC
    issue_date: date
    currency: Currency = Currency.PYG
    receiver: Receiver
    items: list[DEItem]
    totals: TaxTotals
    referenced_cdc: str | None = None

    xml_unsigned: str | None = None
    xml_signed: str | None = None
    qr_text: str | None = None
    qr_image: str | None = None
    response_code: str | None = None
    response_message: str | None = None
    kude_key: str | None = None
    error_message: str | None = None
    cancel_reason: str | None = None
    cancellation_response: dict | None = None

    state: DEState = DEState.DRAFT
    enqueued_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def has_placeholder_cdc(self) -> bool:
        return self.cdc == PLACEHOLDER_CDC

    @property
    def full_number(self) -> str:
        """Número impreso del DE (001-001-0000001)."""
        return f"{self.establishment}-{self.point}-{self.number}"


class CreatedDocument(BaseModel):
    """Resultado de la creación de un DE."""

    id: str
    number: str
