"""Enumeraciones del ciclo de vida de documentos electrónicos SIFEN.

ES: Estados de DE y de lote, tipos de documento (iTiDE), ambientes y
    tasas de IVA conforme al Manual Técnico SIFEN v150.
EN: DE and batch states, document types (iTiDE), environments and
    VAT rates per the SIFEN v150 technical manual.
"""

from enum import IntEnum, StrEnum


class DEState(StrEnum):
    """Estado de un Documento Electrónico (DE).

    ES: Flujo lineal DRAFT → GENERATED → SIGNED → ENQUEUED → IN_LOTE → SENT,
        resuelto por la SET en APPROVED o REJECTED.
    EN: Linear flow resolved by the tax authority into APPROVED or REJECTED.
    """

    DRAFT = "DRAFT"
    """Creado con número asignado / Created with an assigned number"""

    GENERATED = "GENERATED"
    """XML sin firmar y CDC definitivo / Unsigned XML and final CDC"""

    SIGNED = "SIGNED"
    """XML firmado / Signed XML"""

    ENQUEUED = "ENQUEUED"
    """QR generado, listo para lote / QR encoded, ready for batching"""

    IN_LOTE = "IN_LOTE"
    """Asignado a un lote abierto / Claimed by an open batch"""

    SENT = "SENT"
    """Lote recibido por la SET / Batch accepted for processing"""

    APPROVED = "APPROVED"
    """Aprobado por la SET / Approved by the authority"""

    REJECTED = "REJECTED"
    """Rechazado por la SET / Rejected by the authority"""

    CANCELLED = "CANCELLED"
    """Anulado (evento de cancelación) / Cancelled"""

    ERROR = "ERROR"
    """Falla de un adaptador en la emisión / Emission adapter failure"""


class LoteState(StrEnum):
    """Estado de un lote de envío asíncrono."""

    CREATED = "CREATED"
    SENT = "SENT"
    COMPLETED = "COMPLETED"
    ERROR = "ERROR"


class LoteItemOutcome(StrEnum):
    """Resultado individual de un DE dentro de un lote."""

    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class DocumentType(IntEnum):
    """Tipo de documento electrónico (campo iTiDE).

    ES: Códigos de la tabla de tipos de DE del Manual Técnico.
    EN: Codes from the technical manual's DE type table.
    """

    FACTURA = 1
    """Factura electrónica / Electronic invoice"""

    AUTOFACTURA = 4
    """Autofactura electrónica / Self-billed invoice"""

    NOTA_CREDITO = 5
    """Nota de crédito electrónica / Credit note"""

    NOTA_DEBITO = 6
    """Nota de débito electrónica / Debit note"""

    NOTA_REMISION = 7
    """Nota de remisión electrónica / Delivery note"""

    @property
    def requires_reference(self) -> bool:
        """Las notas de crédito y débito referencian un DE previo."""
        return self in (DocumentType.NOTA_CREDITO, DocumentType.NOTA_DEBITO)

    @property
    def is_self_billed(self) -> bool:
        return self is DocumentType.AUTOFACTURA


class Environment(StrEnum):
    """Ambiente SIFEN (selector de endpoints).

    ES: HOMOLOGACION corresponde al código "2" (pruebas) y
        PRODUCCION al código "1".
    EN: HOMOLOGACION maps to code "2" (test), PRODUCCION to code "1".
    """

    HOMOLOGACION = "HOMOLOGACION"
    PRODUCCION = "PRODUCCION"

    @property
    def code(self) -> str:
        """Código de ambiente esperado por los servicios web de la SET."""
        return "1" if self is Environment.PRODUCCION else "2"


class TaxRate(IntEnum):
    """Tasa de IVA aplicable a un ítem (0 = exento)."""

    IVA_10 = 10
    IVA_5 = 5
    EXENTO = 0


class Currency(StrEnum):
    """Moneda de la operación (ISO 4217)."""

    PYG = "PYG"
    """Guaraní paraguayo, sin decimales / Paraguayan guarani, no decimals"""

    USD = "USD"
    """Dólar estadounidense / US dollar"""


class TaxpayerType(IntEnum):
    """Tipo de contribuyente del emisor (iTipCont)."""

    PERSONA_FISICA = 1
    PERSONA_JURIDICA = 2


class TaskType(StrEnum):
    """Tipos de tarea encolados en el planificador externo."""

    EMITIR_DE = "SIFEN_EMITIR_DE"
    ARMAR_LOTE = "SIFEN_ARMAR_LOTE"
    ENVIAR_LOTE = "SIFEN_ENVIAR_LOTE"
    CONSULTAR_LOTE = "SIFEN_CONSULTAR_LOTE"
    ANULAR_DE = "SIFEN_ANULAR_DE"
    GENERAR_KUDE = "SIFEN_GENERAR_KUDE"
