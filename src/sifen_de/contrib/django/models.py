"""Modelos Django del motor SIFEN.

ES: Filas de series de numeración, configuración fiscal por tenant, DE,
    lotes e ítems de lote. Cada modelo se convierte desde y hacia su
    modelo Pydantic del motor. Receptor, ítems y totales se guardan como
    JSON validado en el borde.
EN: Rows for numbering series, per-tenant fiscal configuration, DEs,
    batches and batch items. Each model converts to and from the engine's
    Pydantic model. Receiver, items and totals are stored as JSON
    validated at the boundary.
"""

import uuid

from django.db import models

from sifen_de.models.config import FiscalConfig, SifenEndpoints
from sifen_de.models.document import DEItem, DocumentoElectronico, TaxTotals
from sifen_de.models.enums import (
    DEState,
    DocumentType,
    Environment,
    LoteItemOutcome,
    LoteState,
    TaxpayerType,
)
from sifen_de.models.lote import Lote as DomainLote
from sifen_de.models.lote import LoteItem as DomainLoteItem
from sifen_de.models.series import NumberingSeries as DomainSeries
from sifen_de.models.series import SeriesKey


class DocumentTypeChoices(models.IntegerChoices):
    FACTURA = 1, "Factura electrónica"
    AUTOFACTURA = 4, "Autofactura electrónica"
    NOTA_CREDITO = 5, "Nota de crédito electrónica"
    NOTA_DEBITO = 6, "Nota de débito electrónica"
    NOTA_REMISION = 7, "Nota de remisión electrónica"


class DEStateChoices(models.TextChoices):
    """Estados del DE."""

    DRAFT = "DRAFT", "Borrador"
    GENERATED = "GENERATED", "XML generado"
    SIGNED = "SIGNED", "Firmado"
    ENQUEUED = "ENQUEUED", "Listo para lote"
    IN_LOTE = "IN_LOTE", "En lote"
    SENT = "SENT", "Enviado"
    APPROVED = "APPROVED", "Aprobado"
    REJECTED = "REJECTED", "Rechazado"
    CANCELLED = "CANCELLED", "Anulado"
    ERROR = "ERROR", "Error"


class LoteStateChoices(models.TextChoices):
    CREATED = "CREATED", "Creado"
    SENT = "SENT", "Enviado"
    COMPLETED = "COMPLETED", "Completado"
    ERROR = "ERROR", "Error"


class LoteItemOutcomeChoices(models.TextChoices):
    PENDING = "PENDING", "Pendiente"
    APPROVED = "APPROVED", "Aprobado"
    REJECTED = "REJECTED", "Rechazado"


# ---------------------------------------------------------------------------
# Series de numeración
# ---------------------------------------------------------------------------


class NumberingSeries(models.Model):
    """Serie de numeración correlativa.

    ES: Una fila por (tenant, tipo, establecimiento, punto, timbrado). Solo
        la operación de siguiente número modifica `last_number`, bajo
        bloqueo de fila.
    EN: One row per five-part key. Only the next-number operation updates
        `last_number`, under a row lock.
    """

    tenant_id = models.CharField("tenant", max_length=64)
    document_type = models.PositiveSmallIntegerField(
        "tipo de documento", choices=DocumentTypeChoices.choices
    )
    establishment = models.CharField("establecimiento", max_length=3)
    point = models.CharField("punto de expedición", max_length=3)
    authorization = models.CharField("timbrado", max_length=20)
    last_number = models.PositiveIntegerField("último número", db_default=0)

    created_at = models.DateTimeField("fecha de creación", auto_now_add=True)
    updated_at = models.DateTimeField("fecha de modificación", auto_now=True)

    class Meta:
        verbose_name = "serie de numeración"
        verbose_name_plural = "series de numeración"
        ordering = ["tenant_id", "document_type", "establishment", "point"]
        constraints = [
            models.UniqueConstraint(
                fields=[
                    "tenant_id",
                    "document_type",
                    "establishment",
                    "point",
                    "authorization",
                ],
                name="uniq_sifen_series_key",
            ),
            models.CheckConstraint(
                condition=models.Q(establishment__regex=r"^\d{3}$"),
                name="valid_series_establishment",
            ),
            models.CheckConstraint(
                condition=models.Q(point__regex=r"^\d{3}$"),
                name="valid_series_point",
            ),
        ]

    def __str__(self) -> str:
        return (
            f"Serie {self.document_type} {self.establishment}-{self.point} "
            f"({self.authorization})"
        )

    @staticmethod
    def key_filter(key: SeriesKey) -> dict[str, object]:
        """Filtro ORM de la clave de serie."""
        return {
            "tenant_id": key.tenant_id,
            "document_type": int(key.document_type),
            "establishment": key.establishment,
            "point": key.point,
            "authorization": key.authorization,
        }

    def to_domain(self) -> DomainSeries:
        return DomainSeries(
            key=SeriesKey(
                tenant_id=self.tenant_id,
                document_type=DocumentType(self.document_type),
                establishment=self.establishment,
                point=self.point,
                authorization=self.authorization,
            ),
            last_number=self.last_number,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )


# ---------------------------------------------------------------------------
# Configuración fiscal
# ---------------------------------------------------------------------------


class SifenConfig(models.Model):
    """Configuración SIFEN de un tenant.

    ES: La clave privada y su passphrase se guardan cifradas (Fernet);
        solo `DjangoFiscalConfigSource` las descifra.
    EN: Private key and passphrase are stored Fernet-encrypted; only
        `DjangoFiscalConfigSource` decrypts them.
    """

    tenant_id = models.CharField("tenant", max_length=64, unique=True)
    environment = models.CharField(
        "ambiente",
        max_length=12,
        choices=[
            (Environment.HOMOLOGACION, "Homologación"),
            (Environment.PRODUCCION, "Producción"),
        ],
        db_default=Environment.HOMOLOGACION.value,
    )
    ruc = models.CharField("RUC", max_length=8)
    dv = models.CharField("DV", max_length=1)
    business_name = models.CharField("razón social", max_length=255)
    taxpayer_type = models.PositiveSmallIntegerField(
        "tipo de contribuyente",
        choices=[
            (TaxpayerType.PERSONA_FISICA, "Persona física"),
            (TaxpayerType.PERSONA_JURIDICA, "Persona jurídica"),
        ],
        db_default=TaxpayerType.PERSONA_JURIDICA.value,
    )
    authorization = models.CharField("timbrado", max_length=20, blank=True, default="")
    authorization_start = models.DateField("inicio de vigencia", blank=True, null=True)
    authorization_end = models.DateField("fin de vigencia", blank=True, null=True)
    establishment = models.CharField("establecimiento", max_length=3, default="001")
    point = models.CharField("punto de expedición", max_length=3, default="001")

    # --- Endpoints (vacío = valor del ambiente) ---
    ws_recibe_lote = models.URLField("WS recibe lote", blank=True, default="")
    ws_consulta_lote = models.URLField("WS consulta lote", blank=True, default="")
    ws_consulta = models.URLField("WS consulta", blank=True, default="")
    ws_evento = models.URLField("WS evento", blank=True, default="")

    # --- Material de firma cifrado ---
    private_key_encrypted = models.TextField("clave privada cifrada", blank=True, default="")
    passphrase_encrypted = models.TextField("passphrase cifrada", blank=True, default="")

    created_at = models.DateTimeField("fecha de creación", auto_now_add=True)
    updated_at = models.DateTimeField("fecha de modificación", auto_now=True)

    class Meta:
        verbose_name = "configuración SIFEN"
        verbose_name_plural = "configuraciones SIFEN"
        constraints = [
            models.CheckConstraint(
                condition=models.Q(ruc__regex=r"^\d{1,8}$"),
                name="valid_sifen_config_ruc",
            ),
        ]

    def __str__(self) -> str:
        return f"SIFEN {self.business_name} ({self.ruc}-{self.dv})"

    @property
    def has_signing_keys(self) -> bool:
        return bool(self.private_key_encrypted)

    def to_domain(self) -> FiscalConfig:
        """Convierte la fila en FiscalConfig (sin material de firma)."""
        environment = Environment(self.environment)
        defaults = SifenEndpoints.for_environment(environment)
        endpoints = SifenEndpoints(
            recibe_lote=self.ws_recibe_lote or defaults.recibe_lote,
            consulta_lote=self.ws_consulta_lote or defaults.consulta_lote,
            consulta=self.ws_consulta or defaults.consulta,
            evento=self.ws_evento or defaults.evento,
        )
        return FiscalConfig(
            tenant_id=self.tenant_id,
            environment=environment,
            ruc=self.ruc,
            dv=self.dv,
            business_name=self.business_name,
            taxpayer_type=TaxpayerType(self.taxpayer_type),
            authorization=self.authorization or None,
            authorization_start=self.authorization_start,
            authorization_end=self.authorization_end,
            establishment=self.establishment,
            point=self.point,
            endpoints=endpoints,
        )


# ---------------------------------------------------------------------------
# Documento electrónico
# ---------------------------------------------------------------------------


class ElectronicDocument(models.Model):
    """Documento electrónico (DE).

    ES: Nunca se elimina; solo transiciona. Las escrituras del motor son
        condicionales sobre `state` (ver DjangoRepository).
    EN: Never deleted, only transitioned. Engine writes are conditional on
        `state` (see DjangoRepository).
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    tenant_id = models.CharField("tenant", max_length=64)
    document_type = models.PositiveSmallIntegerField(
        "tipo de documento", choices=DocumentTypeChoices.choices
    )
    establishment = models.CharField("establecimiento", max_length=3)
    point = models.CharField("punto de expedición", max_length=3)
    number = models.CharField("número", max_length=7)
    authorization = models.CharField("timbrado", max_length=20)
    cdc = models.CharField("CDC", max_length=44, db_index=True)
    issue_date = models.DateField("fecha de emisión")
    currency = models.CharField("moneda", max_length=3, db_default="PYG")

    receiver = models.JSONField("receptor")
    items = models.JSONField("ítems")
    totals = models.JSONField("totales")
    referenced_cdc = models.CharField("CDC asociado", max_length=44, blank=True, null=True)

    xml_unsigned = models.TextField("XML sin firmar", blank=True, null=True)
    xml_signed = models.TextField("XML firmado", blank=True, null=True)
    qr_text = models.TextField("texto QR", blank=True, null=True)
    qr_image = models.TextField("imagen QR", blank=True, null=True)
    response_code = models.CharField("código SET", max_length=10, blank=True, null=True)
    response_message = models.TextField("mensaje SET", blank=True, null=True)
    kude_key = models.CharField("clave KUDE", max_length=255, blank=True, null=True)
    error_message = models.TextField("error", blank=True, null=True)
    cancel_reason = models.TextField("motivo de anulación", blank=True, null=True)
    cancellation_response = models.JSONField("respuesta de anulación", blank=True, null=True)

    state = models.CharField(
        "estado",
        max_length=10,
        choices=DEStateChoices.choices,
        db_default=DEState.DRAFT.value,
    )
    enqueued_at = models.DateTimeField("listo para lote", blank=True, null=True)
    created_at = models.DateTimeField("fecha de creación", auto_now_add=True)
    updated_at = models.DateTimeField("fecha de modificación", auto_now=True)

    class Meta:
        verbose_name = "documento electrónico"
        verbose_name_plural = "documentos electrónicos"
        indexes = [
            models.Index(fields=["tenant_id", "state"], name="idx_de_tenant_state"),
            models.Index(fields=["state", "enqueued_at"], name="idx_de_state_enqueued"),
        ]

    def __str__(self) -> str:
        return f"DE {self.establishment}-{self.point}-{self.number}"

    def to_domain(self) -> DocumentoElectronico:
        """Convierte la fila en el modelo Pydantic del motor."""
        return DocumentoElectronico(
            id=str(self.id),
            tenant_id=self.tenant_id,
            document_type=DocumentType(self.document_type),
            establishment=self.establishment,
            point=self.point,
            number=self.number,
            authorization=self.authorization,
            cdc=self.cdc,
            issue_date=self.issue_date,
            currency=self.currency,
            receiver=self.receiver,
            items=[DEItem.model_validate(item) for item in self.items],
            totals=TaxTotals.model_validate(self.totals),
            referenced_cdc=self.referenced_cdc,
            xml_unsigned=self.xml_unsigned,
            xml_signed=self.xml_signed,
            qr_text=self.qr_text,
            qr_image=self.qr_image,
            response_code=self.response_code,
            response_message=self.response_message,
            kude_key=self.kude_key,
            error_message=self.error_message,
            cancel_reason=self.cancel_reason,
            cancellation_response=self.cancellation_response,
            state=DEState(self.state),
            enqueued_at=self.enqueued_at,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )

    @staticmethod
    def field_values(document: DocumentoElectronico) -> dict[str, object]:
        """Valores de columna de un DE, sin id ni marcas de tiempo."""
        return {
            "tenant_id": document.tenant_id,
            "document_type": int(document.document_type),
            "establishment": document.establishment,
            "point": document.point,
            "number": document.number,
            "authorization": document.authorization,
            "cdc": document.cdc,
            "issue_date": document.issue_date,
            "currency": document.currency.value,
            "receiver": document.receiver.model_dump(mode="json"),
            "items": [
                item.model_dump(mode="json", exclude={"subtotal"})
                for item in document.items
            ],
            "totals": document.totals.model_dump(mode="json"),
            "referenced_cdc": document.referenced_cdc,
            "xml_unsigned": document.xml_unsigned,
            "xml_signed": document.xml_signed,
            "qr_text": document.qr_text,
            "qr_image": document.qr_image,
            "response_code": document.response_code,
            "response_message": document.response_message,
            "kude_key": document.kude_key,
            "error_message": document.error_message,
            "cancel_reason": document.cancel_reason,
            "cancellation_response": document.cancellation_response,
            "state": document.state.value,
            "enqueued_at": document.enqueued_at,
        }

    @classmethod
    def from_domain(cls, document: DocumentoElectronico) -> "ElectronicDocument":
        """Crea una instancia Django (no guardada) desde el modelo Pydantic."""
        return cls(id=uuid.UUID(document.id), **cls.field_values(document))


# ---------------------------------------------------------------------------
# Lotes
# ---------------------------------------------------------------------------


class Lote(models.Model):
    """Lote de DE enviado a la SET."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    tenant_id = models.CharField("tenant", max_length=64)
    state = models.CharField(
        "estado",
        max_length=10,
        choices=LoteStateChoices.choices,
        db_default=LoteState.CREATED.value,
    )
    external_id = models.CharField("número de lote SET", max_length=64, blank=True, null=True)
    raw_response = models.JSONField("respuesta SET", blank=True, null=True)
    last_code = models.CharField("último código", max_length=10, blank=True, null=True)
    last_message = models.TextField("último mensaje", blank=True, null=True)
    created_at = models.DateTimeField("fecha de creación", auto_now_add=True)
    sent_at = models.DateTimeField("fecha de envío", blank=True, null=True)
    completed_at = models.DateTimeField("fecha de resolución", blank=True, null=True)

    class Meta:
        verbose_name = "lote"
        verbose_name_plural = "lotes"
        indexes = [
            models.Index(fields=["tenant_id", "state"], name="idx_lote_tenant_state"),
        ]

    def __str__(self) -> str:
        return f"Lote {self.external_id or self.id}"

    def to_domain(self) -> DomainLote:
        return DomainLote(
            id=str(self.id),
            tenant_id=self.tenant_id,
            state=LoteState(self.state),
            external_id=self.external_id,
            raw_response=self.raw_response,
            last_code=self.last_code,
            last_message=self.last_message,
            created_at=self.created_at,
            sent_at=self.sent_at,
            completed_at=self.completed_at,
        )

    @staticmethod
    def field_values(lote: DomainLote) -> dict[str, object]:
        return {
            "tenant_id": lote.tenant_id,
            "state": lote.state.value,
            "external_id": lote.external_id,
            "raw_response": lote.raw_response,
            "last_code": lote.last_code,
            "last_message": lote.last_message,
            "sent_at": lote.sent_at,
            "completed_at": lote.completed_at,
        }


class LoteItem(models.Model):
    """Vínculo ordenado entre un lote y un DE."""

    lote = models.ForeignKey(
        Lote,
        on_delete=models.CASCADE,
        related_name="items",
        verbose_name="lote",
    )
    document = models.ForeignKey(
        ElectronicDocument,
        on_delete=models.PROTECT,
        related_name="lote_items",
        verbose_name="documento",
    )
    order = models.PositiveIntegerField("orden")
    outcome = models.CharField(
        "resultado",
        max_length=10,
        choices=LoteItemOutcomeChoices.choices,
        db_default=LoteItemOutcome.PENDING.value,
    )
    code = models.CharField("código", max_length=10, blank=True, null=True)
    message = models.TextField("mensaje", blank=True, null=True)

    class Meta:
        verbose_name = "ítem de lote"
        verbose_name_plural = "ítems de lote"
        ordering = ["order"]
        constraints = [
            models.UniqueConstraint(fields=["lote", "order"], name="uniq_lote_item_order"),
            models.UniqueConstraint(
                fields=["lote", "document"], name="uniq_lote_item_document"
            ),
        ]

    def __str__(self) -> str:
        return f"Ítem {self.order} : {self.document_id}"

    def to_domain(self) -> DomainLoteItem:
        return DomainLoteItem(
            lote_id=str(self.lote_id),
            de_id=str(self.document_id),
            order=self.order,
            outcome=LoteItemOutcome(self.outcome),
            code=self.code,
            message=self.message,
        )
