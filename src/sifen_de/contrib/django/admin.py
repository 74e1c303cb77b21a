"""Configuración del admin Django para el motor SIFEN."""

import logging

from django.contrib import admin, messages

from sifen_de.contrib.django.models import (
    ElectronicDocument,
    Lote,
    LoteItem,
    NumberingSeries,
    SifenConfig,
)
from sifen_de.errors import SifenError

logger = logging.getLogger(__name__)


@admin.register(NumberingSeries)
class NumberingSeriesAdmin(admin.ModelAdmin):
    list_display = [
        "tenant_id",
        "document_type",
        "establishment",
        "point",
        "authorization",
        "last_number",
    ]
    list_filter = ["document_type"]
    search_fields = ["tenant_id", "authorization"]
    readonly_fields = ["last_number", "created_at", "updated_at"]


@admin.register(SifenConfig)
class SifenConfigAdmin(admin.ModelAdmin):
    """Configuración fiscal por tenant (claves de firma no editables)."""

    list_display = ["tenant_id", "business_name", "ruc", "environment", "authorization"]
    list_filter = ["environment"]
    search_fields = ["tenant_id", "business_name", "ruc"]
    exclude = ["private_key_encrypted", "passphrase_encrypted"]
    readonly_fields = ["created_at", "updated_at"]


class LoteItemInline(admin.TabularInline):
    model = LoteItem
    extra = 0
    can_delete = False
    readonly_fields = ["document", "order", "outcome", "code", "message"]


@admin.register(Lote)
class LoteAdmin(admin.ModelAdmin):
    list_display = ["id", "tenant_id", "state", "external_id", "last_code", "sent_at"]
    list_filter = ["state"]
    search_fields = ["tenant_id", "external_id"]
    readonly_fields = ["created_at", "sent_at", "completed_at", "raw_response"]
    inlines = [LoteItemInline]


@admin.register(ElectronicDocument)
class ElectronicDocumentAdmin(admin.ModelAdmin):
    """Administración de los DE: consulta y acciones de reencolado."""

    list_display = [
        "__str__",
        "tenant_id",
        "document_type",
        "issue_date",
        "state",
        "response_code",
    ]
    list_filter = ["state", "document_type", "issue_date"]
    search_fields = ["tenant_id", "cdc", "number"]
    readonly_fields = [
        "cdc",
        "state",
        "xml_unsigned",
        "xml_signed",
        "qr_text",
        "response_code",
        "response_message",
        "kude_key",
        "error_message",
        "enqueued_at",
        "created_at",
        "updated_at",
    ]
    actions = ["enqueue_emission", "generate_kude"]

    @admin.action(description="Encolar emisión")
    def enqueue_emission(self, request, queryset):
        """Encola la emisión de los DE seleccionados en DRAFT o ERROR."""
        from sifen_de.contrib.django.conf import get_engine

        engine = get_engine()
        count = 0
        for document in queryset:
            try:
                engine.enqueue_emission(document.tenant_id, str(document.pk))
                count += 1
            except SifenError as exc:
                self.message_user(request, f"{document} : {exc}", messages.WARNING)

        if count:
            self.message_user(
                request, f"{count} DE encolado(s) para emisión.", messages.SUCCESS
            )

    @admin.action(description="Generar KUDE")
    def generate_kude(self, request, queryset):
        """Encola la generación del KUDE de los DE seleccionados."""
        from sifen_de.contrib.django.conf import get_engine

        engine = get_engine()
        count = 0
        for document in queryset:
            try:
                engine.orchestrator.request_kude(document.tenant_id, str(document.pk))
                count += 1
            except SifenError as exc:
                logger.warning("KUDE no encolado para %s : %s", document.pk, exc)
                self.message_user(request, f"{document} : {exc}", messages.WARNING)

        if count:
            self.message_user(
                request, f"{count} KUDE encolado(s).", messages.SUCCESS
            )
