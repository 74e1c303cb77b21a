"""Pruebas de los modelos Pydantic del DE."""

from decimal import Decimal

import pytest
from pydantic import TypeAdapter, ValidationError

from sifen_de.models.config import FiscalConfig, SifenEndpoints
from sifen_de.models.document import (
    DEItem,
    DocumentInput,
    NonTaxpayerReceiver,
    Receiver,
    SelfBilledSeller,
    TaxpayerReceiver,
)
from sifen_de.models.enums import DocumentType, Environment, TaxRate


class TestReceiver:
    """Pruebas de la unión etiquetada del receptor."""

    def test_taxpayer(self):
        receiver = TypeAdapter(Receiver).validate_python(
            {"kind": "contribuyente", "ruc": "80012345", "dv": "7", "name": "ACME"}
        )
        assert isinstance(receiver, TaxpayerReceiver)

    def test_non_taxpayer(self):
        receiver = TypeAdapter(Receiver).validate_python(
            {"kind": "no_contribuyente", "id_number": "4567890", "name": "Ana"}
        )
        assert isinstance(receiver, NonTaxpayerReceiver)
        assert receiver.id_type == 1

    def test_self_billed(self):
        receiver = TypeAdapter(Receiver).validate_python(
            {"kind": "autofactura", "id_number": "1", "name": "Juan", "address": "Luque"}
        )
        assert isinstance(receiver, SelfBilledSeller)

    def test_invalid_ruc(self):
        with pytest.raises(ValidationError):
            TaxpayerReceiver(ruc="80-123", dv="7", name="ACME")

    def test_unknown_kind(self):
        with pytest.raises(ValidationError):
            TypeAdapter(Receiver).validate_python({"kind": "otro", "name": "X"})


class TestDEItem:
    def test_subtotal(self):
        item = DEItem(
            code="A", description="Art", quantity=Decimal("2.5"), unit_price=Decimal("1000")
        )
        assert item.subtotal == Decimal("2500.0")
        assert item.tax_rate == TaxRate.IVA_10

    def test_quantity_must_be_positive(self):
        with pytest.raises(ValidationError):
            DEItem(code="A", description="Art", quantity=Decimal("0"), unit_price=Decimal("1"))


class TestDocumentInput:
    def test_defaults(self):
        data = DocumentInput()
        assert data.document_type == DocumentType.FACTURA
        assert data.receiver is None
        assert data.items == []

    def test_referenced_cdc_must_have_44_digits(self):
        with pytest.raises(ValidationError):
            DocumentInput(referenced_cdc="123")


class TestFiscalConfig:
    def test_default_endpoints_follow_environment(self):
        config = FiscalConfig(tenant_id="t", ruc="80000000", dv="5", business_name="ACME SA")
        assert config.endpoints == SifenEndpoints.for_environment(Environment.HOMOLOGACION)
        assert "homologacion" in config.endpoints.recibe_lote

    def test_production_code(self):
        assert Environment.PRODUCCION.code == "1"
        assert Environment.HOMOLOGACION.code == "2"
