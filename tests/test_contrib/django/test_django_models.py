"""Pruebas de los modelos Django del motor SIFEN."""

from decimal import Decimal

from sifen_de.contrib.django.models import ElectronicDocument, NumberingSeries, SifenConfig
from sifen_de.models.document import TaxpayerReceiver
from sifen_de.models.enums import DEState, Environment


class TestElectronicDocument:
    """Pruebas de la conversión ElectronicDocument ↔ DocumentoElectronico."""

    def test_round_trip(self, db, make_document):
        document = make_document(7)
        row = ElectronicDocument.from_domain(document)
        row.save(force_insert=True)

        restored = ElectronicDocument.objects.get(pk=row.pk).to_domain()

        assert restored.id == document.id
        assert restored.number == "0000007"
        assert restored.state == DEState.DRAFT
        assert isinstance(restored.receiver, TaxpayerReceiver)
        assert restored.items[0].quantity == Decimal("2")
        assert restored.totals.grand_total == Decimal("110000")

    def test_str(self, db, make_document):
        row = ElectronicDocument.from_domain(make_document(3))
        assert str(row) == "DE 001-001-0000003"

    def test_items_exclude_computed_subtotal(self, make_document):
        values = ElectronicDocument.field_values(make_document(1))
        assert "subtotal" not in values["items"][0]
        assert values["receiver"]["kind"] == "contribuyente"


class TestSifenConfig:
    def test_to_domain_uses_environment_endpoints(self, sifen_config):
        config = sifen_config.to_domain()
        assert config.environment == Environment.HOMOLOGACION
        assert config.endpoints.recibe_lote.startswith("https://sifen-homologacion")
        assert not sifen_config.has_signing_keys

    def test_endpoint_override(self, sifen_config):
        sifen_config.ws_evento = "https://proxy.example.com/evento"
        sifen_config.save()
        config = SifenConfig.objects.get(pk=sifen_config.pk).to_domain()
        assert config.endpoints.evento == "https://proxy.example.com/evento"
        assert "homologacion" in config.endpoints.consulta_lote


class TestNumberingSeries:
    def test_key_filter(self, series_key):
        assert NumberingSeries.key_filter(series_key) == {
            "tenant_id": "tenant-a",
            "document_type": 1,
            "establishment": "001",
            "point": "001",
            "authorization": "12345678",
        }
