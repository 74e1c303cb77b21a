"""Configuración pytest para las pruebas Django.

ES: Configura Django con SQLite en memoria para las pruebas.
EN: Configures Django with in-memory SQLite for tests.
"""

import uuid
from datetime import UTC, date, datetime
from decimal import Decimal

import django
from django.conf import settings


def pytest_configure() -> None:
    """Configura Django para las pruebas."""
    if not settings.configured:
        settings.configure(
            DATABASES={
                "default": {
                    "ENGINE": "django.db.backends.sqlite3",
                    "NAME": ":memory:",
                },
            },
            INSTALLED_APPS=[
                "django.contrib.contenttypes",
                "django.contrib.auth",
                "sifen_de.contrib.django",
            ],
            DEFAULT_AUTO_FIELD="django.db.models.BigAutoField",
            USE_TZ=True,
        )
        django.setup()


import pytest  # noqa: E402
from cryptography.fernet import Fernet  # noqa: E402

from sifen_de.models.document import (  # noqa: E402
    DEItem,
    DocumentoElectronico,
    TaxTotals,
    TaxpayerReceiver,
)
from sifen_de.models.enums import DEState, DocumentType, TaxRate  # noqa: E402
from sifen_de.models.series import SeriesKey  # noqa: E402

TENANT = "tenant-a"


@pytest.fixture
def encryption_key() -> str:
    return Fernet.generate_key().decode()


@pytest.fixture
def series_key() -> SeriesKey:
    return SeriesKey(
        tenant_id=TENANT,
        document_type=DocumentType.FACTURA,
        establishment="001",
        point="001",
        authorization="12345678",
    )


def _build_document(number: int = 1, **fields) -> DocumentoElectronico:
    """DE de dominio listo para persistir (id UUID)."""
    values = {
        "id": str(uuid.uuid4()),
        "tenant_id": TENANT,
        "document_type": DocumentType.FACTURA,
        "establishment": "001",
        "point": "001",
        "number": f"{number:07d}",
        "authorization": "12345678",
        "issue_date": date(2026, 10, 1),
        "receiver": TaxpayerReceiver(ruc="80012345", dv="7", name="Distribuidora Luque S.R.L."),
        "items": [
            DEItem(
                code="CAF-01",
                description="Café molido 500 g",
                quantity=Decimal("2"),
                unit_price=Decimal("55000"),
                tax_rate=TaxRate.IVA_10,
            )
        ],
        "totals": TaxTotals(
            subtotal_10=Decimal("110000"),
            tax_10=Decimal("10000"),
            total_tax=Decimal("10000"),
            grand_total=Decimal("110000"),
        ),
    }
    values.update(fields)
    return DocumentoElectronico(**values)


def _build_ready_document(number: int, minute: int, **fields) -> DocumentoElectronico:
    """DE firmado y encolado para lote."""
    return _build_document(
        number,
        state=DEState.ENQUEUED,
        xml_signed=f"<rDE><DE Id='{number}'/></rDE>",
        enqueued_at=datetime(2026, 10, 1, 12, minute, tzinfo=UTC),
        **fields,
    )


@pytest.fixture
def sifen_config(db):
    """Fixture : configuración SIFEN guardada en base."""
    from sifen_de.contrib.django.models import SifenConfig

    return SifenConfig.objects.create(
        tenant_id=TENANT,
        environment="HOMOLOGACION",
        ruc="80000000",
        dv="5",
        business_name="Comercial Asunción S.A.",
        taxpayer_type=2,
        authorization="12345678",
        authorization_start=date(2026, 1, 1),
    )


@pytest.fixture
def make_document():
    """Fábrica de DE de dominio."""
    return _build_document


@pytest.fixture
def make_ready_document():
    """Fábrica de DE firmados y encolados."""
    return _build_ready_document
