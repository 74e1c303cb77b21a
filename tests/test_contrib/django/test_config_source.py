"""Pruebas de la fuente de configuración fiscal Django."""

import pytest
from cryptography.fernet import Fernet
from django.core.exceptions import ImproperlyConfigured
from django.test import override_settings

from sifen_de.adapters.errors import SigningError
from sifen_de.contrib.django.config_source import DjangoFiscalConfigSource
from sifen_de.contrib.django.models import SifenConfig
from sifen_de.models.config import SigningKeys


@pytest.fixture
def source() -> DjangoFiscalConfigSource:
    return DjangoFiscalConfigSource()


class TestGetConfig:
    def test_known_tenant(self, source, sifen_config):
        config = source.get_config("tenant-a")
        assert config.ruc == "80000000"
        assert config.authorization == "12345678"

    def test_unknown_tenant(self, db, source):
        assert source.get_config("tenant-x") is None


class TestSigningKeys:
    """Pruebas del cifrado de las claves de firma."""

    def test_round_trip(self, source, sifen_config, encryption_key):
        with override_settings(SIFEN_DE={"ENCRYPTION_KEY": encryption_key}):
            source.store_signing_keys("tenant-a", SigningKeys(private_key="PEM", passphrase="s3"))
            keys = source.get_signing_keys("tenant-a")

        assert keys == SigningKeys(private_key="PEM", passphrase="s3")

    def test_stored_encrypted(self, source, sifen_config, encryption_key):
        with override_settings(SIFEN_DE={"ENCRYPTION_KEY": encryption_key}):
            source.store_signing_keys("tenant-a", SigningKeys(private_key="PEM"))

        row = SifenConfig.objects.get(tenant_id="tenant-a")
        assert row.has_signing_keys
        assert "PEM" not in row.private_key_encrypted
        assert row.passphrase_encrypted == ""

    def test_no_keys(self, source, sifen_config):
        assert source.get_signing_keys("tenant-a") is None

    def test_wrong_key(self, source, sifen_config, encryption_key):
        with override_settings(SIFEN_DE={"ENCRYPTION_KEY": encryption_key}):
            source.store_signing_keys("tenant-a", SigningKeys(private_key="PEM"))

        other_key = Fernet.generate_key().decode()
        with (
            override_settings(SIFEN_DE={"ENCRYPTION_KEY": other_key}),
            pytest.raises(SigningError),
        ):
            source.get_signing_keys("tenant-a")

    def test_missing_encryption_key(self, source, sifen_config):
        with pytest.raises(ImproperlyConfigured):
            source.store_signing_keys("tenant-a", SigningKeys(private_key="PEM"))
