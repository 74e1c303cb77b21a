"""Pruebas de la configuración Django de sifen-de."""

import pytest
from django.test import override_settings

from sifen_de.contrib.django.conf import get_engine, get_engine_settings, get_setting

MEMORY = "sifen_de.adapters.connectors.memory"

MEMORY_ADAPTERS = {
    "SIGNER_CLASS": f"{MEMORY}.MemorySigner",
    "QR_ENCODER_CLASS": f"{MEMORY}.MemoryQrEncoder",
    "CLIENT_CLASS": f"{MEMORY}.MemorySifenClient",
    "KUDE_RENDERER_CLASS": f"{MEMORY}.MemoryKudeRenderer",
    "STORAGE_CLASS": f"{MEMORY}.MemoryStorage",
}


class TestGetSetting:
    """Pruebas de get_setting()."""

    def test_default_values(self):
        assert get_setting("SIGNER_CLASS") is None
        assert get_setting("NOTIFIER_CLASS") == "sifen_de.adapters.notifiers.LoggingNotifier"
        assert get_setting("LOTE_MAX_SIZE") == 50
        assert get_setting("ENCRYPTION_KEY") is None

    @override_settings(SIFEN_DE={"LOTE_MAX_SIZE": 10})
    def test_override_setting(self):
        assert get_setting("LOTE_MAX_SIZE") == 10
        # Los demás conservan el valor por defecto
        assert get_setting("KUDE_KEY_TEMPLATE") == "kude/{tenant_id}/{de_id}.pdf"

    def test_unknown_setting_raises(self):
        with pytest.raises(KeyError, match="desconocido"):
            get_setting("NONEXISTENT_SETTING")

    @override_settings(SIFEN_DE={"LOTE_MAX_SIZE": 20, "KUDE_KEY_TEMPLATE": "k/{de_id}"})
    def test_engine_settings(self):
        engine_settings = get_engine_settings()
        assert engine_settings.lote_max_size == 20
        assert engine_settings.kude_key_template == "k/{de_id}"


class TestGetEngine:
    """Pruebas de get_engine()."""

    def test_missing_adapter_raises(self):
        with pytest.raises(ValueError, match="SIGNER_CLASS"):
            get_engine()

    @override_settings(SIFEN_DE=MEMORY_ADAPTERS)
    def test_instantiate_memory_adapters(self):
        from sifen_de.adapters.notifiers import LoggingNotifier
        from sifen_de.contrib.django.repository import DjangoRepository
        from sifen_de.contrib.django.scheduler import CeleryTaskScheduler

        engine = get_engine()
        assert isinstance(engine.repository, DjangoRepository)
        assert isinstance(engine.scheduler, CeleryTaskScheduler)
        assert isinstance(engine.notifier, LoggingNotifier)

    @override_settings(SIFEN_DE={**MEMORY_ADAPTERS, "CLIENT_CLASS": "nonexistent.module.Client"})
    def test_invalid_class_raises(self):
        with pytest.raises(ImportError):
            get_engine()
