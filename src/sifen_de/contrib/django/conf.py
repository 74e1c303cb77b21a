"""Configuración del motor SIFEN vía settings de Django.

ES: Acceso a los parámetros SIFEN_DE definidos en settings.py, con
    valores por defecto, e instanciación del motor con los adaptadores
    indicados por ruta de importación.
EN: Access to the SIFEN_DE settings defined in settings.py, with
    defaults, and engine construction from dotted adapter paths.
"""

import logging

from django.conf import settings
from django.utils.module_loading import import_string

from sifen_de.engine.facade import SifenEngine
from sifen_de.engine.settings import EngineSettings

logger = logging.getLogger(__name__)

DEFAULTS: dict[str, object] = {
    "XML_GENERATOR_CLASS": "sifen_de.generators.xml.DEXmlGenerator",
    "SIGNER_CLASS": None,
    "QR_ENCODER_CLASS": None,
    "CLIENT_CLASS": None,
    "KUDE_RENDERER_CLASS": None,
    "STORAGE_CLASS": None,
    "NOTIFIER_CLASS": "sifen_de.adapters.notifiers.LoggingNotifier",
    "ENCRYPTION_KEY": None,
    "LOTE_MAX_SIZE": 50,
    "KUDE_KEY_TEMPLATE": "kude/{tenant_id}/{de_id}.pdf",
    "MAX_RETRIES": 3,
    "POLL_MAX_RETRIES": 120,
    "POLL_COUNTDOWN": 30,
}

_REQUIRED_CLASSES = (
    "SIGNER_CLASS",
    "QR_ENCODER_CLASS",
    "CLIENT_CLASS",
    "KUDE_RENDERER_CLASS",
    "STORAGE_CLASS",
)


def get_setting(name: str) -> object:
    """Devuelve el valor de un parámetro SIFEN_DE.

    ES: Busca en settings.SIFEN_DE[name] y luego en los valores por defecto.
    EN: Looks up settings.SIFEN_DE[name], then falls back to defaults.
    """
    if name not in DEFAULTS:
        msg = f"Parámetro SIFEN_DE desconocido : {name}"
        raise KeyError(msg)
    user_settings = getattr(settings, "SIFEN_DE", {})
    return user_settings.get(name, DEFAULTS[name])


def _instantiate(name: str) -> object:
    class_path = get_setting(name)
    if not class_path:
        msg = (
            f"SIFEN_DE['{name}'] no está configurado. "
            "Indique la ruta completa de la clase del adaptador."
        )
        raise ValueError(msg)
    return import_string(class_path)()


def get_engine_settings() -> EngineSettings:
    return EngineSettings(
        lote_max_size=get_setting("LOTE_MAX_SIZE"),
        kude_key_template=get_setting("KUDE_KEY_TEMPLATE"),
    )


def get_engine() -> SifenEngine:
    """Instancia el motor con el almacén Django y los adaptadores configurados.

    Raises:
        ValueError: Si falta la ruta de un adaptador obligatorio.
    """
    from sifen_de.contrib.django.config_source import DjangoFiscalConfigSource
    from sifen_de.contrib.django.repository import DjangoRepository
    from sifen_de.contrib.django.scheduler import CeleryTaskScheduler

    adapters = {name: _instantiate(name) for name in _REQUIRED_CLASSES}
    logger.debug("Motor SIFEN instanciado con %s", adapters)
    return SifenEngine(
        repository=DjangoRepository(),
        config_source=DjangoFiscalConfigSource(),
        scheduler=CeleryTaskScheduler(),
        signer=adapters["SIGNER_CLASS"],
        qr_encoder=adapters["QR_ENCODER_CLASS"],
        client=adapters["CLIENT_CLASS"],
        kude_renderer=adapters["KUDE_RENDERER_CLASS"],
        storage=adapters["STORAGE_CLASS"],
        xml_generator=_instantiate("XML_GENERATOR_CLASS"),
        notifier=_instantiate("NOTIFIER_CLASS"),
        settings=get_engine_settings(),
    )
