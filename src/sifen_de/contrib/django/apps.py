"""Configuración de la aplicación Django del motor SIFEN."""

from django.apps import AppConfig


class SifenDeConfig(AppConfig):
    """Configuración de la app Django sifen-de."""

    name = "sifen_de.contrib.django"
    label = "sifen_de"
    verbose_name = "Documentos electrónicos SIFEN"
    default_auto_field = "django.db.models.BigAutoField"
