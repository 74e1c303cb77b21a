"""Generación del XML del DE y cálculo del CDC."""

from sifen_de.generators.cdc import build_cdc, check_digit, is_valid_cdc, security_code
from sifen_de.generators.xml import DEXmlGenerator

__all__ = [
    "DEXmlGenerator",
    "build_cdc",
    "check_digit",
    "is_valid_cdc",
    "security_code",
]
