"""Registro de series de numeración correlativa."""

from sifen_de.numbering.registry import NumberingRegistry

__all__ = ["NumberingRegistry"]
