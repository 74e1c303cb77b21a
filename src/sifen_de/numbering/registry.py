"""Registro de series de numeración.

ES: Cada serie (tenant, tipo de DE, establecimiento, punto de expedición,
    timbrado) entrega números estrictamente crecientes y sin repetición
    bajo cualquier nivel de concurrencia. El bloqueo es por serie.
    Un número incrementado queda consumido aunque la creación del DE
    falle después: no hay reversión.
EN: Each series yields strictly increasing, non-repeating numbers under
    any concurrency level, with one lock per series. An incremented
    number stays consumed even if DE creation fails afterwards.
"""

import logging

from sifen_de.models.series import NumberingSeries, SeriesKey, format_number
from sifen_de.store.base import BaseRepository

logger = logging.getLogger(__name__)


class NumberingRegistry:
    """Fachada de numeración sobre el almacén."""

    def __init__(self, repository: BaseRepository) -> None:
        self._repository = repository

    def create_series(self, key: SeriesKey, last_number: int = 0) -> NumberingSeries:
        """Provisiona una serie (operación de operador).

        ES: Si la serie ya existe, su contador se reemplaza por `last_number`.
        EN: Re-creating an existing series resets its counter.
        """
        if last_number < 0:
            msg = f"Último número inválido : {last_number}"
            raise ValueError(msg)
        series = self._repository.create_series(key, last_number)
        logger.info("Serie provista : %s (último %d)", key.describe(), last_number)
        return series

    def list_series(self, tenant_id: str) -> list[NumberingSeries]:
        return self._repository.list_series(tenant_id)

    def delete_series(self, key: SeriesKey) -> None:
        """Elimina una serie que nunca emitió números."""
        self._repository.delete_series(key)
        logger.info("Serie eliminada : %s", key.describe())

    def next_number(self, key: SeriesKey) -> str:
        """Siguiente número de la serie, formateado a 7 dígitos.

        Raises:
            SeriesNotProvisionedError: Si la serie no fue creada.
        """
        value = self._repository.increment_series(key)
        number = format_number(value)
        logger.debug("Número asignado %s para %s", number, key.describe())
        return number
