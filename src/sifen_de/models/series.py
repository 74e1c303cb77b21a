"""Series de numeración correlativa."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from sifen_de.models.enums import DocumentType

NUMBER_WIDTH = 7


def format_number(value: int) -> str:
    """Formatea un número correlativo a 7 dígitos (42 → "0000042")."""
    if value < 0:
        msg = f"Número correlativo negativo : {value}"
        raise ValueError(msg)
    return str(value).zfill(NUMBER_WIDTH)


class SeriesKey(BaseModel):
    """Clave de una serie: tenant, tipo, establecimiento, punto y timbrado.

    ES: Cada combinación tiene su propio contador y su propio bloqueo.
    EN: Each combination owns its counter and its own lock.
    """

    model_config = ConfigDict(frozen=True)

    tenant_id: str = Field(..., min_length=1)
    document_type: DocumentType
    establishment: str = Field(..., pattern=r"^\d{3}$")
    point: str = Field(..., pattern=r"^\d{3}$")
    authorization: str = Field(..., min_length=1, description="Número de timbrado")

    def describe(self) -> str:
        return (
            f"tipo={int(self.document_type)} est={self.establishment} "
            f"pto={self.point} timbrado={self.authorization}"
        )


class NumberingSeries(BaseModel):
    """Serie de numeración provista por un operador."""

    key: SeriesKey
    last_number: int = Field(default=0, ge=0)
    created_at: datetime | None = None
    updated_at: datetime | None = None
