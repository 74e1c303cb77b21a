"""Parámetros del motor."""

from pydantic import BaseModel, Field

MAX_LOTE_SIZE = 50


class EngineSettings(BaseModel):
    """Parámetros ajustables del motor.

    ES: El tope de 50 DE por lote es el máximo aceptado por la SET.
    EN: The 50-document cap is the authority's maximum per batch.
    """

    lote_max_size: int = Field(
        default=MAX_LOTE_SIZE,
        ge=1,
        le=MAX_LOTE_SIZE,
        description="DE por lote / Documents per batch",
    )
    kude_key_template: str = Field(
        default="kude/{tenant_id}/{de_id}.pdf",
        description="Clave de almacenamiento del KUDE / KUDE storage key",
    )

    def kude_key(self, tenant_id: str, de_id: str) -> str:
        return self.kude_key_template.format(tenant_id=tenant_id, de_id=de_id)
