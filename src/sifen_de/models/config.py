"""Configuración fiscal por tenant.

ES: Identidad del emisor, timbrado, ambiente y endpoints SIFEN. Las claves
    de firma se exponen por separado y solo ya descifradas.
EN: Issuer identity, authorization (timbrado), environment and SIFEN
    endpoints. Signing keys are exposed separately, decrypted.
"""

from datetime import date

from pydantic import BaseModel, Field, model_validator

from sifen_de.models.enums import Environment, TaxpayerType

_BASE_URLS: dict[Environment, str] = {
    Environment.HOMOLOGACION: "https://sifen-homologacion.set.gov.py",
    Environment.PRODUCCION: "https://sifen.set.gov.py",
}


class SifenEndpoints(BaseModel):
    """URLs de los servicios web SIFEN."""

    recibe_lote: str
    consulta_lote: str
    consulta: str
    evento: str

    @classmethod
    def for_environment(cls, environment: Environment) -> "SifenEndpoints":
        """Endpoints por defecto del ambiente indicado."""
        base = _BASE_URLS[environment]
        return cls(
            recibe_lote=f"{base}/de/ws/async/recibe-lote.wsdl",
            consulta_lote=f"{base}/de/ws/async/consulta-lote.wsdl",
            consulta=f"{base}/de/ws/consultas/consulta.wsdl",
            evento=f"{base}/de/ws/eventos/evento.wsdl",
        )


class FiscalConfig(BaseModel):
    """Configuración SIFEN de un tenant.

    ES: Si no se proveen endpoints se usan los del ambiente.
    EN: Endpoints default to the environment's when not provided.
    """

    tenant_id: str
    environment: Environment = Environment.HOMOLOGACION
    ruc: str = Field(..., pattern=r"^\d{1,8}$")
    dv: str = Field(..., pattern=r"^\d$")
    business_name: str = Field(..., min_length=3, max_length=255)
    taxpayer_type: TaxpayerType = TaxpayerType.PERSONA_JURIDICA
    authorization: str | None = Field(
        default=None, max_length=20, description="Número de timbrado"
    )
    authorization_start: date | None = None
    authorization_end: date | None = None
    establishment: str = Field(default="001", pattern=r"^\d{3}$")
    point: str = Field(default="001", pattern=r"^\d{3}$")
    endpoints: SifenEndpoints | None = None

    @model_validator(mode="after")
    def _default_endpoints(self) -> "FiscalConfig":
        if self.endpoints is None:
            self.endpoints = SifenEndpoints.for_environment(self.environment)
        return self


class SigningKeys(BaseModel):
    """Material de firma descifrado."""

    private_key: str
    passphrase: str = ""
