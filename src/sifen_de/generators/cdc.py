"""Cálculo del Código de Control (CDC).

ES: El CDC tiene 44 dígitos: 43 derivados del emisor y del documento más
    un dígito verificador módulo 11. El código de seguridad se deriva del
    identificador del DE, de modo que regenerar el XML produce el mismo CDC.
EN: The CDC has 44 digits: 43 derived from issuer and document data plus
    a modulo-11 check digit. The security code is derived from the DE id,
    so regenerating the XML yields the same CDC.
"""

import hashlib
from datetime import date

from sifen_de.models.enums import DocumentType, TaxpayerType

CDC_LENGTH = 44
EMISSION_TYPE_NORMAL = 1


def check_digit(number: str, base_max: int = 11) -> int:
    """Dígito verificador módulo 11 (mismo algoritmo que el DV del RUC).

    Los pesos van de 2 a `base_max`, de derecha a izquierda, reiniciando en 2.
    """
    if not number.isdigit():
        msg = f"Valor no numérico para dígito verificador : {number!r}"
        raise ValueError(msg)

    total = 0
    weight = 2
    for char in reversed(number):
        total += int(char) * weight
        weight += 1
        if weight > base_max:
            weight = 2

    remainder = total % 11
    return 11 - remainder if remainder > 1 else 0


def security_code(seed: str) -> str:
    """Código de seguridad de 9 dígitos, determinista a partir de `seed`."""
    value = int(hashlib.sha256(seed.encode("utf-8")).hexdigest(), 16) % 10**9
    return str(value or 1).zfill(9)


def build_cdc(
    *,
    document_type: DocumentType,
    ruc: str,
    dv: str,
    establishment: str,
    point: str,
    number: str,
    taxpayer_type: TaxpayerType,
    issue_date: date,
    security: str,
    emission_type: int = EMISSION_TYPE_NORMAL,
) -> str:
    """Arma el CDC de 44 dígitos."""
    body = (
        f"{int(document_type):02d}"
        f"{ruc.zfill(8)}"
        f"{dv}"
        f"{establishment}"
        f"{point}"
        f"{number}"
        f"{int(taxpayer_type)}"
        f"{issue_date:%Y%m%d}"
        f"{emission_type}"
        f"{security}"
    )
    if len(body) != CDC_LENGTH - 1:
        msg = f"Cuerpo de CDC inválido ({len(body)} dígitos) : {body}"
        raise ValueError(msg)
    return f"{body}{check_digit(body)}"


def is_valid_cdc(cdc: str) -> bool:
    """Verifica longitud y dígito verificador de un CDC."""
    if len(cdc) != CDC_LENGTH or not cdc.isdigit():
        return False
    return check_digit(cdc[:-1]) == int(cdc[-1])
