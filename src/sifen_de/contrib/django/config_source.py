"""Fuente de configuración fiscal sobre la tabla SifenConfig.

ES: La clave privada y su passphrase se cifran con Fernet usando
    SIFEN_DE["ENCRYPTION_KEY"] y solo se descifran al momento de firmar.
EN: Private key and passphrase are Fernet-encrypted with
    SIFEN_DE["ENCRYPTION_KEY"] and only decrypted at signing time.
"""

import logging

from cryptography.fernet import Fernet, InvalidToken
from django.core.exceptions import ImproperlyConfigured

from sifen_de.adapters.base import BaseFiscalConfigSource
from sifen_de.adapters.errors import SigningError
from sifen_de.contrib.django.conf import get_setting
from sifen_de.contrib.django.models import SifenConfig
from sifen_de.models.config import FiscalConfig, SigningKeys

logger = logging.getLogger(__name__)


def _fernet() -> Fernet:
    key = get_setting("ENCRYPTION_KEY")
    if not key:
        msg = "SIFEN_DE['ENCRYPTION_KEY'] no está configurado"
        raise ImproperlyConfigured(msg)
    return Fernet(key)


class DjangoFiscalConfigSource(BaseFiscalConfigSource):
    """Configuración por tenant leída del ORM."""

    def get_config(self, tenant_id: str) -> FiscalConfig | None:
        row = SifenConfig.objects.filter(tenant_id=tenant_id).first()
        return row.to_domain() if row else None

    def get_signing_keys(self, tenant_id: str) -> SigningKeys | None:
        row = SifenConfig.objects.filter(tenant_id=tenant_id).first()
        if row is None or not row.has_signing_keys:
            return None

        fernet = _fernet()
        try:
            private_key = fernet.decrypt(row.private_key_encrypted.encode()).decode()
            passphrase = ""
            if row.passphrase_encrypted:
                passphrase = fernet.decrypt(row.passphrase_encrypted.encode()).decode()
        except InvalidToken as exc:
            msg = f"No se pudieron descifrar las claves de firma del tenant {tenant_id}"
            raise SigningError(msg) from exc
        return SigningKeys(private_key=private_key, passphrase=passphrase)

    def store_signing_keys(self, tenant_id: str, keys: SigningKeys) -> None:
        """Cifra y guarda las claves de firma de un tenant existente.

        Raises:
            SifenConfig.DoesNotExist: Si el tenant no tiene configuración.
        """
        row = SifenConfig.objects.get(tenant_id=tenant_id)
        fernet = _fernet()
        row.private_key_encrypted = fernet.encrypt(keys.private_key.encode()).decode()
        row.passphrase_encrypted = (
            fernet.encrypt(keys.passphrase.encode()).decode() if keys.passphrase else ""
        )
        row.save(
            update_fields=["private_key_encrypted", "passphrase_encrypted", "updated_at"]
        )
        logger.info("Claves de firma actualizadas para el tenant %s", tenant_id)
