"""Generación del KUDE (representación impresa del DE).

ES: Se invoca al aprobarse un DE y a demanda. Una falla se reporta pero
    nunca altera el estado fiscal del DE.
EN: Invoked on approval and on demand. A failure is reported but never
    changes the document's fiscal state.
"""

import logging

from sifen_de.adapters.base import BaseFiscalConfigSource, BaseKudeRenderer, BaseStorage
from sifen_de.adapters.errors import ExternalAdapterError, RenderError
from sifen_de.adapters.models import KudeIssuer
from sifen_de.engine.settings import EngineSettings
from sifen_de.errors import DocumentNotFoundError, SifenValidationError, StateGuardError
from sifen_de.store.base import BaseRepository

logger = logging.getLogger(__name__)

PDF_CONTENT_TYPE = "application/pdf"
_SAVE_ATTEMPTS = 3


class KudeGenerator:
    """Renderiza el KUDE y guarda su clave de almacenamiento en el DE."""

    def __init__(
        self,
        repository: BaseRepository,
        config_source: BaseFiscalConfigSource,
        renderer: BaseKudeRenderer,
        storage: BaseStorage,
        settings: EngineSettings,
    ) -> None:
        self._repository = repository
        self._config_source = config_source
        self._renderer = renderer
        self._storage = storage
        self._settings = settings

    def generate(self, tenant_id: str, de_id: str) -> str:
        """Genera y almacena el KUDE del DE.

        Returns:
            Clave de almacenamiento del PDF.

        Raises:
            DocumentNotFoundError: Si el DE no existe para el tenant.
            StateGuardError: Si el DE todavía no tiene XML.
            RenderError: Falla del renderizado o del almacenamiento.
        """
        document = self._repository.get_document(de_id, tenant_id)
        if document is None:
            msg = f"DE no encontrado : {de_id}"
            raise DocumentNotFoundError(msg)

        xml = document.xml_signed or document.xml_unsigned
        if not xml:
            msg = f"DE {de_id} sin XML generado : KUDE no disponible"
            raise StateGuardError(msg, current_state=document.state.value)

        config = self._config_source.get_config(tenant_id)
        if config is None:
            msg = f"Configuración SIFEN no encontrada para el tenant {tenant_id}"
            raise SifenValidationError(msg, errors=["config"])

        issuer = KudeIssuer(
            ruc=config.ruc,
            dv=config.dv,
            business_name=config.business_name,
            qr_text=document.qr_text or "",
            qr_image=document.qr_image or "",
        )
        try:
            pdf = self._renderer.render(xml, issuer)
            key = self._storage.put(
                self._settings.kude_key(tenant_id, de_id), pdf, PDF_CONTENT_TYPE
            )
        except Exception as exc:
            logger.error("DE %s : falla al generar el KUDE : %s", de_id, exc)
            if isinstance(exc, ExternalAdapterError):
                raise
            msg = f"{type(exc).__name__}: {exc}"
            raise RenderError(msg) from exc

        self._store_key(tenant_id, de_id, key)
        logger.info("KUDE del DE %s guardado en %s", de_id, key)
        return key

    def _store_key(self, tenant_id: str, de_id: str, key: str) -> None:
        """Guarda la clave sin tocar el estado, releyendo si cambió entretanto."""
        for _ in range(_SAVE_ATTEMPTS):
            document = self._repository.get_document(de_id, tenant_id)
            if document is None:
                msg = f"DE no encontrado : {de_id}"
                raise DocumentNotFoundError(msg)
            document.kude_key = key
            try:
                self._repository.save_document(document, expected_state=document.state)
                return
            except StateGuardError:
                logger.debug("DE %s cambió de estado, reintentando", de_id)
        msg = f"DE {de_id} : no se pudo registrar la clave del KUDE"
        raise RenderError(msg)
