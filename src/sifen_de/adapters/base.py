"""Interfaces abstractas de los colaboradores externos.

ES: Cada biblioteca opaca (XML, firma, QR, servicios web SIFEN, KUDE,
    almacenamiento, notificaciones, configuración, planificador) se
    inyecta en el motor a través de una de estas interfaces.
EN: Every opaque library (XML, signing, QR, SIFEN web services, KUDE,
    storage, notifications, configuration, scheduler) is injected into
    the engine through one of these interfaces.
"""

from abc import ABC, ABCMeta, abstractmethod

from sifen_de.adapters.models import (
    CancellationAck,
    DocumentData,
    GeneratedXml,
    IssuerParams,
    KudeIssuer,
    LoteQueryResult,
    LoteSubmission,
    QrCode,
)
from sifen_de.models.config import FiscalConfig, SigningKeys
from sifen_de.models.enums import Environment, TaskType


class BaseXmlGenerator(ABC):
    """Generador del XML del DE."""

    @abstractmethod
    def generate(self, issuer: IssuerParams, document: DocumentData) -> GeneratedXml:
        """Genera el XML sin firmar y calcula el CDC.

        Args:
            issuer: Emisor, timbrado y número asignado.
            document: Receptor, ítems, totales y referencia asociada.

        Returns:
            XML sin firmar con su CDC definitivo.
        """
        ...


class BaseSigner(ABC):
    """Firma digital del XML."""

    @abstractmethod
    def sign(self, xml_unsigned: str, private_key: str, passphrase: str) -> str:
        """Firma el XML y devuelve el XML firmado."""
        ...


class BaseQrEncoder(ABC):
    """Codificador del QR a partir del XML firmado."""

    @abstractmethod
    def encode(self, xml_signed: str) -> QrCode:
        """Genera el texto y la imagen del QR."""
        ...


class BaseSifenClient(metaclass=ABCMeta):
    """Cliente de los servicios web asíncronos de la SET.

    ES: Recepción de lotes, consulta de lotes y eventos de cancelación.
        El ambiente y el endpoint se eligen por tenant.
    EN: Batch reception, batch query and cancellation events. Environment
        and endpoint are chosen per tenant.
    """

    @abstractmethod
    async def submit_lote(
        self,
        signed_xmls: list[str],
        environment: Environment,
        endpoint: str,
    ) -> LoteSubmission:
        """Envía un lote de XML firmados.

        Returns:
            Número de lote asignado por la SET.

        Raises:
            SubmissionError: Si la SET rechaza el lote o la conexión falla.
        """
        ...

    @abstractmethod
    async def query_lote(
        self,
        external_id: str,
        environment: Environment,
        endpoint: str,
    ) -> LoteQueryResult:
        """Consulta el estado de un lote enviado.

        Raises:
            QueryError: Si la consulta falla.
        """
        ...

    @abstractmethod
    async def cancel(
        self,
        cdc: str,
        reason: str,
        environment: Environment,
        endpoint: str,
    ) -> CancellationAck:
        """Envía el evento de cancelación de un DE aprobado.

        Raises:
            CancellationError: Si la SET no acepta el evento.
        """
        ...


class BaseKudeRenderer(ABC):
    """Renderizador de la representación impresa (KUDE)."""

    @abstractmethod
    def render(self, xml: str, issuer: KudeIssuer) -> bytes:
        """Genera el PDF del KUDE."""
        ...


class BaseStorage(ABC):
    """Almacenamiento de archivos generados."""

    @abstractmethod
    def put(self, key: str, data: bytes, content_type: str) -> str:
        """Guarda el contenido y devuelve la clave de almacenamiento."""
        ...


class BaseNotifier(ABC):
    """Destino de notificaciones (webhooks, correo, alertas).

    ES: Fire-and-forget: el motor registra las fallas pero nunca las
        propaga.
    EN: Fire-and-forget: the engine logs failures, never propagates them.
    """

    @abstractmethod
    def notify(self, tenant_id: str, event: str, payload: dict) -> None: ...


class BaseFiscalConfigSource(ABC):
    """Fuente de la configuración fiscal y de las claves de firma."""

    @abstractmethod
    def get_config(self, tenant_id: str) -> FiscalConfig | None:
        """Configuración SIFEN del tenant, o None si no existe."""
        ...

    @abstractmethod
    def get_signing_keys(self, tenant_id: str) -> SigningKeys | None:
        """Claves de firma descifradas, o None si no fueron cargadas."""
        ...


class BaseTaskScheduler(ABC):
    """Planificador de tareas con entrega al-menos-una-vez."""

    @abstractmethod
    def enqueue(self, task_type: TaskType, tenant_id: str, payload: dict) -> str:
        """Encola una tarea y devuelve su identificador."""
        ...
