"""Interfaces de los colaboradores externos del motor.

ES: Generación XML, firma, QR, servicios web de la SET, KUDE,
    almacenamiento, notificaciones, configuración fiscal y planificador.
EN: XML generation, signing, QR, authority web services, KUDE, storage,
    notifications, fiscal configuration and task scheduler.
"""

from sifen_de.adapters.base import (
    BaseFiscalConfigSource,
    BaseKudeRenderer,
    BaseNotifier,
    BaseQrEncoder,
    BaseSifenClient,
    BaseSigner,
    BaseStorage,
    BaseTaskScheduler,
    BaseXmlGenerator,
)
from sifen_de.adapters.errors import (
    AdapterTimeoutError,
    CancellationError,
    ExternalAdapterError,
    GenerationError,
    QrEncodingError,
    QueryError,
    RenderError,
    SigningError,
    SubmissionError,
)
from sifen_de.adapters.models import (
    CancellationAck,
    DocumentData,
    GeneratedXml,
    IssuerParams,
    KudeIssuer,
    LoteItemResult,
    LoteQueryResult,
    LoteSubmission,
    QrCode,
)
from sifen_de.adapters.notifiers import LoggingNotifier

__all__ = [
    "AdapterTimeoutError",
    "BaseFiscalConfigSource",
    "BaseKudeRenderer",
    "BaseNotifier",
    "BaseQrEncoder",
    "BaseSifenClient",
    "BaseSigner",
    "BaseStorage",
    "BaseTaskScheduler",
    "BaseXmlGenerator",
    "CancellationAck",
    "CancellationError",
    "DocumentData",
    "ExternalAdapterError",
    "GeneratedXml",
    "GenerationError",
    "IssuerParams",
    "KudeIssuer",
    "LoggingNotifier",
    "LoteItemResult",
    "LoteQueryResult",
    "LoteSubmission",
    "QrCode",
    "QrEncodingError",
    "QueryError",
    "RenderError",
    "SigningError",
    "SubmissionError",
]
