"""Adaptadores en memoria para pruebas y desarrollo.

ES: Dobles de prueba de cada colaborador externo: firma simulada con
    lxml, QR derivado del CDC, servicios web de la SET que retienen los
    lotes hasta que la prueba los resuelve, almacenamiento y planificador
    en memoria. Cada doble acepta `fail_with` para inyectar fallas.
EN: Test doubles for every external collaborator: lxml-based simulated
    signature, CDC-derived QR, authority web services that hold batches
    until the test resolves them, in-memory storage and scheduler. Every
    double accepts `fail_with` to inject failures.
"""

import base64
import hashlib
import itertools
import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import UTC, datetime

from lxml import etree

from sifen_de.adapters.base import (
    BaseFiscalConfigSource,
    BaseKudeRenderer,
    BaseNotifier,
    BaseQrEncoder,
    BaseSifenClient,
    BaseSigner,
    BaseStorage,
    BaseTaskScheduler,
)
from sifen_de.adapters.errors import (
    CancellationError,
    QrEncodingError,
    QueryError,
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
from sifen_de.generators.xml import DEXmlGenerator
from sifen_de.models.config import FiscalConfig, SigningKeys
from sifen_de.models.enums import Environment, TaskType
from sifen_de.utils.xml_helpers import read_cdc

logger = logging.getLogger(__name__)

DSIG_NS = "http://www.w3.org/2000/09/xmldsig#"
QR_BASE_URL = "https://ekuatia.set.gov.py/consultas/qr"

CODE_LOTE_RECEIVED = "0300"
CODE_LOTE_PROCESSING = "0361"
CODE_LOTE_PROCESSED = "0362"
CODE_LOTE_REJECTED = "0365"
CODE_EVENT_REGISTERED = "0600"


class _FailureInjection:
    """Falla configurable para los dobles de prueba."""

    fail_with: Exception | None = None

    def _maybe_fail(self) -> None:
        if self.fail_with is not None:
            raise self.fail_with


# ---------------------------------------------------------------------------
# Generación, firma y QR
# ---------------------------------------------------------------------------


class MemoryXmlGenerator(_FailureInjection, DEXmlGenerator):
    """Generador lxml con conteo de llamadas y falla inyectable."""

    def __init__(self, fail_with: Exception | None = None) -> None:
        super().__init__()
        self.fail_with = fail_with
        self.calls = 0

    def generate(self, issuer: IssuerParams, document: DocumentData) -> GeneratedXml:
        self.calls += 1
        self._maybe_fail()
        return super().generate(issuer, document)


class MemorySigner(_FailureInjection, BaseSigner):
    """Firma simulada: agrega un nodo ds:Signature con un digest SHA-256."""

    def __init__(self, fail_with: Exception | None = None) -> None:
        self.fail_with = fail_with
        self.calls = 0

    def sign(self, xml_unsigned: str, private_key: str, passphrase: str) -> str:
        self.calls += 1
        self._maybe_fail()
        if not private_key:
            msg = "Clave privada vacía"
            raise SigningError(msg)

        root = etree.fromstring(xml_unsigned.encode("utf-8"))
        signature = etree.SubElement(
            root, f"{{{DSIG_NS}}}Signature", nsmap={"ds": DSIG_NS}
        )
        digest = hashlib.sha256(
            xml_unsigned.encode("utf-8") + private_key.encode("utf-8")
        ).digest()
        value = etree.SubElement(signature, f"{{{DSIG_NS}}}SignatureValue")
        value.text = base64.b64encode(digest).decode("ascii")
        return etree.tostring(root, encoding="unicode")


class MemoryQrEncoder(_FailureInjection, BaseQrEncoder):
    """QR cuyo texto es la URL de consulta pública del CDC."""

    def __init__(self, fail_with: Exception | None = None) -> None:
        self.fail_with = fail_with
        self.calls = 0

    def encode(self, xml_signed: str) -> QrCode:
        self.calls += 1
        self._maybe_fail()
        cdc = read_cdc(xml_signed)
        if not cdc:
            msg = "XML sin nodo DE : no se puede generar el QR"
            raise QrEncodingError(msg)
        text = f"{QR_BASE_URL}?nVersion=150&Id={cdc}"
        image = base64.b64encode(text.encode("utf-8")).decode("ascii")
        return QrCode(text=text, image=image)


# ---------------------------------------------------------------------------
# Servicios web de la SET
# ---------------------------------------------------------------------------


@dataclass
class _StoredLote:
    """Lote recibido por el cliente en memoria."""

    external_id: str
    cdcs: list[str | None]
    environment: Environment
    endpoint: str
    submitted_at: datetime
    result: LoteQueryResult | None = None


@dataclass
class _CancellationRecord:
    cdc: str
    reason: str
    environment: Environment
    endpoint: str


class MemorySifenClient(BaseSifenClient):
    """Servicios web simulados de recepción, consulta y eventos.

    ES: Un lote enviado queda "en procesamiento" (0361) hasta que la
        prueba llama a `resolve`, `approve_all` o `reject_lote`.
    EN: A submitted batch stays "processing" (0361) until the test calls
        `resolve`, `approve_all` or `reject_lote`.
    """

    def __init__(self) -> None:
        self._lotes: dict[str, _StoredLote] = {}
        self._counter = itertools.count(1)
        self.cancellations: list[_CancellationRecord] = []
        self.submit_error: Exception | None = None
        self.query_error: Exception | None = None
        self.cancel_error: Exception | None = None

    def _get_stored(self, external_id: str) -> _StoredLote:
        stored = self._lotes.get(external_id)
        if stored is None:
            msg = f"Lote desconocido : {external_id}"
            raise QueryError(msg)
        return stored

    # --- Recepción de lote ---

    async def submit_lote(
        self,
        signed_xmls: list[str],
        environment: Environment,
        endpoint: str,
    ) -> LoteSubmission:
        if self.submit_error is not None:
            raise self.submit_error
        if not signed_xmls:
            msg = "Lote vacío"
            raise SubmissionError(msg, response={"dCodRes": "0301"})

        external_id = f"{next(self._counter):015d}"
        self._lotes[external_id] = _StoredLote(
            external_id=external_id,
            cdcs=[read_cdc(xml) for xml in signed_xmls],
            environment=environment,
            endpoint=endpoint,
            submitted_at=datetime.now(UTC),
        )
        logger.debug("Lote %s recibido (%d DE)", external_id, len(signed_xmls))
        return LoteSubmission(
            external_id=external_id,
            code=CODE_LOTE_RECEIVED,
            message="Lote recibido con éxito",
            raw_response={"dCodRes": CODE_LOTE_RECEIVED, "dProtConsLote": external_id},
        )

    # --- Consulta de lote ---

    async def query_lote(
        self,
        external_id: str,
        environment: Environment,
        endpoint: str,
    ) -> LoteQueryResult:
        if self.query_error is not None:
            raise self.query_error
        stored = self._get_stored(external_id)
        if stored.result is not None:
            return stored.result
        return LoteQueryResult(
            code=CODE_LOTE_PROCESSING,
            message="Lote en procesamiento",
            raw_response={"dCodResLot": CODE_LOTE_PROCESSING},
        )

    # --- Eventos ---

    async def cancel(
        self,
        cdc: str,
        reason: str,
        environment: Environment,
        endpoint: str,
    ) -> CancellationAck:
        if self.cancel_error is not None:
            raise self.cancel_error
        if len(cdc) != 44:
            msg = f"CDC inválido para cancelación : {cdc}"
            raise CancellationError(msg)
        self.cancellations.append(
            _CancellationRecord(
                cdc=cdc, reason=reason, environment=environment, endpoint=endpoint
            )
        )
        return CancellationAck(
            code=CODE_EVENT_REGISTERED,
            message="Evento registrado correctamente",
            raw_response={"dCodRes": CODE_EVENT_REGISTERED, "Id": cdc},
        )

    # --- Métodos utilitarios (propios del cliente en memoria) ---

    @property
    def submitted(self) -> list[str]:
        """Números de lote recibidos, en orden de envío."""
        return list(self._lotes)

    def cdcs_of(self, external_id: str) -> list[str | None]:
        return list(self._get_stored(external_id).cdcs)

    def environment_of(self, external_id: str) -> Environment:
        return self._get_stored(external_id).environment

    def resolve(
        self,
        external_id: str,
        statuses: list[str],
        *,
        code: str = CODE_LOTE_PROCESSED,
        match_by_cdc: bool = True,
    ) -> None:
        """Resuelve el lote con un estado por DE, en el orden de envío.

        Args:
            external_id: Número de lote.
            statuses: Valores de dEstRes ("Aprobado", "Rechazado", ...).
            code: Código de respuesta del lote.
            match_by_cdc: Si es False, los resultados no traen CDC y solo
                se correlacionan por posición.
        """
        stored = self._get_stored(external_id)
        items = []
        for cdc, status in zip(stored.cdcs, statuses, strict=False):
            approved = status.startswith("Aprobado")
            items.append(
                LoteItemResult(
                    cdc=cdc if match_by_cdc else None,
                    status=status,
                    code="0260" if approved else "0160",
                    message="Autorización del DE satisfactoria"
                    if approved
                    else "XML mal formado",
                )
            )
        stored.result = LoteQueryResult(
            code=code,
            message="Lote procesado",
            items=items,
            raw_response={"dCodResLot": code, "items": len(items)},
        )

    def approve_all(self, external_id: str) -> None:
        stored = self._get_stored(external_id)
        self.resolve(external_id, ["Aprobado"] * len(stored.cdcs))

    def reject_lote(self, external_id: str, message: str = "Lote rechazado") -> None:
        """Rechazo total del lote sin resultados por DE (0365)."""
        stored = self._get_stored(external_id)
        stored.result = LoteQueryResult(
            code=CODE_LOTE_REJECTED,
            message=message,
            raw_response={"dCodResLot": CODE_LOTE_REJECTED},
        )


# ---------------------------------------------------------------------------
# KUDE y almacenamiento
# ---------------------------------------------------------------------------


class MemoryKudeRenderer(_FailureInjection, BaseKudeRenderer):
    """Renderizador que produce un PDF mínimo con los datos del emisor."""

    def __init__(self, fail_with: Exception | None = None) -> None:
        self.fail_with = fail_with
        self.rendered: list[KudeIssuer] = []

    def render(self, xml: str, issuer: KudeIssuer) -> bytes:
        self._maybe_fail()
        self.rendered.append(issuer)
        cdc = read_cdc(xml) or ""
        body = f"KUDE {issuer.business_name} RUC {issuer.ruc}-{issuer.dv} CDC {cdc}"
        return b"%PDF-1.4\n" + body.encode("utf-8") + b"\n%%EOF\n"


@dataclass
class StoredObject:
    data: bytes
    content_type: str


class MemoryStorage(_FailureInjection, BaseStorage):
    """Almacenamiento de objetos en un diccionario."""

    def __init__(self, fail_with: Exception | None = None) -> None:
        self.fail_with = fail_with
        self.objects: dict[str, StoredObject] = {}

    def put(self, key: str, data: bytes, content_type: str) -> str:
        self._maybe_fail()
        self.objects[key] = StoredObject(data=data, content_type=content_type)
        return key


# ---------------------------------------------------------------------------
# Notificaciones y configuración
# ---------------------------------------------------------------------------


@dataclass
class NotifiedEvent:
    tenant_id: str
    event: str
    payload: dict


class MemoryNotifier(_FailureInjection, BaseNotifier):
    """Registra los eventos notificados."""

    def __init__(self, fail_with: Exception | None = None) -> None:
        self.fail_with = fail_with
        self.events: list[NotifiedEvent] = []

    def notify(self, tenant_id: str, event: str, payload: dict) -> None:
        self._maybe_fail()
        self.events.append(NotifiedEvent(tenant_id=tenant_id, event=event, payload=payload))

    def names(self) -> list[str]:
        """Nombres de los eventos recibidos, en orden."""
        return [e.event for e in self.events]


class MemoryFiscalConfigSource(BaseFiscalConfigSource):
    """Configuración fiscal y claves de firma en memoria."""

    def __init__(self) -> None:
        self._configs: dict[str, FiscalConfig] = {}
        self._keys: dict[str, SigningKeys] = {}

    def add(self, config: FiscalConfig, keys: SigningKeys | None = None) -> None:
        self._configs[config.tenant_id] = config
        if keys is not None:
            self._keys[config.tenant_id] = keys

    def get_config(self, tenant_id: str) -> FiscalConfig | None:
        return self._configs.get(tenant_id)

    def get_signing_keys(self, tenant_id: str) -> SigningKeys | None:
        return self._keys.get(tenant_id)


# ---------------------------------------------------------------------------
# Planificador
# ---------------------------------------------------------------------------


@dataclass
class ScheduledTask:
    """Tarea encolada en el planificador en memoria."""

    task_id: str
    task_type: TaskType
    tenant_id: str
    payload: dict = field(default_factory=dict)


class MemoryTaskScheduler(BaseTaskScheduler):
    """Planificador FIFO en memoria.

    ES: `drain` ejecuta las tareas contra un manejador hasta vaciar la
        cola; las tareas que devuelven PENDING quedan en `deferred`.
    EN: `drain` runs tasks against a handler until the queue is empty;
        tasks returning PENDING are parked in `deferred`.
    """

    def __init__(self) -> None:
        self._queue: deque[ScheduledTask] = deque()
        self._counter = itertools.count(1)
        self.history: list[ScheduledTask] = []
        self.deferred: list[ScheduledTask] = []

    def enqueue(self, task_type: TaskType, tenant_id: str, payload: dict) -> str:
        task = ScheduledTask(
            task_id=f"TASK-{next(self._counter):06d}",
            task_type=TaskType(task_type),
            tenant_id=tenant_id,
            payload=dict(payload),
        )
        self._queue.append(task)
        self.history.append(task)
        return task.task_id

    @property
    def pending(self) -> list[ScheduledTask]:
        """Tareas aún no ejecutadas."""
        return list(self._queue)

    def of_type(self, task_type: TaskType) -> list[ScheduledTask]:
        """Tareas del tipo indicado, en cola o ya ejecutadas."""
        return [t for t in self.history if t.task_type == task_type]

    def clear(self) -> None:
        self._queue.clear()
        self.history.clear()
        self.deferred.clear()

    def drain(self, handler, max_tasks: int = 1000) -> list:
        """Ejecuta las tareas en cola contra `handler.handle`.

        Returns:
            Pares (tarea, resultado) en orden de ejecución.
        """
        executed = []
        while self._queue:
            if len(executed) >= max_tasks:
                msg = f"Cola sin vaciar tras {max_tasks} tareas"
                raise RuntimeError(msg)
            task = self._queue.popleft()
            result = handler.handle(task.task_type, task.tenant_id, task.payload)
            if result.status == "PENDING":
                self.deferred.append(task)
            executed.append((task, result))
        return executed
