"""Interfaz abstracta del almacén de DE, lotes y series.

ES: Toda mutación de un DE o de un lote pasa por una escritura
    condicionada al estado observado (compare-and-set). El incremento de
    una serie y el armado de un lote son las únicas operaciones que
    exigen exclusión mutua explícita.
EN: Every DE or batch mutation is a write conditioned on the observed
    state (compare-and-set). Series increment and batch assembly are the
    only operations needing explicit mutual exclusion.
"""

from abc import ABC, abstractmethod

from sifen_de.models.document import DocumentoElectronico
from sifen_de.models.enums import DEState, LoteState
from sifen_de.models.lote import Lote, LoteDetail, LoteItem
from sifen_de.models.series import NumberingSeries, SeriesKey


class BaseRepository(ABC):
    """Almacén persistente del motor.

    ES: Implementaciones: `MemoryRepository` (desarrollo, pruebas) y
        `DjangoRepository` (ORM con bloqueo de fila).
    EN: Implementations: `MemoryRepository` and `DjangoRepository`.
    """

    # --- Series de numeración ---

    @abstractmethod
    def create_series(self, key: SeriesKey, last_number: int = 0) -> NumberingSeries:
        """Crea la serie, o reinicia su contador si ya existe."""
        ...

    @abstractmethod
    def get_series(self, key: SeriesKey) -> NumberingSeries | None: ...

    @abstractmethod
    def list_series(self, tenant_id: str) -> list[NumberingSeries]:
        """Series del tenant ordenadas por tipo, establecimiento y punto."""
        ...

    @abstractmethod
    def delete_series(self, key: SeriesKey) -> None:
        """Elimina una serie sin números emitidos.

        Raises:
            SeriesNotProvisionedError: Si la serie no existe.
            SeriesInUseError: Si la serie ya emitió al menos un número.
        """
        ...

    @abstractmethod
    def increment_series(self, key: SeriesKey) -> int:
        """Incrementa el contador bajo bloqueo exclusivo de la serie.

        ES: Lee, incrementa y persiste en una misma transacción; los
            llamadores de otras series no esperan.
        EN: Read, increment and persist in one transaction; callers on
            other series never wait.

        Returns:
            El nuevo último número emitido.

        Raises:
            SeriesNotProvisionedError: Si la serie no fue creada.
        """
        ...

    # --- Documentos electrónicos ---

    @abstractmethod
    def add_document(self, document: DocumentoElectronico) -> DocumentoElectronico:
        """Persiste un DE nuevo y devuelve la copia almacenada."""
        ...

    @abstractmethod
    def get_document(
        self, de_id: str, tenant_id: str | None = None
    ) -> DocumentoElectronico | None:
        """DE por id, restringido al tenant si se indica."""
        ...

    @abstractmethod
    def save_document(
        self,
        document: DocumentoElectronico,
        expected_state: DEState | None = None,
    ) -> DocumentoElectronico:
        """Guarda el DE si su estado persistido sigue siendo `expected_state`.

        Raises:
            DocumentNotFoundError: Si el DE no existe.
            StateGuardError: Si otro proceso cambió el estado entretanto.
        """
        ...

    @abstractmethod
    def list_documents(
        self,
        tenant_id: str,
        state: DEState | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[DocumentoElectronico]:
        """DE del tenant, los más recientes primero."""
        ...

    # --- Lotes ---

    @abstractmethod
    def assemble_lote(self, tenant_id: str, limit: int) -> LoteDetail | None:
        """Arma un lote con los DE ENQUEUED más antiguos del tenant.

        ES: En una sola transacción: selecciona hasta `limit` DE con XML
            firmado por `enqueued_at` ascendente, crea el lote CREATED, un
            ítem ordenado por DE y pasa los DE a IN_LOTE.
        EN: In one transaction: picks up to `limit` signed ENQUEUED DEs,
            oldest first, creates the batch and its ordered items, and
            moves the DEs to IN_LOTE.

        Returns:
            El lote armado, o None si no hay DE listos.
        """
        ...

    @abstractmethod
    def get_lote(self, lote_id: str) -> Lote | None: ...

    @abstractmethod
    def list_lote_items(self, lote_id: str) -> list[LoteItem]:
        """Ítems del lote en orden de armado."""
        ...

    @abstractmethod
    def save_lote(self, lote: Lote, expected_state: LoteState | None = None) -> Lote:
        """Guarda el lote con la misma semántica que `save_document`.

        Raises:
            LoteNotFoundError: Si el lote no existe.
            StateGuardError: Si el estado persistido cambió.
        """
        ...

    @abstractmethod
    def save_lote_item(self, item: LoteItem) -> LoteItem: ...

    @abstractmethod
    def list_lotes(
        self,
        tenant_id: str,
        state: LoteState | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[Lote]:
        """Lotes del tenant, los más recientes primero."""
        ...

    @abstractmethod
    def tenants_with_ready_documents(self) -> list[str]:
        """Tenants con al menos un DE ENQUEUED firmado."""
        ...
