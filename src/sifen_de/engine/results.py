"""Resultados de las tareas y de la consulta de lotes.

ES: "En procesamiento" y "resultados mixtos" no son errores: se expresan
    como valores para que el planificador decida cuándo reintentar sin
    consumir el presupuesto de fallas.
EN: "Still processing" and "mixed results" are not errors: they are
    values, so the scheduler picks redelivery timing without spending
    the failure budget.
"""

from enum import StrEnum

from pydantic import BaseModel, Field


class TaskStatus(StrEnum):
    """Resultado tri-estado de una tarea."""

    DONE = "DONE"
    """Tarea cumplida (o no-op por reentrega) / Done or redelivery no-op"""

    PENDING = "PENDING"
    """Reintentar más tarde, no es una falla / Retry later, not a failure"""

    FAILED = "FAILED"
    """Falla registrada sobre la entidad / Failure recorded on the entity"""


class TaskResult(BaseModel):
    """Resultado devuelto al planificador."""

    status: TaskStatus
    detail: str | None = None
    error: str | None = None

    @classmethod
    def done(cls, detail: str | None = None) -> "TaskResult":
        return cls(status=TaskStatus.DONE, detail=detail)

    @classmethod
    def pending(cls, detail: str | None = None) -> "TaskResult":
        return cls(status=TaskStatus.PENDING, detail=detail)

    @classmethod
    def failed(cls, error: str) -> "TaskResult":
        return cls(status=TaskStatus.FAILED, error=error)


class PollResult(BaseModel):
    """Resultado de una consulta de lote.

    ES: DONE cuando todos los ítems quedaron resueltos y el lote pasó a
        COMPLETED; PENDING si la SET sigue procesando o quedan ítems sin
        resolver; FAILED si la consulta misma falló.
    EN: DONE once every item is resolved and the batch is COMPLETED;
        PENDING while processing or with unresolved items; FAILED when
        the query itself failed.
    """

    status: TaskStatus
    lote_id: str
    code: str | None = None
    message: str | None = None
    approved: list[str] = Field(default_factory=list, description="Ids de DE aprobados")
    rejected: list[str] = Field(default_factory=list, description="Ids de DE rechazados")
    unresolved: int = 0
    error: str | None = None

    @property
    def is_partial(self) -> bool:
        """Resultados mixtos: al menos un aprobado y un rechazado."""
        return bool(self.approved) and bool(self.rejected)

    def to_task_result(self) -> TaskResult:
        if self.status is TaskStatus.FAILED:
            return TaskResult.failed(self.error or "Consulta de lote fallida")
        detail = (
            f"lote {self.lote_id} : {len(self.approved)} aprobados, "
            f"{len(self.rejected)} rechazados, {self.unresolved} sin resolver"
        )
        return TaskResult(status=self.status, detail=detail)
