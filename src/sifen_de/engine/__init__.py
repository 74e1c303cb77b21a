"""Motor del ciclo de vida de DE.

ES: Orquestador, pipeline de emisión, armado, envío y consulta de lotes,
    cancelación, KUDE y manejador de tareas.
EN: Orchestrator, emission pipeline, batch assembly, submission and
    polling, cancellation, KUDE and task handler.
"""

from sifen_de.engine.batch import BatchAssembler
from sifen_de.engine.cancellation import CancellationHandler
from sifen_de.engine.facade import SifenEngine
from sifen_de.engine.handlers import TaskHandler
from sifen_de.engine.kude import KudeGenerator
from sifen_de.engine.orchestrator import DocumentOrchestrator
from sifen_de.engine.pipeline import EmissionPipeline
from sifen_de.engine.results import PollResult, TaskResult, TaskStatus
from sifen_de.engine.settings import EngineSettings
from sifen_de.engine.submission import TERMINAL_CODES, BatchSubmitter
from sifen_de.engine.taxes import compute_totals

__all__ = [
    "BatchAssembler",
    "BatchSubmitter",
    "CancellationHandler",
    "DocumentOrchestrator",
    "EmissionPipeline",
    "EngineSettings",
    "KudeGenerator",
    "PollResult",
    "SifenEngine",
    "TERMINAL_CODES",
    "TaskHandler",
    "TaskResult",
    "TaskStatus",
    "compute_totals",
]
