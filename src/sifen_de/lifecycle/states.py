"""Grafos de transición de DE y de lotes.

ES: El estado actual de un DE actúa como mutex implícito: cada operación
    verifica el estado antes de avanzar, de modo que una tarea entregada
    dos veces degrada en no-op.
EN: A DE's current state acts as an implicit per-document mutex: every
    operation checks it before advancing, so a redelivered task degrades
    to a no-op.
"""

from sifen_de.errors import StateGuardError
from sifen_de.models.enums import DEState, LoteState

# ---------------------------------------------------------------------------
# Documento electrónico
# ---------------------------------------------------------------------------

DE_TRANSITIONS: dict[DEState, list[DEState]] = {
    # Pipeline de emisión
    DEState.DRAFT: [DEState.GENERATED, DEState.ERROR],
    DEState.GENERATED: [DEState.SIGNED, DEState.ERROR],
    DEState.SIGNED: [DEState.ENQUEUED, DEState.ERROR],
    # Lotes
    DEState.ENQUEUED: [DEState.IN_LOTE],
    DEState.IN_LOTE: [DEState.SENT],
    DEState.SENT: [DEState.APPROVED, DEState.REJECTED],
    # Cancelación
    DEState.APPROVED: [DEState.CANCELLED],
    # Reemisión (un nuevo intento fallido vuelve a ERROR)
    DEState.ERROR: [DEState.GENERATED, DEState.ERROR],
    # Terminales
    DEState.REJECTED: [],
    DEState.CANCELLED: [],
}

TERMINAL_STATES: frozenset[DEState] = frozenset(
    state for state, targets in DE_TRANSITIONS.items() if not targets
)

EMISSION_ALLOWED: frozenset[DEState] = frozenset({DEState.DRAFT, DEState.ERROR})
"""Estados desde los que puede (re)encolarse la emisión."""

CANCELLATION_ALLOWED: frozenset[DEState] = frozenset({DEState.APPROVED})

# Orden lineal del pipeline, usado para reconocer pasos ya cumplidos
PIPELINE_ORDER: tuple[DEState, ...] = (
    DEState.DRAFT,
    DEState.GENERATED,
    DEState.SIGNED,
    DEState.ENQUEUED,
    DEState.IN_LOTE,
    DEState.SENT,
)

# ---------------------------------------------------------------------------
# Lote
# ---------------------------------------------------------------------------

LOTE_TRANSITIONS: dict[LoteState, list[LoteState]] = {
    LoteState.CREATED: [LoteState.SENT, LoteState.ERROR],
    LoteState.SENT: [LoteState.COMPLETED],
    # Reenvío de un lote cuyo envío fue rechazado
    LoteState.ERROR: [LoteState.SENT, LoteState.ERROR],
    LoteState.COMPLETED: [],
}


def can_transition(current: DEState, target: DEState) -> bool:
    """Verifica si la transición del DE está autorizada."""
    return target in DE_TRANSITIONS.get(current, [])


def ensure_transition(current: DEState, target: DEState) -> None:
    """Levanta StateGuardError si la transición del DE no está autorizada."""
    if not can_transition(current, target):
        allowed = [s.value for s in DE_TRANSITIONS.get(current, [])]
        msg = (
            f"Transición no autorizada : {current.value} → {target.value}. "
            f"Transiciones posibles : {allowed}"
        )
        raise StateGuardError(msg, current_state=current.value)


def ensure_lote_transition(current: LoteState, target: LoteState) -> None:
    """Levanta StateGuardError si la transición del lote no está autorizada."""
    if target not in LOTE_TRANSITIONS.get(current, []):
        allowed = [s.value for s in LOTE_TRANSITIONS.get(current, [])]
        msg = (
            f"Transición de lote no autorizada : {current.value} → {target.value}. "
            f"Transiciones posibles : {allowed}"
        )
        raise StateGuardError(msg, current_state=current.value)


def has_reached(current: DEState, state: DEState) -> bool:
    """Indica si un DE ya alcanzó (o superó) `state` en el pipeline.

    ES: Los estados resueltos por la SET (APPROVED, REJECTED, CANCELLED)
        alcanzaron todos los pasos. ERROR no alcanzó ninguno.
    EN: Authority-resolved states reached every step; ERROR reached none.
    """
    if current is DEState.ERROR:
        return False
    if current not in PIPELINE_ORDER:
        return True
    return PIPELINE_ORDER.index(current) >= PIPELINE_ORDER.index(state)
