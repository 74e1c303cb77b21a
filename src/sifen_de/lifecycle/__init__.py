"""Máquinas de estado de DE y de lotes."""

from sifen_de.lifecycle.states import (
    CANCELLATION_ALLOWED,
    DE_TRANSITIONS,
    EMISSION_ALLOWED,
    LOTE_TRANSITIONS,
    TERMINAL_STATES,
    ensure_lote_transition,
    ensure_transition,
    has_reached,
)

__all__ = [
    "CANCELLATION_ALLOWED",
    "DE_TRANSITIONS",
    "EMISSION_ALLOWED",
    "LOTE_TRANSITIONS",
    "TERMINAL_STATES",
    "ensure_lote_transition",
    "ensure_transition",
    "has_reached",
]
