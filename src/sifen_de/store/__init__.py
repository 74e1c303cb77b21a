"""Almacenes de DE, lotes y series de numeración."""

from sifen_de.store.base import BaseRepository
from sifen_de.store.memory import MemoryRepository

__all__ = ["BaseRepository", "MemoryRepository"]
