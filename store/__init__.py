"""Persistenz-Schicht (Repository-Protokoll + In-Memory-Implementierung)."""

from store.repository import BookingRepository, InMemoryRepository

__all__ = ["BookingRepository", "InMemoryRepository"]
