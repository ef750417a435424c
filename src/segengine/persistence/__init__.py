"""Persistence collaborator interface and in-memory implementation."""

from segengine.persistence.client import (
    Filter,
    FilterOp,
    InMemoryPersistence,
    PersistenceClient,
    Row,
)

__all__ = ["Filter", "FilterOp", "InMemoryPersistence", "PersistenceClient", "Row"]
