"""Storage module - document store backends"""

from .base import DocumentCollection, DocumentStore
from .errors import DuplicateKeyError, StoreError
from .memory_store import MemoryDocumentStore


def create_store(backend: str) -> DocumentStore:
    """Build the configured store backend ("firestore" or "memory")"""
    if backend == "memory":
        return MemoryDocumentStore()
    if backend == "firestore":
        from .firestore_store import FirestoreDocumentStore
        store = FirestoreDocumentStore()
        store.connect()
        return store
    raise ValueError(f"Unknown store backend: {backend}")


__all__ = [
    'DocumentCollection', 'DocumentStore', 'MemoryDocumentStore',
    'DuplicateKeyError', 'StoreError', 'create_store',
]
