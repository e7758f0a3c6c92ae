"""Document store contract and the in-process implementation."""

from .document_store import (
    DocumentStore,
    InMemoryDocumentStore,
    Record,
    RecordNotFound,
    Unsubscribe,
)

__all__ = ["DocumentStore", "InMemoryDocumentStore", "Record", "RecordNotFound", "Unsubscribe"]
