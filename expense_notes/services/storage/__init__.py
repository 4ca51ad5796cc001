"""
Storage Services Package

Provides abstract interfaces and concrete implementations for note storage.
Ships an in-memory store and a markdown-file store; a host note API can be
plugged in by implementing DocumentStore.
"""

from expense_notes.services.storage.interface import (
    DocumentNotFoundError,
    DocumentRef,
    DocumentStore,
    DocumentWriteError,
    StorageError,
    TargetResolver,
)
from expense_notes.services.storage.filesystem import FileSystemDocumentStore
from expense_notes.services.storage.in_memory import InMemoryDocumentStore
from expense_notes.services.storage.resolver import FolderTargetResolver

__all__ = [
    # Interfaces
    "DocumentRef",
    "DocumentStore",
    "TargetResolver",
    # Exceptions
    "DocumentNotFoundError",
    "DocumentWriteError",
    "StorageError",
    # Implementations
    "FileSystemDocumentStore",
    "FolderTargetResolver",
    "InMemoryDocumentStore",
]
