"""Services package."""

from expense_notes.services.expenses import ExpenseService
from expense_notes.services.storage import (
    DocumentNotFoundError,
    DocumentRef,
    DocumentStore,
    DocumentWriteError,
    FileSystemDocumentStore,
    FolderTargetResolver,
    InMemoryDocumentStore,
    StorageError,
    TargetResolver,
)

__all__ = [
    # Expense notes
    "ExpenseService",
    # Storage services
    "DocumentNotFoundError",
    "DocumentRef",
    "DocumentStore",
    "DocumentWriteError",
    "FileSystemDocumentStore",
    "FolderTargetResolver",
    "InMemoryDocumentStore",
    "StorageError",
    "TargetResolver",
]
