"""
Abstract Storage Interface

DESIGN DECISION: Notes live in a host application we don't control.
We define the few operations we need as abstract interfaces so that:
1. The host's note API can be plugged in without touching business logic
2. Tests run against an in-memory store
3. A plain directory of markdown files works out of the box

The interface is intentionally small: read a body, write a body,
find-or-create a note by path.
"""

from abc import ABC, abstractmethod


# Opaque reference to a note, as handed out by the store.
DocumentRef = str


class DocumentStore(ABC):
    """
    Abstract interface for note bodies.

    The host guarantees a single writer per note, so implementations
    don't lock.
    """

    @abstractmethod
    async def read_body(self, ref: DocumentRef) -> str:
        """
        Read the full text of a note.

        Args:
            ref: Reference returned by resolve_or_create

        Returns:
            The note body

        Raises:
            DocumentNotFoundError: If the note doesn't exist
            StorageError: If the read fails
        """
        pass

    @abstractmethod
    async def write_body(self, ref: DocumentRef, body: str) -> None:
        """
        Replace the full text of a note.

        Args:
            ref: Reference returned by resolve_or_create
            body: New note body

        Raises:
            DocumentWriteError: If the write is rejected
        """
        pass

    @abstractmethod
    async def resolve_or_create(self, path: str, template: str = "") -> DocumentRef:
        """
        Find a note by its folder path, creating it if missing.

        Args:
            path: Slash-separated path, e.g. 'expenses/2025/04'
            template: Body for a newly created note

        Returns:
            Reference to the note

        Raises:
            StorageError: If the note can't be found or created
        """
        pass


class TargetResolver(ABC):
    """
    Maps ledger concepts to notes.

    Knows where the monthly notes, the new-expenses inbox and the
    recurring schedule note live.
    """

    @abstractmethod
    async def target_document_for(self, year_month: str) -> DocumentRef:
        """
        Monthly note for a YYYY-MM key, created from template if missing.

        Raises:
            ValueError: If year_month isn't YYYY-MM
            StorageError: If the note can't be resolved
        """
        pass

    @abstractmethod
    async def new_expenses_document(self) -> DocumentRef:
        """The inbox note new entries are added to."""
        pass

    @abstractmethod
    async def recurring_document(self) -> DocumentRef:
        """The note holding the recurring schedule table."""
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class DocumentNotFoundError(StorageError):
    """Note not found in storage."""
    pass


class DocumentWriteError(StorageError):
    """Storage rejected a write."""
    pass
