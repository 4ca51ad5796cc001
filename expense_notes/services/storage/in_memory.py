"""
In-memory note storage.

Used by the test suite and for dry runs. Behaves like a host note store:
paths map to opaque references, references map to bodies.
"""

from typing import Optional
from uuid import uuid4

from expense_notes.services.storage.interface import (
    DocumentNotFoundError,
    DocumentRef,
    DocumentStore,
)


class InMemoryDocumentStore(DocumentStore):
    """Dict-backed DocumentStore."""

    def __init__(self, documents: Optional[dict[str, str]] = None):
        """
        Args:
            documents: Initial {path: body} notes
        """
        self._refs: dict[str, DocumentRef] = {}
        self._bodies: dict[DocumentRef, str] = {}
        self.write_count = 0
        for path, body in (documents or {}).items():
            self._create(path, body)

    def _create(self, path: str, body: str) -> DocumentRef:
        ref = uuid4().hex
        self._refs[path.strip("/")] = ref
        self._bodies[ref] = body
        return ref

    async def read_body(self, ref: DocumentRef) -> str:
        try:
            return self._bodies[ref]
        except KeyError:
            raise DocumentNotFoundError(f"Note not found: {ref}")

    async def write_body(self, ref: DocumentRef, body: str) -> None:
        if ref not in self._bodies:
            raise DocumentNotFoundError(f"Note not found: {ref}")
        self._bodies[ref] = body
        self.write_count += 1

    async def resolve_or_create(self, path: str, template: str = "") -> DocumentRef:
        ref = self._refs.get(path.strip("/"))
        if ref is not None:
            return ref
        return self._create(path, template)

    def body_at(self, path: str) -> Optional[str]:
        """Body of the note at `path`, or None if it doesn't exist."""
        ref = self._refs.get(path.strip("/"))
        return self._bodies.get(ref) if ref is not None else None

    def paths(self) -> list[str]:
        return sorted(self._refs)
