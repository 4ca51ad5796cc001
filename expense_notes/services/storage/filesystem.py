"""
Filesystem Storage Implementation

DESIGN DECISION: A directory of markdown files is the simplest host:
1. Notes stay readable and editable in any editor
2. No service or credentials required
3. Folder paths map one-to-one to directories

Each note path 'expenses/2025/04' is stored as '<root>/expenses/2025/04.md'.
The reference handed out is the path itself.
"""

from pathlib import Path
from typing import Optional

from expense_notes.config import StorageSettings, get_settings
from expense_notes.log import get_logger
from expense_notes.services.storage.interface import (
    DocumentNotFoundError,
    DocumentRef,
    DocumentStore,
    DocumentWriteError,
    StorageError,
)


logger = get_logger(__name__)


class FileSystemDocumentStore(DocumentStore):
    """DocumentStore over a directory of markdown files."""

    def __init__(
        self,
        root: Optional[Path] = None,
        settings: Optional[StorageSettings] = None,
    ):
        self._settings = settings or get_settings().storage
        self._root = Path(root) if root is not None else Path(self._settings.root_path)

    def _file_for(self, ref: DocumentRef) -> Path:
        parts = [p for p in ref.strip("/").split("/") if p]
        if not parts or any(p in (".", "..") for p in parts):
            raise StorageError(f"Invalid note path: {ref}")
        parts[-1] += self._settings.extension
        return self._root.joinpath(*parts)

    async def read_body(self, ref: DocumentRef) -> str:
        path = self._file_for(ref)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            raise DocumentNotFoundError(f"Note not found: {ref}")
        except OSError as e:
            raise StorageError(f"Failed to read note {ref}: {e}")

    async def write_body(self, ref: DocumentRef, body: str) -> None:
        path = self._file_for(ref)
        if not path.exists():
            raise DocumentNotFoundError(f"Note not found: {ref}")
        try:
            path.write_text(body, encoding="utf-8")
        except OSError as e:
            raise DocumentWriteError(f"Failed to write note {ref}: {e}")

    async def resolve_or_create(self, path: str, template: str = "") -> DocumentRef:
        ref = path.strip("/")
        file_path = self._file_for(ref)
        if file_path.exists():
            return ref

        try:
            file_path.parent.mkdir(parents=True, exist_ok=True)
            file_path.write_text(template, encoding="utf-8")
        except OSError as e:
            raise StorageError(f"Failed to create note {ref}: {e}")

        logger.info("note_created", path=ref)
        return ref
