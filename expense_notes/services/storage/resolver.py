"""
Folder-based target resolution.

Layout under the configured expenses folder:

    <folder>/new-expenses
    <folder>/recurring-expenses
    <folder>/<YYYY>/<MM>
"""

import re
from typing import Optional

from expense_notes.config import LedgerSettings, get_settings
from expense_notes.services.storage.interface import (
    DocumentRef,
    DocumentStore,
    TargetResolver,
)
from expense_notes.templates import (
    NEW_EXPENSES_TITLE,
    RECURRING_EXPENSES_TITLE,
    monthly_document,
    new_expenses_document,
    recurring_expenses_document,
)


_YEAR_MONTH_RE = re.compile(r"^(\d{4})-(0[1-9]|1[0-2])$")


class FolderTargetResolver(TargetResolver):
    """Resolves ledger notes by folder path, creating them from templates."""

    def __init__(
        self,
        store: DocumentStore,
        settings: Optional[LedgerSettings] = None,
    ):
        self._store = store
        self._settings = settings or get_settings().ledger

    async def target_document_for(self, year_month: str) -> DocumentRef:
        match = _YEAR_MONTH_RE.match(year_month)
        if not match:
            raise ValueError(f"Expected YYYY-MM, got {year_month!r}")
        year, month = match.groups()
        return await self._store.resolve_or_create(
            f"{self._settings.folder_path}/{year}/{month}",
            monthly_document(year, month),
        )

    async def new_expenses_document(self) -> DocumentRef:
        return await self._store.resolve_or_create(
            f"{self._settings.folder_path}/{NEW_EXPENSES_TITLE}",
            new_expenses_document(),
        )

    async def recurring_document(self) -> DocumentRef:
        return await self._store.resolve_or_create(
            f"{self._settings.folder_path}/{RECURRING_EXPENSES_TITLE}",
            recurring_expenses_document(),
        )
