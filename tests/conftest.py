"""
Shared fixtures.

All tests run against the in-memory store, UTC timestamps and zero
retry backoff. Nothing touches the network or a real notes directory.
"""

import time
from datetime import datetime

import pytest
from dateutil import tz

from expense_notes.config import LedgerSettings, RecurringSettings
from expense_notes.dates import TimezonePolicy
from expense_notes.orchestrator import RecurringProcessingCoordinator
from expense_notes.services import (
    DocumentWriteError,
    ExpenseService,
    FolderTargetResolver,
    InMemoryDocumentStore,
    StorageError,
)
from expense_notes.tables import EXPENSE_TABLE, RECURRING_TABLE, TableDocumentStore


NOW = datetime(2025, 4, 15, 12, 0, tzinfo=tz.UTC)

INBOX_PATH = "expenses/new-expenses"
RECURRING_PATH = "expenses/recurring-expenses"


def expense_table(*rows) -> str:
    return "\n".join(TableDocumentStore().serialize(EXPENSE_TABLE, rows))


def recurring_table(*rows) -> str:
    return "\n".join(TableDocumentStore().serialize(RECURRING_TABLE, rows))


def recurring_note(*rows) -> str:
    return f"# Recurring Expenses\n\n## Recurring Expenses\n\n{recurring_table(*rows)}\n"


def inbox_note(*rows) -> str:
    return f"# New Expenses\n\n## Expense Table\n\n{expense_table(*rows)}\n\n## Instructions\n"


class FlakyStore(InMemoryDocumentStore):
    """In-memory store whose reads or writes fail for chosen paths."""

    def __init__(self, documents=None, fail_writes=(), fail_reads=(), failures=None):
        """
        Args:
            fail_writes: Paths whose writes raise DocumentWriteError
            fail_reads: Paths whose reads raise StorageError
            failures: Number of writes that fail before they succeed
                      (None = always fail)
        """
        self._fail_write_paths = {p.strip("/") for p in fail_writes}
        self._fail_read_paths = {p.strip("/") for p in fail_reads}
        self._failing_writes: set[str] = set()
        self._failing_reads: set[str] = set()
        self._failures_left = failures
        self.failed_writes = 0
        super().__init__(documents)

    def _create(self, path, body):
        ref = super()._create(path, body)
        if path.strip("/") in self._fail_write_paths:
            self._failing_writes.add(ref)
        if path.strip("/") in self._fail_read_paths:
            self._failing_reads.add(ref)
        return ref

    async def read_body(self, ref):
        if ref in self._failing_reads:
            raise StorageError("read rejected")
        return await super().read_body(ref)

    async def write_body(self, ref, body):
        if ref in self._failing_writes and self._failures_left != 0:
            self.failed_writes += 1
            if self._failures_left is not None:
                self._failures_left -= 1
            raise DocumentWriteError("write rejected")
        await super().write_body(ref, body)


@pytest.fixture
def utc():
    return TimezonePolicy.utc()


@pytest.fixture
def berlin():
    return TimezonePolicy.named("Europe/Berlin")


@pytest.fixture
def berlin_host(monkeypatch):
    """Run with the host clock set to Europe/Berlin."""
    if not hasattr(time, "tzset"):
        pytest.skip("time.tzset is not available on this platform")
    monkeypatch.setenv("TZ", "Europe/Berlin")
    time.tzset()
    if time.tzname != ("CET", "CEST"):
        monkeypatch.undo()
        time.tzset()
        pytest.skip("host has no Europe/Berlin zone data")
    yield
    monkeypatch.undo()
    time.tzset()


@pytest.fixture
def ledger_settings():
    return LedgerSettings(
        folder_path="expenses",
        default_timezone="utc",
        auto_process_new_expenses=False,
    )


@pytest.fixture
def recurring_settings():
    return RecurringSettings(
        backfill_cap=24,
        commit_attempts=3,
        commit_backoff_seconds=0,
        commit_backoff_max_seconds=0,
    )


@pytest.fixture
def store():
    return InMemoryDocumentStore()


@pytest.fixture
def make_components(ledger_settings, recurring_settings, utc):
    """Build (coordinator, service) over a given store."""

    def _make(store):
        resolver = FolderTargetResolver(store, ledger_settings)
        coordinator = RecurringProcessingCoordinator(
            store,
            resolver,
            settings=recurring_settings,
            policy=utc,
            clock=lambda: NOW,
        )
        service = ExpenseService(
            store,
            resolver,
            coordinator,
            settings=ledger_settings,
            policy=utc,
        )
        return coordinator, service

    return _make
