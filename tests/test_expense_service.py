"""Tests for the inbox and monthly-note operations."""

import asyncio
from datetime import datetime
from decimal import Decimal

import pytest
from dateutil import tz

from expense_notes.services import ExpenseService, FolderTargetResolver, InMemoryDocumentStore
from expense_notes.tables import EXPENSE_TABLE, RECURRING_TABLE, TableDocumentStore

from conftest import INBOX_PATH, NOW, RECURRING_PATH, FlakyStore, expense_table, inbox_note


TABLES = TableDocumentStore()

GROCERIES = ["20", "Groceries", "food", "2025-03-05", "Market", "", ""]
NETFLIX = ["15", "Netflix", "entertainment", "2025-04-02", "", "", "monthly"]
BUS = ["2.40", "Bus", "transport", "2025-03-07", "", "", ""]


def rows_at(store, path, schema=EXPENSE_TABLE):
    return TABLES.parse_rows(store.body_at(path), schema)


def march_note(*rows):
    return f"# March 2025 Expenses\n\n## Expense Table\n\n{expense_table(*rows)}\n"


class TestAddNewExpense:
    """Tests for add_new_expense."""

    def test_valid_entry_lands_in_inbox(self, make_components):
        """A valid entry is appended to the inbox table."""
        store = InMemoryDocumentStore()
        _, service = make_components(store)

        result = asyncio.run(service.add_new_expense({
            "price": "12.50",
            "description": "Lunch",
            "category": "food",
            "date": "2025-04-10",
            "shop": "Cafe",
        }, NOW))

        assert result.success
        assert rows_at(store, INBOX_PATH) == [
            ["12.50", "Lunch", "food", "2025-04-10T00:00:00Z", "Cafe", "", ""],
        ]

    def test_invalid_entry_rejected(self, make_components):
        """Validation errors are returned and nothing is written."""
        store = InMemoryDocumentStore()
        _, service = make_components(store)

        result = asyncio.run(service.add_new_expense({"price": "5", "category": "food"}, NOW))

        assert not result.success
        assert "Description is required" in result.errors
        assert store.body_at(INBOX_PATH) is None

    def test_storage_failure_reported(self, make_components):
        """A failed inbox write is an error, not an exception."""
        store = FlakyStore(fail_writes=[INBOX_PATH])
        _, service = make_components(store)

        result = asyncio.run(service.add_new_expense(
            {"price": "5", "description": "Tea", "category": "food"}, NOW
        ))

        assert not result.success
        assert result.errors[0].startswith("Failed to add expense:")

    def test_auto_process(self, ledger_settings, recurring_settings, utc, make_components):
        """With auto-processing on, the entry goes straight to its month."""
        store = InMemoryDocumentStore()
        coordinator, _ = make_components(store)
        settings = ledger_settings.model_copy(update={"auto_process_new_expenses": True})
        service = ExpenseService(
            store,
            FolderTargetResolver(store, settings),
            coordinator,
            settings=settings,
            policy=utc,
        )

        result = asyncio.run(service.add_new_expense(
            {"price": "3", "description": "Coffee", "category": "food", "date": "2025-04-12"}, NOW
        ))

        assert result.success
        assert rows_at(store, INBOX_PATH) == []
        assert [cells[1] for cells in rows_at(store, "expenses/2025/04")] == ["Coffee"]


class TestProcessNewExpenses:
    """Tests for filing the inbox."""

    def test_files_rows_by_month(self, make_components):
        """Each entry moves to the note for its month and the inbox empties."""
        store = InMemoryDocumentStore({INBOX_PATH: inbox_note(GROCERIES, BUS, NETFLIX)})
        _, service = make_components(store)

        result = asyncio.run(service.process_new_expenses(NOW))

        assert result.errors == []
        assert result.processed == 3
        assert result.failed == 0
        assert [r.description for r in result.moved] == ["Groceries", "Bus", "Netflix"]
        assert [cells[1] for cells in rows_at(store, "expenses/2025/03")] == ["Groceries", "Bus"]
        assert rows_at(store, INBOX_PATH) == []
        assert "## Instructions" in store.body_at(INBOX_PATH)

    def test_recurring_entry_becomes_schedule(self, make_components):
        """A tagged entry creates a never-run schedule and is filed itself."""
        store = InMemoryDocumentStore({INBOX_PATH: inbox_note(NETFLIX)})
        coordinator, service = make_components(store)

        result = asyncio.run(service.process_new_expenses(NOW))

        assert result.schedules_created == 1
        april = rows_at(store, "expenses/2025/04")
        assert april[0][1] == "Netflix"
        assert april[0][6] == "monthly"

        schedules = rows_at(store, RECURRING_PATH, RECURRING_TABLE)
        assert len(schedules) == 1
        assert schedules[0][7] == "never"
        assert schedules[0][8] == "2025-05-02T00:00:00Z"
        assert schedules[0][9] == "true"
        assert schedules[0][10] != ""

        # Not due until May 2.
        assert asyncio.run(coordinator.process_all(NOW)).processed == 0

    def test_failed_month_stays_in_inbox(self, make_components):
        """Rows for a month that can't be written are kept for the next run."""
        store = FlakyStore(
            {INBOX_PATH: inbox_note(GROCERIES, NETFLIX)},
            fail_writes=["expenses/2025/03"],
        )
        _, service = make_components(store)

        result = asyncio.run(service.process_new_expenses(NOW))

        assert result.processed == 1
        assert result.failed == 1
        assert len(result.errors) == 1
        assert "2025-03" in result.errors[0]
        assert rows_at(store, INBOX_PATH) == [GROCERIES]

    def test_failed_schedule_stays_in_inbox(self, make_components):
        """If the schedule can't be stored the entry isn't filed either."""
        store = FlakyStore(
            {INBOX_PATH: inbox_note(GROCERIES, NETFLIX)},
            fail_writes=[RECURRING_PATH],
        )
        _, service = make_components(store)

        result = asyncio.run(service.process_new_expenses(NOW))

        assert result.processed == 1
        assert result.schedules_created == 0
        assert result.errors[0].startswith('Failed to create recurring expense "Netflix"')
        assert rows_at(store, INBOX_PATH) == [NETFLIX]
        assert store.body_at("expenses/2025/04") is None

    def test_refiling_keeps_committed_schedule(self, make_components):
        """A recurring row retried after a pass doesn't reset its schedule."""
        rent = ["50", "Rent", "housing", "2025-01-01", "Landlord", "", "monthly"]
        store = FlakyStore(
            {INBOX_PATH: inbox_note(rent)},
            fail_writes=["expenses/2025/01"],
            failures=1,
        )
        coordinator, service = make_components(store)

        first = asyncio.run(service.process_new_expenses(NOW))
        assert first.schedules_created == 1
        assert first.failed == 1
        assert rows_at(store, INBOX_PATH) == [rent]

        assert asyncio.run(coordinator.process_all(NOW)).created == 3

        second = asyncio.run(service.process_new_expenses(NOW))
        assert second.processed == 1
        assert second.schedules_created == 0
        assert rows_at(store, INBOX_PATH) == []

        schedule = rows_at(store, RECURRING_PATH, RECURRING_TABLE)[0]
        assert schedule[7] == "2025-04-15T12:00:00Z"
        assert schedule[8] == "2025-05-01T00:00:00Z"

        again = asyncio.run(coordinator.process_all(NOW))
        assert again.created == 0
        assert len(rows_at(store, "expenses/2025/02")) == 1

    def test_empty_inbox(self, make_components):
        """An empty inbox is a no-op."""
        store = InMemoryDocumentStore()
        _, service = make_components(store)

        result = asyncio.run(service.process_new_expenses(NOW))

        assert result.processed == 0
        assert result.errors == []


class TestMonthlyEdits:
    """Tests for reading, updating and deleting monthly rows."""

    @pytest.fixture
    def store(self):
        return InMemoryDocumentStore({"expenses/2025/03": march_note(GROCERIES, BUS)})

    def test_get_monthly_expenses(self, make_components, store):
        """Records come back in table order."""
        _, service = make_components(store)
        records = asyncio.run(service.get_monthly_expenses("2025-03"))
        assert [r.description for r in records] == ["Groceries", "Bus"]
        assert records[0].timestamp == datetime(2025, 3, 5, tzinfo=tz.UTC)

    def test_get_monthly_summary(self, make_components, store):
        """The summary covers the month's records."""
        _, service = make_components(store)
        summary = asyncio.run(service.get_monthly_summary("2025-03"))
        assert summary.total_expense == Decimal("22.40")
        assert summary.entry_count == 2

    def test_update_in_place(self, make_components, store):
        """Same-month updates replace the row where it is."""
        _, service = make_components(store)
        groceries = asyncio.run(service.get_monthly_expenses("2025-03"))[0]

        result = asyncio.run(service.update_expense(
            groceries, groceries.model_copy(update={"amount": Decimal("25")})
        ))

        assert result.success
        rows = rows_at(store, "expenses/2025/03")
        assert [cells[:2] for cells in rows] == [["25", "Groceries"], ["2.40", "Bus"]]

    def test_update_moves_month(self, make_components, store):
        """Changing the date to another month moves the row."""
        _, service = make_components(store)
        bus = asyncio.run(service.get_monthly_expenses("2025-03"))[1]

        result = asyncio.run(service.update_expense(
            bus, bus.model_copy(update={"timestamp": datetime(2025, 4, 1, tzinfo=tz.UTC)})
        ))

        assert result.success
        assert [cells[1] for cells in rows_at(store, "expenses/2025/03")] == ["Groceries"]
        assert [cells[1] for cells in rows_at(store, "expenses/2025/04")] == ["Bus"]

    def test_update_from_raw_values(self, make_components, store):
        """Raw values are validated before anything is written."""
        _, service = make_components(store)
        groceries = asyncio.run(service.get_monthly_expenses("2025-03"))[0]

        result = asyncio.run(service.update_expense(groceries, {"price": "abc"}))

        assert not result.success
        assert rows_at(store, "expenses/2025/03")[0] == GROCERIES

    def test_update_missing_original(self, make_components, store):
        """Unknown originals are reported."""
        _, service = make_components(store)
        groceries = asyncio.run(service.get_monthly_expenses("2025-03"))[0]
        ghost = groceries.model_copy(update={"description": "Ghost"})

        result = asyncio.run(service.update_expense(ghost, groceries))

        assert not result.success
        assert result.errors == ["Original expense entry not found"]

    def test_delete(self, make_components, store):
        """Deleting removes the row; deleting again reports not found."""
        _, service = make_components(store)
        bus = asyncio.run(service.get_monthly_expenses("2025-03"))[1]

        assert asyncio.run(service.delete_expense(bus)).success
        assert [cells[1] for cells in rows_at(store, "expenses/2025/03")] == ["Groceries"]

        again = asyncio.run(service.delete_expense(bus))
        assert not again.success
        assert again.errors == ["Expense entry not found"]

    def test_delete_removes_one_duplicate(self, make_components):
        """Only the first of two identical rows is removed."""
        store = InMemoryDocumentStore({"expenses/2025/03": march_note(BUS, BUS)})
        _, service = make_components(store)
        bus = asyncio.run(service.get_monthly_expenses("2025-03"))[0]

        asyncio.run(service.delete_expense(bus))

        assert len(rows_at(store, "expenses/2025/03")) == 1
