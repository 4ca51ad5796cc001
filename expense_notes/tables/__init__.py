"""Embedded markdown table handling."""

from expense_notes.tables.codec import (
    expense_to_row,
    read_expenses,
    read_schedules,
    row_to_expense,
    row_to_schedule,
    schedule_to_row,
)
from expense_notes.tables.schema import (
    EXPENSE_COLUMNS,
    EXPENSE_TABLE,
    RECURRING_COLUMNS,
    RECURRING_TABLE,
    TableSchema,
)
from expense_notes.tables.store import TableDocumentStore

__all__ = [
    "EXPENSE_COLUMNS",
    "EXPENSE_TABLE",
    "RECURRING_COLUMNS",
    "RECURRING_TABLE",
    "TableDocumentStore",
    "TableSchema",
    "expense_to_row",
    "read_expenses",
    "read_schedules",
    "row_to_expense",
    "row_to_schedule",
    "schedule_to_row",
]
