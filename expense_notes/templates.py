"""Initial bodies for notes created by the resolver."""

from expense_notes.dates import month_name
from expense_notes.tables.schema import EXPENSE_TABLE, RECURRING_TABLE
from expense_notes.tables.store import TableDocumentStore


NEW_EXPENSES_TITLE = "new-expenses"
RECURRING_EXPENSES_TITLE = "recurring-expenses"


def _empty_table(schema) -> str:
    return "\n".join(TableDocumentStore().serialize(schema, []))


def monthly_document(year: str, month: str) -> str:
    return f"""# {month_name(month)} {year} Expenses

<!-- expenses-summary-monthly month="{year}-{month}" -->
<!-- /expenses-summary-monthly -->

## {EXPENSE_TABLE.heading}

{_empty_table(EXPENSE_TABLE)}
"""


def new_expenses_document() -> str:
    return f"""# New Expenses

Add your new expenses here. They will be moved to the matching monthly notes.

## {EXPENSE_TABLE.heading}

{_empty_table(EXPENSE_TABLE)}

## Instructions

1. Add new expense rows to the table above
2. Date format: YYYY-MM-DD (or leave empty for now)
3. Price: positive for expenses, negative for income
4. Set recurring to daily, weekly, monthly or yearly to create a schedule
"""


def recurring_expenses_document() -> str:
    return f"""# Recurring Expenses

Recurring templates that generate new expense entries when they fall due.

## {RECURRING_TABLE.heading}

{_empty_table(RECURRING_TABLE)}

## Instructions

1. Set "enabled" to "false" to pause a schedule without deleting it
2. "lastProcessed" and "nextDue" are maintained automatically
3. "never" in lastProcessed backfills missed entries from the date column
"""
