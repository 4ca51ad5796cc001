"""
Expense Aggregation

DESIGN DECISION: Summaries are computed from records, never stored.
Totals are recomputed from whatever the notes contain, so an edited or
deleted row can't leave a stale total behind.

Sign convention: positive amounts are expenses, negative amounts income.
Income is reported as a positive total; net = income - expense.
"""

from decimal import Decimal
from typing import Iterable, Optional

from expense_notes.models.expense import ExpenseRecord, ExpenseSummary


def summarize(records: Iterable[ExpenseRecord]) -> ExpenseSummary:
    """Totals, per-category and per-month sums over `records`."""
    total_expense = Decimal("0")
    total_income = Decimal("0")
    by_category: dict[str, Decimal] = {}
    by_month: dict[str, Decimal] = {}
    count = 0

    for record in records:
        count += 1
        if record.amount < 0:
            total_income += -record.amount
        else:
            total_expense += record.amount

        by_category[record.category] = (
            by_category.get(record.category, Decimal("0")) + record.amount
        )
        by_month[record.year_month] = (
            by_month.get(record.year_month, Decimal("0")) + record.amount
        )

    return ExpenseSummary(
        total_expense=total_expense,
        total_income=total_income,
        net_amount=total_income - total_expense,
        by_category=by_category,
        by_month=by_month,
        entry_count=count,
    )


def filter_records(
    records: Iterable[ExpenseRecord],
    year_month: Optional[str] = None,
    category: Optional[str] = None,
) -> list[ExpenseRecord]:
    """Records matching a YYYY-MM key and/or a category (case-insensitive)."""
    result = []
    for record in records:
        if year_month and record.year_month != year_month:
            continue
        if category and record.category.casefold() != category.casefold():
            continue
        result.append(record)
    return result
