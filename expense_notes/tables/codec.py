"""
Row <-> model conversion for the expense and recurring tables.

Cell order follows EXPENSE_COLUMNS / RECURRING_COLUMNS. Reading never
raises on malformed cells: amounts fall back to 0 and dates to "now",
each with a logged warning.
"""

from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Optional, Sequence

from pydantic import ValidationError

from expense_notes.dates import TimezonePolicy, format_instant, parse_datetime
from expense_notes.log import get_logger
from expense_notes.models.expense import (
    ExpenseRecord,
    RecurrencePeriod,
    RecurringSchedule,
)
from expense_notes.tables.schema import EXPENSE_TABLE, RECURRING_TABLE
from expense_notes.tables.store import TableDocumentStore


logger = get_logger(__name__)

NEVER = "never"


def format_amount(amount: Decimal) -> str:
    """Plain notation, no rounding: 10.5 -> '10.5', 10.50 -> '10.50'."""
    return format(amount, "f")


def parse_amount(cell: str) -> Decimal:
    text = (cell or "").strip()
    try:
        value = Decimal(text)
    except InvalidOperation:
        logger.warning("amount_fell_back_to_zero", raw=text)
        return Decimal("0")
    if not value.is_finite():
        logger.warning("amount_fell_back_to_zero", raw=text)
        return Decimal("0")
    return value


def _cell(cells: Sequence[str], index: int) -> str:
    return cells[index].strip() if index < len(cells) else ""


def expense_to_row(record: ExpenseRecord) -> list[str]:
    return [
        format_amount(record.amount),
        record.description,
        record.category,
        format_instant(record.timestamp),
        record.counterparty,
        record.attachment_ref or "",
        record.recurrence_tag,
    ]


def row_to_expense(
    cells: Sequence[str],
    policy: Optional[TimezonePolicy] = None,
    now: Optional[datetime] = None,
) -> ExpenseRecord:
    """
    Build a record from one expense row.

    Raises:
        ValidationError: If description or category is unusable
    """
    return ExpenseRecord(
        amount=parse_amount(_cell(cells, 0)),
        description=_cell(cells, 1),
        category=_cell(cells, 2),
        timestamp=parse_datetime(_cell(cells, 3), policy, now).instant,
        counterparty=_cell(cells, 4),
        attachment_ref=_cell(cells, 5),
        recurrence_tag=_cell(cells, 6),
    )


def schedule_to_row(schedule: RecurringSchedule) -> list[str]:
    return expense_to_row(schedule) + [
        format_instant(schedule.last_processed) if schedule.last_processed else NEVER,
        format_instant(schedule.next_due),
        "true" if schedule.enabled else "false",
        schedule.origin_id or "",
    ]


def row_to_schedule(
    cells: Sequence[str],
    policy: Optional[TimezonePolicy] = None,
    now: Optional[datetime] = None,
) -> RecurringSchedule:
    """
    Build a schedule from one recurring-table row.

    An empty or 'never' lastProcessed cell means the schedule never ran.
    Dates are re-expressed in the policy zone, so stepping from them
    follows that zone's DST rules.

    Raises:
        ValidationError: If description or category is unusable
    """
    policy = policy or TimezonePolicy.local()

    def instant(cell: str) -> datetime:
        return policy.localize(parse_datetime(cell, policy, now).instant)

    last_cell = _cell(cells, 7)
    if last_cell.lower() in ("", NEVER):
        last_processed = None
    else:
        last_processed = instant(last_cell)

    return RecurringSchedule(
        amount=parse_amount(_cell(cells, 0)),
        description=_cell(cells, 1),
        category=_cell(cells, 2),
        timestamp=instant(_cell(cells, 3)),
        counterparty=_cell(cells, 4),
        attachment_ref=_cell(cells, 5),
        period=RecurrencePeriod.parse(_cell(cells, 6)),
        last_processed=last_processed,
        next_due=instant(_cell(cells, 8)),
        enabled=_cell(cells, 9).lower() == "true",
        origin_id=_cell(cells, 10),
    )


def read_expenses(
    text: str,
    store: Optional[TableDocumentStore] = None,
    policy: Optional[TimezonePolicy] = None,
) -> list[ExpenseRecord]:
    """All valid records in the document's expense table."""
    store = store or TableDocumentStore()
    records = []
    for cells in store.parse_rows(text, EXPENSE_TABLE):
        try:
            records.append(row_to_expense(cells, policy))
        except ValidationError as e:
            logger.warning("expense_row_skipped", row=cells, error=str(e))
    return records


def read_schedules(
    text: str,
    store: Optional[TableDocumentStore] = None,
    policy: Optional[TimezonePolicy] = None,
) -> list[RecurringSchedule]:
    """All valid schedules in the document's recurring table."""
    store = store or TableDocumentStore()
    schedules = []
    for cells in store.parse_rows(text, RECURRING_TABLE):
        try:
            schedules.append(row_to_schedule(cells, policy))
        except ValidationError as e:
            logger.warning("schedule_row_skipped", row=cells, error=str(e))
    return schedules
