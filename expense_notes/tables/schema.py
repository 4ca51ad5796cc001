"""
Table schemas.

A schema is the ordered list of column names that identifies a table
inside free text, plus what the store needs to write one back.
Column names are matched trimmed and case-folded.
"""

from pydantic import BaseModel, ConfigDict, Field


class TableSchema(BaseModel):
    """Column layout of one kind of embedded table."""
    model_config = ConfigDict(frozen=True)

    name: str
    columns: tuple[str, ...] = Field(..., min_length=1)
    key_columns: tuple[int, ...] = Field(
        default=(1, 2),
        description="Cells that must be non-empty and not '---' for a data row"
    )
    heading: str = Field(
        ...,
        description="Section heading used when the table has to be appended"
    )

    @property
    def signature(self) -> tuple[str, ...]:
        return tuple(normalize_header(c) for c in self.columns)

    @property
    def arity(self) -> int:
        return len(self.columns)


def normalize_header(cell: str) -> str:
    return cell.strip().casefold()


EXPENSE_COLUMNS = (
    "price",
    "description",
    "category",
    "date",
    "shop",
    "attachment",
    "recurring",
)

RECURRING_COLUMNS = EXPENSE_COLUMNS + (
    "lastProcessed",
    "nextDue",
    "enabled",
    "sourceNoteId",
)

EXPENSE_TABLE = TableSchema(
    name="expenses",
    columns=EXPENSE_COLUMNS,
    heading="Expense Table",
)

RECURRING_TABLE = TableSchema(
    name="recurring-expenses",
    columns=RECURRING_COLUMNS,
    heading="Recurring Expenses",
)
