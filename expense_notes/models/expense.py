"""
Core Data Models for Expense Notes

These models define the schemas for everything read from or written to
the expense tables. They are designed to:
1. Reject invalid records at construction, not at each use site
2. Be immutable once created (a record is appended whole or not at all)
3. Round-trip through the markdown table codec without loss

DESIGN DECISION: Period is a closed enum and category a validated type.
Free text that isn't a known period collapses to RecurrencePeriod.NONE.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, Optional

from pydantic import (
    AfterValidator,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)

from expense_notes.dates import ensure_aware, now_in, year_month_of


PLACEHOLDER = "---"


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class RecurrencePeriod(str, Enum):
    """
    How often a recurring schedule fires.

    NONE is serialized as an empty cell and is never due.
    """
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"
    NONE = ""

    @classmethod
    def parse(cls, text: Optional[str]) -> "RecurrencePeriod":
        """Read a cell; anything that isn't a known period is NONE."""
        value = (text or "").strip().lower()
        try:
            return cls(value)
        except ValueError:
            return cls.NONE


def _require_text(value: str) -> str:
    value = value.strip()
    if not value or value == PLACEHOLDER:
        raise ValueError("value is required and cannot be a placeholder")
    return value


# Validated category name: trimmed, non-empty, not a template placeholder.
Category = Annotated[str, AfterValidator(_require_text)]


# =============================================================================
# LEDGER RECORDS
# =============================================================================

class ExpenseRecord(BaseModel):
    """
    One ledger entry.

    Positive amounts are expenses, negative amounts income.
    Records produced from a schedule carry an empty recurrence_tag;
    recurrence never cascades.
    """
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    amount: Decimal = Field(
        ...,
        description="Signed amount (positive = expense, negative = income)"
    )
    description: str = Field(
        ...,
        min_length=1,
        description="What the money was for"
    )
    category: Category = Field(
        ...,
        description="Category name"
    )
    timestamp: datetime = Field(
        default_factory=now_in,
        description="When it happened (defaults to now)"
    )
    counterparty: str = Field(
        default="",
        description="Shop or payee"
    )
    attachment_ref: Optional[str] = Field(
        default=None,
        description="Link or path to a receipt"
    )
    recurrence_tag: str = Field(
        default="",
        description="Period name if this entry should become a schedule"
    )

    @field_validator('amount', mode='before')
    @classmethod
    def amount_without_float_noise(cls, v: Any) -> Any:
        """10.5 stays 10.5 instead of the binary float expansion."""
        if isinstance(v, float):
            return Decimal(repr(v))
        return v

    @field_validator('description')
    @classmethod
    def description_not_placeholder(cls, v: str) -> str:
        return _require_text(v)

    @field_validator('timestamp')
    @classmethod
    def timestamp_is_aware(cls, v: datetime) -> datetime:
        return ensure_aware(v)

    @field_validator('attachment_ref', mode='before')
    @classmethod
    def blank_attachment_is_none(cls, v: Any) -> Any:
        if v is None or (isinstance(v, str) and not v.strip()):
            return None
        return v

    @field_validator('recurrence_tag', mode='before')
    @classmethod
    def normalize_recurrence_tag(cls, v: Any) -> str:
        if isinstance(v, RecurrencePeriod):
            return v.value
        return RecurrencePeriod.parse(v).value

    @property
    def year_month(self) -> str:
        """YYYY-MM of the wall-clock date; selects the monthly note."""
        return year_month_of(self.timestamp)


class RecurringSchedule(ExpenseRecord):
    """
    A template record plus its scheduling state.

    The inherited timestamp is the anchor date: the date of the entry the
    schedule was created from. last_processed=None means the schedule has
    never run, which triggers backfill from the anchor.
    """

    last_processed: Optional[datetime] = Field(
        default=None,
        description="When the schedule last produced records (None = never)"
    )
    next_due: datetime = Field(
        ...,
        description="Next occurrence to generate"
    )
    enabled: bool = Field(
        default=True,
        description="Disabled schedules are never due"
    )
    period: RecurrencePeriod = Field(
        default=RecurrencePeriod.NONE,
        description="Recurrence period"
    )
    origin_id: Optional[str] = Field(
        default=None,
        description="Reference to the note the schedule was defined in"
    )

    @model_validator(mode='before')
    @classmethod
    def sync_period_and_tag(cls, data: Any) -> Any:
        """The recurring column is both the tag and the period."""
        if not isinstance(data, dict):
            return data
        data = dict(data)
        period = data.get("period")
        tag = data.get("recurrence_tag")
        if period in (None, "") and tag:
            data["period"] = RecurrencePeriod.parse(tag)
        elif period not in (None, ""):
            data["recurrence_tag"] = RecurrencePeriod.parse(
                period.value if isinstance(period, RecurrencePeriod) else period
            )
        return data

    @field_validator('last_processed', 'next_due')
    @classmethod
    def schedule_dates_are_aware(cls, v: Optional[datetime]) -> Optional[datetime]:
        return ensure_aware(v) if v is not None else None

    @field_validator('origin_id', mode='before')
    @classmethod
    def blank_origin_is_none(cls, v: Any) -> Any:
        if v is None or (isinstance(v, str) and not v.strip()):
            return None
        return v

    @property
    def anchor(self) -> datetime:
        return self.timestamp

    @property
    def is_first_run(self) -> bool:
        return self.last_processed is None

    def occurrence(self, when: datetime) -> ExpenseRecord:
        """Stamp the template fields onto a record dated `when`."""
        return ExpenseRecord(
            amount=self.amount,
            description=self.description,
            category=self.category,
            timestamp=when,
            counterparty=self.counterparty,
            attachment_ref=self.attachment_ref,
            recurrence_tag="",
        )


# =============================================================================
# TABLE LOCATION
# =============================================================================

class TableRange(BaseModel):
    """Lines [start_line, end_line_exclusive) holding one located table."""
    model_config = ConfigDict(frozen=True)

    start_line: int = Field(..., ge=0)
    end_line_exclusive: int = Field(..., ge=1)

    @model_validator(mode='after')
    def validate_bounds(self) -> 'TableRange':
        if self.end_line_exclusive <= self.start_line:
            raise ValueError("Table range must contain at least the header line")
        return self

    def __len__(self) -> int:
        return self.end_line_exclusive - self.start_line


# =============================================================================
# RESULT MODELS
# =============================================================================

class ProcessingResult(BaseModel):
    """
    Outcome of one recurring processing pass.

    errors are non-fatal and human-readable. critical_errors are also
    listed in errors; they mark schedules whose state could not be
    committed after their records were written.
    """

    processed: int = Field(default=0, ge=0)
    created: int = Field(default=0, ge=0)
    errors: list[str] = Field(default_factory=list)
    critical_errors: list[str] = Field(default_factory=list)
    new_expenses: list[ExpenseRecord] = Field(default_factory=list)

    @property
    def has_critical_errors(self) -> bool:
        return len(self.critical_errors) > 0


class ExpenseProcessingResult(BaseModel):
    """Outcome of filing the new-expenses inbox into monthly notes."""

    processed: int = Field(default=0, ge=0)
    failed: int = Field(default=0, ge=0)
    schedules_created: int = Field(default=0, ge=0)
    moved: list[ExpenseRecord] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)


class OperationResult(BaseModel):
    """Outcome of a single-record write."""

    success: bool
    errors: list[str] = Field(default_factory=list)


class ExpenseSummary(BaseModel):
    """Totals over a set of records."""

    total_expense: Decimal = Decimal("0")
    total_income: Decimal = Decimal("0")
    net_amount: Decimal = Decimal("0")
    by_category: dict[str, Decimal] = Field(default_factory=dict)
    by_month: dict[str, Decimal] = Field(default_factory=dict)
    entry_count: int = Field(default=0, ge=0)


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_format', 'out_of_range')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )


class ValidationResult(BaseModel):
    """Result of sanitizing and validating user input."""

    is_valid: bool
    issues: list[ValidationIssue] = Field(default_factory=list)
    record: Optional[ExpenseRecord] = Field(
        default=None,
        description="Sanitized record when validation passed"
    )

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_messages(self) -> list[str]:
        return [issue.message for issue in self.issues if issue.severity == "error"]
