"""
Data Models Package

All records read from or written to expense notes conform to these schemas.
"""

from expense_notes.models.expense import (
    PLACEHOLDER,
    Category,
    ExpenseProcessingResult,
    ExpenseRecord,
    ExpenseSummary,
    OperationResult,
    ProcessingResult,
    RecurrencePeriod,
    RecurringSchedule,
    TableRange,
    ValidationIssue,
    ValidationResult,
)

__all__ = [
    "PLACEHOLDER",
    "Category",
    "ExpenseProcessingResult",
    "ExpenseRecord",
    "ExpenseSummary",
    "OperationResult",
    "ProcessingResult",
    "RecurrencePeriod",
    "RecurringSchedule",
    "TableRange",
    "ValidationIssue",
    "ValidationResult",
]
