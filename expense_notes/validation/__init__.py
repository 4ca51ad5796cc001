"""Input validation package."""

from expense_notes.validation.validator import ExpenseValidator, sanitize_attachment

__all__ = ["ExpenseValidator", "sanitize_attachment"]
