"""Expense aggregation package."""

from expense_notes.queries.summary import filter_records, summarize

__all__ = ["filter_records", "summarize"]
