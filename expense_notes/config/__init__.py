"""Configuration package."""

from expense_notes.config.settings import (
    LedgerSettings,
    RecurringSettings,
    Settings,
    StorageSettings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "LedgerSettings",
    "RecurringSettings",
    "Settings",
    "StorageSettings",
    "get_settings",
    "validate_all_settings",
]
