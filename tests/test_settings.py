"""Tests for configuration loading."""

import pytest
from pydantic import ValidationError

from expense_notes.config import (
    LedgerSettings,
    RecurringSettings,
    get_settings,
    validate_all_settings,
)


class TestLedgerSettings:
    """Tests for LedgerSettings."""

    def test_defaults(self, monkeypatch):
        """Defaults match the documented layout."""
        monkeypatch.delenv("EXPENSES_FOLDER_PATH", raising=False)
        settings = LedgerSettings(_env_file=None)
        assert settings.folder_path == "expenses"
        assert "food" in settings.categories_list

    def test_folder_path_slashes_stripped(self):
        """Leading and trailing slashes are removed."""
        assert LedgerSettings(folder_path="/finance/expenses/").folder_path == "finance/expenses"

    def test_empty_folder_path_rejected(self):
        """An empty folder path is invalid."""
        with pytest.raises(ValidationError):
            LedgerSettings(folder_path=" / ")

    def test_env_override(self, monkeypatch):
        """EXPENSES_* variables override defaults."""
        monkeypatch.setenv("EXPENSES_FOLDER_PATH", "money")
        monkeypatch.setenv("EXPENSES_CATEGORIES", "a, b ,,c")
        settings = LedgerSettings()
        assert settings.folder_path == "money"
        assert settings.categories_list == ["a", "b", "c"]


class TestRecurringSettings:
    """Tests for RecurringSettings."""

    def test_defaults(self):
        """Three commit attempts and a backfill cap of 24."""
        settings = RecurringSettings(_env_file=None)
        assert settings.commit_attempts == 3
        assert settings.backfill_cap == 24

    def test_commit_attempts_bounds(self):
        """At least one attempt is required."""
        with pytest.raises(ValidationError):
            RecurringSettings(commit_attempts=0)

    def test_env_override(self, monkeypatch):
        """RECURRING_* variables override defaults."""
        monkeypatch.setenv("RECURRING_BACKFILL_CAP", "6")
        assert RecurringSettings().backfill_cap == 6


class TestSettingsContainer:
    """Tests for the cached settings container."""

    def test_get_settings_is_cached(self):
        """get_settings returns one shared instance until cleared."""
        get_settings.cache_clear()
        assert get_settings() is get_settings()
        get_settings.cache_clear()

    def test_validate_all_settings(self, monkeypatch):
        """Broken sections are reported instead of raised."""
        monkeypatch.setenv("RECURRING_COMMIT_ATTEMPTS", "0")
        get_settings.cache_clear()
        results = validate_all_settings()
        assert results["ledger"] is True
        assert results["recurring"] is False
        assert "recurring_error" in results
        get_settings.cache_clear()
