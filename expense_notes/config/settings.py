"""
Configuration Management for Expense Notes

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
Components receive their settings through the constructor and only
fall back to get_settings() when nothing is injected.
"""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class LedgerSettings(BaseSettings):
    """Ledger layout and input defaults."""

    model_config = SettingsConfigDict(
        env_prefix="EXPENSES_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    folder_path: str = Field(
        default="expenses",
        description="Root folder holding the yearly/monthly expense notes"
    )
    default_timezone: str = Field(
        default="local",
        description="How naive timestamps are read: 'local', 'utc', '+N'/'-N' hours or a zone like 'Europe/Berlin'"
    )
    categories: str = Field(
        default="food,transport,utilities,entertainment,shopping,income,other",
        description="Comma-separated list of known categories"
    )
    auto_process_new_expenses: bool = Field(
        default=True,
        description="Move inbox entries to monthly notes after each edit"
    )

    @field_validator('folder_path')
    @classmethod
    def strip_slashes(cls, v: str) -> str:
        """Folder paths are stored without leading/trailing slashes."""
        v = v.strip().strip("/")
        if not v:
            raise ValueError("folder_path cannot be empty")
        return v

    @property
    def categories_list(self) -> list[str]:
        """Get categories as a list."""
        return [c.strip() for c in self.categories.split(",") if c.strip()]


class RecurringSettings(BaseSettings):
    """Recurring schedule processing limits."""

    model_config = SettingsConfigDict(
        env_prefix="RECURRING_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    backfill_cap: int = Field(
        default=24,
        ge=0,
        le=1000,
        description="Maximum missed occurrences generated on first activation"
    )
    commit_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Attempts to write back schedule state"
    )
    commit_backoff_seconds: float = Field(
        default=0.5,
        ge=0.0,
        description="Base delay for exponential backoff between commit attempts"
    )
    commit_backoff_max_seconds: float = Field(
        default=4.0,
        ge=0.0,
        description="Upper bound for a single backoff delay"
    )


class StorageSettings(BaseSettings):
    """Filesystem note storage configuration."""

    model_config = SettingsConfigDict(
        env_prefix="NOTES_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    root_path: str = Field(
        default="notes",
        description="Directory holding one markdown file per note"
    )
    extension: str = Field(
        default=".md",
        description="File extension for note files"
    )


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    @property
    def ledger(self) -> LedgerSettings:
        return LedgerSettings()

    @property
    def recurring(self) -> RecurringSettings:
        return RecurringSettings()

    @property
    def storage(self) -> StorageSettings:
        return StorageSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings sections load.

    Returns a dict of {setting_name: is_valid}, plus '<name>_error'
    entries describing any failure.
    """
    results = {}
    settings = get_settings()

    for name in ("ledger", "recurring", "storage"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
