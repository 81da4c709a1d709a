"""
Configuration Management for finledger

Typed ledger and store configuration, loaded with pydantic-settings.

DESIGN DECISION: Every tunable value lives in this module.
Ledger policy that must not drift between installations (the split
tolerance, the budget status thresholds) is NOT configuration and lives
next to the code that applies it.
"""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class StoreSettings(BaseSettings):
    """Ledger store access configuration."""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_STORE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Only reads are retried. Writes are never retried because a
    # repeated insert could duplicate a transaction.
    read_retry_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Attempts for read-side projections when the store is unavailable"
    )
    read_retry_wait_seconds: float = Field(
        default=0.5,
        ge=0.0,
        le=30.0,
        description="Initial wait between read retries (exponential backoff)"
    )


class LedgerSettings(BaseSettings):
    """
    Main ledger settings.

    Read from LEDGER_* environment variables and the .env file.
    """

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Environment
    environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )

    default_currency: str = Field(
        default="USD",
        min_length=3,
        max_length=3,
        description="Currency assigned to accounts created without one"
    )

    # Recurring generation
    max_catch_up_occurrences: int = Field(
        default=5000,
        ge=1,
        description="Upper bound on occurrences one rule may emit in a single run"
    )
    upcoming_recurring_days: int = Field(
        default=30,
        ge=1,
        le=366,
        description="Look-ahead window for the dashboard's upcoming recurring list"
    )

    # Reports
    report_top_categories: int = Field(
        default=10,
        ge=1,
        le=100,
        description="Number of categories kept in the spending report"
    )

    @field_validator('default_currency')
    @classmethod
    def normalize_currency(cls, v: str) -> str:
        """Currency codes are stored upper-case."""
        return v.upper()


class Settings(BaseSettings):
    """
    Root settings container.

    Gives access to the ledger and store settings groups.
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
    def store(self) -> StoreSettings:
        return StoreSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Process-wide settings, built once.

    Tests that change the environment call get_settings.cache_clear().
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Check that every settings group loads from the current environment.

    Maps each settings group to whether it loads, plus an error entry for a group that does not.
    Run once at startup.
    """
    results = {}

    settings = get_settings()

    try:
        _ = settings.ledger
        results["ledger"] = True
    except Exception as e:
        results["ledger"] = False
        results["ledger_error"] = str(e)

    try:
        _ = settings.store
        results["store"] = True
    except Exception as e:
        results["store"] = False
        results["store_error"] = str(e)

    return results
