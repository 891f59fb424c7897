"""
Configuration Management for Pocket Ledger

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
Business limits (transaction ceiling, goal limits, retry bounds) live
next to each other so they can be tuned per environment without code changes.
"""

from decimal import Decimal
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class LedgerSettings(BaseSettings):
    """Money-movement limits and optimistic-concurrency tuning."""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_",
        extra="ignore"
    )

    max_transaction_amount: Decimal = Field(
        default=Decimal("10000.00"),
        gt=0,
        decimal_places=2,
        description="Largest amount accepted for a single deposit, withdrawal or transfer"
    )
    min_goal_amount: Decimal = Field(
        default=Decimal("1.00"),
        gt=0,
        decimal_places=2,
        description="Smallest target amount for a savings goal"
    )
    max_active_goals: int = Field(
        default=10,
        ge=1,
        description="Maximum number of non-broken savings goals per identity"
    )
    history_page_size: int = Field(
        default=10,
        ge=1,
        le=100,
        description="Number of transactions per history page"
    )

    # Optimistic concurrency
    max_commit_attempts: int = Field(
        default=5,
        ge=1,
        le=50,
        description="How many times a conflicting commit is re-read and retried"
    )
    retry_backoff_seconds: float = Field(
        default=0.005,
        ge=0.0,
        description="Base delay for exponential backoff between commit attempts"
    )
    retry_backoff_max_seconds: float = Field(
        default=0.05,
        ge=0.0,
        description="Upper bound for the backoff delay"
    )


class SecuritySettings(BaseSettings):
    """Secret hashing and registration policy."""

    model_config = SettingsConfigDict(
        env_prefix="SECURITY_",
        extra="ignore"
    )

    hash_iterations: int = Field(
        default=120_000,
        ge=1,
        description="PBKDF2 iteration count for PIN and password hashes"
    )
    salt_bytes: int = Field(
        default=16,
        ge=8,
        le=64,
        description="Random salt length in bytes"
    )
    minimum_age_years: int = Field(
        default=18,
        ge=0,
        description="Minimum age to register"
    )

    @field_validator('hash_iterations')
    @classmethod
    def warn_low_iterations(cls, v: int) -> int:
        """Warn (but don't fail) when the hash cost is test-grade."""
        if v < 10_000:
            import warnings
            warnings.warn(
                f"SECURITY_HASH_ITERATIONS={v} is too low for production use."
            )
        return v


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
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
    def security(self) -> SecuritySettings:
        return SecuritySettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Uses LRU cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}.
    Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    for name in ("ledger", "security", "app"):
        try:
            _ = getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
