"""Configuration package."""

from pocketledger.config.settings import (
    AppSettings,
    LedgerSettings,
    SecuritySettings,
    Settings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "LedgerSettings",
    "SecuritySettings",
    "Settings",
    "get_settings",
    "validate_all_settings",
]
