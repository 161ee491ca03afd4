"""Configuration package."""

from ledgerflow.config.settings import (
    AppSettings,
    CacheSettings,
    GoogleSheetsSettings,
    Settings,
    WebhookSettings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "CacheSettings",
    "GoogleSheetsSettings",
    "Settings",
    "WebhookSettings",
    "get_settings",
    "validate_all_settings",
]
