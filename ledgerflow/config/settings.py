"""
Configuration Management for LedgerFlow

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
This makes it easy to see what external dependencies exist and
ensures all required configuration is validated at startup.
"""

from decimal import Decimal
from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class WebhookSettings(BaseSettings):
    """Document-understanding webhook configuration."""

    model_config = SettingsConfigDict(
        env_prefix="WEBHOOK_",
        extra="ignore"
    )

    url: str = Field(
        ...,
        description="Endpoint that accepts a raw document and returns extracted fields"
    )
    timeout_seconds: float = Field(
        default=180.0,
        gt=0,
        description="Hard cap on a single upload request"
    )
    source: str = Field(
        default="dashboard",
        description="Value sent in the 'source' form field"
    )


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets remote store configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        extra="ignore"
    )

    credentials_path: str = Field(
        ...,
        description="Path to Google service account credentials JSON"
    )
    spreadsheet_id: str = Field(
        ...,
        description="ID of the Google Sheets spreadsheet to use"
    )

    # Worksheets standing in for the two remote tables
    vouchers_sheet_name: str = Field(
        default="Vouchers",
        description="Name of the sheet holding voucher rows"
    )
    impact_sheet_name: str = Field(
        default="DashboardImpact",
        description="Name of the sheet holding the single dashboard impact row"
    )

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """Warn if credentials file doesn't exist (but don't fail - might be mounted later)."""
        if not Path(v).exists():
            import warnings
            warnings.warn(
                f"Google credentials file not found at {v}. "
                "Make sure it exists before running the application."
            )
        return v


class CacheSettings(BaseSettings):
    """Local durable cache configuration."""

    model_config = SettingsConfigDict(
        env_prefix="CACHE_",
        extra="ignore"
    )

    directory: str = Field(
        default=".ledgerflow_cache",
        description="Directory holding one JSON file per cached collection"
    )
    namespace: str = Field(
        default="ledgerflow",
        description="Prefix applied to every cache key"
    )


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

    # Environment
    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )

    # Intake pacing (UI feedback only, not functional gates)
    stage_dwell_seconds: float = Field(
        default=0.8,
        ge=0.0,
        description="Pause between intake stages after the webhook responds"
    )
    posting_settle_seconds: float = Field(
        default=1.5,
        ge=0.0,
        description="Pause before an approval is applied"
    )

    # Reconciliation
    reconciliation_tolerance: Decimal = Field(
        default=Decimal("1"),
        ge=0,
        description="Book vs portal difference still counted as a match"
    )

    # Persistence limits
    max_inline_file_bytes: int = Field(
        default=2_000_000,
        ge=0,
        description="Largest encoded file kept inline with a voucher"
    )
    audit_log_limit: int = Field(
        default=100,
        ge=1,
        description="Number of audit entries kept in the local cache"
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

    # Sub-settings are loaded lazily to allow partial configuration

    @property
    def webhook(self) -> WebhookSettings:
        return WebhookSettings()

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def cache(self) -> CacheSettings:
        return CacheSettings()

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

    for name in ("webhook", "google_sheets", "cache", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
