"""
Configuration Management for KingMe

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
Business policy (dust threshold, freedom thresholds) lives next to the
infrastructure settings so it can be tuned without code changes.
"""

from decimal import Decimal
from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class StoreSettings(BaseSettings):
    """Local profile persistence configuration."""

    model_config = SettingsConfigDict(
        env_prefix="KINGME_STORE_",
        extra="ignore"
    )

    profile_path: str = Field(
        default="~/.kingme/profile.json",
        description="Where the profile snapshot is written on every mutation"
    )
    audit_log_path: Optional[str] = Field(
        default="~/.kingme/audit.jsonl",
        description="Append-only audit log; empty to log locally only"
    )

    # Solana base58 public keys are 32 bytes, 32-44 chars once encoded
    wallet_min_length: int = Field(
        default=32,
        ge=1,
        description="Shortest accepted wallet address"
    )
    wallet_max_length: int = Field(
        default=44,
        ge=1,
        description="Longest accepted wallet address"
    )

    @field_validator('audit_log_path')
    @classmethod
    def empty_means_disabled(cls, v: Optional[str]) -> Optional[str]:
        """Treat an empty path as 'no audit file'."""
        return v or None

    @model_validator(mode='after')
    def validate_wallet_bounds(self) -> 'StoreSettings':
        if self.wallet_min_length > self.wallet_max_length:
            raise ValueError("wallet_min_length cannot exceed wallet_max_length")
        return self


class SyncSettings(BaseSettings):
    """Wallet synchronization policy."""

    model_config = SettingsConfigDict(
        env_prefix="KINGME_SYNC_",
        extra="ignore"
    )

    materiality_threshold_usd: Decimal = Field(
        default=Decimal("1.00"),
        ge=0,
        description="Synced holdings worth less than this are dropped as dust"
    )


class FreedomSettings(BaseSettings):
    """
    Freedom score policy.

    Thresholds are in days of runway. A result at or above a threshold
    reaches that state.
    """

    model_config = SettingsConfigDict(
        env_prefix="KINGME_FREEDOM_",
        extra="ignore"
    )

    struggling_days: int = Field(default=30, ge=0)
    breaking_days: int = Field(default=180, ge=0)
    rising_days: int = Field(default=730, ge=0)
    enthroned_days: int = Field(
        default=3650,
        ge=0,
        description="Runway beyond this is shown as enthroned"
    )
    forever_days: int = Field(
        default=36500,
        ge=0,
        description="Runway beyond this is formatted as 'Forever'"
    )
    idle_asset_apy: Decimal = Field(
        default=Decimal("0.08"),
        ge=0,
        description="Yield assumed for idle crypto in opportunity cost estimates"
    )

    @model_validator(mode='after')
    def validate_ordering(self) -> 'FreedomSettings':
        """Thresholds must be non-decreasing."""
        ordered = [
            self.struggling_days,
            self.breaking_days,
            self.rising_days,
            self.enthroned_days,
        ]
        if ordered != sorted(ordered):
            raise ValueError("Freedom thresholds must be in ascending order")
        return self


class HeliusSettings(BaseSettings):
    """Helius RPC (Solana data provider) configuration."""

    model_config = SettingsConfigDict(
        env_prefix="HELIUS_",
        extra="ignore"
    )

    api_key: str = Field(
        ...,
        description="Helius API key"
    )
    rpc_url: str = Field(
        default="https://mainnet.helius-rpc.com",
        description="Helius RPC endpoint"
    )
    request_timeout: float = Field(
        default=15.0,
        gt=0,
        description="Per-request timeout in seconds"
    )

    @property
    def endpoint(self) -> str:
        return f"{self.rpc_url.rstrip('/')}/?api-key={self.api_key}"


class BackupSettings(BaseSettings):
    """Remote encrypted backup (Upstash REST) configuration."""

    model_config = SettingsConfigDict(
        env_prefix="KINGME_BACKUP_",
        extra="ignore"
    )

    rest_url: str = Field(
        ...,
        description="Upstash Redis REST URL"
    )
    rest_token: str = Field(
        ...,
        description="Upstash Redis REST token"
    )
    request_timeout: float = Field(default=15.0, gt=0)


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

    # Note: These are loaded lazily to allow partial configuration

    @property
    def store(self) -> StoreSettings:
        return StoreSettings()

    @property
    def sync(self) -> SyncSettings:
        return SyncSettings()

    @property
    def freedom(self) -> FreedomSettings:
        return FreedomSettings()

    @property
    def helius(self) -> HeliusSettings:
        return HeliusSettings()

    @property
    def backup(self) -> BackupSettings:
        return BackupSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}, plus a
    "<name>_error" entry for each section that failed to load.
    """
    results = {}

    settings = get_settings()

    for name in ("store", "sync", "freedom", "helius", "backup", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
