"""Configuration package."""

from kingme.config.settings import (
    AppSettings,
    BackupSettings,
    FreedomSettings,
    HeliusSettings,
    Settings,
    StoreSettings,
    SyncSettings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "BackupSettings",
    "FreedomSettings",
    "HeliusSettings",
    "Settings",
    "StoreSettings",
    "SyncSettings",
    "get_settings",
    "validate_all_settings",
]
