"""TuneForge configuration."""

from .settings import (
    DatabaseSettings,
    NotificationSettings,
    ObjectStorageSettings,
    ProviderSettings,
    SecuritySettings,
    Settings,
    get_settings,
)

__all__ = [
    "DatabaseSettings",
    "NotificationSettings",
    "ObjectStorageSettings",
    "ProviderSettings",
    "SecuritySettings",
    "Settings",
    "get_settings",
]
