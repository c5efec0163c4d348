"""Configuration package for library sync."""

from .settings import (
    ApiSettings,
    AppSettings,
    LoggingSettings,
    RetrySettings,
    SourceAccountSettings,
    SyncSettings,
    TargetAccountSettings,
    TrackFilter,
    load_settings,
)

__all__ = [
    "ApiSettings",
    "AppSettings",
    "LoggingSettings",
    "RetrySettings",
    "SourceAccountSettings",
    "SyncSettings",
    "TargetAccountSettings",
    "TrackFilter",
    "load_settings",
]
