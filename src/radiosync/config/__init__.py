"""Configuration module for RadioSync."""

from .settings import (
    DatabaseSettings,
    FeedSettings,
    MatchingSettings,
    MonitorSettings,
    ObservabilitySettings,
    Settings,
    SpotifySettings,
    get_settings,
)

__all__ = [
    "DatabaseSettings",
    "FeedSettings",
    "MatchingSettings",
    "MonitorSettings",
    "ObservabilitySettings",
    "Settings",
    "SpotifySettings",
    "get_settings",
]
