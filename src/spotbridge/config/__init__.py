"""Configuration module for spotbridge."""

from .settings import (
    Bitrate,
    ObservabilitySettings,
    PlaybackSettings,
    Settings,
    StorageSettings,
    WebApiSettings,
    get_settings,
)

__all__ = [
    "Bitrate",
    "ObservabilitySettings",
    "PlaybackSettings",
    "Settings",
    "StorageSettings",
    "WebApiSettings",
    "get_settings",
]
