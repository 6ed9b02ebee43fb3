# Configuration module for the Location Tracker backend
from .settings import (
    ConfigurationError,
    DeviceIdStrategy,
    Environment,
    Settings,
    clear_settings_cache,
    get_settings,
    validate_startup,
)

__all__ = [
    "ConfigurationError",
    "DeviceIdStrategy",
    "Environment",
    "Settings",
    "clear_settings_cache",
    "get_settings",
    "validate_startup",
]
