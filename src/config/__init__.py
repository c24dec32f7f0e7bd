"""Configuration module for the recruitment back office."""

from .database import DatabaseSettings, get_database_settings
from .settings import RBACSettings, Settings, get_settings

__all__ = [
    "DatabaseSettings",
    "get_database_settings",
    "RBACSettings",
    "Settings",
    "get_settings",
]
