"""Core app configuration, database and event bus."""

from trustgate.core.config import get_settings, settings
from trustgate.core.database import get_db

__all__ = ["get_settings", "settings", "get_db"]
