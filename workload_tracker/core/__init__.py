"""Core app configuration, database access, security and errors."""

from workload_tracker.core.config import Settings, get_settings
from workload_tracker.core.database import Database

__all__ = ["Database", "Settings", "get_settings"]
