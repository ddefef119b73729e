"""Application configuration helpers."""

from __future__ import annotations

from .env import env_flag, env_int, env_list, require_env_vars
from .errors import ConfigurationError, MissingConfigurationError
from .guard import GuardSettings, get_guard_settings
from .logging import configure_logging
from .migration import MigrationSettings, get_migration_settings
from .storage import DatabaseConfig, StorageConfig, get_database_config, get_storage_config

__all__ = [
    "ConfigurationError",
    "DatabaseConfig",
    "GuardSettings",
    "MigrationSettings",
    "MissingConfigurationError",
    "StorageConfig",
    "configure_logging",
    "env_flag",
    "env_int",
    "env_list",
    "get_database_config",
    "get_guard_settings",
    "get_migration_settings",
    "get_storage_config",
    "require_env_vars",
]
