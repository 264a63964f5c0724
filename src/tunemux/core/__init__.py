"""Core infrastructure layer - no business logic dependencies.

This module provides foundation-level services:
- Configuration management (TOML)
- Logging (Loguru)
- Key-value settings persistence (SQLite)
- Shared HTTP client (requests)
- The owning main loop and worker pool

Clean architecture principle: The core layer has no dependencies on
domain or application layers.
"""

# Configuration
from .config import (
    Config,
    load_config,
    get_config_dir,
    get_config_path,
    get_data_dir,
    create_default_config,
    ensure_directories,
)

# HTTP
from .http import HttpClient, HttpRequestError

# Main loop
from .loop import MainLoop, TimerHandle

# Settings
from .settings import MemorySettingsStore, SettingsStore, SqliteSettingsStore

__all__ = [
    # Config
    "Config",
    "load_config",
    "get_config_dir",
    "get_config_path",
    "get_data_dir",
    "create_default_config",
    "ensure_directories",
    # HTTP
    "HttpClient",
    "HttpRequestError",
    # Loop
    "MainLoop",
    "TimerHandle",
    # Settings
    "MemorySettingsStore",
    "SettingsStore",
    "SqliteSettingsStore",
]
