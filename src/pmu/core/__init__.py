"""Core infrastructure layer - no playback logic.

This module provides foundation-level services:
- Configuration management (TOML)
- Database operations (SQLite)
- Logging (Loguru) and console output (Rich)
"""

from .config import (
    Config,
    load_config,
    get_config_dir,
    get_config_path,
    get_data_dir,
    create_default_config,
)
from .exceptions import (
    PmuError,
    ProtocolError,
    DaemonStartError,
    BackendError,
    DecodeError,
    PresenceError,
    LastfmError,
)

__all__ = [
    # Config
    "Config",
    "load_config",
    "get_config_dir",
    "get_config_path",
    "get_data_dir",
    "create_default_config",
    # Exceptions
    "PmuError",
    "ProtocolError",
    "DaemonStartError",
    "BackendError",
    "DecodeError",
    "PresenceError",
    "LastfmError",
]
