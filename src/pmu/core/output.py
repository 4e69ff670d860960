"""
Logging setup using Loguru.

The daemon runs detached from any terminal, so the log file is the primary
place its activity shows up.
"""

import sys
from pathlib import Path

from loguru import logger

from .config import LoggingConfig, get_data_dir


def get_log_file_path(logging_config: LoggingConfig) -> Path:
    """Get the path to the log file."""
    if logging_config.log_file:
        return Path(logging_config.log_file)
    return get_data_dir() / "pmu.log"


def setup_loguru(logging_config: LoggingConfig) -> Path:
    """
    Configure loguru for file logging, plus stderr when console output is enabled.

    Args:
        logging_config: Logging section of the loaded configuration

    Returns:
        Path of the log file in use
    """
    log_file = get_log_file_path(logging_config)
    log_file.parent.mkdir(parents=True, exist_ok=True)
    level = logging_config.level.upper()

    # Remove default handler
    logger.remove()

    logger.add(
        log_file,
        rotation=f"{logging_config.max_file_size_mb} MB",
        retention=logging_config.backup_count,
        level=level,
        format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {process} | {name}:{line} | {message}",
        enqueue=False,  # Synchronous writes (thread-safe but blocking)
    )

    if logging_config.console_output:
        logger.add(sys.stderr, level=level, format="{level}: {message}")

    logger.debug(f"Loguru initialized: {log_file} (level={level})")
    return log_file
