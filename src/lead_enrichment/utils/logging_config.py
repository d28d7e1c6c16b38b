"""
Logging configuration
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from typing import Optional

from ..config.config import LoggingConfig


def setup_logging(config: Optional[LoggingConfig] = None, log_level: Optional[str] = None):
    """Setup console and optional rotating file logging"""
    config = config or LoggingConfig.from_env()
    level = getattr(logging, (log_level or config.level).upper(), logging.INFO)

    handlers = []
    if config.console_logging:
        handlers.append(logging.StreamHandler(sys.stdout))

    if config.file_logging:
        # Create logs directory
        config.log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(RotatingFileHandler(
            config.log_file,
            maxBytes=config.max_file_size_mb * 1024 * 1024,
            backupCount=config.backup_count,
            encoding='utf-8',
        ))

    if not handlers:
        handlers.append(logging.NullHandler())

    # Configure logging
    logging.basicConfig(
        level=level,
        format=config.format,
        handlers=handlers,
        force=True,
    )

    # Keep aiohttp's connection chatter out of INFO output
    logging.getLogger('aiohttp').setLevel(max(level, logging.WARNING))

    return logging.getLogger()
