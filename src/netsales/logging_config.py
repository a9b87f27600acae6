"""
Logging setup for netsales.

Call ``setup_logging()`` once at process start (CLI or API server).
"""

import logging
import logging.handlers
import os
from typing import Optional

from .config import LoggingConfig


def setup_logging(config: Optional[LoggingConfig] = None, debug: bool = False) -> None:
    """Configure the root logger from a LoggingConfig."""
    config = config or LoggingConfig()
    level = logging.DEBUG if debug else getattr(logging, config.level, logging.INFO)
    formatter = logging.Formatter(config.format)

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()

    console = logging.StreamHandler()
    console.setFormatter(formatter)
    root.addHandler(console)

    if config.file:
        directory = os.path.dirname(config.file)
        if directory:
            os.makedirs(directory, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            config.file,
            maxBytes=config.max_size,
            backupCount=config.backup_count,
            encoding="utf-8",
        )
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    # asyncpg logs every pool connection at DEBUG
    logging.getLogger("asyncpg").setLevel(max(level, logging.INFO))
