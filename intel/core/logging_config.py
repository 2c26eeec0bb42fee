"""
Logging setup for the pipeline and the backend server.

One call per top-level logger attaches a console handler and a rotating
file handler; every module below it logs through ``logging.getLogger(__name__)``.
"""

import logging
import logging.handlers
from pathlib import Path
from typing import Optional

from .config import config

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(
    logger_name: str = "intel",
    level: Optional[str] = None,
    logs_dir: Optional[Path] = None,
    log_to_file: bool = True,
) -> logging.Logger:
    """
    Configure and return a logger instance.

    Calling it again for a configured logger returns the logger untouched.

    Args:
        logger_name: Top-level logger to configure ("intel", "backend")
        level: Log level name, defaults to config.log_level
        logs_dir: Directory for the rotating log file, defaults to config.logs_dir
        log_to_file: Attach the rotating file handler

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(logger_name)
    if logger.handlers:
        return logger

    level = (level or config.log_level).upper()
    logger.setLevel(level)
    logger.propagate = False

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_to_file:
        directory = Path(logs_dir or config.logs_dir)
        directory.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            directory / f"{logger_name.replace('.', '_')}.log",
            maxBytes=10 * 1024 * 1024,  # 10MB
            backupCount=5,
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger
