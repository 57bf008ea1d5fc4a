# Copyright 2026 Ruihang Li.
# Licensed under the Apache License, Version 2.0.
# See LICENSE file in the project root for details.

"""Logging utilities for multiprog."""

import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Optional


@dataclass
class LoggingConfig:
    """Logging configuration for a single multiprog run."""

    log_dir: Optional[str] = None
    job_id: Optional[str] = None
    level: int = logging.INFO


# Global state for logging setup
_logging_initialized = False
_log_dir: Optional[str] = None

_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
_DATEFMT = "%Y-%m-%d %H:%M:%S"


def _get_log_filename(job_id: Optional[str]) -> str:
    """Generate log filename for the current allocation.

    Args:
        job_id: Allocation identifier, if known

    Returns:
        Log filename
    """
    if job_id:
        return f"multiprog_{job_id}.log"
    return "multiprog.log"


def setup_logging(config: LoggingConfig) -> Optional[str]:
    """Setup logging for a multiprog run.

    The root logger gets a console handler on stdout and, when a log
    directory is configured, a file handler inside it. Handlers attached
    earlier by get_logger are removed so records are not printed twice.

    Args:
        config: Logging configuration

    Returns:
        Path to the log directory, or None when logging to console only
    """
    global _logging_initialized, _log_dir

    if _logging_initialized:
        return _log_dir

    root_logger = logging.getLogger()
    root_logger.setLevel(config.level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    formatter = logging.Formatter(_FORMAT, datefmt=_DATEFMT)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(config.level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if config.log_dir:
        Path(config.log_dir).mkdir(parents=True, exist_ok=True)
        _log_dir = config.log_dir
        log_filepath = Path(config.log_dir) / _get_log_filename(config.job_id)
        file_handler = logging.FileHandler(str(log_filepath), mode="a", encoding="utf-8")
        file_handler.setLevel(config.level)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    # Package loggers propagate to root from here on
    multiprog_logger = logging.getLogger("multiprog")
    for name in [multiprog_logger.name] + [
        n for n in logging.root.manager.loggerDict if n.startswith("multiprog.")
    ]:
        pkg_logger = logging.getLogger(name)
        for handler in pkg_logger.handlers[:]:
            pkg_logger.removeHandler(handler)
        pkg_logger.setLevel(logging.NOTSET)
    multiprog_logger.setLevel(config.level)

    _logging_initialized = True

    root_logger.debug(f"Logging initialized: log_dir={_log_dir}, level={logging.getLevelName(config.level)}")

    return _log_dir


def reset_logging() -> None:
    """Forget a previous setup_logging call so it can be run again."""
    global _logging_initialized, _log_dir

    _logging_initialized = False
    _log_dir = None


def get_logger(name: str, level: int = logging.INFO) -> logging.Logger:
    """Get a logger with the specified name and level.

    Args:
        name: Logger name
        level: Logging level

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)

    # Only add handler if logging not initialized globally and no handlers exist
    if not _logging_initialized and not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setLevel(level)
        formatter = logging.Formatter(_FORMAT, datefmt=_DATEFMT)
        handler.setFormatter(formatter)
        logger.addHandler(handler)
        logger.setLevel(level)

    return logger
