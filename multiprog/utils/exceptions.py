# Copyright 2026 Ruihang Li.
# Licensed under the Apache License, Version 2.0.
# See LICENSE file in the project root for details.

"""Unified exception handling for multiprog.

Every local precondition failure (missing task file, no allocation, unusable
working directory, malformed launch configuration) is raised as a
MultiprogError subclass so the CLI can report it and exit before any launcher
call is made.
"""

from __future__ import annotations

import traceback
from enum import Enum

from multiprog.utils.logging import get_logger

logger = get_logger(__name__)


class ErrorCode(Enum):
    """Error codes for categorizing exceptions."""

    # General errors
    UNKNOWN = "E0000"
    CONFIG_ERROR = "E0001"

    # Task source errors
    TASK_SOURCE_ERROR = "E1001"
    TASK_FILE_NOT_FOUND = "E1002"
    ARGUMENT_NOT_FOUND = "E1003"

    # Allocation errors
    ALLOCATION_ERROR = "E2001"
    NODELIST_ERROR = "E2002"

    # Working directory errors
    WORKDIR_ERROR = "E3001"

    # Launch errors
    LAUNCH_ERROR = "E4001"


class MultiprogError(Exception):
    """Base exception for all multiprog errors."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.UNKNOWN,
        cause: Exception | None = None,
    ):
        self.message = message
        self.code = code
        self.cause = cause
        self._traceback = traceback.format_exc() if cause else None
        super().__init__(message)

    def __str__(self) -> str:
        parts = [f"[{self.code.value}] {self.message}"]
        if self.cause:
            parts.append(f"Caused by: {type(self.cause).__name__}: {self.cause}")
        return "\n".join(parts)

    def format_full(self) -> str:
        """Format error with full traceback."""
        parts = [str(self)]
        if self._traceback and "NoneType: None" not in self._traceback:
            parts.append("\nFull traceback:")
            parts.append(self._traceback)
        return "\n".join(parts)


class ConfigError(MultiprogError):
    """Invalid options or a launch configuration that breaks the slot contract."""

    def __init__(self, message: str, cause: Exception | None = None):
        super().__init__(message, ErrorCode.CONFIG_ERROR, cause)


class TaskSourceError(MultiprogError):
    """The task list could not be produced."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.TASK_SOURCE_ERROR,
        cause: Exception | None = None,
    ):
        super().__init__(message, code, cause)


class AllocationError(MultiprogError):
    """No usable resource allocation context."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.ALLOCATION_ERROR,
        cause: Exception | None = None,
    ):
        super().__init__(message, code, cause)


class WorkdirError(MultiprogError):
    """The per-allocation working directory could not be prepared."""

    def __init__(self, message: str, cause: Exception | None = None):
        super().__init__(message, ErrorCode.WORKDIR_ERROR, cause)


class LaunchError(MultiprogError):
    """The external launcher could not be started."""

    def __init__(self, message: str, cause: Exception | None = None):
        super().__init__(message, ErrorCode.LAUNCH_ERROR, cause)


def log_error(
    error: Exception,
    context: str | None = None,
    include_traceback: bool = False,
) -> None:
    """Log error with optional context and traceback.

    Args:
        error: The exception to log
        context: Optional context information
        include_traceback: Whether to include full traceback
    """
    if context:
        logger.error(f"Error in {context}:")

    if isinstance(error, MultiprogError):
        if include_traceback:
            logger.error(error.format_full())
        else:
            logger.error(str(error))
    else:
        logger.error(f"{type(error).__name__}: {error}")
        if include_traceback:
            logger.error("Traceback:")
            logger.error(traceback.format_exc())
