# Copyright 2026 Ruihang Li.
# Licensed under the Apache License, Version 2.0.
# See LICENSE file in the project root for details.

"""Task sources: command files and command templates."""

import os
import shutil
import shlex
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Sequence

from multiprog.config import LaunchMode
from multiprog.utils.exceptions import ErrorCode, TaskSourceError
from multiprog.utils.logging import get_logger

logger = get_logger(__name__)

PLACEHOLDER = "{}"
REDIRECT_OPERATOR = ">"


@dataclass(frozen=True)
class Task:
    """One unit of work.

    Attributes:
        index: Position in source order (0-indexed); decides the slot
        command: Shell command line, possibly several statements joined by ';'
    """

    index: int
    command: str


def read_task_file(file_path: str, comment: str = "#") -> List[Task]:
    """Read a command file, one task per line.

    Blank lines and lines whose first non-blank character is the comment
    marker are skipped; the remaining lines keep their order.

    Args:
        file_path: Path to the command file
        comment: Comment marker (empty string disables filtering)

    Returns:
        Tasks in file order
    """
    path = Path(file_path)
    if not path.is_file():
        raise TaskSourceError(f"Command file not found: {file_path}", ErrorCode.TASK_FILE_NOT_FOUND)

    tasks = []
    try:
        with open(path, "r", encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue
                if comment and line.startswith(comment):
                    continue
                tasks.append(Task(index=len(tasks), command=line))
    except (OSError, UnicodeDecodeError) as e:
        raise TaskSourceError(f"Cannot read command file: {file_path}", cause=e) from e

    logger.debug(f"Read {len(tasks)} tasks from {file_path}")
    return tasks


def compose_command(template: str, argument: str) -> str:
    """Combine a command template with one argument.

    Every '{}' in the template is replaced by the argument; a template
    without a placeholder gets the argument appended. The argument is
    inserted as given; quoting is up to the caller.
    """
    if PLACEHOLDER in template:
        return template.replace(PLACEHOLDER, argument)
    return f"{template} {argument}"


def build_template_tasks(
    template: str,
    arguments: Sequence[str],
    params: bool = False,
    strict: bool = False,
) -> List[Task]:
    """Apply a command template to each argument.

    File arguments (params=False) must exist; missing ones are skipped with
    a warning, or rejected when strict is set. Existing paths are shell-quoted
    so a name with spaces stays one argument. Bare parameters (params=True)
    are inserted as given and may expand to several words.

    Args:
        template: Command template
        arguments: File paths or parameters, in order
        params: Treat arguments as bare parameters
        strict: Raise on missing file arguments instead of skipping them

    Returns:
        Tasks in argument order
    """
    tasks = []
    skipped = []
    for argument in arguments:
        if not params and not os.path.exists(argument):
            if strict:
                raise TaskSourceError(f"File argument not found: {argument}", ErrorCode.ARGUMENT_NOT_FOUND)
            skipped.append(argument)
            continue
        value = argument if params else shlex.quote(argument)
        tasks.append(Task(index=len(tasks), command=compose_command(template, value)))

    if skipped:
        logger.warning(
            f"Skipped {len(skipped)} argument(s) that are not existing files "
            f"(use --params to pass them as parameters): {', '.join(skipped)}"
        )
    logger.debug(f"Built {len(tasks)} tasks from template '{template}'")
    return tasks


def _program(command: str) -> str:
    try:
        parts = shlex.split(command)
    except ValueError:
        parts = command.split()
    return parts[0] if parts else ""


def is_resolvable_program(command: str) -> bool:
    """True if the command's program is an executable path or on PATH."""
    program = _program(command)
    if not program:
        return False
    if os.sep in program:
        return os.path.isfile(program) and os.access(program, os.X_OK)
    return shutil.which(program) is not None


def resolve_command(command: str, arguments: Sequence[str] = ()) -> LaunchMode:
    """Decide how the positional command is interpreted.

    - an existing, non-executable file without trailing arguments is a
      command file
    - a program found as an executable path or on PATH is a template when
      trailing arguments are given, otherwise it runs in every slot

    Args:
        command: Positional command (file path or command template)
        arguments: Trailing arguments

    Returns:
        Launch mode
    """
    if not arguments and os.path.isfile(command) and not os.access(command, os.X_OK):
        return LaunchMode.FILE

    if is_resolvable_program(command):
        return LaunchMode.TEMPLATE if arguments else LaunchMode.UNIFORM

    raise TaskSourceError(
        f"'{command}' is neither a command file nor an executable on PATH",
        ErrorCode.TASK_FILE_NOT_FOUND,
    )


def has_redirection(tasks: Iterable[Task]) -> bool:
    """True if any task redirects its output."""
    return any(REDIRECT_OPERATOR in task.command for task in tasks)
