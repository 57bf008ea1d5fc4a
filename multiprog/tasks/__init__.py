"""Task sources for multiprog."""

from multiprog.tasks.source import (
    Task,
    build_template_tasks,
    compose_command,
    has_redirection,
    read_task_file,
    resolve_command,
)

__all__ = [
    "Task",
    "build_template_tasks",
    "compose_command",
    "has_redirection",
    "read_task_file",
    "resolve_command",
]
