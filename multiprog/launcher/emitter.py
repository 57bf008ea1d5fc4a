# Copyright 2026 Ruihang Li.
# Licensed under the Apache License, Version 2.0.
# See LICENSE file in the project root for details.

"""Launch configuration files for `srun --multi-prog`.

A configuration has one line per slot, "<slot-id> <command>", with slot ids
running contiguously from 0 to N-1. When a slot runs several tasks they are
written to a per-slot script and the configuration line invokes that
script through the launcher's %t token, which expands to the slot id.
"""

import os
import shutil
from pathlib import Path
from typing import Dict, Mapping, Optional

from multiprog.launcher.assignment import Assignment
from multiprog.utils.env import SlurmEnv
from multiprog.utils.exceptions import ConfigError, WorkdirError
from multiprog.utils.logging import get_logger

logger = get_logger(__name__)

SLOT_TOKEN = "%t"
SCRIPT_SHELL = "/bin/bash"
SCRIPT_NAME = f"slot_{SLOT_TOKEN}.sh"


def format_config(entries: Mapping[int, str]) -> str:
    """Serialize slot commands into the launcher's line format.

    Args:
        entries: Slot id -> command, ids exactly 0..N-1

    Returns:
        Configuration text, one newline-terminated line per slot
    """
    num_slots = len(entries)
    if num_slots == 0:
        raise ConfigError("Launch configuration needs at least one slot")
    if sorted(entries) != list(range(num_slots)):
        raise ConfigError(f"Slot ids must be exactly 0..{num_slots - 1}, got {sorted(entries)}")

    lines = []
    for slot in range(num_slots):
        command = entries[slot].strip()
        if not command or "\n" in command:
            raise ConfigError(f"Slot {slot} needs a single-line, non-empty command")
        lines.append(f"{slot} {command}")
    return "\n".join(lines) + "\n"


def inline_entries(assignment: Assignment) -> Dict[int, str]:
    """One inline command per slot (template and uniform modes)."""
    entries = {}
    for slot in range(assignment.num_slots):
        commands = assignment.commands(slot)
        if len(commands) != 1:
            raise ConfigError(f"Slot {slot} has {len(commands)} commands; inline mode needs exactly one")
        entries[slot] = commands[0]
    return entries


def script_path(workdir: Path, slot: int) -> Path:
    return Path(workdir) / SCRIPT_NAME.replace(SLOT_TOKEN, str(slot))


def render_script(commands) -> str:
    return "#!" + SCRIPT_SHELL + "\n" + "".join(f"{command}\n" for command in commands)


def write_slot_scripts(assignment: Assignment, workdir: Path) -> Dict[int, str]:
    """Write each slot's tasks to its own script (file mode).

    Args:
        assignment: Padded assignment
        workdir: Working directory of this run

    Returns:
        Slot id -> configuration command invoking that slot's script
    """
    entries = {}
    template = f"{SCRIPT_SHELL} {Path(workdir).resolve() / SCRIPT_NAME}"
    for slot in range(assignment.num_slots):
        path = script_path(workdir, slot)
        try:
            path.write_text(render_script(assignment.commands(slot)), encoding="utf-8")
            path.chmod(0o755)
        except OSError as e:
            raise WorkdirError(f"Cannot write slot script: {path}", cause=e) from e
        entries[slot] = template
    logger.debug(f"Wrote {assignment.num_slots} slot scripts to {workdir}")
    return entries


def workdir_for(env: SlurmEnv, base: Optional[str] = None) -> Path:
    """Working directory for the allocation: <base>/multiprog.<job_id>.

    The path is absolute so configuration lines do not depend on the
    directory the launcher is started from.
    """
    job_id = env.job_id or str(os.getpid())
    return (Path(base or env.scratch()) / f"multiprog.{job_id}").resolve()


def prepare_workdir(env: SlurmEnv, base: Optional[str] = None) -> Path:
    """Create a clean working directory for this run.

    File names inside it depend only on slot index, so anything left by an
    earlier run under the same allocation is removed first.

    Args:
        env: Allocation context
        base: Base directory (defaults to the allocation's scratch space)

    Returns:
        Path of the empty working directory
    """
    workdir = workdir_for(env, base)
    try:
        if workdir.exists():
            logger.info(f"Removing stale working directory {workdir}")
            if workdir.is_dir() and not workdir.is_symlink():
                shutil.rmtree(workdir)
            else:
                workdir.unlink()
        workdir.mkdir(parents=True)
    except OSError as e:
        raise WorkdirError(f"Cannot prepare working directory: {workdir}", cause=e) from e
    logger.debug(f"Working directory: {workdir}")
    return workdir


def config_path(workdir: Path, round_index: int = 0, num_rounds: int = 1) -> Path:
    if num_rounds <= 1:
        return Path(workdir) / "multiprog.conf"
    return Path(workdir) / f"multiprog.{round_index}.conf"


def write_config(path: Path, text: str) -> Path:
    """Write a launch configuration file."""
    try:
        Path(path).write_text(text, encoding="utf-8")
    except OSError as e:
        raise WorkdirError(f"Cannot write launch configuration: {path}", cause=e) from e
    logger.debug(f"Wrote launch configuration {path}:\n{text.rstrip()}")
    return Path(path)
