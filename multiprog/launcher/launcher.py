# Copyright 2026 Ruihang Li.
# Licensed under the Apache License, Version 2.0.
# See LICENSE file in the project root for details.

"""Launcher module: build launch configurations and run `srun --multi-prog`."""

import os
import subprocess
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from multiprog.config import LaunchConfig, LaunchMode
from multiprog.launcher.assignment import (
    Assignment,
    apply_delay,
    assign_round_robin,
    pad_assignment,
    uniform_assignment,
)
from multiprog.launcher.emitter import (
    config_path,
    format_config,
    inline_entries,
    prepare_workdir,
    write_config,
    write_slot_scripts,
)
from multiprog.tasks.source import (
    Task,
    build_template_tasks,
    has_redirection,
    read_task_file,
    resolve_command,
)
from multiprog.utils.allocation import resolve_num_slots
from multiprog.utils.env import SlurmEnv
from multiprog.utils.exceptions import LaunchError, TaskSourceError
from multiprog.utils.logging import get_logger
from multiprog.utils.task_distribution import split_rounds

logger = get_logger(__name__)


def build_launch_command(
    conf_path: Path,
    num_slots: int,
    threads: Optional[int] = None,
    launcher: str = "srun",
    launcher_args: Sequence[str] = (),
) -> List[str]:
    """Command line handing a configuration file to the launcher.

    Args:
        conf_path: Launch configuration file
        num_slots: Slot count N (must match the configuration)
        threads: Threads per task, if given
        launcher: Launcher executable
        launcher_args: Extra launcher arguments

    Returns:
        Argument vector
    """
    cmd = [launcher, f"--ntasks={num_slots}"]
    if threads:
        cmd.append(f"--cpus-per-task={threads}")
    cmd.extend(launcher_args)
    cmd.extend(["--multi-prog", str(conf_path)])
    return cmd


def launch_env(threads: Optional[int] = None) -> Dict[str, str]:
    """Environment for the launcher; OMP_NUM_THREADS carries the thread hint."""
    env = os.environ.copy()
    if threads:
        env["OMP_NUM_THREADS"] = str(threads)
    return env


class Launcher:
    """Turns a command file or template into launcher rounds and runs them.

    FILE mode issues a single launcher call whatever the task count, with
    each slot running its own script. TEMPLATE mode runs ceil(M/N) rounds
    one after another, one command per slot per round. UNIFORM mode runs
    the same command in every slot once.
    """

    def __init__(self, config: LaunchConfig, env: Optional[SlurmEnv] = None):
        """Initialize launcher.

        Args:
            config: Launch configuration
            env: Allocation context (loaded from the environment if None)
        """
        self.config = config
        self.env = env or SlurmEnv.load()
        self.workdir: Optional[Path] = None
        self.config_files: List[Path] = []

    def detect_strategy(self) -> LaunchMode:
        """Detect how the positional command is interpreted.

        Returns:
            Launch mode
        """
        return resolve_command(self.config.command, self.config.arguments)

    def resolve_num_slots(self) -> int:
        return resolve_num_slots(self.env, self.config.threads or 1)

    def load_tasks(self, mode: LaunchMode) -> List[Task]:
        """Produce the ordered task list for a mode."""
        if mode == LaunchMode.FILE:
            tasks = read_task_file(self.config.command, self.config.comment)
        elif mode == LaunchMode.TEMPLATE:
            tasks = build_template_tasks(
                self.config.command,
                self.config.arguments,
                params=self.config.params,
                strict=self.config.strict,
            )
        else:
            tasks = [Task(index=0, command=self.config.command)]

        if not tasks:
            raise TaskSourceError(f"No tasks to run from '{self.config.command}'")
        if not has_redirection(tasks):
            logger.warning("No output redirection ('>') found in any task; output of all slots is interleaved")
        return tasks

    def _finish(self, assignment: Assignment) -> Assignment:
        assignment = pad_assignment(assignment, self.config.noop_command)
        if self.config.delay.enabled:
            assignment = apply_delay(assignment, self.config.delay.increment)
        return assignment

    def build_assignments(self, mode: LaunchMode, tasks: Sequence[Task], num_slots: int) -> List[Assignment]:
        """Padded, optionally delayed, assignment for every launcher round.

        Args:
            mode: Launch mode
            tasks: Tasks in source order
            num_slots: Slot count N

        Returns:
            One assignment per launcher invocation
        """
        if mode == LaunchMode.FILE:
            return [self._finish(assign_round_robin(tasks, num_slots))]
        if self.config.delay.enabled:
            logger.warning(
                "Inline configuration lines are not run through a shell; "
                "the 'sleep ... &&' prefix needs a launcher that wraps them in one"
            )
        if mode == LaunchMode.UNIFORM:
            return [self._finish(uniform_assignment(tasks[0].command, num_slots))]
        return [self._finish(assign_round_robin(chunk, num_slots)) for chunk in split_rounds(tasks, num_slots)]

    def write_configs(self, mode: LaunchMode, assignments: Sequence[Assignment]) -> List[Path]:
        """Serialize every round into the working directory.

        Returns:
            Configuration file per round
        """
        self.workdir = prepare_workdir(self.env, self.config.workdir)
        paths = []
        for index, assignment in enumerate(assignments):
            if mode == LaunchMode.FILE:
                entries = write_slot_scripts(assignment, self.workdir)
            else:
                entries = inline_entries(assignment)
            path = config_path(self.workdir, index, len(assignments))
            paths.append(write_config(path, format_config(entries)))
        self.config_files = paths
        return paths

    def run(self) -> int:
        """Build configurations and run the launcher on each.

        Returns:
            Exit code: 0, or the first non-zero launcher status
        """
        mode = self.detect_strategy()
        tasks = self.load_tasks(mode)
        num_slots = self.resolve_num_slots()
        assignments = self.build_assignments(mode, tasks, num_slots)

        logger.info(
            f"Mode: {mode.value}, tasks: {len(tasks)}, slots: {num_slots}, rounds: {len(assignments)}"
        )

        paths = self.write_configs(mode, assignments)

        if self.config.dry_run:
            for path in paths:
                logger.info(f"Dry run, launch configuration left at {path}")
            return 0

        for index, path in enumerate(paths):
            if len(paths) > 1:
                logger.info(f"Round {index + 1}/{len(paths)}")
            ret = self._invoke(path, num_slots)
            if ret != 0:
                logger.error(f"Launcher exited with status {ret} on {path}")
                return ret
        return 0

    def _invoke(self, conf_path: Path, num_slots: int) -> int:
        """Run the launcher on one configuration and wait for it.

        Returns:
            Launcher exit status
        """
        cmd = build_launch_command(
            conf_path,
            num_slots,
            threads=self.config.threads,
            launcher=self.config.launcher,
            launcher_args=self.config.launcher_args,
        )
        logger.debug(f"Running: {' '.join(cmd)}")
        try:
            ret = subprocess.call(cmd, env=launch_env(self.config.threads))
        except OSError as e:
            raise LaunchError(f"Cannot start launcher '{self.config.launcher}'", cause=e) from e
        # Killed by a signal: report it as the shell would (128 + signum)
        if ret < 0:
            return 128 - ret
        return ret
