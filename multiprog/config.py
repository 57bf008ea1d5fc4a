# Copyright 2026 Ruihang Li.
# Licensed under the Apache License, Version 2.0.
# See LICENSE file in the project root for details.

"""Configuration classes for multiprog."""

from argparse import Namespace
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from multiprog.utils.env import MultiprogEnv


class LaunchMode(str, Enum):
    """How the positional command is turned into tasks."""

    FILE = "file"  # Command file, one task per line, per-slot scripts
    TEMPLATE = "template"  # Command template applied to each trailing argument
    UNIFORM = "uniform"  # Same command in every slot


@dataclass
class DelayConfig:
    """Per-slot startup staggering.

    Attributes:
        enabled: Prefix each slot's first command with a sleep
        increment: Seconds added per slot index
    """

    enabled: bool = False
    increment: float = 0.1


@dataclass
class LaunchConfig:
    """Configuration for one multiprog run.

    Attributes:
        command: Command file path or command template
        arguments: Trailing file/parameter arguments for template mode
        threads: Threads per task; passed to the launcher and OMP_NUM_THREADS
        delay: Startup delay configuration
        params: Treat trailing arguments as bare parameters, not files
        strict: Fail instead of skipping file arguments that do not exist
        verbose: Narrate each step at DEBUG level
        dry_run: Generate configuration files without invoking the launcher
        workdir: Base directory for generated files (overrides scratch)
        noop_command: Command placed in slots without work
        launcher: Launcher executable
        launcher_args: Extra arguments passed to the launcher
        comment: Comment marker for task files
        log_dir: Directory for a log file (console only if None)
    """

    command: str = ""
    arguments: List[str] = field(default_factory=list)

    threads: Optional[int] = None
    delay: DelayConfig = field(default_factory=DelayConfig)
    params: bool = False
    strict: bool = False
    verbose: bool = False
    dry_run: bool = False

    workdir: Optional[str] = None
    noop_command: str = "true"
    launcher: str = "srun"
    launcher_args: List[str] = field(default_factory=list)
    comment: str = "#"
    log_dir: Optional[str] = None

    @classmethod
    def from_args(cls, args: Namespace, env: Optional[MultiprogEnv] = None) -> "LaunchConfig":
        """Build a config from parsed CLI arguments and MP_* tunables.

        CLI values take precedence over the environment.

        Args:
            args: Parsed command line arguments
            env: Tunables (loaded from the environment if None)

        Returns:
            Launch configuration
        """
        env = env or MultiprogEnv.load()
        return cls(
            command=args.command,
            arguments=list(args.arguments),
            threads=args.threads,
            delay=DelayConfig(enabled=args.delay, increment=env.delay_increment),
            params=args.params,
            strict=args.strict,
            verbose=args.verbose,
            dry_run=args.dry_run,
            workdir=args.workdir or env.workdir,
            noop_command=args.noop or env.noop_command,
            launcher=env.launcher,
            launcher_args=list(env.launcher_args),
            comment=env.comment,
            log_dir=args.log_dir,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary."""
        return {
            "command": self.command,
            "arguments": list(self.arguments),
            "threads": self.threads,
            "delay_enabled": self.delay.enabled,
            "delay_increment": self.delay.increment,
            "params": self.params,
            "strict": self.strict,
            "verbose": self.verbose,
            "dry_run": self.dry_run,
            "workdir": self.workdir,
            "noop_command": self.noop_command,
            "launcher": self.launcher,
            "launcher_args": list(self.launcher_args),
            "comment": self.comment,
            "log_dir": self.log_dir,
        }
