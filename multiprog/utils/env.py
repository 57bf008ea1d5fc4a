# Copyright 2026 Ruihang Li.
# Licensed under the Apache License, Version 2.0.
# See LICENSE file in the project root for details.

"""Environment variable utilities.

Two kinds of environment are read here:

Tunables for multiprog itself use MP_ prefixed variables, keeping the CLI
limited to per-run choices.

Naming convention: MP_{PARAM}
Examples:
    MP_LAUNCHER=srun
    MP_LAUNCHER_ARGS=--mpi=none,--kill-on-bad-exit=0
    MP_NOOP_COMMAND=/bin/true
    MP_DELAY_INCREMENT=0.1
    MP_WORKDIR=/scratch/me
    MP_COMMENT=#

The allocation context is read from the variables Slurm exports into a
job (SLURM_JOB_ID, SLURM_NTASKS, SLURM_JOB_NODELIST, ...). It is loaded once
into a frozen SlurmEnv and passed explicitly to whatever needs it.
"""

import os
import tempfile
from dataclasses import dataclass, field
from typing import Any, List, Mapping, Optional, TypeVar, Union

T = TypeVar("T")


def get_env(
    name: str,
    default: T = None,
    type_cast: type = str,
) -> Union[T, Any]:
    """Get environment variable with optional type casting.

    Args:
        name: Environment variable name (without MP_ prefix)
        default: Default value if not set
        type_cast: Type to cast the value to

    Returns:
        Environment variable value or default
    """
    full_name = f"MP_{name}"
    value = os.environ.get(full_name)

    if value is None:
        return default

    try:
        if type_cast == list:
            return [p.strip() for p in value.split(",") if p.strip()]
        else:
            return type_cast(value)
    except (ValueError, TypeError):
        return default


def get_env_str(name: str, default: Optional[str] = None) -> Optional[str]:
    """Get string environment variable."""
    return get_env(name, default, str)


def get_env_float(name: str, default: Optional[float] = None) -> Optional[float]:
    """Get float environment variable."""
    return get_env(name, default, float)


def get_env_list(
    name: str,
    default: Optional[List[str]] = None,
) -> Optional[List[str]]:
    """Get list environment variable (comma-separated strings)."""
    return get_env(name, default, list)


@dataclass(frozen=True)
class MultiprogEnv:
    """multiprog tunables.

    Environment variables:
        MP_LAUNCHER: Launcher executable (default: srun)
        MP_LAUNCHER_ARGS: Comma-separated extra launcher arguments
        MP_NOOP_COMMAND: Command for slots without work (default: true)
        MP_DELAY_INCREMENT: Startup delay step per slot in seconds (default: 0.1)
        MP_WORKDIR: Base directory for generated files (default: allocation scratch)
        MP_COMMENT: Comment marker in task files (default: #)
    """

    launcher: str = "srun"
    launcher_args: List[str] = field(default_factory=list)
    noop_command: str = "true"
    delay_increment: float = 0.1
    workdir: Optional[str] = None
    comment: str = "#"

    @classmethod
    def load(cls) -> "MultiprogEnv":
        return cls(
            launcher=get_env_str("LAUNCHER", "srun"),
            launcher_args=get_env_list("LAUNCHER_ARGS", []),
            noop_command=get_env_str("NOOP_COMMAND", "true"),
            delay_increment=get_env_float("DELAY_INCREMENT", 0.1),
            workdir=get_env_str("WORKDIR"),
            comment=get_env_str("COMMENT", "#"),
        )


def _int_or_none(value: Optional[str]) -> Optional[int]:
    if value is None or value.strip() == "":
        return None
    try:
        return int(value)
    except ValueError:
        return None


@dataclass(frozen=True)
class SlurmEnv:
    """Execution context of the surrounding Slurm allocation.

    Environment variables:
        SLURM_JOB_ID: Allocation identifier (SLURM_JOBID on older releases)
        SLURM_NTASKS: Explicit task count (SLURM_NPROCS on older releases)
        SLURM_CPUS_ON_NODE: CPUs available on the node running multiprog
        SLURM_JOB_CPUS_PER_NODE: Per-node CPU list, e.g. "36(x2),20"
        SLURM_JOB_NODELIST: Compressed node list (SLURM_NODELIST on older releases)
        SLURM_JOB_NUM_NODES: Node count (SLURM_NNODES on older releases)
        SCRATCH, TMPDIR: Scratch space for generated files
    """

    job_id: Optional[str] = None
    ntasks: Optional[int] = None
    cpus_on_node: Optional[int] = None
    job_cpus_per_node: Optional[str] = None
    nodelist: Optional[str] = None
    num_nodes: Optional[int] = None
    scratch_dir: Optional[str] = None

    @classmethod
    def load(cls, environ: Optional[Mapping[str, str]] = None) -> "SlurmEnv":
        """Load the allocation context.

        Args:
            environ: Mapping to read from (defaults to os.environ)

        Returns:
            Frozen execution context
        """
        env = os.environ if environ is None else environ
        return cls(
            job_id=env.get("SLURM_JOB_ID") or env.get("SLURM_JOBID"),
            ntasks=_int_or_none(env.get("SLURM_NTASKS") or env.get("SLURM_NPROCS")),
            cpus_on_node=_int_or_none(env.get("SLURM_CPUS_ON_NODE")),
            job_cpus_per_node=env.get("SLURM_JOB_CPUS_PER_NODE"),
            nodelist=env.get("SLURM_JOB_NODELIST") or env.get("SLURM_NODELIST"),
            num_nodes=_int_or_none(env.get("SLURM_JOB_NUM_NODES") or env.get("SLURM_NNODES")),
            scratch_dir=env.get("SCRATCH") or env.get("TMPDIR"),
        )

    @property
    def in_allocation(self) -> bool:
        """True when any allocation information is present."""
        return bool(self.job_id or self.ntasks or self.nodelist or self.num_nodes)

    def scratch(self) -> str:
        """Base directory for per-allocation files."""
        return self.scratch_dir or tempfile.gettempdir()
