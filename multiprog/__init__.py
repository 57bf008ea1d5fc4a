"""
multiprog - Run many commands across the slots of a Slurm allocation.

Distributes a command file, or a command template applied to a list of
arguments, round-robin over the allocation's slots and hands the result to
`srun --multi-prog`.
"""

from importlib.metadata import version, PackageNotFoundError

try:
    __version__ = version("multiprog")
except PackageNotFoundError:
    # Fallback for running from source without installing
    __version__ = "0.1.0"

from multiprog.config import (
    DelayConfig,
    LaunchConfig,
    LaunchMode,
)

__all__ = [
    "__version__",
    "DelayConfig",
    "LaunchConfig",
    "LaunchMode",
]
