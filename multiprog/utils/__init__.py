"""Utility functions for multiprog."""

from multiprog.utils.logging import get_logger
from multiprog.utils.allocation import resolve_num_slots
from multiprog.utils.env import (
    get_env,
    get_env_str,
    get_env_float,
    get_env_list,
    MultiprogEnv,
    SlurmEnv,
)
from multiprog.utils.task_distribution import slot_for, split_rounds

__all__ = [
    "get_logger",
    "resolve_num_slots",
    # Environment variable utilities
    "get_env",
    "get_env_str",
    "get_env_float",
    "get_env_list",
    # Execution context
    "MultiprogEnv",
    "SlurmEnv",
    # Distribution
    "slot_for",
    "split_rounds",
]
