"""Launcher: slot assignment, launch configuration files and launcher invocation."""

from multiprog.launcher.launcher import Launcher, build_launch_command, launch_env

__all__ = [
    "Launcher",
    "build_launch_command",
    "launch_env",
]
