# Copyright 2026 Ruihang Li.
# Licensed under the Apache License, Version 2.0.
# See LICENSE file in the project root for details.

"""Main CLI entry point for multiprog."""

import argparse
import logging
import sys
from typing import List, Optional


class HelpFormatter(argparse.RawDescriptionHelpFormatter, argparse.ArgumentDefaultsHelpFormatter):
    """Keep the example epilog verbatim and show defaults."""


def create_parser() -> argparse.ArgumentParser:
    """Create the main argument parser.

    Returns:
        Configured argument parser
    """
    parser = argparse.ArgumentParser(
        prog="multiprog",
        description="Distribute commands over the slots of a Slurm allocation with srun --multi-prog",
        formatter_class=HelpFormatter,
        epilog="""
Examples:
  # One command per line, spread round-robin over all slots
  multiprog commands.txt

  # Run a program on every file, one file per slot per round
  multiprog "gzip -9" data/*.csv

  # Same, with '{}' placing the argument inside the command
  multiprog "convert {} -resize 50% small/{}" *.png

  # Bare parameters instead of files, 4 threads per task
  multiprog -p -t 4 "./simulate --seed" 1 2 3 4 5 6

  # Staggered start for programs that race on shared resources
  multiprog -d commands.txt
""",
    )

    parser.add_argument(
        "command",
        type=str,
        help="Command file (one task per line) or command template",
    )
    parser.add_argument(
        "arguments",
        nargs="*",
        help="Files or parameters the command template is applied to",
    )

    exec_group = parser.add_argument_group("Execution Options")
    exec_group.add_argument(
        "-t",
        "--threads",
        type=int,
        default=None,
        help="Threads per task (sets --cpus-per-task and OMP_NUM_THREADS)",
    )
    exec_group.add_argument(
        "-d",
        "--delay",
        action="store_true",
        help="Stagger start-up: slot i sleeps i * MP_DELAY_INCREMENT seconds first",
    )
    exec_group.add_argument(
        "-p",
        "--params",
        action="store_true",
        help="Treat trailing arguments as bare parameters rather than files",
    )
    exec_group.add_argument(
        "--strict",
        action="store_true",
        help="Fail on file arguments that do not exist instead of skipping them",
    )
    exec_group.add_argument(
        "--noop",
        type=str,
        default=None,
        help="Command for slots without work (default: MP_NOOP_COMMAND or 'true')",
    )
    exec_group.add_argument(
        "--dry_run",
        action="store_true",
        help="Write launch configuration files without running the launcher",
    )

    io_group = parser.add_argument_group("Output Options")
    io_group.add_argument(
        "--workdir",
        type=str,
        default=None,
        help="Base directory for generated files (default: MP_WORKDIR, $SCRATCH or $TMPDIR)",
    )
    io_group.add_argument(
        "--log_dir",
        type=str,
        default=None,
        help="Directory for a log file (console only if not given)",
    )
    io_group.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Narrate each step",
    )

    return parser


def main(args: Optional[List[str]] = None) -> int:
    """Main entry point.

    Args:
        args: Command line arguments (uses sys.argv if None)

    Returns:
        Exit code
    """
    parser = create_parser()
    parsed_args = parser.parse_args(args)

    if parsed_args.threads is not None and parsed_args.threads < 1:
        parser.error("--threads must be at least 1")

    from multiprog.config import LaunchConfig
    from multiprog.launcher import Launcher
    from multiprog.utils.env import SlurmEnv
    from multiprog.utils.exceptions import MultiprogError, log_error
    from multiprog.utils.logging import LoggingConfig, get_logger, setup_logging

    env = SlurmEnv.load()
    config = LaunchConfig.from_args(parsed_args)
    setup_logging(
        LoggingConfig(
            log_dir=config.log_dir,
            job_id=env.job_id,
            level=logging.DEBUG if config.verbose else logging.INFO,
        )
    )
    logger = get_logger("multiprog.cli")
    logger.debug(f"Configuration: {config.to_dict()}")

    launcher = Launcher(config, env)

    try:
        return launcher.run()
    except MultiprogError as e:
        log_error(e, include_traceback=config.verbose)
        return 1
    except KeyboardInterrupt:
        logger.warning("Interrupted by user")
        return 130
    except Exception as e:
        log_error(e, context="multiprog", include_traceback=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
