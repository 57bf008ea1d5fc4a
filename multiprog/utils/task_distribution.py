# Copyright 2026 Ruihang Li.
# Licensed under the Apache License, Version 2.0.
# See LICENSE file in the project root for details.

"""Task distribution utilities for slot-based execution."""

from typing import List, Sequence, Tuple, TypeVar

T = TypeVar("T")


def slot_for(task_index: int, num_slots: int) -> int:
    """Slot that receives the task at task_index (0-indexed, source order)."""
    if num_slots <= 0:
        raise ValueError(f"num_slots must be positive, got {num_slots}")
    return task_index % num_slots


def slot_counts(total_tasks: int, num_slots: int) -> List[int]:
    """Number of tasks each slot receives under round-robin.

    The first total_tasks % num_slots slots get one extra task, so any two
    slots differ by at most one.

    Args:
        total_tasks: Total number of tasks
        num_slots: Number of slots

    Returns:
        Task count per slot
    """
    if num_slots <= 0:
        raise ValueError(f"num_slots must be positive, got {num_slots}")
    base, remainder = divmod(total_tasks, num_slots)
    return [base + (1 if slot < remainder else 0) for slot in range(num_slots)]


def num_rounds(total_tasks: int, num_slots: int) -> int:
    """Launcher rounds needed to run total_tasks one per slot (at least one)."""
    if num_slots <= 0:
        raise ValueError(f"num_slots must be positive, got {num_slots}")
    return max(-(-total_tasks // num_slots), 1)


def split_rounds(items: Sequence[T], num_slots: int) -> List[Tuple[T, ...]]:
    """Split items into consecutive rounds of at most num_slots each.

    An empty input yields a single empty round. The launcher rejects an
    empty task list before it gets here, so that round is never launched.
    """
    rounds = num_rounds(len(items), num_slots)
    return [tuple(items[r * num_slots:(r + 1) * num_slots]) for r in range(rounds)]
