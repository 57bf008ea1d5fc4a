# Copyright 2026 Ruihang Li.
# Licensed under the Apache License, Version 2.0.
# See LICENSE file in the project root for details.

"""Slot assignment: round-robin binding, no-op padding and startup delays."""

from dataclasses import dataclass, field, replace
from typing import Dict, List, Sequence, Tuple

from multiprog.tasks.source import Task
from multiprog.utils.logging import get_logger
from multiprog.utils.task_distribution import slot_for

logger = get_logger(__name__)


@dataclass(frozen=True)
class Assignment:
    """Commands bound to each slot of one launcher invocation.

    Attributes:
        num_slots: Slot count N
        slots: Slot id -> commands in execution order, for every id in [0, N)
        padded_slots: Slots holding only the no-op entry
    """

    num_slots: int
    slots: Dict[int, Tuple[str, ...]]
    padded_slots: Tuple[int, ...] = field(default=())

    def commands(self, slot: int) -> Tuple[str, ...]:
        return self.slots.get(slot, ())

    def counts(self) -> List[int]:
        """Number of entries per slot, in slot order."""
        return [len(self.commands(slot)) for slot in range(self.num_slots)]

    @property
    def empty_slots(self) -> List[int]:
        return [slot for slot in range(self.num_slots) if not self.commands(slot)]


def assign_round_robin(tasks: Sequence[Task], num_slots: int) -> Assignment:
    """Bind task k to slot k mod N, keeping source order within each slot.

    Args:
        tasks: Tasks in source order
        num_slots: Slot count N

    Returns:
        Assignment with an entry (possibly empty) for every slot
    """
    buckets: Dict[int, List[str]] = {slot: [] for slot in range(num_slots)}
    for position, task in enumerate(tasks):
        buckets[slot_for(position, num_slots)].append(task.command)
    return Assignment(
        num_slots=num_slots,
        slots={slot: tuple(commands) for slot, commands in buckets.items()},
    )


def pad_assignment(assignment: Assignment, noop: str = "true") -> Assignment:
    """Give every empty slot exactly one no-op entry.

    Args:
        assignment: Assignment after round-robin
        noop: Command that always succeeds immediately

    Returns:
        Assignment where every slot has at least one entry
    """
    empty = assignment.empty_slots
    if not empty:
        return assignment

    logger.warning(
        f"Only {assignment.num_slots - len(empty)} task(s) for {assignment.num_slots} slots; "
        f"{len(empty)} slot(s) will run '{noop}'"
    )
    slots = dict(assignment.slots)
    for slot in empty:
        slots[slot] = (noop,)
    return replace(assignment, slots=slots, padded_slots=tuple(empty))


def delay_for_slot(slot: int, increment: float = 0.1) -> float:
    """Startup offset in seconds for a slot."""
    return round(slot * float(increment), 6)


def with_delay(command: str, slot: int, increment: float = 0.1) -> str:
    """Prefix a command with the slot's startup sleep.

    srun does not run inline configuration lines through a shell, so the
    "&&" only chains inside a slot script (file mode).
    """
    return f"sleep {delay_for_slot(slot, increment)} && {command}"


def apply_delay(assignment: Assignment, increment: float = 0.1) -> Assignment:
    """Stagger slot start-up: slot i's first command sleeps i * increment first.

    Args:
        assignment: Padded assignment
        increment: Seconds per slot index

    Returns:
        Assignment with delayed first entries
    """
    slots = {}
    for slot in range(assignment.num_slots):
        commands = assignment.commands(slot)
        if commands:
            commands = (with_delay(commands[0], slot, increment),) + commands[1:]
        slots[slot] = commands
    logger.debug(
        f"Applied startup delay: 0 to {delay_for_slot(assignment.num_slots - 1, increment)}s "
        f"across {assignment.num_slots} slots"
    )
    return replace(assignment, slots=slots)


def uniform_assignment(command: str, num_slots: int) -> Assignment:
    """Run the same command in every slot."""
    return Assignment(num_slots=num_slots, slots={slot: (command,) for slot in range(num_slots)})
