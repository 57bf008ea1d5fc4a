# Copyright 2026 Ruihang Li.
# Licensed under the Apache License, Version 2.0.
# See LICENSE file in the project root for details.

"""Allocation utilities: how many slots the current allocation provides."""

import itertools
import re
from typing import List, Optional

from multiprog.utils.env import SlurmEnv
from multiprog.utils.exceptions import AllocationError, ErrorCode
from multiprog.utils.logging import get_logger

logger = get_logger(__name__)

_RANGE_RE = re.compile(r"^(\d+)(?:-(\d+))?$")
_CPUS_RE = re.compile(r"^(\d+)(?:\(x(\d+)\))?$")


def _split_top_level(text: str) -> List[str]:
    """Split on commas that are not inside brackets."""
    parts = []
    depth = 0
    current = ""
    for char in text:
        if char == "[":
            depth += 1
        elif char == "]":
            depth -= 1
            if depth < 0:
                raise AllocationError(f"Unbalanced brackets in node list: {text}", ErrorCode.NODELIST_ERROR)
        if char == "," and depth == 0:
            parts.append(current)
            current = ""
        else:
            current += char
    if depth != 0:
        raise AllocationError(f"Unbalanced brackets in node list: {text}", ErrorCode.NODELIST_ERROR)
    parts.append(current)
    return [p.strip() for p in parts if p.strip()]


def _expand_ranges(spec: str, nodelist: str) -> List[str]:
    """Expand the inside of one bracket group, e.g. "001-003,007"."""
    values = []
    for item in spec.split(","):
        match = _RANGE_RE.match(item.strip())
        if not match:
            raise AllocationError(f"Invalid range '{item}' in node list: {nodelist}", ErrorCode.NODELIST_ERROR)
        start, end = match.group(1), match.group(2)
        if end is None:
            values.append(start)
            continue
        width = len(start)
        if int(end) < int(start):
            raise AllocationError(f"Descending range '{item}' in node list: {nodelist}", ErrorCode.NODELIST_ERROR)
        values.extend(str(i).zfill(width) for i in range(int(start), int(end) + 1))
    return values


def expand_nodelist(nodelist: str) -> List[str]:
    """Expand a compressed Slurm host list.

    Example: "nid[001-003,007],login1" -> nid001, nid002, nid003, nid007, login1.
    Zero padding of range bounds is preserved and several bracket groups in one
    host name expand to their cartesian product.

    Args:
        nodelist: Compressed host list

    Returns:
        Host names in order
    """
    hosts = []
    for expr in _split_top_level(nodelist):
        pieces = re.split(r"(\[[^\]]*\])", expr)
        choices = []
        for piece in pieces:
            if piece.startswith("[") and piece.endswith("]"):
                choices.append(_expand_ranges(piece[1:-1], nodelist))
            elif piece:
                choices.append([piece])
        hosts.extend("".join(combo) for combo in itertools.product(*choices))
    return hosts


def expand_cpus_per_node(cpus_per_node: str) -> List[int]:
    """Expand SLURM_JOB_CPUS_PER_NODE, e.g. "36(x2),20" -> [36, 36, 20]."""
    counts = []
    for item in cpus_per_node.split(","):
        match = _CPUS_RE.match(item.strip())
        if not match:
            raise AllocationError(f"Invalid CPUs-per-node entry '{item}': {cpus_per_node}")
        repeat = int(match.group(2) or 1)
        counts.extend([int(match.group(1))] * repeat)
    return counts


def get_num_nodes(env: SlurmEnv) -> Optional[int]:
    """Number of nodes in the allocation, or None if unknown."""
    if env.nodelist:
        return len(expand_nodelist(env.nodelist))
    return env.num_nodes


def get_node_cpus(env: SlurmEnv) -> List[int]:
    """CPU count of every node in the allocation, or an empty list if unknown.

    The per-node list from SLURM_JOB_CPUS_PER_NODE is used when present, so
    nodes of different sizes each keep their own count. SLURM_CPUS_ON_NODE
    only describes the local node and is repeated for every node otherwise.
    """
    if env.job_cpus_per_node:
        return expand_cpus_per_node(env.job_cpus_per_node)
    num_nodes = get_num_nodes(env)
    if env.cpus_on_node and num_nodes:
        return [env.cpus_on_node] * num_nodes
    return []


def resolve_num_slots(env: SlurmEnv, threads: int = 1) -> int:
    """Determine the number of execution slots.

    An explicit task count wins. Otherwise every node contributes
    its cpus // threads slots (at least one).

    Args:
        env: Allocation context
        threads: Threads per task

    Returns:
        Slot count N > 0
    """
    if env.ntasks is not None:
        if env.ntasks <= 0:
            raise AllocationError(f"Invalid task count in allocation: {env.ntasks}")
        logger.debug(f"Using explicit task count: {env.ntasks}")
        return env.ntasks

    if not env.in_allocation:
        raise AllocationError(
            "No active allocation found (SLURM_NTASKS / SLURM_JOB_NODELIST not set); "
            "run multiprog inside a job allocation"
        )

    node_cpus = get_node_cpus(env)
    if not node_cpus or not all(node_cpus):
        raise AllocationError(
            f"Cannot derive slot count from allocation (nodes={get_num_nodes(env)}, cpus_per_node={node_cpus})"
        )

    threads = max(threads, 1)
    per_node = [max(cpus // threads, 1) for cpus in node_cpus]
    num_slots = sum(per_node)
    logger.debug(f"Derived slot count: {per_node} over {len(per_node)} nodes = {num_slots}")
    return num_slots
