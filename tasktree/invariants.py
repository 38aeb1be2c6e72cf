"""
TASKTREE - Invariant Checks
===========================
Structural checks over a flat sequence, shared by the gesture classifier and
the mutation engine.
"""

from typing import Dict, List, Optional, Sequence

from .errors import InvariantViolation
from .schema import Node


def index_of(nodes: Sequence[Node], node_id: Optional[str]) -> int:
    """Position of node_id, or -1"""
    if node_id is None:
        return -1
    for i, node in enumerate(nodes):
        if node.id == node_id:
            return i
    return -1


def subtree_end(nodes: Sequence[Node], index: int) -> int:
    """Index just past the descendant block of nodes[index]"""
    level = nodes[index].level
    end = index + 1
    while end < len(nodes) and nodes[end].level > level:
        end += 1
    return end


def is_descendant_of(nodes: Sequence[Node], node_id: str, ancestor_id: str) -> bool:
    """True when node_id lies inside ancestor_id's descendant block"""
    start = index_of(nodes, ancestor_id)
    if start == -1:
        return False
    return any(n.id == node_id for n in nodes[start + 1:subtree_end(nodes, start)])


def group_depth(nodes: Sequence[Node], index: int) -> int:
    """How many tiers the block at index spans below its head"""
    end = subtree_end(nodes, index)
    head = nodes[index].level
    return max((n.level - head for n in nodes[index:end]), default=0)


def find_violations(nodes: Sequence[Node], max_level: int) -> List[str]:
    """Every invariant breach in the sequence, as readable messages"""
    problems: List[str] = []
    seen: Dict[str, int] = {}
    # open_at[level] = id of the nearest preceding node on that level
    open_at: List[str] = []

    for i, node in enumerate(nodes):
        if node.id in seen:
            problems.append(f"duplicate id {node.id} at {seen[node.id]} and {i}")
        seen[node.id] = i

        if node.display_order != i + 1:
            problems.append(f"{node.id}: display_order {node.display_order} at position {i + 1}")

        if node.level < 0 or node.level > max_level:
            problems.append(f"{node.id}: level {node.level} outside 0..{max_level}")
            continue

        if node.parent_id == node.id:
            problems.append(f"{node.id}: is its own parent")
            continue

        if node.level > len(open_at):
            problems.append(f"{node.id}: level {node.level} skips a tier")
            continue

        if node.level == 0:
            if node.parent_id is not None:
                problems.append(f"{node.id}: root level but parent {node.parent_id}")
        else:
            expected = open_at[node.level - 1]
            if node.parent_id != expected:
                problems.append(
                    f"{node.id}: parent {node.parent_id} but enclosing node is {expected}"
                )

        del open_at[node.level:]
        open_at.append(node.id)

    return problems


def check_invariants(nodes: Sequence[Node], max_level: int) -> bool:
    return not find_violations(nodes, max_level)


def assert_valid(nodes: Sequence[Node], max_level: int) -> None:
    """Raise InvariantViolation when the sequence is malformed"""
    problems = find_violations(nodes, max_level)
    if problems:
        raise InvariantViolation(problems)
