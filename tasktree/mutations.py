"""
TASKTREE - Mutation Engine
==========================
Applies operations to a flat sequence and returns the next sequence.

Structural operations always move a node together with its descendant block
(the moved group). Inputs are never modified; a rejected operation returns an
unchanged copy.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from .codec import normalize, renumber
from .invariants import group_depth, index_of, subtree_end
from .schema import Nest, Node, Operation, Reorder, Unnest

logger = logging.getLogger("tasktree.mutations")


def _copy(nodes: Sequence[Node]) -> List[Node]:
    return [n.model_copy(deep=True) for n in nodes]


def _fits_at(nodes: Sequence[Node], start: int, size: int) -> bool:
    """Whether the group at start..start+size is a well-formed subtree there"""
    head = nodes[start]
    follow = start + size
    if follow < len(nodes) and nodes[follow].level > head.level:
        return False
    for i in range(start - 1, -1, -1):
        if nodes[i].level < head.level:
            return nodes[i].level == head.level - 1 and nodes[i].id == head.parent_id
    return head.level == 0 and head.parent_id is None


# ========================================
# STRUCTURAL OPERATIONS
# ========================================

def reorder_check(nodes: Sequence[Node], node_id: str, before_id: Optional[str]) -> bool:
    """True when moving node_id before before_id (None = end) changes something valid"""
    index = index_of(nodes, node_id)
    if index == -1:
        return False
    end = subtree_end(nodes, index)

    if before_id is None:
        if end == len(nodes):
            return False
        insert = len(nodes) - (end - index)
    else:
        target = index_of(nodes, before_id)
        if target == -1 or index <= target <= end:
            return False
        insert = target if target < index else target - (end - index)

    work = list(nodes[:index]) + list(nodes[end:])
    group = list(nodes[index:end])
    work[insert:insert] = group
    return _fits_at(work, insert, len(group))


def reorder(
    nodes: Sequence[Node],
    node_id: str,
    before_id: Optional[str] = None
) -> List[Node]:
    """Move node_id's group before before_id, or to the end when None.

    The group head keeps its parent, so placements that would separate it from
    its parent's block are rejected.
    """
    if not reorder_check(nodes, node_id, before_id):
        logger.debug(f"Rejected reorder of {node_id} before {before_id}")
        return _copy(nodes)

    work = _copy(nodes)
    index = index_of(work, node_id)
    end = subtree_end(work, index)
    group = work[index:end]
    del work[index:end]

    insert = len(work) if before_id is None else index_of(work, before_id)
    work[insert:insert] = group
    return renumber(work)


def nest_check(nodes: Sequence[Node], node_id: str, target_id: str, max_level: int) -> bool:
    """True when node_id's group may become the last child of target_id"""
    index = index_of(nodes, node_id)
    target = index_of(nodes, target_id)
    if index == -1 or target == -1 or index == target:
        return False
    if index < target < subtree_end(nodes, index):
        return False
    target_level = nodes[target].level
    if target_level >= max_level:
        return False
    return target_level + 1 + group_depth(nodes, index) <= max_level


def nest(
    nodes: Sequence[Node],
    node_id: str,
    target_id: str,
    max_level: int = 2
) -> List[Node]:
    """Append node_id's group as the last child of target_id"""
    if not nest_check(nodes, node_id, target_id, max_level):
        logger.debug(f"Rejected nest of {node_id} under {target_id}")
        return _copy(nodes)

    work = _copy(nodes)
    index = index_of(work, node_id)
    end = subtree_end(work, index)
    group = work[index:end]
    del work[index:end]

    target = index_of(work, target_id)
    delta = work[target].level + 1 - group[0].level
    for node in group:
        node.level += delta
    group[0].parent_id = target_id

    insert = subtree_end(work, target)
    work[insert:insert] = group
    return renumber(work)


def unnest(nodes: Sequence[Node], node_id: str) -> List[Node]:
    """Promote node_id's group one level, right after its former parent's block"""
    index = index_of(nodes, node_id)
    if index == -1 or nodes[index].parent_id is None or nodes[index].level == 0:
        logger.debug(f"Rejected unnest of {node_id}")
        return _copy(nodes)

    work = _copy(nodes)
    former_parent_id = work[index].parent_id
    parent_index = index_of(work, former_parent_id)
    new_parent_id = work[parent_index].parent_id if parent_index != -1 else None

    end = subtree_end(work, index)
    group = work[index:end]
    del work[index:end]

    for node in group:
        node.level = max(0, node.level - 1)
    group[0].parent_id = new_parent_id

    parent_index = index_of(work, former_parent_id)
    insert = subtree_end(work, parent_index) if parent_index != -1 else len(work)
    work[insert:insert] = group
    return renumber(work)


def apply_operation(
    nodes: Sequence[Node],
    op: Optional[Operation],
    max_level: int = 2
) -> List[Node]:
    """Dispatch a classified operation; None leaves the sequence as is"""
    if op is None:
        return _copy(nodes)
    if isinstance(op, Reorder):
        return reorder(nodes, op.node_id, op.before_id)
    if isinstance(op, Nest):
        return nest(nodes, op.node_id, op.target_id, max_level)
    if isinstance(op, Unnest):
        return unnest(nodes, op.node_id)
    raise TypeError(f"Unknown operation: {op!r}")


# ========================================
# CONTENT OPERATIONS
# ========================================

def add_node(
    nodes: Sequence[Node],
    editing_id: Optional[str] = None,
    name: str = "",
    attributes: Optional[Dict[str, Any]] = None,
    at_head: bool = False
) -> Tuple[List[Node], Node]:
    """Insert a new node next to the one being edited.

    The new node takes the edited node's parent and level and goes after the
    edited node's descendant block. Without an edited node it goes to the
    tail, or the head when at_head is set.
    """
    work = _copy(nodes)
    new = Node(name=name, attributes=dict(attributes or {}))

    editing = index_of(work, editing_id)
    if editing != -1:
        new.parent_id = work[editing].parent_id
        new.level = work[editing].level
        insert = subtree_end(work, editing)
    elif at_head:
        insert = 0
    else:
        insert = len(work)

    work.insert(insert, new)
    renumber(work)
    return work, work[insert]


def rename(nodes: Sequence[Node], node_id: str, name: str) -> List[Node]:
    work = _copy(nodes)
    for node in work:
        if node.id == node_id:
            node.name = name
    return work


def update_attributes(
    nodes: Sequence[Node],
    node_id: str,
    attributes: Dict[str, Any],
    replace: bool = False
) -> List[Node]:
    """Merge (or replace) the opaque attribute payload of one node"""
    work = _copy(nodes)
    for node in work:
        if node.id == node_id:
            if replace:
                node.attributes = dict(attributes)
            else:
                node.attributes.update(attributes)
    return work


def delete_nodes(nodes: Sequence[Node], node_ids: Iterable[str]) -> List[Node]:
    """Remove exactly the given nodes.

    Descendants that are not selected survive; the ones that lose their parent
    are re-rooted, then levels and order are recomputed.
    """
    doomed = set(node_ids)
    if not doomed:
        return _copy(nodes)
    remaining = [n for n in nodes if n.id not in doomed]
    return normalize(remaining)
