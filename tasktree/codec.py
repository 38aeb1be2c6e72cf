"""
TASKTREE - Flat/Tree Codec
==========================
Converts between nested trees and the flat pre-order sequence the editor
works on.
"""

import logging
from typing import Any, Callable, Dict, List, Sequence

from .schema import Node, TreeNode

logger = logging.getLogger("tasktree.codec")


def flatten(tree: Sequence[TreeNode], level: int = 0) -> List[Node]:
    """Pre-order traversal tagging every node with its depth.

    Children follow their parent immediately. display_order is renumbered by
    position on the outermost call.
    """
    result = _flatten(tree, level, None)
    if level == 0:
        renumber(result)
    return result


def _flatten(tree: Sequence[TreeNode], level: int, parent_id) -> List[Node]:
    result: List[Node] = []
    for item in tree:
        if level == 0:
            item_parent = None
        else:
            item_parent = parent_id if parent_id is not None else item.parent_id
        result.append(Node(
            id=item.id,
            name=item.name,
            parent_id=item_parent,
            level=level,
            display_order=item.display_order,
            attributes=dict(item.attributes),
        ))
        if item.children:
            result.extend(_flatten(item.children, level + 1, item.id))
    return result


def build(nodes: Sequence[Node]) -> List[TreeNode]:
    """Group a flat sequence back into a tree.

    Input order gives sibling order. A node whose parent is missing from the
    input becomes a root.
    """
    by_id: Dict[str, TreeNode] = {}
    for node in nodes:
        by_id[node.id] = TreeNode(
            id=node.id,
            name=node.name,
            parent_id=node.parent_id,
            display_order=node.display_order,
            attributes=dict(node.attributes),
        )

    parent_of = {
        node.id: node.parent_id
        for node in nodes
        if node.parent_id and node.parent_id in by_id
    }
    # Cut the link of the first node found on a parent cycle
    for node in nodes:
        seen = {node.id}
        current_id = parent_of.get(node.id)
        while current_id is not None:
            if current_id in seen:
                logger.debug(f"Parent cycle through {node.id}, treated as root")
                parent_of.pop(node.id, None)
                break
            seen.add(current_id)
            current_id = parent_of.get(current_id)

    roots: List[TreeNode] = []
    for node in nodes:
        current = by_id[node.id]
        parent_id = parent_of.get(node.id)
        if parent_id is not None:
            by_id[parent_id].children.append(current)
        else:
            if node.parent_id:
                logger.debug(f"Orphan {node.id} (parent {node.parent_id} missing), treated as root")
                current.parent_id = None
            roots.append(current)
    return roots


def renumber(nodes: List[Node]) -> List[Node]:
    """Set display_order to 1..N by position, in place"""
    for index, node in enumerate(nodes):
        node.display_order = index + 1
    return nodes


def normalize(nodes: Sequence[Node]) -> List[Node]:
    """Rebuild the sequence so levels and parents agree with positions.

    Used after deletions that may leave orphans behind.
    """
    return flatten(build(nodes))


def sort_hierarchically(
    nodes: Sequence[Node],
    key: Callable[[Node], Any],
    reverse: bool = False
) -> List[Node]:
    """Sort every sibling group by key, keeping children under their parent"""
    known = {n.id for n in nodes}
    roots = [n for n in nodes if not n.parent_id or n.parent_id not in known]
    children: Dict[str, List[Node]] = {}
    for node in nodes:
        if node.parent_id and node.parent_id in known:
            children.setdefault(node.parent_id, []).append(node)

    result: List[Node] = []

    def visit(group: List[Node], level: int, parent_id) -> None:
        for node in sorted(group, key=key, reverse=reverse):
            result.append(node.model_copy(update={"level": level, "parent_id": parent_id}, deep=True))
            visit(children.get(node.id, []), level + 1, node.id)

    visit(roots, 0, None)
    return renumber(result)


def by_attribute(name: str) -> Callable[[Node], Any]:
    """Sort key on one attribute; nodes without it sort last.

    Attribute values are opaque, so the key never compares values of different
    kinds: numbers come first, then strings, then anything else by its text.
    """
    def key(node: Node):
        value = node.attributes.get(name)
        if value is None:
            return (1, 0, "")
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return (0, 0, value)
        if isinstance(value, str):
            return (0, 1, value)
        return (0, 2, str(value))
    return key
