"""
TASKTREE - List Editor
======================
Holds the current flat sequence of one owner's list and routes every edit
through the mutation engine.

Usage:
    store = JsonFileStore(".tasktree/collections")
    editor = ListEditor(store)
    editor.load("alice-daily")

    node = editor.add_node("Morning routine")
    editor.drag_start(node.id)
    editor.drag_over(PointerState(hovered_id=..., x=..., y=...))
    editor.drop()

    editor.save()
"""

import logging
from typing import Any, Callable, Dict, Iterable, List, Optional, Set

from . import mutations
from .codec import by_attribute, flatten, sort_hierarchically
from .gestures import DragSession
from .invariants import assert_valid, index_of
from .storage import collection_tree
from .persistence import CollectionStore, CommitScheduler, PersistenceBridge, remap_ids
from .schema import EditorConfig, ListKind, Node, Operation, PointerState

logger = logging.getLogger("tasktree.editor")


class ListEditor:
    """
    Editor for one hierarchical list.

    Keeps:
    - the flat sequence (always valid, checked after each mutation)
    - the currently edited node and the checked set
    - the active drag session
    - an optional debounced autosave when running inside an event loop
    """

    def __init__(
        self,
        store: CollectionStore,
        config: Optional[EditorConfig] = None,
        on_notice: Optional[Callable[[str], None]] = None
    ):
        self.store = store
        self.config = config or EditorConfig()
        self.on_notice = on_notice

        self.nodes: List[Node] = []
        self.owner_id: Optional[str] = None
        self.kind: ListKind = ListKind.DAILY
        self.editing_id: Optional[str] = None
        self.checked: Set[str] = set()
        self._last_checked: Optional[str] = None

        self.drag = DragSession(self.config)
        self._bridge: Optional[PersistenceBridge] = None
        self._scheduler: Optional[CommitScheduler] = None

    # ========================================
    # LOADING / SAVING
    # ========================================

    def load(self, owner_id: str, kind: Optional[ListKind] = None) -> List[Node]:
        """Load an owner's list; an owner with nothing stored starts empty"""
        collection = self.store.fetch_collection(owner_id)
        if collection is None:
            logger.info(f"No stored list for {owner_id}, starting empty")
            tree = []
            stored_kind = None
        else:
            tree = collection_tree(collection)
            stored_kind = collection.kind

        self.owner_id = owner_id
        self.kind = kind or stored_kind or ListKind.DAILY
        self.nodes = flatten(tree)
        self.editing_id = None
        self.checked = set()
        self.drag.reset()
        self._bridge = PersistenceBridge(self.store, owner_id, self.kind)

        assert_valid(self.nodes, self.config.max_level)
        logger.info(f"📂 Loaded list: {owner_id} ({len(self.nodes)} nodes)")
        return self.nodes

    def save(self) -> Dict[str, str]:
        """Replace the stored collection with the current sequence now"""
        self._require_loaded()
        mapping = self._bridge.commit_sync(self.nodes)
        self._apply_mapping(mapping)
        logger.info(f"✅ Saved list: {self.owner_id} ({len(self.nodes)} nodes)")
        return mapping

    def enable_autosave(self) -> CommitScheduler:
        """Commit after every quiet period; requires a running event loop"""
        self._require_loaded()
        self._scheduler = CommitScheduler(
            commit=self._bridge.commit,
            snapshot=lambda: list(self.nodes),
            delay=self.config.debounce_seconds,
            on_committed=self._apply_mapping,
            on_error=self._notify_failure,
        )
        return self._scheduler

    async def flush(self) -> None:
        if self._scheduler is not None:
            await self._scheduler.flush()
        else:
            self.save()

    def _apply_mapping(self, mapping: Dict[str, str]) -> None:
        if not mapping:
            return
        self.nodes = remap_ids(self.nodes, mapping)
        if self.editing_id in mapping:
            self.editing_id = mapping[self.editing_id]
        self.checked = {mapping.get(i, i) for i in self.checked}
        if self._last_checked in mapping:
            self._last_checked = mapping[self._last_checked]
        if self.drag.active:
            self.drag.remap(mapping)

    def _notify_failure(self, error: Exception) -> None:
        if self.on_notice:
            self.on_notice(f"Could not save the list: {error}")

    def _require_loaded(self) -> None:
        if self.owner_id is None:
            raise ValueError("No list loaded")

    def _commit(self, nodes: List[Node], reason: str) -> None:
        """Adopt a new sequence and schedule autosave if it changed"""
        assert_valid(nodes, self.config.max_level)
        changed = nodes != self.nodes
        self.nodes = nodes
        if not changed:
            logger.debug(f"No change: {reason}")
            return
        logger.debug(f"Applied: {reason}")
        if self._scheduler is not None:
            self._scheduler.schedule()

    # ========================================
    # CONTENT OPERATIONS
    # ========================================

    def get_node(self, node_id: str) -> Optional[Node]:
        """Get node by ID"""
        index = index_of(self.nodes, node_id)
        return self.nodes[index] if index != -1 else None

    def add_node(
        self,
        name: str = "",
        attributes: Optional[Dict[str, Any]] = None,
        at_head: bool = False
    ) -> Node:
        """Add next to the node being edited, or at the tail (head) otherwise"""
        self._require_loaded()
        nodes, node = mutations.add_node(
            self.nodes, self.editing_id, name=name, attributes=attributes, at_head=at_head
        )
        self._commit(nodes, f"add {node.id}")
        self.editing_id = node.id
        return node

    def start_editing(self, node_id: Optional[str]) -> None:
        if node_id is not None and self.get_node(node_id) is None:
            logger.warning(f"Node not found: {node_id}")
            return
        self.editing_id = node_id

    def stop_editing(self) -> None:
        self.editing_id = None

    def rename(self, node_id: str, name: str) -> Optional[Node]:
        self._require_loaded()
        if self.get_node(node_id) is None:
            logger.warning(f"Node not found: {node_id}")
            return None
        self._commit(mutations.rename(self.nodes, node_id, name), f"rename {node_id}")
        return self.get_node(node_id)

    def set_attributes(
        self,
        node_id: str,
        attributes: Dict[str, Any],
        replace: bool = False
    ) -> Optional[Node]:
        self._require_loaded()
        if self.get_node(node_id) is None:
            logger.warning(f"Node not found: {node_id}")
            return None
        self._commit(
            mutations.update_attributes(self.nodes, node_id, attributes, replace=replace),
            f"attributes {node_id}",
        )
        return self.get_node(node_id)

    def delete(self, node_id: str) -> bool:
        """Delete one node; its children are kept"""
        return self.delete_many([node_id]) > 0

    def delete_many(self, node_ids: Iterable[str]) -> int:
        self._require_loaded()
        doomed = {i for i in node_ids if self.get_node(i) is not None}
        if not doomed:
            return 0
        self._commit(mutations.delete_nodes(self.nodes, doomed), f"delete {len(doomed)}")
        self.checked -= doomed
        if self.editing_id in doomed:
            self.editing_id = None
        logger.info(f"🗑️ Deleted {len(doomed)} nodes")
        return len(doomed)

    def sort_by(self, attribute: str, reverse: bool = False) -> List[Node]:
        """Sort each sibling group by an attribute, keeping the hierarchy"""
        self._require_loaded()
        self._commit(
            sort_hierarchically(self.nodes, by_attribute(attribute), reverse=reverse),
            f"sort by {attribute}",
        )
        return self.nodes

    # ========================================
    # SELECTION
    # ========================================

    def toggle_check(self, node_id: str, extend: bool = False) -> Set[str]:
        """Toggle one node, or check the whole range from the last toggle"""
        if extend and self._last_checked is not None:
            start = index_of(self.nodes, self._last_checked)
            end = index_of(self.nodes, node_id)
            if start != -1 and end != -1:
                low, high = min(start, end), max(start, end)
                self.checked.update(n.id for n in self.nodes[low:high + 1])
                return self.checked

        if node_id in self.checked:
            self.checked.discard(node_id)
        else:
            self.checked.add(node_id)
        self._last_checked = node_id
        return self.checked

    def toggle_all(self) -> Set[str]:
        if self.nodes and len(self.checked) == len(self.nodes):
            self.checked = set()
        else:
            self.checked = {n.id for n in self.nodes}
        return self.checked

    def clear_selection(self) -> None:
        self.checked = set()
        self._last_checked = None

    def delete_checked(self) -> int:
        """Delete exactly the checked nodes"""
        if not self.checked:
            return 0
        count = self.delete_many(set(self.checked))
        self.clear_selection()
        return count

    # ========================================
    # DRAG AND DROP
    # ========================================

    def drag_start(self, node_id: str) -> None:
        if self.get_node(node_id) is None:
            logger.warning(f"Node not found: {node_id}")
            return
        self.drag.start(node_id)

    def drag_over(self, pointer: PointerState) -> Optional[Operation]:
        return self.drag.over(self.nodes, pointer)

    def drag_leave(self) -> None:
        self.drag.leave()

    def drop(self) -> Optional[Operation]:
        """Apply the last classified operation, if any"""
        op = self.drag.drop()
        if op is not None:
            self.apply(op)
        return op

    def cancel_drag(self) -> None:
        self.drag.cancel()

    def apply(self, op: Optional[Operation]) -> List[Node]:
        """Apply an operation directly (also used by the CLI)"""
        self._require_loaded()
        if op is None:
            return self.nodes
        self._commit(
            mutations.apply_operation(self.nodes, op, self.config.max_level),
            f"{op.kind} {op.node_id}",
        )
        return self.nodes

    # ========================================
    # REPORTING
    # ========================================

    def render_outline(self) -> str:
        """Indented text view of the list"""
        if self.owner_id is None:
            return "No list loaded"

        lines = [
            f"📋 {self.owner_id} ({self.kind.value})",
            f"Nodes: {len(self.nodes)}",
            "",
        ]
        for node in self.nodes:
            mark = "☑" if node.id in self.checked else "☐"
            name = node.name or "(untitled)"
            extra = ""
            if node.attributes:
                extra = " " + ", ".join(f"{k}={v}" for k, v in sorted(node.attributes.items()))
            lines.append(f"{node.display_order:>3}. {'    ' * node.level}{mark} {name}{extra}  [{node.id}]")
        return "\n".join(lines)
