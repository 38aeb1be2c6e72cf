"""
TASKTREE - Hierarchical List Editor
===================================

Bounded-depth task lists edited as a flat sequence, reorganized by drag
gestures, and saved by replacing the whole collection at once.

Usage:
    from tasktree import ListEditor, JsonFileStore, PointerState

    editor = ListEditor(JsonFileStore(".tasktree/collections"))
    editor.load("alice-daily")

    a = editor.add_node("Morning")
    editor.stop_editing()
    b = editor.add_node("Stretch")

    # Drop "Stretch" on the right side of "Morning"'s name cell
    editor.drag_start(b.id)
    editor.drag_over(PointerState(hovered_id=a.id, x=150, y=20,
                                  row_top=0, row_height=40,
                                  cell_left=0, cell_width=200))
    editor.drop()

    editor.save()
"""

from .schema import (
    Node,
    TreeNode,
    Reorder,
    Nest,
    Unnest,
    Operation,
    PointerState,
    EditorConfig,
    ListKind,
    BulkNode,
    StoredNode,
    Collection,
    ReplaceResult,
)
from .errors import TaskTreeError, StorageError, CollectionNotFound, InvariantViolation
from .codec import flatten, build, renumber, sort_hierarchically
from .invariants import check_invariants, assert_valid, find_violations
from .gestures import classify, DragSession
from .mutations import apply_operation, reorder, nest, unnest
from .persistence import serialize, resolve_back_references, CollectionStore, PersistenceBridge, CommitScheduler
from .storage import JsonFileStore
from .editor import ListEditor

__version__ = "1.0.0"
__all__ = [
    "ListEditor",
    "JsonFileStore",
    "Node",
    "TreeNode",
    "Reorder",
    "Nest",
    "Unnest",
    "Operation",
    "PointerState",
    "EditorConfig",
    "ListKind",
    "BulkNode",
    "StoredNode",
    "Collection",
    "ReplaceResult",
    "TaskTreeError",
    "StorageError",
    "CollectionNotFound",
    "InvariantViolation",
    "flatten",
    "build",
    "renumber",
    "sort_hierarchically",
    "check_invariants",
    "assert_valid",
    "find_violations",
    "classify",
    "DragSession",
    "apply_operation",
    "reorder",
    "nest",
    "unnest",
    "serialize",
    "resolve_back_references",
    "CollectionStore",
    "PersistenceBridge",
    "CommitScheduler",
]
