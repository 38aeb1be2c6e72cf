"""
TASKTREE - Schema Definition
============================
Nodes, operations, pointer geometry, bulk-replace rows and stored collections
for the hierarchical list editor.

A list is held as a flat pre-order sequence of Node objects. parent_id and
level are the only structural links.
"""

import json
from enum import Enum
from pathlib import Path
from typing import Optional, List, Dict, Any, Literal, Union
from datetime import datetime
from pydantic import BaseModel, Field, model_validator
import uuid


def new_node_id() -> str:
    """Provisional id for a node that has never been saved"""
    return str(uuid.uuid4())


class ListKind(str, Enum):
    """The task-list screens sharing the editor"""
    MONTHLY = "monthly"     # Monthly template tasks
    WEEKLY = "weekly"       # Weekly recurring tasks
    DAILY = "daily"         # Daily template with time ranges
    SPOT = "spot"           # One-off tasks with a date range
    YEARLY = "yearly"       # Tasks pinned to a month


# ============================================================
# NODES
# ============================================================

class Node(BaseModel):
    """One item in the flat sequence"""
    id: str = Field(default_factory=new_node_id)
    name: str = ""                      # May be empty while being edited
    parent_id: Optional[str] = None     # None = root
    level: int = Field(ge=0, default=0)
    display_order: int = Field(ge=1, default=1)

    # Screen specific payload (time range, weekdays, month...), never inspected
    attributes: Dict[str, Any] = Field(default_factory=dict)


class TreeNode(BaseModel):
    """Node with nested children, produced transiently by build()"""
    id: str = Field(default_factory=new_node_id)
    name: str = ""
    parent_id: Optional[str] = None
    display_order: int = Field(ge=1, default=1)
    attributes: Dict[str, Any] = Field(default_factory=dict)
    children: List["TreeNode"] = Field(default_factory=list)

    @property
    def depth(self) -> int:
        """Number of tiers below this node (a leaf has depth 0)"""
        if not self.children:
            return 0
        return 1 + max(child.depth for child in self.children)


# ============================================================
# OPERATIONS
# ============================================================

class Reorder(BaseModel):
    """Move a group so it sits before another node (or at the end)"""
    kind: Literal["reorder"] = "reorder"
    node_id: str
    before_id: Optional[str] = None     # None = move to end of the sequence

    @property
    def to_end(self) -> bool:
        return self.before_id is None


class Nest(BaseModel):
    """Make a group the last child of target_id"""
    kind: Literal["nest"] = "nest"
    node_id: str
    target_id: str


class Unnest(BaseModel):
    """Promote a group one level, next to its former parent"""
    kind: Literal["unnest"] = "unnest"
    node_id: str


Operation = Union[Reorder, Nest, Unnest]


class PointerState(BaseModel):
    """Pointer position and the geometry of the row under it.

    Coordinates share one frame (e.g. client pixels). hovered_id is None when
    the pointer is outside every row.
    """
    hovered_id: Optional[str] = None
    x: float
    y: float
    list_left: float = 0.0
    row_top: float = 0.0
    row_height: float = Field(gt=0, default=1.0)
    cell_left: float = 0.0
    cell_width: float = Field(ge=0, default=0.0)

    @property
    def row_ratio(self) -> float:
        """Vertical position inside the hovered row, 0 = top edge"""
        return (self.y - self.row_top) / self.row_height

    @property
    def cell_right(self) -> float:
        return self.cell_left + self.cell_width


# ============================================================
# CONFIGURATION
# ============================================================

class EditorConfig(BaseModel):
    """Tunables for nesting depth, drag geometry and autosave"""
    max_level: int = Field(ge=0, le=10, default=2)   # 2 = root/child/grandchild

    # Gesture geometry
    unnest_margin: float = Field(ge=0, default=50.0)          # px from list left edge
    nest_band_low: float = Field(ge=0, le=1, default=0.3)     # middle band of the row
    nest_band_high: float = Field(ge=0, le=1, default=0.7)
    nest_cell_offset: float = Field(ge=0, le=1, default=0.4)  # left part kept for reorder
    upward_threshold: float = Field(ge=0, le=1, default=0.7)
    downward_threshold: float = Field(ge=0, le=1, default=0.3)

    # Autosave
    debounce_seconds: float = Field(ge=0, default=0.5)

    @model_validator(mode="after")
    def check_band(self) -> "EditorConfig":
        if self.nest_band_low >= self.nest_band_high:
            raise ValueError("nest_band_low must be below nest_band_high")
        return self

    @classmethod
    def load(cls, path: Union[str, Path]) -> "EditorConfig":
        """Read a config from a JSON file"""
        with open(path, 'r') as f:
            data = json.load(f)
        return cls.model_validate(data)


# ============================================================
# PERSISTENCE
# ============================================================

class BulkNode(BaseModel):
    """One row of a bulk replace. Parents are positions in the same array."""
    name: str = ""
    display_order: int = Field(ge=1)
    parent_index: Optional[int] = None
    attributes: Dict[str, Any] = Field(default_factory=dict)


class StoredNode(BaseModel):
    """A node as kept by the storage collaborator"""
    id: str
    name: str = ""
    display_order: int = Field(ge=1)
    parent_id: Optional[str] = None
    attributes: Dict[str, Any] = Field(default_factory=dict)


class ReplaceResult(BaseModel):
    """Outcome of a successful replace: ids in payload order"""
    count: int = 0
    ids: List[str] = Field(default_factory=list)


class Collection(BaseModel):
    """Complete stored list for one owner"""
    owner_id: str
    kind: ListKind = ListKind.DAILY
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
    nodes: List[StoredNode] = Field(default_factory=list)

    @property
    def root_count(self) -> int:
        return sum(1 for n in self.nodes if n.parent_id is None)

    @property
    def level_summary(self) -> Dict[str, int]:
        """How many nodes sit on each tier"""
        by_id = {n.id: n for n in self.nodes}
        summary: Dict[str, int] = {}
        for node in self.nodes:
            level = 0
            parent_id = node.parent_id
            while parent_id in by_id and level <= len(self.nodes):
                level += 1
                parent_id = by_id[parent_id].parent_id
            key = f"level_{level}"
            summary[key] = summary.get(key, 0) + 1
        return summary
