"""
TASKTREE - Gesture Classifier
=============================
Turns pointer geometry during a drag into one structural operation.

classify() is a pure function. DragSession keeps the state of one drag
between the start, hover, drop and cancel events of the presentation layer.
"""

import logging
from typing import Optional, Sequence

from .invariants import index_of, is_descendant_of
from .mutations import nest_check, reorder_check
from .schema import EditorConfig, Nest, Node, Operation, PointerState, Reorder, Unnest

logger = logging.getLogger("tasktree.gestures")


def classify(
    nodes: Sequence[Node],
    dragged_id: str,
    pointer: PointerState,
    config: Optional[EditorConfig] = None
) -> Optional[Operation]:
    """Classify the pointer position for the node being dragged.

    Returns Unnest, Nest, Reorder or None when there is no valid target.
    """
    config = config or EditorConfig()

    dragged_index = index_of(nodes, dragged_id)
    if dragged_index == -1 or pointer.hovered_id is None:
        return None
    hovered_index = index_of(nodes, pointer.hovered_id)
    if hovered_index == -1:
        return None
    dragged = nodes[dragged_index]
    hovered = nodes[hovered_index]

    # Left edge zone promotes the node back to its grandparent
    if pointer.x < pointer.list_left + config.unnest_margin and dragged.level > 0:
        return Unnest(node_id=dragged_id)

    if hovered.id != dragged_id and _in_nest_zone(pointer, config):
        if (
            hovered.level < config.max_level
            and not is_descendant_of(nodes, hovered.id, dragged_id)
            and nest_check(nodes, dragged_id, hovered.id, config.max_level)
        ):
            return Nest(node_id=dragged_id, target_id=hovered.id)

    return _classify_reorder(nodes, dragged_index, hovered_index, pointer, config)


def _in_nest_zone(pointer: PointerState, config: EditorConfig) -> bool:
    """Middle band of the row, right-hand part of the name cell"""
    ratio = pointer.row_ratio
    if not (config.nest_band_low < ratio < config.nest_band_high):
        return False
    nest_left = pointer.cell_left + pointer.cell_width * config.nest_cell_offset
    return nest_left <= pointer.x <= pointer.cell_right


def _classify_reorder(
    nodes: Sequence[Node],
    dragged_index: int,
    hovered_index: int,
    pointer: PointerState,
    config: EditorConfig
) -> Optional[Reorder]:
    # Threshold depends on drag direction so the target does not flicker
    dragging_up = dragged_index > hovered_index
    ratio = config.upward_threshold if dragging_up else config.downward_threshold
    threshold = pointer.row_top + pointer.row_height * ratio

    dragged_id = nodes[dragged_index].id
    if pointer.y < threshold:
        before_id: Optional[str] = nodes[hovered_index].id
    elif hovered_index < len(nodes) - 1:
        before_id = nodes[hovered_index + 1].id
    else:
        before_id = None

    if before_id == dragged_id or not reorder_check(nodes, dragged_id, before_id):
        return None
    return Reorder(node_id=dragged_id, before_id=before_id)


class DragSession:
    """State of one drag gesture, from start to drop or cancel"""

    def __init__(self, config: Optional[EditorConfig] = None):
        self.config = config or EditorConfig()
        self.dragged_id: Optional[str] = None
        self.pending: Optional[Operation] = None

    @property
    def active(self) -> bool:
        return self.dragged_id is not None

    def start(self, node_id: str) -> None:
        self.dragged_id = node_id
        self.pending = None
        logger.debug(f"Drag started: {node_id}")

    def over(self, nodes: Sequence[Node], pointer: PointerState) -> Optional[Operation]:
        """Reclassify for the latest pointer position"""
        if not self.active:
            return None
        self.pending = classify(nodes, self.dragged_id, pointer, self.config)
        return self.pending

    def leave(self) -> None:
        """Pointer left the list; nothing is targeted until the next hover"""
        self.pending = None

    def drop(self) -> Optional[Operation]:
        """End the drag and hand back the last classification, if any"""
        op = self.pending
        self.reset()
        if op is not None:
            logger.debug(f"Drop: {op.kind} {op.node_id}")
        return op

    def cancel(self) -> None:
        """Explicit cancel or lost pointer capture: no mutation"""
        if self.active:
            logger.debug(f"Drag cancelled: {self.dragged_id}")
        self.reset()

    def reset(self) -> None:
        self.dragged_id = None
        self.pending = None

    def remap(self, mapping) -> None:
        """Follow id changes made by a commit while dragging"""
        if self.dragged_id in mapping:
            self.dragged_id = mapping[self.dragged_id]
        self.pending = None
