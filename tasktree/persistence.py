"""
TASKTREE - Bulk-Replace Persistence Bridge
==========================================
Serializes the flat sequence into back-reference rows, sends it to the store
as one atomic replace, and reconciles the ids the store assigns.

Commits are debounced and at most one is in flight at a time. On failure the
local sequence is kept and the next cycle retries with the latest state.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol, Sequence

from .errors import StorageError
from .schema import BulkNode, Collection, ListKind, Node, ReplaceResult, StoredNode, new_node_id

logger = logging.getLogger("tasktree.persistence")


# ========================================
# WIRE FORMAT
# ========================================

def serialize(nodes: Sequence[Node]) -> List[BulkNode]:
    """Rows in sequence order with parents given as earlier row indexes"""
    position: Dict[str, int] = {}
    rows: List[BulkNode] = []
    for index, node in enumerate(nodes):
        parent_index = None
        if node.parent_id is not None:
            candidate = position.get(node.parent_id)
            if candidate is not None and candidate < index:
                parent_index = candidate
        rows.append(BulkNode(
            name=node.name,
            display_order=index + 1,
            parent_index=parent_index,
            attributes=dict(node.attributes),
        ))
        position[node.id] = index
    return rows


def resolve_back_references(
    rows: Sequence[BulkNode],
    id_factory: Callable[[], str] = new_node_id
) -> List[StoredNode]:
    """Assign ids to every row first, then turn parent_index into parent_id.

    Raises StorageError for a back-reference that does not point strictly
    earlier in the array.
    """
    ids = [id_factory() for _ in rows]
    stored: List[StoredNode] = []
    for index, row in enumerate(rows):
        parent_id = None
        if row.parent_index is not None:
            if not 0 <= row.parent_index < index:
                raise StorageError(
                    f"Row {index}: parent_index {row.parent_index} must point to an earlier row"
                )
            parent_id = ids[row.parent_index]
        stored.append(StoredNode(
            id=ids[index],
            name=row.name,
            display_order=row.display_order,
            parent_id=parent_id,
            attributes=dict(row.attributes),
        ))
    return stored


def remap_ids(nodes: Sequence[Node], mapping: Dict[str, str]) -> List[Node]:
    """Swap provisional ids (and parent links to them) for stored ones"""
    result = []
    for node in nodes:
        update: Dict[str, Any] = {}
        if node.id in mapping:
            update["id"] = mapping[node.id]
        if node.parent_id in mapping:
            update["parent_id"] = mapping[node.parent_id]
        result.append(node.model_copy(update=update, deep=True) if update else node.model_copy(deep=True))
    return result


class CollectionStore(Protocol):
    """What the editor needs from a storage collaborator"""

    def replace_collection(
        self, owner_id: str, rows: Sequence[BulkNode], kind: ListKind = ListKind.DAILY
    ) -> ReplaceResult: ...

    def fetch_collection(self, owner_id: str) -> Optional[Collection]: ...

    def list_collections(self) -> List[Dict[str, Any]]: ...


class PersistenceBridge:
    """Hands full snapshots of one owner's list to the storage collaborator.

    replace_collection() runs in a worker thread.
    """

    def __init__(self, store: CollectionStore, owner_id: str, kind: ListKind = ListKind.DAILY):
        self.store = store
        self.owner_id = owner_id
        self.kind = kind

    def commit_sync(self, nodes: Sequence[Node]) -> Dict[str, str]:
        """Replace the stored collection; returns local id -> stored id"""
        rows = serialize(nodes)
        result = self.store.replace_collection(self.owner_id, rows, self.kind)
        if len(result.ids) != len(nodes):
            raise StorageError(
                f"Store returned {len(result.ids)} ids for {len(nodes)} nodes"
            )
        return {node.id: stored_id for node, stored_id in zip(nodes, result.ids)}

    async def commit(self, nodes: Sequence[Node]) -> Dict[str, str]:
        snapshot = [n.model_copy(deep=True) for n in nodes]
        return await asyncio.to_thread(self.commit_sync, snapshot)


# ========================================
# DEBOUNCED COMMITS
# ========================================

class CommitScheduler:
    """Debounced, single-flight autosave.

    schedule() (re)starts the idle timer. When it fires, snapshot() is read and
    passed to commit(). A timer that fires during an in-flight commit is not
    dropped: a new cycle starts once that commit ends.
    """

    def __init__(
        self,
        commit: Callable[[List[Node]], Awaitable[Dict[str, str]]],
        snapshot: Callable[[], List[Node]],
        delay: float = 0.5,
        on_committed: Optional[Callable[[Dict[str, str]], None]] = None,
        on_error: Optional[Callable[[Exception], None]] = None
    ):
        self._commit = commit
        self._snapshot = snapshot
        self.delay = delay
        self.on_committed = on_committed
        self.on_error = on_error

        self._timer: Optional[asyncio.TimerHandle] = None
        self._in_flight: Optional[asyncio.Task] = None
        self._rerun = False
        self.dirty = False
        self.commits = 0
        self.failures = 0
        self.last_error: Optional[Exception] = None

    @property
    def in_flight(self) -> bool:
        return self._in_flight is not None and not self._in_flight.done()

    @property
    def pending(self) -> bool:
        return self._timer is not None

    def schedule(self) -> None:
        """Note a change; commit after the idle delay"""
        self.dirty = True
        self._cancel_timer()
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(self.delay, self._fire)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _fire(self) -> None:
        self._timer = None
        if self.in_flight:
            self._rerun = True
            return
        self._in_flight = asyncio.ensure_future(self._run())

    async def _run(self) -> None:
        self.dirty = False
        nodes = self._snapshot()
        try:
            mapping = await self._commit(nodes)
        except Exception as e:
            # Keep the local edit; the next cycle sends the latest state
            self.dirty = True
            self.failures += 1
            self.last_error = e
            logger.warning(f"⚠️ Autosave failed, local changes kept: {e}")
            if self.on_error:
                self.on_error(e)
        else:
            self.commits += 1
            self.last_error = None
            logger.info(f"✅ Autosaved {len(nodes)} nodes")
            if self.on_committed:
                self.on_committed(mapping)
        finally:
            if self._rerun:
                self._rerun = False
                if self._timer is None:
                    self.schedule()

    async def flush(self) -> None:
        """Commit now if anything is unsaved, waiting out any in-flight commit"""
        self._cancel_timer()
        if self.in_flight:
            await self._in_flight
            self._cancel_timer()
        if self.dirty:
            self._in_flight = asyncio.ensure_future(self._run())
            await self._in_flight
            self._cancel_timer()

    def close(self) -> None:
        """Drop the pending timer; an in-flight commit is left to finish"""
        self._cancel_timer()
        self._rerun = False
