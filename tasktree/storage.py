"""
TASKTREE - File Storage
=======================
Storage collaborator keeping one JSON document per owner.

replace_collection() is all-or-nothing: ids are generated and back-references
resolved in memory, the new document is written to a temporary file and only
then moved over the old one. Any failure leaves the previous collection as it
was.
"""

import json
import logging
import os
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

from pydantic import ValidationError

from .codec import build
from .errors import CollectionNotFound, StorageError
from .schema import (
    BulkNode, Collection, ListKind, Node, ReplaceResult, TreeNode, new_node_id
)
from .persistence import resolve_back_references

logger = logging.getLogger("tasktree.storage")


def collection_tree(collection: Collection) -> List[TreeNode]:
    """Stored nodes grouped into a tree, siblings by display_order"""
    ordered = sorted(collection.nodes, key=lambda n: n.display_order)
    return build([
        Node(
            id=n.id,
            name=n.name,
            parent_id=n.parent_id,
            display_order=n.display_order,
            attributes=n.attributes,
        )
        for n in ordered
    ])


class JsonFileStore:
    """
    Primary storage: {data_dir}/{owner_id}.json

    One owner, one collection, no concurrent writers.
    """

    def __init__(
        self,
        data_dir: Union[str, Path] = ".tasktree/collections",
        id_factory: Callable[[], str] = new_node_id
    ):
        self.data_dir = Path(data_dir)
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.id_factory = id_factory

    # ========================================
    # REPLACE
    # ========================================

    def _get_collection_file(self, owner_id: str) -> Path:
        """Path to an owner's JSON document"""
        if not owner_id or "/" in owner_id or "\\" in owner_id or owner_id.startswith("."):
            raise StorageError(f"Invalid owner id: {owner_id!r}")
        return self.data_dir / f"{owner_id}.json"

    def replace_collection(
        self,
        owner_id: str,
        rows: Sequence[Union[BulkNode, Dict[str, Any]]],
        kind: ListKind = ListKind.DAILY
    ) -> ReplaceResult:
        """Delete the owner's collection and insert rows in its place, atomically"""
        file_path = self._get_collection_file(owner_id)

        try:
            parsed = [r if isinstance(r, BulkNode) else BulkNode.model_validate(r) for r in rows]
        except ValidationError as e:
            raise StorageError(f"Invalid rows for {owner_id}: {e}") from e
        stored = resolve_back_references(parsed, self.id_factory)

        previous = self._read(file_path)
        collection = Collection(
            owner_id=owner_id,
            kind=kind,
            created_at=previous.created_at if previous else datetime.utcnow(),
            nodes=stored,
        )
        self._write_atomic(file_path, collection)

        logger.info(f"✅ Replaced collection: {owner_id} ({len(stored)} nodes)")
        return ReplaceResult(count=len(stored), ids=[n.id for n in stored])

    def _write_atomic(self, file_path: Path, collection: Collection) -> None:
        fd, tmp_name = tempfile.mkstemp(prefix=f".{file_path.stem}-", suffix=".tmp", dir=self.data_dir)
        try:
            with os.fdopen(fd, 'w') as f:
                json.dump(collection.model_dump(mode='json'), f, indent=2, default=str)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, file_path)
        except Exception as e:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise StorageError(f"Could not write {file_path}: {e}") from e

    # ========================================
    # READ
    # ========================================

    def _read(self, file_path: Path) -> Optional[Collection]:
        if not file_path.exists():
            return None
        try:
            with open(file_path, 'r') as f:
                data = json.load(f)
            return Collection.model_validate(data)
        except (OSError, ValueError) as e:
            raise StorageError(f"Could not read {file_path}: {e}") from e

    def fetch_collection(self, owner_id: str) -> Optional[Collection]:
        """Load an owner's collection, or None when nothing is stored yet"""
        collection = self._read(self._get_collection_file(owner_id))
        if collection is None:
            logger.warning(f"Collection not found: {owner_id}")
            return None
        logger.info(f"📂 Loaded collection: {owner_id} ({len(collection.nodes)} nodes)")
        return collection

    def fetch_tree(self, owner_id: str) -> List[TreeNode]:
        """Stored nodes grouped into a tree, siblings by display_order"""
        collection = self.fetch_collection(owner_id)
        if collection is None:
            raise CollectionNotFound(f"Collection not found: {owner_id}")
        return collection_tree(collection)

    def list_collections(self) -> List[Dict[str, Any]]:
        """Summaries of every stored collection, newest first"""
        collections = []

        for file_path in self.data_dir.glob("*.json"):
            try:
                collection = self._read(file_path)
            except StorageError as e:
                logger.warning(f"Error reading {file_path}: {e}")
                continue
            if collection is None:
                continue
            collections.append({
                "owner_id": collection.owner_id,
                "kind": collection.kind.value,
                "nodes": len(collection.nodes),
                "roots": collection.root_count,
                "levels": collection.level_summary,
                "updated_at": collection.updated_at.isoformat(),
            })

        return sorted(collections, key=lambda x: x["updated_at"], reverse=True)

    def delete_collection(self, owner_id: str) -> bool:
        file_path = self._get_collection_file(owner_id)
        if not file_path.exists():
            return False
        file_path.unlink()
        logger.info(f"🗑️ Deleted collection: {owner_id}")
        return True
