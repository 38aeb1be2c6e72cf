#!/usr/bin/env python3
"""
TASKTREE - CLI Interface
========================
Command-line tool for editing hierarchical task lists.

Usage:
    tasktree add "Morning routine" --owner alice-daily
    tasktree add "Stretch" --after 1 --owner alice-daily
    tasktree nest <id> <target-id> --owner alice-daily
    tasktree unnest <id> --owner alice-daily
    tasktree move <id> --before <id> | --end
    tasktree show --owner alice-daily
    tasktree list
    tasktree export --owner alice-daily > alice-daily.json
"""

import argparse
import json
import logging
import sys
from typing import Optional

from .editor import ListEditor
from .errors import CollectionNotFound, TaskTreeError
from .mutations import reorder_check, nest_check
from .schema import EditorConfig, ListKind, Nest, Reorder, Unnest
from .storage import JsonFileStore

DEFAULT_DIR = ".tasktree/collections"


def _resolve(editor: ListEditor, ref: str) -> Optional[str]:
    """Accept a full node id, a unique id prefix, or a 1-based position"""
    if editor.get_node(ref):
        return ref
    if ref.isdigit():
        if 1 <= int(ref) <= len(editor.nodes):
            return editor.nodes[int(ref) - 1].id
        return None
    matches = [n.id for n in editor.nodes if n.id.startswith(ref)]
    if len(matches) == 1:
        return matches[0]
    return None


def _parse_attributes(pairs) -> dict:
    attributes = {}
    for pair in pairs or []:
        key, sep, value = pair.partition("=")
        if not sep:
            raise ValueError(f"Expected key=value, got {pair!r}")
        attributes[key] = value
    return attributes


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tasktree",
        description="tasktree - hierarchical task list editor",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  tasktree add "Morning" --owner alice          Add a root node at the end
  tasktree add "Stretch" --after 1 --owner alice Add next to node #1, same level
  tasktree nest 2 1 --owner alice                Make node #2 the last child of #1
  tasktree unnest 2 --owner alice                Promote node #2 one level
  tasktree move 3 --before 1 --owner alice       Move node #3 (with children) above #1
  tasktree delete 2 4 --owner alice              Delete nodes #2 and #4 only
  tasktree sort start_time --owner alice         Sort siblings by an attribute
  tasktree show --owner alice                    Show the outline
  tasktree list                                  List stored collections
  tasktree export --owner alice                  Dump the stored collection as JSON
        """
    )
    parser.add_argument("--dir", default=DEFAULT_DIR, help="Collections directory")
    parser.add_argument("--config", help="Editor config JSON file")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    def with_owner(p):
        p.add_argument("--owner", required=True, help="Owner / collection id")
        p.add_argument("--kind", choices=[k.value for k in ListKind], help="List kind")
        return p

    # SHOW command
    show_parser = with_owner(subparsers.add_parser("show", help="Show a list outline"))
    show_parser.add_argument("--json", action="store_true", help="Output as JSON")

    # ADD command
    add_parser = with_owner(subparsers.add_parser("add", help="Add a node"))
    add_parser.add_argument("name", help="Node name")
    add_parser.add_argument("--after", help="Add next to this node, at its level")
    add_parser.add_argument("--head", action="store_true", help="Add at the top of the list")
    add_parser.add_argument("-a", "--attr", action="append", help="Attribute key=value")

    # RENAME command
    rename_parser = with_owner(subparsers.add_parser("rename", help="Rename a node"))
    rename_parser.add_argument("node", help="Node id, id prefix or position")
    rename_parser.add_argument("name", help="New name")

    # SET command
    set_parser = with_owner(subparsers.add_parser("set", help="Set node attributes"))
    set_parser.add_argument("node", help="Node id, id prefix or position")
    set_parser.add_argument("attrs", nargs="+", help="key=value pairs")

    # NEST command
    nest_parser = with_owner(subparsers.add_parser("nest", help="Nest a node under another"))
    nest_parser.add_argument("node", help="Node to move")
    nest_parser.add_argument("target", help="New parent")

    # UNNEST command
    unnest_parser = with_owner(subparsers.add_parser("unnest", help="Promote a node one level"))
    unnest_parser.add_argument("node", help="Node to promote")

    # MOVE command
    move_parser = with_owner(subparsers.add_parser("move", help="Reorder a node with its children"))
    move_parser.add_argument("node", help="Node to move")
    target = move_parser.add_mutually_exclusive_group(required=True)
    target.add_argument("--before", help="Place before this node")
    target.add_argument("--end", action="store_true", help="Place at the end")

    # DELETE command
    delete_parser = with_owner(subparsers.add_parser("delete", help="Delete nodes (children are kept)"))
    delete_parser.add_argument("nodes", nargs="+", help="Nodes to delete")

    # SORT command
    sort_parser = with_owner(subparsers.add_parser("sort", help="Sort siblings by an attribute"))
    sort_parser.add_argument("attribute", help="Attribute name")
    sort_parser.add_argument("--reverse", action="store_true", help="Descending")

    # LIST command
    list_parser = subparsers.add_parser("list", help="List stored collections")
    list_parser.add_argument("--json", action="store_true", help="Output as JSON")

    # EXPORT command
    export_parser = subparsers.add_parser("export", help="Dump a stored collection as JSON")
    export_parser.add_argument("--owner", required=True, help="Owner / collection id")
    export_parser.add_argument("-o", "--output", help="Write to this file instead of stdout")

    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)

    store = JsonFileStore(data_dir=args.dir)

    if args.command == "list":
        collections = store.list_collections()
        if args.json:
            print(json.dumps(collections, indent=2))
            return 0
        if not collections:
            print("No collections found")
            return 0
        print("📋 Collections:")
        print("-" * 60)
        for c in collections:
            print(f"  [{c['owner_id']}] {c['kind']}")
            print(f"      Nodes: {c['nodes']} | Roots: {c['roots']} | Levels: {c['levels']}")
            print(f"      Updated: {c['updated_at']}")
        print("-" * 60)
        return 0

    if args.command == "export":
        try:
            return _export(store, args)
        except TaskTreeError as e:
            print(f"❌ {e}")
            return 1

    config = EditorConfig.load(args.config) if args.config else EditorConfig()
    editor = ListEditor(store, config=config)

    try:
        editor.load(args.owner, ListKind(args.kind) if args.kind else None)
        return _run(editor, args)
    except (TaskTreeError, ValueError) as e:
        print(f"❌ {e}")
        return 1


def _export(store: JsonFileStore, args) -> int:
    collection = store.fetch_collection(args.owner)
    if collection is None:
        raise CollectionNotFound(f"Collection not found: {args.owner}")
    text = json.dumps(collection.model_dump(mode='json'), indent=2)
    if args.output:
        with open(args.output, 'w') as f:
            f.write(text + "\n")
        print(f"✅ Exported {len(collection.nodes)} nodes to {args.output}")
    else:
        print(text)
    return 0


def _run(editor: ListEditor, args) -> int:
    """Execute one editing command against a loaded editor"""
    max_level = editor.config.max_level

    def need(ref: str) -> str:
        node_id = _resolve(editor, ref)
        if node_id is None:
            raise ValueError(f"Node not found: {ref}")
        return node_id

    if args.command == "show":
        if args.json:
            print(json.dumps([n.model_dump(mode='json') for n in editor.nodes], indent=2))
        else:
            print(editor.render_outline())
        return 0

    if args.command == "add":
        if args.after:
            editor.start_editing(need(args.after))
        node = editor.add_node(args.name, attributes=_parse_attributes(args.attr), at_head=args.head)
        position = node.display_order
        editor.save()
        print(f"✅ Added #{position}: {args.name}")

    elif args.command == "rename":
        editor.rename(need(args.node), args.name)
        editor.save()
        print(f"✅ Renamed: {args.name}")

    elif args.command == "set":
        editor.set_attributes(need(args.node), _parse_attributes(args.attrs))
        editor.save()
        print("✅ Attributes updated")

    elif args.command == "nest":
        node_id, target_id = need(args.node), need(args.target)
        if not nest_check(editor.nodes, node_id, target_id, max_level):
            print("⛔ Cannot nest there (depth limit or own descendant)")
            return 1
        editor.apply(Nest(node_id=node_id, target_id=target_id))
        editor.save()
        print("✅ Nested")

    elif args.command == "unnest":
        node_id = need(args.node)
        if editor.get_node(node_id).parent_id is None:
            print("⛔ Node is already at the top level")
            return 1
        editor.apply(Unnest(node_id=node_id))
        editor.save()
        print("✅ Unnested")

    elif args.command == "move":
        node_id = need(args.node)
        before_id = None if args.end else need(args.before)
        if not reorder_check(editor.nodes, node_id, before_id):
            print("⛔ Nothing to move (same place, inside itself, or outside its parent)")
            return 1
        editor.apply(Reorder(node_id=node_id, before_id=before_id))
        editor.save()
        print("✅ Moved")

    elif args.command == "delete":
        count = editor.delete_many([need(ref) for ref in args.nodes])
        editor.save()
        print(f"🗑️ Deleted {count} nodes")

    elif args.command == "sort":
        editor.sort_by(args.attribute, reverse=args.reverse)
        editor.save()
        print(f"✅ Sorted by {args.attribute}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
