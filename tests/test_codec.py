import random
import unittest

from tasktree.codec import build, by_attribute, flatten, normalize, renumber, sort_hierarchically
from tasktree.invariants import assert_valid
from tasktree.schema import Node, TreeNode


def seq(*entries):
    return [
        Node(id=node_id, name=node_id, level=level, parent_id=parent, display_order=i + 1)
        for i, (node_id, level, parent) in enumerate(entries)
    ]


def shape(tree):
    """Nested (id, children) tuples for structural comparison"""
    return [(t.id, shape(t.children)) for t in tree]


def random_tree(rng, max_depth=2, width=3, depth=0, prefix="n"):
    items = []
    for i in range(rng.randint(0 if depth else 1, width)):
        node_id = f"{prefix}{i}"
        children = random_tree(rng, max_depth, width, depth + 1, node_id + ".") if depth < max_depth else []
        items.append(TreeNode(id=node_id, name=node_id, children=children))
    return items


class TestFlatten(unittest.TestCase):
    def test_pre_order_with_levels_and_parents(self):
        tree = [
            TreeNode(id="a", children=[
                TreeNode(id="b", children=[TreeNode(id="c")]),
                TreeNode(id="d"),
            ]),
            TreeNode(id="e"),
        ]
        flat = flatten(tree)
        self.assertEqual([n.id for n in flat], ["a", "b", "c", "d", "e"])
        self.assertEqual([n.level for n in flat], [0, 1, 2, 1, 0])
        self.assertEqual([n.parent_id for n in flat], [None, "a", "b", "a", None])
        self.assertEqual([n.display_order for n in flat], [1, 2, 3, 4, 5])

    def test_attributes_are_carried(self):
        tree = [TreeNode(id="a", attributes={"start_time": "09:00"})]
        self.assertEqual(flatten(tree)[0].attributes, {"start_time": "09:00"})

    def test_empty(self):
        self.assertEqual(flatten([]), [])
        self.assertEqual(build([]), [])


class TestBuild(unittest.TestCase):
    def test_groups_by_parent_in_input_order(self):
        tree = build(seq(("a", 0, None), ("b", 1, "a"), ("c", 1, "a"), ("d", 0, None)))
        self.assertEqual(shape(tree), [("a", [("b", []), ("c", [])]), ("d", [])])

    def test_orphan_becomes_root(self):
        nodes = seq(("a", 0, None), ("x", 1, "missing"))
        tree = build(nodes)
        self.assertEqual(shape(tree), [("a", []), ("x", [])])
        self.assertIsNone(tree[1].parent_id)

    def test_parent_cycle_does_not_lose_nodes(self):
        nodes = [
            Node(id="a", parent_id="b", level=1),
            Node(id="b", parent_id="a", level=1),
        ]
        tree = build(nodes)
        self.assertEqual(shape(tree), [("a", [("b", [])])])

    def test_self_parent_becomes_root(self):
        tree = build([Node(id="a", parent_id="a")])
        self.assertEqual(shape(tree), [("a", [])])


class TestRoundTrip(unittest.TestCase):
    def test_round_trip_and_reflatten_stability(self):
        rng = random.Random(7)
        for _ in range(50):
            tree = random_tree(rng)
            flat = flatten(tree)
            assert_valid(flat, max_level=2)
            rebuilt = build(flat)
            self.assertEqual(shape(rebuilt), shape(tree))
            self.assertEqual(flatten(rebuilt), flat)


class TestHelpers(unittest.TestCase):
    def test_renumber(self):
        nodes = [Node(id="a", display_order=5), Node(id="b", display_order=9)]
        renumber(nodes)
        self.assertEqual([n.display_order for n in nodes], [1, 2])

    def test_normalize_reroots_orphans_after_parent(self):
        nodes = seq(("a", 0, None), ("c", 2, "b"), ("d", 1, "a"))
        result = normalize(nodes)
        assert_valid(result, max_level=2)
        self.assertEqual(
            [(n.id, n.level, n.parent_id) for n in result],
            [("a", 0, None), ("d", 1, "a"), ("c", 0, None)],
        )

    def test_sort_hierarchically_keeps_children_under_parent(self):
        nodes = seq(("a", 0, None), ("a1", 1, "a"), ("a2", 1, "a"), ("b", 0, None))
        nodes[0].attributes = {"start": "10:00"}
        nodes[1].attributes = {"start": "09:30"}
        nodes[2].attributes = {"start": "08:00"}
        nodes[3].attributes = {"start": "07:00"}

        result = sort_hierarchically(nodes, by_attribute("start"))
        assert_valid(result, max_level=2)
        self.assertEqual([n.id for n in result], ["b", "a", "a2", "a1"])

    def test_missing_attribute_sorts_last(self):
        nodes = seq(("a", 0, None), ("b", 0, None), ("c", 0, None))
        nodes[1].attributes = {"start": "09:00"}
        result = sort_hierarchically(nodes, by_attribute("start"))
        self.assertEqual([n.id for n in result], ["b", "a", "c"])

    def test_mixed_attribute_types_sort_without_error(self):
        nodes = seq(("a", 0, None), ("b", 0, None), ("c", 0, None), ("d", 0, None), ("e", 0, None))
        nodes[0].attributes = {"start": 9}
        nodes[1].attributes = {"start": "08:00"}
        nodes[2].attributes = {"start": ["x"]}
        nodes[4].attributes = {"start": 7.5}
        result = sort_hierarchically(nodes, by_attribute("start"))
        self.assertEqual([n.id for n in result], ["e", "a", "b", "c", "d"])


if __name__ == "__main__":
    unittest.main()
