import unittest

from tasktree.errors import InvariantViolation
from tasktree.invariants import (
    assert_valid,
    check_invariants,
    find_violations,
    group_depth,
    index_of,
    is_descendant_of,
    subtree_end,
)
from tasktree.schema import Node


def seq(*entries):
    return [
        Node(id=node_id, name=node_id, level=level, parent_id=parent, display_order=i + 1)
        for i, (node_id, level, parent) in enumerate(entries)
    ]


VALID = seq(
    ("a", 0, None),
    ("b", 1, "a"),
    ("c", 2, "b"),
    ("d", 1, "a"),
    ("e", 0, None),
)


class TestStructureQueries(unittest.TestCase):
    def test_index_of(self):
        self.assertEqual(index_of(VALID, "d"), 3)
        self.assertEqual(index_of(VALID, "zz"), -1)
        self.assertEqual(index_of(VALID, None), -1)

    def test_subtree_end(self):
        self.assertEqual(subtree_end(VALID, 0), 4)
        self.assertEqual(subtree_end(VALID, 1), 3)
        self.assertEqual(subtree_end(VALID, 2), 3)
        self.assertEqual(subtree_end(VALID, 4), 5)

    def test_is_descendant_of(self):
        self.assertTrue(is_descendant_of(VALID, "c", "a"))
        self.assertTrue(is_descendant_of(VALID, "c", "b"))
        self.assertFalse(is_descendant_of(VALID, "d", "b"))
        self.assertFalse(is_descendant_of(VALID, "a", "a"))
        self.assertFalse(is_descendant_of(VALID, "e", "a"))

    def test_group_depth(self):
        self.assertEqual(group_depth(VALID, 0), 2)
        self.assertEqual(group_depth(VALID, 1), 1)
        self.assertEqual(group_depth(VALID, 4), 0)


class TestInvariantChecks(unittest.TestCase):
    def test_valid_sequence(self):
        self.assertEqual(find_violations(VALID, max_level=2), [])
        self.assertTrue(check_invariants(VALID, max_level=2))
        assert_valid(VALID, max_level=2)
        assert_valid([], max_level=2)

    def test_depth_bound(self):
        self.assertFalse(check_invariants(VALID, max_level=1))

    def test_display_order_gap(self):
        nodes = seq(("a", 0, None), ("b", 0, None))
        nodes[1].display_order = 3
        self.assertFalse(check_invariants(nodes, max_level=2))

    def test_duplicate_id(self):
        nodes = seq(("a", 0, None), ("a", 0, None))
        self.assertTrue(any("duplicate" in p for p in find_violations(nodes, 2)))

    def test_level_skips_a_tier(self):
        nodes = seq(("a", 0, None), ("b", 2, "a"))
        self.assertFalse(check_invariants(nodes, max_level=2))

    def test_child_separated_from_parent(self):
        nodes = seq(("a", 0, None), ("x", 0, None), ("b", 1, "a"))
        self.assertFalse(check_invariants(nodes, max_level=2))

    def test_child_before_parent(self):
        nodes = seq(("b", 1, "a"), ("a", 0, None))
        self.assertFalse(check_invariants(nodes, max_level=2))

    def test_root_with_parent(self):
        nodes = seq(("a", 0, None), ("b", 0, "a"))
        self.assertFalse(check_invariants(nodes, max_level=2))

    def test_self_parent(self):
        nodes = seq(("a", 0, None), ("b", 1, "b"))
        self.assertFalse(check_invariants(nodes, max_level=2))

    def test_assert_valid_lists_problems(self):
        nodes = seq(("a", 0, None), ("b", 2, "a"))
        with self.assertRaises(InvariantViolation) as ctx:
            assert_valid(nodes, max_level=2)
        self.assertTrue(ctx.exception.problems)
        self.assertIsInstance(ctx.exception, AssertionError)


if __name__ == "__main__":
    unittest.main()
