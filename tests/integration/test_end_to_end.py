"""End-to-end scenarios for kdspace trees.

Exercises the public API the way a client would, on literal inputs and on
larger random point sets.

Test classes:
    TestSevenPointScenario: build, find, range and validate on literal 2-D points
    TestGrowFromEmpty: dimension fixing through inserts
    TestBulkRemoval: repeated removals from a built 6-D tree
    TestSkewedInsertThenBalance: one-sided inserts followed by balance()
    TestGraftLargeSubtree: grafting a built tree into another
"""

from __future__ import annotations

import math

import pytest

from kdspace import (
    DimensionMismatchError,
    KDTree,
    Node,
    Range,
    build_tree,
    filter_range,
)


class TestSevenPointScenario:
    """Build from seven literal points and query them."""

    def test_build(self, scenario_tree):
        root = scenario_tree.root
        assert root.coords == (6.0, 12.0)
        assert root.axis == 0
        left = {n.coords for n in root.left.iter_postorder()}
        right = {n.coords for n in root.right.iter_postorder()}
        assert all(x < 6.0 for x, _ in left)
        assert all(x >= 6.0 for x, _ in right)
        assert scenario_tree.validate()
        assert scenario_tree.size() == 7

    def test_find(self, scenario_tree, scenario_nodes):
        assert scenario_tree.find((6.0, 12.0)) is scenario_nodes[3]
        assert scenario_tree.find((6.0, 13.0)) is None
        with pytest.raises(DimensionMismatchError):
            scenario_tree.find((6.0, 12.0, 0.0))

    def test_range(self, scenario_tree):
        hits = scenario_tree.find_range({0: Range(2.0, 9.0), 1: Range(5.0, 13.0)})
        assert {n.coords for n in hits} == {(3.0, 6.0), (6.0, 12.0), (2.0, 7.0)}


class TestGrowFromEmpty:
    """Start empty and insert."""

    def test_insert_then_mismatch(self):
        tree = KDTree()
        tree.insert(Node((0.0, 0.0)))
        assert tree.size() == 1
        with pytest.raises(DimensionMismatchError):
            tree.insert(Node((0.0, 0.0, 0.0)))
        assert tree.size() == 1


class TestBulkRemoval:
    """Remove many nodes from a built 6-D tree."""

    def test_validate_after_each_removal(self, make_nodes):
        nodes = make_nodes(6, 2000, seed=12)
        tree = build_tree(nodes)
        removed = nodes[-200:]
        for node in removed:
            tree.remove(node)
            assert tree.validate()
        assert tree.size() == 1800

    def test_ten_thousand_minus_five_hundred(self, make_nodes):
        nodes = make_nodes(6, 10_000, seed=13)
        tree = build_tree(nodes)
        removed = nodes[-500:]
        for i, node in enumerate(removed):
            tree.remove(node)
            if i % 100 == 0:
                assert tree.validate()
        assert tree.validate()
        assert tree.size() == 9500
        for node in nodes[:-500]:
            assert tree.find(node.coords) is node
        for node in removed:
            assert tree.find(node.coords) is None


class TestSkewedInsertThenBalance:
    """All inserts land right of an origin seed; balance() repairs it."""

    def test_balance(self, make_nodes):
        size = 20_000
        tree = KDTree()
        tree.insert(Node((0.0,) * 6))
        for node in make_nodes(6, size, seed=14):
            tree.insert(node)

        assert tree.root.left is None
        total = size + 1
        skewed = tree.depth()
        assert skewed > math.ceil(math.log2(total)) + 2

        tree.balance()
        assert tree.depth() < skewed
        assert tree.depth() <= math.ceil(math.log2(total)) + 1
        stats = tree.statistics()
        assert abs(stats["left_size"] - stats["right_size"]) <= 10
        assert tree.validate()


class TestGraftLargeSubtree:
    """Graft one built tree into another."""

    def test_all_nodes_found(self, make_nodes):
        first = make_nodes(6, 3000, seed=15)
        second = make_nodes(6, 1000, seed=16)
        tree = build_tree(first)
        tree.insert(build_tree(second).root)
        assert tree.size() == 4000
        assert tree.validate()
        for node in first + second:
            assert tree.find(node.coords) is node
        query = {0: Range(0.25, 0.5), 3: Range.at_least(0.8)}
        expected = filter_range(first + second, query, 6)
        assert {id(n) for n in tree.find_range(query)} == {id(n) for n in expected}
