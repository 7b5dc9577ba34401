"""
Pytest configuration and fixtures for kdspace tests.
"""

from __future__ import annotations

from collections.abc import Callable

import numpy as np
import pytest

from kdspace import KDTree, Node, build_tree

SCENARIO_POINTS = [
    (3, 6),
    (17, 15),
    (13, 15),
    (6, 12),
    (9, 1),
    (2, 7),
    (10, 19),
]


@pytest.fixture
def make_nodes() -> Callable[..., list[Node]]:
    """Factory for reproducible random nodes in the unit cube.

    Payload is the row index, like ``nodes_from_points``.
    """

    def _make(dimensions: int, size: int, seed: int = 0) -> list[Node]:
        rng = np.random.RandomState(seed)
        samples = rng.random_sample((size, dimensions))
        return [Node(tuple(row), payload=i) for i, row in enumerate(samples.tolist())]

    return _make


@pytest.fixture
def scenario_nodes() -> list[Node]:
    """The seven 2-D points used throughout the examples."""
    return [Node(p, payload=f"p{i}") for i, p in enumerate(SCENARIO_POINTS)]


@pytest.fixture
def scenario_tree(scenario_nodes: list[Node]) -> KDTree:
    """Balanced tree built from the seven example points."""
    return build_tree(scenario_nodes)


@pytest.fixture
def random_tree(make_nodes: Callable[..., list[Node]]) -> tuple[KDTree, list[Node]]:
    """A built 3-D tree of 500 random nodes plus the node list."""
    nodes = make_nodes(3, 500, seed=7)
    return build_tree(nodes), nodes
