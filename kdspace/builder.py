"""
Median-split tree construction.

Builds a balanced k-d tree from a flat list of nodes. Used for fresh
trees and for ``KDTree.balance()``.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

import numpy as np

from kdspace.errors import DimensionMismatchError
from kdspace.node import Node
from kdspace.sorting import lower_median_index, sort_on_axis

logger = logging.getLogger(__name__)


def common_dimension(nodes: Sequence[Node]) -> int | None:
    """Shared coordinate length of *nodes*, or None for an empty list.

    Raises:
        DimensionMismatchError: If any node differs from the first.
    """
    if not nodes:
        return None
    dimensions = len(nodes[0].coords)
    for node in nodes:
        if len(node.coords) != dimensions:
            raise DimensionMismatchError(dimensions, len(node.coords))
    return dimensions


def build_subtree(
    nodes: Sequence[Node],
    depth: int = 0,
    parent: Node | None = None,
) -> Node | None:
    """Arrange *nodes* into a k-d tree and return its root.

    Strategy:
    1. Empty list: no tree
    2. Single node: a leaf with ``axis = depth % k``
    3. Otherwise sort on ``depth % k``, take the lower median as pivot,
       build the left half from everything before it and the right half
       from everything after it

    When other nodes tie with the lower median on the split axis, the
    pivot moves down to the first of them so that every tied node lands
    on the right. Existing links on the input nodes are overwritten, so
    any tree they currently belong to is broken by this call.

    Args:
        nodes: Nodes of one common dimension. Not modified.
        depth: Depth of the subtree root; call with 0.
        parent: Node the subtree will hang from; call with None.

    Returns:
        Root of the built subtree, or None when *nodes* is empty.
    """
    count = len(nodes)
    if count == 0:
        return None

    dimensions = len(nodes[0].coords)
    axis = depth % dimensions

    if count == 1:
        root = nodes[0]
        root.axis = axis
        root._set_parent(parent)
        root.left = None
        root.right = None
        return root

    ordered = sort_on_axis(nodes, axis)
    median = lower_median_index(count)
    # Left must be strictly smaller, so the pivot is the first of its ties.
    pivot_value = ordered[median].coords[axis]
    while median > 0 and ordered[median - 1].coords[axis] == pivot_value:
        median -= 1
    root = ordered[median]
    root.axis = axis
    root._set_parent(parent)
    root.left = build_subtree(ordered[:median], depth + 1, root)
    root.right = build_subtree(ordered[median + 1 :], depth + 1, root)
    return root


def nodes_from_points(
    points: Any,
    payloads: Sequence[Any] | None = None,
) -> list[Node]:
    """Create free-standing nodes from an ``(n, k)`` array-like.

    Args:
        points: Anything numpy can turn into a 2-D float array.
        payloads: Optional payload per row. Defaults to the row index.

    Returns:
        One node per row, in row order.

    Raises:
        ValueError: If *points* is not 2-D or *payloads* has the wrong length.
    """
    array = np.asarray(points, dtype=float)
    if array.ndim != 2:
        raise ValueError(f"points must be 2-D (n, k), got {array.ndim}-D")
    if payloads is not None and len(payloads) != array.shape[0]:
        raise ValueError(
            f"got {len(payloads)} payloads for {array.shape[0]} points"
        )

    nodes = []
    for row_index, row in enumerate(array.tolist()):
        payload = payloads[row_index] if payloads is not None else row_index
        nodes.append(Node(tuple(row), payload))
    logger.debug("Created %d nodes of dimension %d", len(nodes), array.shape[1])
    return nodes
