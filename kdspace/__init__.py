"""
kdspace - mutable k-dimensional binary search trees.

Build a tree from points, insert and remove nodes, look points up exactly,
and run orthogonal range queries, all behind a readers/writer lock.
"""

from kdspace.builder import build_subtree, nodes_from_points
from kdspace.config import TreeConfig
from kdspace.errors import (
    AlreadyAMemberError,
    AxisOutOfRangeError,
    DimensionMismatchError,
    InvariantViolationError,
    KDTreeError,
    NotAMemberError,
)
from kdspace.node import Node
from kdspace.ranges import Range, filter_range
from kdspace.tree import KDTree, build_tree
from kdspace.validator import TreeValidationResult, TreeValidator, ValidationCheck

__all__ = [
    "KDTree",
    "Node",
    "Range",
    "TreeConfig",
    "build_tree",
    "build_subtree",
    "nodes_from_points",
    "filter_range",
    "TreeValidator",
    "TreeValidationResult",
    "ValidationCheck",
    "KDTreeError",
    "DimensionMismatchError",
    "AxisOutOfRangeError",
    "NotAMemberError",
    "AlreadyAMemberError",
    "InvariantViolationError",
]
