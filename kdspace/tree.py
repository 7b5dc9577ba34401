"""
Thread-safe k-d tree container.

``KDTree`` owns the root, fixes the dimension on first population and
routes every public operation through one readers/writer lock. Readers
(find, find_range, size, depth, node_list, traverse, validate, statistics)
share the lock; writers (insert, remove, balance) hold it exclusively for
their whole run, cascaded re-insertions included.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Callable, Iterable, Mapping, Sequence
from typing import Any

from kdspace.builder import build_subtree, common_dimension, nodes_from_points
from kdspace.config import TreeConfig
from kdspace.errors import (
    AlreadyAMemberError,
    DimensionMismatchError,
    InvariantViolationError,
    NotAMemberError,
)
from kdspace.locking import ReadWriteLock
from kdspace.node import Node
from kdspace.ranges import RangeLike, check_restrictions
from kdspace.validator import TreeValidationResult, TreeValidator

logger = logging.getLogger(__name__)


class KDTree:
    """
    A mutable k-d tree over caller-created nodes.

    The dimension *k* is taken from the first node inserted (or from a
    build) and never changes afterwards, even if every node is removed.

    Membership is by identity: each adopted node carries this tree's
    private owner token until it is removed.

    Args:
        config: Behaviour switches. Defaults to ``TreeConfig()``.

    Example::

        tree = KDTree()
        tree.insert(Node((3.0, 6.0), payload="a"))
        tree.insert(Node((17.0, 15.0), payload="b"))
        hit = tree.find((3.0, 6.0))
        inside = tree.find_range({0: Range(0.0, 10.0)})
    """

    def __init__(self, config: TreeConfig | None = None) -> None:
        self.config = config or TreeConfig()
        self._lock = ReadWriteLock()
        self._root: Node | None = None
        self._dimensions: int | None = None
        self._token = object()
        self._validator = TreeValidator()

    @classmethod
    def from_points(
        cls,
        points: Any,
        payloads: Sequence[Any] | None = None,
        config: TreeConfig | None = None,
    ) -> KDTree:
        """Build a balanced tree straight from an ``(n, k)`` array-like."""
        return build_tree(nodes_from_points(points, payloads), config=config)

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def root(self) -> Node | None:
        with self._lock.read_locked():
            return self._root

    @property
    def dimensions(self) -> int | None:
        """Tree dimension, or None until the first node arrives."""
        with self._lock.read_locked():
            return self._dimensions

    def is_member(self, node: Node) -> bool:
        """True when *node* is currently adopted by this tree."""
        return node._owner is self._token

    def __contains__(self, node: object) -> bool:
        return isinstance(node, Node) and self.is_member(node)

    def __len__(self) -> int:
        return self.size()

    # ------------------------------------------------------------------
    # Writers
    # ------------------------------------------------------------------

    def insert(self, node: Node) -> None:
        """
        Adopt *node*, grafting any subtree that hangs from it.

        Children of *node* are re-inserted one by one before *node* itself,
        and all of its old links are cleared. The argument is therefore
        mutated; deep-copy it first to keep the donor structure.

        Args:
            node: Free-standing node or subtree root.

        Raises:
            DimensionMismatchError: If any node in the subtree has the
                wrong number of coordinates. Nothing is inserted.
            AlreadyAMemberError: If any node in the subtree already belongs
                to this tree. Nothing is inserted.
        """
        with self._lock.write_locked():
            incoming = node.node_list()
            dimensions = self._dimensions
            if dimensions is None:
                dimensions = len(node.coords)
            for member in incoming:
                if len(member.coords) != dimensions:
                    raise DimensionMismatchError(dimensions, len(member.coords))
                if self.is_member(member):
                    raise AlreadyAMemberError(
                        f"{member.describe()} is already a member of this tree"
                    )

            if self._root is None:
                left, right = node.left, node.right
                node._clear_links()
                node.axis = 0
                self._root = node
                self._dimensions = dimensions
                for child in (left, right):
                    if child is not None:
                        node.graft(child)
            else:
                self._root.graft(node)

            for member in incoming:
                member._owner = self._token
            logger.debug("Inserted %d node(s) at %s", len(incoming), node.describe())
            self._check_after_write("insert")

    def insert_many(self, nodes: Iterable[Node]) -> None:
        """Insert nodes one at a time, each as its own write."""
        for node in nodes:
            self.insert(node)

    def remove(self, node: Node) -> None:
        """
        Remove *node* from the tree and disown it.

        Descendants of *node* are re-inserted below its former parent, or,
        for the root, below the promoted child. Cost grows with the size of
        the removed node's subtree. The removed node keeps its coordinates
        and payload and may be inserted again.

        Raises:
            NotAMemberError: If *node* was not adopted by this tree.
            InvariantViolationError: If the tree turns out to be corrupt.
        """
        with self._lock.write_locked():
            if not self.is_member(node):
                raise NotAMemberError(f"{node.describe()} is not a member of this tree")

            was_root = node is self._root
            if not was_root and node.parent is None:
                logger.error("Member %s has no parent and is not the root", node)
                raise InvariantViolationError(
                    f"{node.describe()} has no parent but is not the tree root"
                )

            replacement = node.remove()
            node._owner = None
            if was_root:
                self._root = replacement
                if replacement is None:
                    logger.debug(
                        "Tree emptied; keeping dimension %s", self._dimensions
                    )
            self._check_after_write("remove")

    def balance(self) -> None:
        """Rebuild the tree from its current nodes with median splits."""
        with self._lock.write_locked():
            if self._root is None:
                return
            nodes = self._root.node_list()
            before = self._root.depth()
            self._root = build_subtree(nodes)
            if self.config.log_rebalance:
                logger.info(
                    "Rebalanced %d nodes: depth %d -> %d",
                    len(nodes),
                    before,
                    self._root.depth() if self._root is not None else 0,
                )
            self._check_after_write("balance")

    def _check_after_write(self, operation: str) -> None:
        if not self.config.validate_after_writes:
            return
        result = self._validator.validate(self._root)
        if not result:
            logger.error("Tree invalid after %s: %s", operation, result.error_message)
            raise InvariantViolationError(
                f"Tree invalid after {operation}: {result.error_message}"
            )

    # ------------------------------------------------------------------
    # Readers
    # ------------------------------------------------------------------

    def find(self, coords: Sequence[float]) -> Node | None:
        """
        Return a node at exactly *coords*, or None.

        Raises:
            DimensionMismatchError: If ``len(coords)`` differs from the tree
                dimension.
        """
        target = tuple(float(c) for c in coords)
        with self._lock.read_locked():
            if self._dimensions is not None and len(target) != self._dimensions:
                raise DimensionMismatchError(self._dimensions, len(target))
            if self._root is None:
                return None
            return self._root.find(target)

    def find_range(self, restrictions: Mapping[int, RangeLike]) -> list[Node]:
        """
        Return every node inside all the given axis ranges.

        Args:
            restrictions: Axis index to ``Range`` or ``(min, max)`` pair.
                Unlisted axes are unrestricted; an empty mapping matches
                every node.

        Returns:
            Matching nodes. Callers must not rely on their order.

        Raises:
            AxisOutOfRangeError: If an axis is negative or ``>= k``.
        """
        with self._lock.read_locked():
            if self._dimensions is None:
                return []
            checked = check_restrictions(restrictions, self._dimensions)
            if self._root is None:
                return []
            return self._root.find_range(checked)

    def size(self) -> int:
        with self._lock.read_locked():
            return self._root.size() if self._root is not None else 0

    def depth(self) -> int:
        """Nodes on the longest root-to-leaf path; 0 when empty."""
        with self._lock.read_locked():
            return self._root.depth() if self._root is not None else 0

    def node_list(self) -> list[Node]:
        """Every node in the tree, in no particular order."""
        with self._lock.read_locked():
            return self._root.node_list() if self._root is not None else []

    def traverse(self, fn: Callable[[Node], Any]) -> None:
        """
        Call *fn* on every node, left-first depth-first post-order.

        *fn* runs under the read lock and must not call back into this
        tree; doing so can deadlock against a waiting writer.
        """
        with self._lock.read_locked():
            if self._root is not None:
                self._root.traverse(fn)

    def validate(self) -> TreeValidationResult:
        """Check the structural invariants; truthy when the tree is valid."""
        with self._lock.read_locked():
            return self._validator.validate(self._root)

    def statistics(self) -> dict[str, Any]:
        """Get tree statistics for analysis."""
        with self._lock.read_locked():
            root = self._root
            size = root.size() if root is not None else 0
            return {
                "size": size,
                "depth": root.depth() if root is not None else 0,
                "dimensions": self._dimensions,
                "ideal_depth": math.ceil(math.log2(size + 1)) if size else 0,
                "left_size": (
                    root.left.size() if root is not None and root.left is not None else 0
                ),
                "right_size": (
                    root.right.size() if root is not None and root.right is not None else 0
                ),
            }

    def __repr__(self) -> str:
        """String representation for debugging."""
        stats = self.statistics()
        return (
            f"<KDTree dims={stats['dimensions']} "
            f"nodes={stats['size']} "
            f"depth={stats['depth']}>"
        )


def build_tree(nodes: Sequence[Node], config: TreeConfig | None = None) -> KDTree:
    """
    Build a balanced tree from *nodes* with median splits.

    This is destructive: the nodes' links are overwritten and any tree they
    previously belonged to must be discarded.

    Args:
        nodes: Nodes of one common dimension, each listed once.
        config: Behaviour switches for the new tree.

    Raises:
        DimensionMismatchError: If the nodes disagree on dimension.
        ValueError: If the same node object appears twice.
    """
    nodes = list(nodes)
    dimensions = common_dimension(nodes)
    if len({id(node) for node in nodes}) != len(nodes):
        raise ValueError("build_tree() got the same node more than once")

    tree = KDTree(config)
    with tree._lock.write_locked():
        tree._dimensions = dimensions
        tree._root = build_subtree(nodes)
        for node in nodes:
            node._owner = tree._token
        logger.debug("Built tree of %d nodes, dimension %s", len(nodes), dimensions)
        tree._check_after_write("build")
    return tree
