"""
k-d tree node records and the subtree algorithms that operate on them.

Everything here assumes the caller already holds the owning tree's lock.
``KDTree`` in ``kdspace.tree`` is the thread-safe entry point; the methods
below are the unlocked building blocks it delegates to.

All walks are iterative so that badly skewed trees (for example, a tree
fed pre-sorted points) do not hit the interpreter's recursion limit.
"""

from __future__ import annotations

import logging
import weakref
from collections.abc import Callable, Iterator, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from kdspace.errors import InvariantViolationError
from kdspace.ranges import Range

logger = logging.getLogger(__name__)


def format_coords(coords: Sequence[float]) -> str:
    """Render coordinates as ``( x y ... )`` with 5 significant digits."""
    return "(" + "".join(f" {c:.5G}" for c in coords) + " )"


@dataclass(eq=False)
class Node:
    """
    A single point in a k-d tree.

    Nodes are created free-standing by the caller and adopted by a tree
    on insert or build. While a member, ``axis``, ``left``, ``right`` and
    the parent link belong to the tree and must be treated as read-only.
    Removal disowns the node and clears its links, after which it can be
    inserted again anywhere.

    Equality is identity: two nodes at the same coordinates are distinct.

    Attributes:
        coords: The point, stored as a tuple of floats.
        payload: Caller data. Never read or modified by the tree.
        axis: Discriminating axis, assigned on adoption.
        left: Subtree with smaller values on ``axis``.
        right: Subtree with greater or equal values on ``axis``.
    """

    coords: tuple[float, ...]
    payload: Any = None
    axis: int = field(default=0, init=False)
    left: Node | None = field(default=None, init=False, repr=False)
    right: Node | None = field(default=None, init=False, repr=False)

    # Weak back-reference; the tree owns nodes through child links only.
    _parent_ref: weakref.ref[Node] | None = field(default=None, init=False, repr=False)
    # Token of the adopting tree, None while free-standing.
    _owner: object | None = field(default=None, init=False, repr=False)

    def __post_init__(self) -> None:
        self.coords = tuple(float(c) for c in self.coords)
        if not self.coords:
            raise ValueError("a node needs at least one coordinate")

    # ------------------------------------------------------------------
    # Links
    # ------------------------------------------------------------------

    @property
    def parent(self) -> Node | None:
        """Parent node, or None for a root or a free-standing node."""
        if self._parent_ref is None:
            return None
        return self._parent_ref()

    def _set_parent(self, parent: Node | None) -> None:
        self._parent_ref = weakref.ref(parent) if parent is not None else None

    @property
    def dimensions(self) -> int:
        return len(self.coords)

    @property
    def is_leaf(self) -> bool:
        return self.left is None and self.right is None

    def children(self) -> list[Node]:
        """Existing children, left first."""
        return [c for c in (self.left, self.right) if c is not None]

    def root(self) -> Node:
        """Walk parent links up to the root of the tree holding this node."""
        node = self
        while node.parent is not None:
            node = node.parent
        return node

    def _clear_links(self) -> None:
        self.left = None
        self.right = None
        self._parent_ref = None

    # ------------------------------------------------------------------
    # Traversal
    # ------------------------------------------------------------------

    def iter_postorder(self) -> Iterator[Node]:
        """Yield the subtree left-first, depth-first, each node after its children."""
        stack: list[tuple[Node, bool]] = [(self, False)]
        while stack:
            node, expanded = stack.pop()
            if expanded:
                yield node
                continue
            stack.append((node, True))
            if node.right is not None:
                stack.append((node.right, False))
            if node.left is not None:
                stack.append((node.left, False))

    def traverse(self, fn: Callable[[Node], Any]) -> None:
        """Call *fn* on every node of the subtree in post-order."""
        for node in self.iter_postorder():
            fn(node)

    def node_list(self) -> list[Node]:
        """All nodes of the subtree."""
        return list(self.iter_postorder())

    def size(self) -> int:
        """Number of nodes in the subtree."""
        return sum(1 for _ in self.iter_postorder())

    def depth(self) -> int:
        """Nodes on the longest path from this node down to a leaf."""
        deepest = 0
        stack: list[tuple[Node, int]] = [(self, 1)]
        while stack:
            node, level = stack.pop()
            deepest = max(deepest, level)
            for child in node.children():
                stack.append((child, level + 1))
        return deepest

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    def find(self, coords: tuple[float, ...]) -> Node | None:
        """
        Exact-point lookup in this subtree.

        Comparison is plain float equality with no tolerance. Points equal
        to a node on its axis but different elsewhere live in the right
        subtree, so the walk continues right after a partial match.

        Args:
            coords: Target point, already of the tree's dimension.

        Returns:
            A node at exactly *coords*, or None. With duplicate points any
            one of them may be returned.
        """
        node: Node | None = self
        while node is not None:
            axis = node.axis
            if coords[axis] < node.coords[axis]:
                node = node.left
                continue
            if coords[axis] == node.coords[axis] and coords == node.coords:
                return node
            node = node.right
        return None

    def matches(self, restrictions: Mapping[int, Range]) -> bool:
        """True when every restricted coordinate lies inside its range."""
        return all(r.contains(self.coords[a]) for a, r in restrictions.items())

    def find_range(self, restrictions: Mapping[int, Range]) -> list[Node]:
        """
        Orthogonal range search over this subtree.

        A node's left subtree is visited only when its axis is unrestricted
        or the range minimum is strictly below the node's value; the right
        subtree only when the axis is unrestricted or the maximum is at or
        above it. Results come out left, self, right.

        Args:
            restrictions: Axis index to closed Range. Keys must already be
                checked against the tree's dimension.
        """
        result: list[Node] = []
        stack: list[Node] = []
        node: Node | None = self
        while stack or node is not None:
            while node is not None:
                stack.append(node)
                r = restrictions.get(node.axis)
                if r is None or r.min < node.coords[node.axis]:
                    node = node.left
                else:
                    node = None
            node = stack.pop()
            if node.matches(restrictions):
                result.append(node)
            r = restrictions.get(node.axis)
            if r is None or r.max >= node.coords[node.axis]:
                node = node.right
            else:
                node = None
        return result

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def _attach_leaf(self, new: Node) -> None:
        """Place a childless, parentless node below this one."""
        dimensions = len(self.coords)
        node = self
        while True:
            axis = node.axis
            if new.coords[axis] < node.coords[axis]:
                if node.left is None:
                    node.left = new
                    break
                node = node.left
            else:
                if node.right is None:
                    node.right = new
                    break
                node = node.right
        new.axis = (node.axis + 1) % dimensions
        new._set_parent(node)

    def graft(self, new: Node) -> list[Node]:
        """
        Insert *new*, and any subtree hanging from it, below this node.

        Descendants of *new* are placed first, children before parents and
        left before right, each cut loose from its old links. *new* itself
        goes in last as a leaf. This mutates the argument: callers who want
        to keep the donor structure must copy it first.

        Returns:
            Every node placed, in placement order.
        """
        placed = list(new.iter_postorder())
        for member in placed:
            member._clear_links()
            self._attach_leaf(member)
        return placed

    def remove(self) -> Node | None:
        """
        Detach this node from its tree and re-place its descendants.

        A non-root node is cut from its parent and each child subtree is
        grafted back starting at that former parent. A root hands over to
        its right child (grafting the left subtree under it) or to its only
        child.

        Returns:
            The replacement root when this node was the root, None when it
            was not the root or when the tree is now empty.

        Raises:
            InvariantViolationError: If the parent does not link back here.
        """
        parent = self.parent
        left, right = self.left, self.right

        if parent is not None:
            if parent.left is not self and parent.right is not self:
                logger.error("Node %s is not attached to its parent %s", self, parent)
                raise InvariantViolationError(
                    f"{self.describe()} to be removed not attached to its parent: "
                    f"{parent.describe()}"
                )
            if parent.left is self:
                parent.left = None
            if parent.right is self:
                parent.right = None
            self._clear_links()
            moved = 0
            for child in (left, right):
                if child is not None:
                    moved += len(parent.graft(child))
            logger.debug("Removed %s, re-placed %d descendants", self.describe(), moved)
            return None

        self._clear_links()
        if left is not None and right is not None:
            right._set_parent(None)
            moved = len(right.graft(left))
            logger.debug("Removed root %s, re-placed %d descendants", self.describe(), moved)
            return right
        replacement = left if left is not None else right
        if replacement is not None:
            replacement._set_parent(None)
        return replacement

    # ------------------------------------------------------------------
    # Display
    # ------------------------------------------------------------------

    def describe(self) -> str:
        """Short form used in error messages: ``[ ( x y ): axis = a ]``."""
        return f"[ {format_coords(self.coords)}: axis = {self.axis} ]"

    def __repr__(self) -> str:
        """String representation for debugging."""
        return f"<Node {format_coords(self.coords)} axis={self.axis} payload={self.payload!r}>"

